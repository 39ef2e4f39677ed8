"""Tests for the conversation state machine."""
from __future__ import annotations

import copy
import threading

import pytest

from src.conversation.engine import (
    OPT_IN_NUDGE,
    ConversationEngine,
    is_opt_in,
    low_rating_follow_up,
)
from src.conversation.questions import (
    QUESTIONS,
    AnswerType,
    Question,
    QuestionCatalog,
)
from src.conversation.validator import RATING_REASON, YES_NO_REASON
from src.exceptions import ProcessingError
from src.session_data import ConversationState, Role, SessionData
from src.session_store import ConversationSessionStore, ThreadSafeSessionStore
from src.storage.events import EventRecord, MemoryEventRepository

EVENT_ID = "evt-1"


class FakeGenerator:
    """Deterministic stand-in for GenerationAdapter."""

    def __init__(self, reply="I'd love to hear from you whenever you like.", sentiment=None):
        self.reply = reply
        self.sentiment = sentiment or "Sentiment: Positive. Nice. Topics: speakers."
        self.fail_sentiment = False
        self.instructions: list = []
        self.sentiment_inputs: list[str] = []

    def generate_reply(self, history, instruction=None):
        self.instructions.append(instruction)
        return self.reply

    def classify_sentiment(self, text):
        self.sentiment_inputs.append(text)
        if self.fail_sentiment:
            raise RuntimeError("sentiment backend down")
        return self.sentiment

    def generate_conclusion(self, history):
        return "Thanks, that's everything!"


class FlakyBackend(ThreadSafeSessionStore):
    """In-memory backend whose saves can be switched to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_saves = False

    def save(self, session):
        if self.fail_saves:
            raise ConnectionError("database went away")
        super().save(session)


class FailingEvents(MemoryEventRepository):
    def increment_feedback_count(self, event_id):
        raise ConnectionError("events collection unavailable")


@pytest.fixture
def events():
    repo = MemoryEventRepository()
    repo.add(EventRecord(event_id=EVENT_ID, name="PyCon"))
    return repo


@pytest.fixture
def store():
    return ConversationSessionStore.in_memory()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def engine(store, generator, events):
    return ConversationEngine(store=store, generator=generator, events=events)


def _run(engine, *messages, session_id="conv-1"):
    return [engine.process_turn(session_id, EVENT_ID, m, user_id="U1") for m in messages]


FULL_ANSWERS = ("yes", "4", "5", "4", "3", "Great speakers", "More food", "yes")


# ---------------------------------------------------------------------------
# Opt-in
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("message", ["yes", "Sure!", "ok let's go", "Yeah", "fine"])
def test_is_opt_in(message):
    assert is_opt_in(message)


def test_non_opt_in_gets_generated_reply_with_nudge(engine, store, generator):
    result = engine.process_turn("conv-1", EVENT_ID, "hmm, not now")

    assert result.message == f"{generator.reply} {OPT_IN_NUDGE}"
    assert result.is_complete is False
    assert generator.instructions[0] is not None

    session = store.get("conv-1")
    assert session.state() is ConversationState.NOT_STARTED
    assert [m.role for m in session.messages] == [Role.SYSTEM, Role.USER, Role.ASSISTANT]


def test_no_nudge_when_reply_mentions_yes(store, events):
    generator = FakeGenerator(reply="Just say yes when you're ready!")
    engine = ConversationEngine(store=store, generator=generator, events=events)

    result = engine.process_turn("conv-1", EVENT_ID, "later")

    assert result.message == "Just say yes when you're ready!"


def test_opt_in_asks_first_question(engine, store):
    result = engine.process_turn("conv-1", EVENT_ID, "yes")

    assert result.message == QUESTIONS.by_index(0).prompt_text
    session = store.get("conv-1")
    assert session.started
    assert session.answers == {}
    assert session.state() is ConversationState.IN_PROGRESS


# ---------------------------------------------------------------------------
# Answers
# ---------------------------------------------------------------------------


def test_invalid_rating_repeats_reason_without_advancing(engine, store):
    _run(engine, "yes")
    result = engine.process_turn("conv-1", EVENT_ID, "seven")

    assert result.message == RATING_REASON
    session = store.get("conv-1")
    assert session.answers == {}
    assert session.current_index() == 0
    assert session.messages[-2].content == "seven"


def test_invalid_yes_no_answer(engine):
    results = _run(engine, *FULL_ANSWERS[:-1], "maybe")
    assert results[-1].message == YES_NO_REASON
    assert results[-1].is_complete is False


def test_valid_rating_advances(engine, store):
    results = _run(engine, "yes", "4")

    assert results[-1].message == QUESTIONS.by_index(1).prompt_text
    assert store.get("conv-1").answers == {"overall": "4"}


def test_full_conversation(engine, store, events, generator):
    results = _run(engine, *FULL_ANSWERS)

    prompts = [r.message for r in results[:-1]]
    assert prompts == [q.prompt_text for q in QUESTIONS]
    assert results[-1].message == "Thanks, that's everything!"
    assert results[-1].is_complete is True

    session = store.get("conv-1")
    assert session.completed
    assert session.completed_at is not None
    assert session.user_id == "U1"
    assert session.answers == {
        "overall": "4",
        "content": "5",
        "speakers": "4",
        "venue": "3",
        "highlights": "Great speakers",
        "improvements": "More food",
        "future": "yes",
    }
    # One sentiment per free-text answer
    assert generator.sentiment_inputs == ["Great speakers", "More food"]
    responses = session.responses()
    assert responses["highlights_sentiment"] == generator.sentiment
    assert responses["improvements_sentiment"] == generator.sentiment
    assert events.find_by_id(EVENT_ID).feedback_count == 1


def test_complete_session_is_a_no_op(engine, store, events):
    _run(engine, *FULL_ANSWERS)
    before = store.get("conv-1")

    result = engine.process_turn("conv-1", EVENT_ID, "one more thing")

    after = store.get("conv-1")
    assert result.is_complete is True
    assert result.message == "Thanks, that's everything!"
    assert len(after.messages) == len(before.messages)
    assert events.find_by_id(EVENT_ID).feedback_count == 1


def test_apply_message_is_deterministic(engine, store):
    _run(engine, "yes", "4")
    session = store.get("conv-1")
    first, second = copy.deepcopy(session), copy.deepcopy(session)

    r1 = engine.apply_message(first, "5")
    r2 = engine.apply_message(second, "5")

    assert r1 == r2
    assert first.answers == second.answers == {"overall": "4", "content": "5"}


def test_sentiment_failure_keeps_answer(engine, store, generator):
    generator.fail_sentiment = True
    results = _run(engine, *FULL_ANSWERS[:6])

    assert results[-1].message == QUESTIONS.by_index(5).prompt_text
    session = store.get("conv-1")
    assert session.answers["highlights"] == "Great speakers"
    assert session.sentiments == {}


# ---------------------------------------------------------------------------
# Low rating follow-up
# ---------------------------------------------------------------------------

LOW_RATING_CATALOG = QuestionCatalog(
    [
        Question("venue", "Rate the venue (1-5)", AnswerType.RATING),
        Question("improvements", "What could be improved?", AnswerType.FREE_TEXT),
    ]
)


@pytest.fixture
def low_rating_engine(store, generator, events):
    return ConversationEngine(
        store=store, generator=generator, events=events, catalog=LOW_RATING_CATALOG
    )


@pytest.mark.parametrize("rating", ["1", "2"])
def test_low_rating_before_improvements_asks_targeted_question(low_rating_engine, rating):
    results = _run(low_rating_engine, "yes", rating)

    assert results[-1].message == (
        "I noticed you rated venue quite low. What could be improved? "
        "Specifically, what about the venue could be better?"
    )
    assert results[-1].message == low_rating_follow_up(
        LOW_RATING_CATALOG.by_index(0), LOW_RATING_CATALOG.by_index(1)
    )


def test_higher_rating_gets_plain_prompt(low_rating_engine):
    results = _run(low_rating_engine, "yes", "3")
    assert results[-1].message == "What could be improved?"


def test_default_catalog_never_uses_low_rating_branch(engine):
    results = _run(engine, "yes", "1", "1", "1", "1")
    assert results[-1].message == QUESTIONS.by_index(4).prompt_text


# ---------------------------------------------------------------------------
# Persistence and counters
# ---------------------------------------------------------------------------


def test_save_failure_raises_processing_error(generator, events):
    backend = FlakyBackend()
    store = ConversationSessionStore(backend, persistent=True)
    engine = ConversationEngine(store=store, generator=generator, events=events)
    engine.process_turn("conv-1", EVENT_ID, "yes")

    backend.fail_saves = True
    with pytest.raises(ProcessingError) as exc_info:
        engine.process_turn("conv-1", EVENT_ID, "4")

    assert exc_info.value.category == "processing_failed"
    backend.fail_saves = False
    assert store.get("conv-1").answers == {}


def test_counter_failure_does_not_fail_turn(store, generator):
    events = FailingEvents()
    events.add(EventRecord(event_id=EVENT_ID, name="PyCon"))
    engine = ConversationEngine(store=store, generator=generator, events=events)

    results = _run(engine, *FULL_ANSWERS)

    assert results[-1].is_complete is True
    assert store.get("conv-1").completed


def test_concurrent_turns_are_serialised(engine, store):
    _run(engine, "yes")
    barrier = threading.Barrier(2)

    def _answer():
        barrier.wait()
        engine.process_turn("conv-1", EVENT_ID, "4")

    threads = [threading.Thread(target=_answer) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    session = store.get("conv-1")
    assert session.answers == {"overall": "4", "content": "4"}
    assert store.active_locks() == 0


def test_sessions_are_independent(engine, store):
    engine.process_turn("a", EVENT_ID, "yes")
    engine.process_turn("b", EVENT_ID, "no thanks")

    assert store.get("a").started is True
    assert store.get("b").started is False
