"""Tests for the transport-neutral request handlers."""
from __future__ import annotations

import pytest

from src.api import (
    GENERIC_ERROR_MESSAGE,
    Identity,
    error_response,
    handle_analytics_request,
    handle_chat_request,
)
from src.conversation.engine import ConversationEngine
from src.conversation.questions import QUESTIONS
from src.exceptions import (
    AuthenticationError,
    EventNotFoundError,
    PermissionDeniedError,
    ProcessingError,
    RequestValidationError,
)
from src.reporting.aggregator import AnalyticsAggregator
from src.session_store import ConversationSessionStore
from src.storage.events import EventRecord, MemoryEventRepository


class StaticGenerator:
    def generate_reply(self, history, instruction=None):
        return "Say yes when ready."

    def classify_sentiment(self, text):
        return "Sentiment: Neutral. Fine. Topics: venue."

    def generate_conclusion(self, history):
        return "Thank you!"


@pytest.fixture
def events():
    repo = MemoryEventRepository()
    repo.add(EventRecord(event_id="evt-1", name="PyCon", organizer_id="U-ORG"))
    return repo


@pytest.fixture
def store():
    return ConversationSessionStore.in_memory()


@pytest.fixture
def engine(store, events):
    return ConversationEngine(store=store, generator=StaticGenerator(), events=events)


def _payload(message="yes", event_id="evt-1", conversation_id="conv-1"):
    return {"message": message, "eventId": event_id, "conversationId": conversation_id}


def test_chat_request_returns_reply(engine, events):
    result = handle_chat_request(_payload(), engine=engine, events=events)
    assert result == {"message": QUESTIONS.by_index(0).prompt_text, "isComplete": False}


@pytest.mark.parametrize("field", ["message", "eventId", "conversationId"])
def test_chat_request_missing_field(engine, events, field):
    payload = _payload()
    payload.pop(field)
    with pytest.raises(RequestValidationError) as exc_info:
        handle_chat_request(payload, engine=engine, events=events)
    assert field in exc_info.value.message


def test_chat_request_blank_message(engine, events):
    with pytest.raises(RequestValidationError):
        handle_chat_request(_payload(message="   "), engine=engine, events=events)


def test_chat_request_unknown_event(engine, events, store):
    with pytest.raises(EventNotFoundError):
        handle_chat_request(_payload(event_id="nope"), engine=engine, events=events)
    assert store.get("conv-1") is None


class UnreachableEvents:
    def find_by_id(self, event_id):
        raise ConnectionError("events collection unreachable")


def test_chat_request_event_store_failure_is_processing_error(engine, store):
    with pytest.raises(ProcessingError) as exc_info:
        handle_chat_request(_payload(), engine=engine, events=UnreachableEvents())

    assert exc_info.value.to_dict() == {
        "error": "processing_failed",
        "message": GENERIC_ERROR_MESSAGE,
    }
    assert store.get("conv-1") is None


def test_chat_request_full_conversation_completes(engine, events):
    answers = ["yes", "5", "4", "4", "3", "Nice talks", "Better coffee", "no"]
    results = [
        handle_chat_request(_payload(message=a), engine=engine, events=events)
        for a in answers
    ]
    assert results[-1] == {"message": "Thank you!", "isComplete": True}
    assert events.find_by_id("evt-1").feedback_count == 1


def _completed_conversation(engine, events, conversation_id="conv-1"):
    for answer in ["yes", "5", "4", "4", "3", "Nice talks", "Better coffee", "yes"]:
        handle_chat_request(
            _payload(message=answer, conversation_id=conversation_id),
            engine=engine,
            events=events,
        )


def test_analytics_requires_identity(store, events):
    aggregator = AnalyticsAggregator(store, events)
    with pytest.raises(AuthenticationError):
        handle_analytics_request("evt-1", None, aggregator=aggregator, events=events)


def test_analytics_denied_for_other_users(store, events):
    aggregator = AnalyticsAggregator(store, events)
    with pytest.raises(PermissionDeniedError):
        handle_analytics_request(
            "evt-1", Identity("U-OTHER"), aggregator=aggregator, events=events
        )


def test_analytics_unknown_event(store, events):
    aggregator = AnalyticsAggregator(store, events)
    with pytest.raises(EventNotFoundError):
        handle_analytics_request(
            "nope", Identity("U-ADMIN", role="admin"), aggregator=aggregator, events=events
        )


def test_analytics_event_store_failure_is_processing_error(store, events):
    aggregator = AnalyticsAggregator(store, events)
    with pytest.raises(ProcessingError):
        handle_analytics_request(
            "evt-1",
            Identity("U-ADMIN", role="admin"),
            aggregator=aggregator,
            events=UnreachableEvents(),
        )


@pytest.mark.parametrize(
    "identity", [Identity("U-ORG"), Identity("U-ADMIN", role="admin")]
)
def test_analytics_for_organizer_and_admin(engine, store, events, identity):
    _completed_conversation(engine, events)
    aggregator = AnalyticsAggregator(store, events)

    result = handle_analytics_request(
        "evt-1", identity, aggregator=aggregator, events=events
    )

    assert result["eventId"] == "evt-1"
    assert result["totalResponses"] == 1
    assert result["ratings"]["overall"] == [5]
    assert result["sentiments"] == {"positive": 0, "neutral": 100, "negative": 0}
    assert result["keyTopics"] == ["venue"]
    assert result["responseRate"] == 100


def test_error_response_for_known_errors():
    assert error_response(ProcessingError("try again")) == {
        "error": "processing_failed",
        "message": "try again",
    }
    assert error_response(PermissionDeniedError("no"))["error"] == "permission_denied"


def test_error_response_hides_internal_details():
    body = error_response(KeyError("secret internal key"))
    assert body == {"error": "internal_error", "message": GENERIC_ERROR_MESSAGE}
