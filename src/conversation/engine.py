"""Conversation state machine for scripted event feedback.

One call to :meth:`ConversationEngine.process_turn` handles one user message:

1. load (or create) the session under its per-session lock;
2. derive the state from the stored answers;
3. validate / record the answer and pick the next prompt;
4. append both messages to the log and persist the session.

States:

• ``NOT_STARTED`` – the user has not opted in yet. An affirmative message
  starts the questionnaire, anything else gets a conversational reply.
• ``IN_PROGRESS`` – the message answers the first unanswered question.
• ``COMPLETE`` – every question is answered; further messages are a no-op
  that repeats the stored closing message.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from src.conversation.questions import (
    IMPROVEMENTS_QUESTION_ID,
    QUESTIONS,
    AnswerType,
    Question,
    QuestionCatalog,
)
from src.conversation.validator import parse_rating, validate
from src.exceptions import ProcessingError
from src.generation import GenerationAdapter
from src.session_data import ConversationState, Role, SessionData
from src.session_store import ConversationSessionStore

logger = logging.getLogger(__name__)

OPT_IN_TOKENS: tuple[str, ...] = ("yes", "sure", "okay", "ok", "fine", "yeah")

LOW_RATING_THRESHOLD = 2

HESITANT_INSTRUCTION = (
    "The user seems hesitant to provide feedback. Respond in a friendly way, "
    "acknowledging their response, and gently encourage them to provide "
    "feedback when they're ready by saying \"yes\"."
)
OPT_IN_NUDGE = "Whenever you're ready to provide feedback, just let me know by saying 'yes'."
DEFAULT_CONCLUSION = (
    "Thank you for your valuable feedback! Your insights will help us improve "
    "future events."
)


class EventCounter(Protocol):
    def increment_feedback_count(self, event_id: str) -> object: ...


@dataclass(frozen=True)
class TurnResult:
    message: str
    is_complete: bool

    def to_dict(self) -> dict:
        return {"message": self.message, "isComplete": self.is_complete}


def is_opt_in(message: str) -> bool:
    lowered = (message or "").lower()
    return any(token in lowered for token in OPT_IN_TOKENS)


def low_rating_follow_up(rated: Question, follow_up: Question) -> str:
    """Prompt for *follow_up* that asks what to improve about *rated*."""
    return (
        f"I noticed you rated {rated.id} quite low. {follow_up.prompt_text} "
        f"Specifically, what about the {rated.id} could be better?"
    )


class ConversationEngine:
    """Drives sessions through the question catalog."""

    def __init__(
        self,
        store: ConversationSessionStore,
        generator: GenerationAdapter,
        events: Optional[EventCounter] = None,
        catalog: QuestionCatalog = QUESTIONS,
    ) -> None:
        self._store = store
        self._generator = generator
        self._events = events
        self._catalog = catalog

    @property
    def catalog(self) -> QuestionCatalog:
        return self._catalog

    # ------------------------------------------------------------------
    # Turn processing
    # ------------------------------------------------------------------

    def process_turn(
        self,
        session_id: str,
        event_id: str,
        message: str,
        user_id: Optional[str] = None,
    ) -> TurnResult:
        """Handle one user *message* for *session_id*.

        Raises
        ------
        ProcessingError
            If the session could not be loaded or persisted.
        """
        with self._store.lock(session_id):
            try:
                session = self._store.get(session_id)
                if session is None:
                    session = self._store.create(session_id, event_id, user_id=user_id)
            except Exception as exc:
                logger.error(
                    "Failed to load session %s: %s", session_id, exc, exc_info=True
                )
                raise ProcessingError(
                    "An error occurred while processing your message."
                ) from exc

            if session.state(self._catalog) is ConversationState.COMPLETE:
                logger.debug("Ignoring message for completed session %s", session_id)
                return TurnResult(
                    message=session.last_assistant_message() or DEFAULT_CONCLUSION,
                    is_complete=True,
                )

            result = self.apply_message(session, message)

            try:
                self._store.save(session)
            except Exception as exc:
                logger.error(
                    "Failed to save session %s: %s", session_id, exc, exc_info=True
                )
                raise ProcessingError(
                    "An error occurred while processing your message."
                ) from exc

        logger.info(
            "turn_processed",
            extra={
                "session_id": session_id,
                "event_id": session.event_id,
                "answered": len(session.answers),
                "is_complete": result.is_complete,
            },
        )
        if result.is_complete:
            self._count_submission(session)
        return result

    def apply_message(self, session: SessionData, message: str) -> TurnResult:
        """Apply the transition for *message* to *session* in place.

        Appends the user message and the reply to the log. Nothing is
        persisted here.
        """
        state = session.state(self._catalog)
        if state is ConversationState.COMPLETE:
            return TurnResult(
                message=session.last_assistant_message() or DEFAULT_CONCLUSION,
                is_complete=True,
            )

        session.add_message(Role.USER, message)

        if state is ConversationState.NOT_STARTED:
            reply = self._reply_not_started(session, message)
            is_complete = False
        else:
            reply, is_complete = self._reply_in_progress(session, message)

        session.add_message(Role.ASSISTANT, reply)
        return TurnResult(message=reply, is_complete=is_complete)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _reply_not_started(self, session: SessionData, message: str) -> str:
        if is_opt_in(message):
            session.mark_started()
            return self._catalog.by_index(0).prompt_text

        reply = self._generator.generate_reply(
            session.history(), instruction=HESITANT_INSTRUCTION
        )
        if "yes" not in reply.lower():
            reply = f"{reply} {OPT_IN_NUDGE}"
        return reply

    def _reply_in_progress(self, session: SessionData, message: str) -> tuple[str, bool]:
        index = session.current_index(self._catalog)
        question = self._catalog.by_index(index)

        result = validate(question, message)
        if not result.valid:
            return result.reason or "", False

        session.mark_started()
        session.record_answer(question.id, message)
        if question.answer_type is AnswerType.FREE_TEXT:
            self._record_sentiment(session, question, message)

        next_index = index + 1
        if next_index < self._catalog.length():
            return self._next_prompt(question, message, self._catalog.by_index(next_index)), False

        session.complete()
        conclusion = self._generator.generate_conclusion(session.history())
        logger.info(
            "session_completed",
            extra={"session_id": session.session_id, "event_id": session.event_id},
        )
        return conclusion or DEFAULT_CONCLUSION, True

    def _next_prompt(self, answered: Question, answer: str, upcoming: Question) -> str:
        if (
            answered.answer_type is AnswerType.RATING
            and upcoming.id == IMPROVEMENTS_QUESTION_ID
        ):
            rating = parse_rating(answer)
            if rating is not None and rating <= LOW_RATING_THRESHOLD:
                return low_rating_follow_up(answered, upcoming)
        return upcoming.prompt_text

    def _record_sentiment(self, session: SessionData, question: Question, answer: str) -> None:
        try:
            description = self._generator.classify_sentiment(answer)
        except Exception as exc:  # noqa: BLE001 – sentiment is optional
            logger.warning(
                "Sentiment derivation failed for %s/%s: %s",
                session.session_id,
                question.id,
                exc,
            )
            return
        if description:
            session.record_sentiment(question.id, description)

    def _count_submission(self, session: SessionData) -> None:
        if self._events is None:
            return
        try:
            self._events.increment_feedback_count(session.event_id)
        except Exception as exc:  # noqa: BLE001 – the feedback itself is saved
            logger.warning(
                "Failed to increment feedback count for event %s: %s",
                session.event_id,
                exc,
                exc_info=True,
            )
