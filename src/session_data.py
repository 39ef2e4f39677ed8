import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from src.conversation.questions import QUESTIONS, QuestionCatalog

SENTIMENT_SUFFIX = "_sentiment"

SYSTEM_PROMPT = (
    "You are an event feedback assistant. Your job is to collect feedback "
    "about an event in a friendly, conversational manner."
)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ConversationState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


@dataclass
class ChatMessage:
    """One entry of the append-only message log."""

    role: Role
    content: str
    created_at: datetime.datetime = field(default_factory=_utcnow)

    def to_document(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.created_at,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "ChatMessage":
        return cls(
            role=Role(doc["role"]),
            content=doc.get("content", ""),
            created_at=_as_aware(doc.get("timestamp")) or _utcnow(),
        )


def _as_aware(value: Any) -> Optional[datetime.datetime]:
    """Return *value* as a UTC-aware datetime (MongoDB hands back naive UTC)."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value


class SessionData:
    """Represents one feedback conversation.

    A session is created on the first message for an unseen conversation id
    and walks through the question catalog. Answers are keyed by question id;
    derived sentiment descriptions of free-text answers are kept separately
    and only merged into ``<id>_sentiment`` keys when serialised.

    The current question is never stored: it is the first catalog id without
    an answer. ``started`` records the opt-in, which is the only thing that
    tells a fresh session apart from one waiting on the first answer.
    """

    def __init__(
        self,
        session_id: str,
        event_id: str,
        user_id: Optional[str] = None,
        *,
        with_system_prompt: bool = True,
    ):
        """
        Initializes a new session.

        Args:
            session_id: Caller-supplied unique conversation id.
            event_id: Id of the event the feedback is about.
            user_id: Optional id of the respondent.
            with_system_prompt: Seed the message log with the assistant's
                system instruction.
        """
        self.session_id: str = session_id
        self.event_id: str = event_id
        self.user_id: Optional[str] = user_id
        self.messages: List[ChatMessage] = []
        self.answers: Dict[str, str] = {}
        self.sentiments: Dict[str, str] = {}
        self.started: bool = False
        self.completed: bool = False
        self.created_at: datetime.datetime = _utcnow()
        self.updated_at: datetime.datetime = self.created_at
        self.started_at: Optional[datetime.datetime] = None
        self.completed_at: Optional[datetime.datetime] = None
        if with_system_prompt:
            self.messages.append(ChatMessage(Role.SYSTEM, SYSTEM_PROMPT, self.created_at))

    # ------------------------------------------------------------------
    # Mutation helpers
    # ------------------------------------------------------------------

    def add_message(self, role: Role, content: str) -> ChatMessage:
        """Append to the message log and touch ``updated_at``."""
        message = ChatMessage(role, content)
        self.messages.append(message)
        self.updated_at = message.created_at
        return message

    def mark_started(self) -> None:
        if not self.started:
            self.started = True
            self.started_at = _utcnow()
            self.updated_at = self.started_at

    def record_answer(self, question_id: str, answer: str) -> None:
        self.answers[question_id] = answer
        self.updated_at = _utcnow()

    def record_sentiment(self, question_id: str, description: str) -> None:
        self.sentiments[question_id] = description
        self.updated_at = _utcnow()

    def complete(self) -> None:
        """Mark the session complete (monotonic)."""
        if not self.completed:
            self.completed = True
            self.completed_at = _utcnow()
            self.updated_at = self.completed_at

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    def current_index(self, catalog: QuestionCatalog = QUESTIONS) -> int:
        """Position of the first unanswered question (``len(catalog)`` if none)."""
        for index, question in enumerate(catalog):
            if question.id not in self.answers:
                return index
        return catalog.length()

    def state(self, catalog: QuestionCatalog = QUESTIONS) -> ConversationState:
        if self.completed or self.current_index(catalog) >= catalog.length():
            return ConversationState.COMPLETE
        if not self.started and not self.answers:
            return ConversationState.NOT_STARTED
        return ConversationState.IN_PROGRESS

    @property
    def is_complete(self) -> bool:  # noqa: D401 – property
        """Return *True* once the session has been marked complete."""
        return self.completed

    def last_assistant_message(self) -> Optional[str]:
        for message in reversed(self.messages):
            if message.role is Role.ASSISTANT:
                return message.content
        return None

    def history(self) -> List[Dict[str, str]]:
        """Message log in chat-completion format."""
        return [{"role": m.role.value, "content": m.content} for m in self.messages]

    # ------------------------------------------------------------------
    # Persistence mapping
    # ------------------------------------------------------------------

    def responses(self) -> Dict[str, str]:
        """Answers merged with ``<id>_sentiment`` keys, as stored."""
        merged = dict(self.answers)
        for question_id, description in self.sentiments.items():
            merged[f"{question_id}{SENTIMENT_SUFFIX}"] = description
        return merged

    def to_document(self) -> Dict[str, Any]:
        return {
            "conversationId": self.session_id,
            "eventId": self.event_id,
            "userId": self.user_id,
            "messages": [m.to_document() for m in self.messages],
            "responses": self.responses(),
            "started": self.started,
            "startedAt": self.started_at,
            "completed": self.completed,
            "completedAt": self.completed_at,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "SessionData":
        session = cls(
            session_id=doc["conversationId"],
            event_id=doc["eventId"],
            user_id=doc.get("userId"),
            with_system_prompt=False,
        )
        session.messages = [ChatMessage.from_document(m) for m in doc.get("messages", [])]
        for key, value in (doc.get("responses") or {}).items():
            if value is None:
                continue
            if key.endswith(SENTIMENT_SUFFIX):
                session.sentiments[key[: -len(SENTIMENT_SUFFIX)]] = str(value)
            else:
                session.answers[key] = str(value)
        session.completed = bool(doc.get("completed", False))
        # Documents written before the opt-in flag existed: any answer implies it.
        session.started = bool(doc.get("started", bool(session.answers)))
        session.created_at = _as_aware(doc.get("createdAt")) or session.created_at
        session.updated_at = _as_aware(doc.get("updatedAt")) or session.created_at
        session.started_at = _as_aware(doc.get("startedAt"))
        session.completed_at = _as_aware(doc.get("completedAt"))
        return session

    def __repr__(self) -> str:
        parts = [
            f"session_id='{self.session_id}'",
            f"event_id='{self.event_id}'",
            f"created_at='{self.created_at.isoformat()}'",
            f"messages={len(self.messages)}",
            f"answers={sorted(self.answers)}",
            f"completed={self.completed}",
        ]
        if self.user_id:
            parts.append(f"user_id='{self.user_id}'")
        if self.sentiments:
            parts.append(f"sentiments={sorted(self.sentiments)}")
        return f"SessionData({', '.join(parts)})"
