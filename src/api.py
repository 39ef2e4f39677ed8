"""Transport-neutral request handlers.

The Slack listeners in :mod:`src.app` (and any other transport) translate
their payloads into calls to these functions and turn raised
:class:`~src.exceptions.FeedbackError` instances into replies with
:func:`error_response`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol

from src.conversation.engine import ConversationEngine
from src.exceptions import (
    AuthenticationError,
    EventNotFoundError,
    FeedbackError,
    PermissionDeniedError,
    ProcessingError,
    RequestValidationError,
)
from src.reporting.aggregator import AnalyticsAggregator

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
USER_ROLE = "user"

GENERIC_ERROR_MESSAGE = "An error occurred while processing your request."


class EventLookup(Protocol):
    def find_by_id(self, event_id: str): ...


@dataclass(frozen=True)
class Identity:
    """Authenticated caller."""

    user_id: str
    role: str = USER_ROLE

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def _required_text(payload: Mapping[str, Any], field_name: str) -> str:
    value = payload.get(field_name)
    if not isinstance(value, str) or not value.strip():
        raise RequestValidationError(f"Missing required field: {field_name}")
    return value


def _find_event(events: EventLookup, event_id: str):
    """Return the event, mapping a missing event or a failing store to public errors."""
    try:
        event = events.find_by_id(event_id)
    except Exception as exc:
        logger.error("Failed to look up event %s: %s", event_id, exc, exc_info=True)
        raise ProcessingError(GENERIC_ERROR_MESSAGE) from exc
    if event is None:
        raise EventNotFoundError("Event not found")
    return event


def handle_chat_request(
    payload: Mapping[str, Any],
    *,
    engine: ConversationEngine,
    events: EventLookup,
    user_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Run one conversation turn for a ``{message, eventId, conversationId}`` payload.

    Returns ``{"message": <reply>, "isComplete": <bool>}``.

    Raises
    ------
    RequestValidationError
        If a required field is missing or blank.
    EventNotFoundError
        If ``eventId`` does not reference an existing event.
    ProcessingError
        If the event lookup failed or the turn could not be persisted.
    """
    message = _required_text(payload, "message")
    event_id = _required_text(payload, "eventId")
    conversation_id = _required_text(payload, "conversationId")

    _find_event(events, event_id)

    result = engine.process_turn(conversation_id, event_id, message, user_id=user_id)
    return result.to_dict()


def authorize_analytics(
    event_id: str, identity: Optional[Identity], *, events: EventLookup
):
    """Return the event record when *identity* may read its analytics.

    Only admins and the event's organizer may read them.
    """
    if identity is None:
        raise AuthenticationError("Authentication required")
    if not event_id or not event_id.strip():
        raise RequestValidationError("Missing required field: eventId")

    event = _find_event(events, event_id)

    if not identity.is_admin and event.organizer_id != identity.user_id:
        logger.info(
            "analytics_denied",
            extra={"event_id": event_id, "user_id": identity.user_id},
        )
        raise PermissionDeniedError("You do not have access to this event's analytics")
    return event


def handle_analytics_request(
    event_id: str,
    identity: Optional[Identity],
    *,
    aggregator: AnalyticsAggregator,
    events: EventLookup,
) -> Dict[str, Any]:
    """Return the analytics payload for *event_id*.

    Raises
    ------
    AuthenticationError
        Without a caller identity.
    PermissionDeniedError
        If the caller is neither admin nor the event organizer.
    EventNotFoundError
        If the event does not exist.
    """
    authorize_analytics(event_id, identity, events=events)
    return aggregator.snapshot(event_id).to_dict()


def error_response(exc: BaseException) -> Dict[str, str]:
    """Map *exc* to a public ``{"error", "message"}`` body.

    Unexpected exceptions are logged and reported generically.
    """
    if isinstance(exc, FeedbackError):
        return exc.to_dict()
    logger.error("Unhandled error: %s", exc, exc_info=exc)
    return {"error": FeedbackError.category, "message": GENERIC_ERROR_MESSAGE}
