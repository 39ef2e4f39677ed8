import logging
from typing import Any, Dict, FrozenSet, Optional

from slack_bolt import Respond, Say
from slack_sdk.errors import SlackApiError
from slack_sdk.web import WebClient

from src.api import (
    ADMIN_ROLE,
    USER_ROLE,
    Identity,
    authorize_analytics,
    error_response,
    handle_chat_request,
)
from src.conversation.engine import ConversationEngine
from src.exceptions import FeedbackError
from src.reporting.aggregator import AnalyticsAggregator
from src.reporting.render import post_report_to_slack
from src.session_data import Role, SessionData
from src.session_store import ConversationSessionStore
from src.slack_bot.utils import (
    conversation_id_for,
    get_channel_members,
    parse_event_id,
)

logger = logging.getLogger(__name__)

GREETING = (
    "Hello! I'm your friendly feedback assistant for this event. Would you "
    "like to share your thoughts about your experience today?"
)

NO_SESSION_TEXT = (
    "I don't have an open feedback conversation with you right now. Once an "
    "organizer invites you to give feedback on an event, just reply here."
)


# ------------------------------------------------------------------
# Invitations
# ------------------------------------------------------------------


def open_feedback_session(
    store: ConversationSessionStore, event_id: str, user_id: str
) -> Optional[SessionData]:
    """Create *user_id*'s session for *event_id* with the greeting logged.

    Returns ``None`` when the user already has a session for the event.
    """
    session_id = conversation_id_for(event_id, user_id)
    with store.lock(session_id):
        if store.get(session_id) is not None:
            return None
        session = SessionData(session_id=session_id, event_id=event_id, user_id=user_id)
        session.add_message(Role.ASSISTANT, GREETING)
        store.save(session)
    return session


def withdraw_feedback_session(
    store: ConversationSessionStore, event_id: str, user_id: str
) -> None:
    """Remove an invitation whose greeting could not be delivered."""
    session_id = conversation_id_for(event_id, user_id)
    with store.lock(session_id):
        store.remove(session_id)


def process_feedback_command(
    command: Dict[str, Any],
    client: WebClient,
    logger: logging.Logger,
    respond: Respond,
    *,
    store: ConversationSessionStore,
    events,
) -> None:
    """Invite every human member of the command's channel to give feedback.

    Runs in the background executor; every outcome is reported via *respond*.
    """
    try:
        user_id = command["user_id"]
        event_id = parse_event_id(command.get("text"))
        if event_id is None:
            respond(f"Usage: `{command.get('command', '')} <event-id>`")
            return

        event = events.find_by_id(event_id)
        if event is None:
            respond(f"I couldn't find an event with id `{event_id}`.")
            return

        channel_id = command.get("channel_id")
        try:
            member_user_ids = get_channel_members(client, channel_id, exclude=[user_id])
        except SlackApiError as exc:
            logger.error(
                "Failed to fetch channel members for %s: %s",
                channel_id,
                exc,
                exc_info=True,
            )
            respond(
                "Sorry, I wasn't able to fetch channel members. Please try again later."
            )
            return

        if not member_user_ids:
            respond("I couldn't find any active members in this channel to invite.")
            return

        invited = skipped = failures = 0
        for target_user_id in member_user_ids:
            if open_feedback_session(store, event_id, target_user_id) is None:
                skipped += 1
                continue
            try:
                client.chat_postMessage(channel=target_user_id, text=GREETING)
                invited += 1
                logger.info(
                    "feedback_invitation_sent",
                    extra={"event_id": event_id, "target_user_id": target_user_id},
                )
            except SlackApiError as exc:
                failures += 1
                logger.warning(
                    "Failed to send feedback invitation to %s for event %s: %s",
                    target_user_id,
                    event_id,
                    exc.response.get("error", str(exc)),
                )
                withdraw_feedback_session(store, event_id, target_user_id)

        logger.info(
            "Invited %d member(s) of %s to give feedback on %s (%d skipped, %d failed)",
            invited,
            channel_id,
            event_id,
            skipped,
            failures,
        )
        summary = f"Okay, I've invited {invited} participant(s) to share feedback on *{event.name}*."
        if skipped:
            summary += f" {skipped} member(s) were already invited."
        if failures:
            summary += f" {failures} invitation(s) could not be delivered."
        respond(summary)

    except Exception as exc:
        logger.error(
            "Error processing feedback command for user '%s': %s",
            command.get("user_id", "unknown"),
            exc,
            exc_info=True,
        )
        respond(
            "Sorry, an unexpected error occurred while processing your request. Please try again."
        )


# ------------------------------------------------------------------
# Conversation turns
# ------------------------------------------------------------------


def handle_direct_message(
    event: Dict[str, Any],
    say: Say,
    logger: logging.Logger,
    *,
    engine: ConversationEngine,
    events,
    store: ConversationSessionStore,
) -> None:
    """Route a DM to the sender's latest open feedback session."""

    if event.get("channel_type") != "im":
        return
    if event.get("bot_id") or event.get("subtype"):
        logger.debug("Ignoring non-user message event: %s", event.get("subtype"))
        return

    user_id = event.get("user")
    text = event.get("text", "")
    if not user_id:
        return

    try:
        session = store.find_open_for_user(user_id)
        if session is None:
            say(NO_SESSION_TEXT)
            return

        payload = {
            "message": text,
            "eventId": session.event_id,
            "conversationId": session.session_id,
        }
        result = handle_chat_request(payload, engine=engine, events=events, user_id=user_id)
    except FeedbackError as exc:
        logger.warning("Chat turn failed for %s: %s", user_id, exc.category)
        say(error_response(exc)["message"])
        return
    except Exception as exc:
        say(error_response(exc)["message"])
        return

    say(result["message"])


# ------------------------------------------------------------------
# Analytics
# ------------------------------------------------------------------


def identity_for(user_id: Optional[str], admin_user_ids: FrozenSet[str]) -> Optional[Identity]:
    if not user_id:
        return None
    role = ADMIN_ROLE if user_id in admin_user_ids else USER_ROLE
    return Identity(user_id=user_id, role=role)


def handle_analytics_command(
    command: Dict[str, Any],
    client: WebClient,
    logger: logging.Logger,
    respond: Respond,
    *,
    aggregator: AnalyticsAggregator,
    events,
    admin_user_ids: FrozenSet[str],
) -> None:
    """DM the caller the analytics report of the event named in the command."""

    user_id = command.get("user_id")
    event_id = parse_event_id(command.get("text"))
    if event_id is None:
        respond(f"Usage: `{command.get('command', '')} <event-id>`")
        return

    try:
        event = authorize_analytics(
            event_id, identity_for(user_id, admin_user_ids), events=events
        )
        snapshot = aggregator.snapshot(event_id)
    except Exception as exc:
        respond(error_response(exc)["message"])
        return

    try:
        post_report_to_slack(
            snapshot=snapshot, client=client, channel=user_id, event_name=event.name
        )
    except SlackApiError as exc:
        logger.error(
            "Failed to deliver analytics for %s to %s: %s",
            event_id,
            user_id,
            exc.response.get("error", str(exc)),
        )
        respond("Sorry, I couldn't deliver the analytics report. Please try again.")
        return

    respond(f"I've sent you the analytics for *{event.name}* in a direct message.")
