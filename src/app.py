import atexit
import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict

from dotenv import load_dotenv

# Load environment variables from .env file before config is read
load_dotenv()

from slack_bolt import Ack, App, Respond, Say  # noqa: E402
from slack_sdk import WebClient  # noqa: E402

from src import config  # noqa: E402
from src.conversation.engine import ConversationEngine  # noqa: E402
from src.generation import GenerationAdapter  # noqa: E402
from src.reporting.aggregator import AnalyticsAggregator  # noqa: E402
from src.session_store import ConversationSessionStore  # noqa: E402
from src.slack_bot.handlers import (  # noqa: E402
    handle_analytics_command,
    handle_direct_message,
    process_feedback_command,
)
from src.storage.events import MemoryEventRepository, MongoEventRepository  # noqa: E402
from src.storage.mongo import connect_database  # noqa: E402

from .scheduler import Scheduler  # noqa: E402

# Set up logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=config.LOG_LEVEL,
)
logger = logging.getLogger(__name__)

# Determine if token verification should be disabled (useful for CI/test mode)
_token_verification_enabled = (
    os.getenv("SLACK_BOLT_TOKEN_VERIFICATION_ENABLED", "true").lower() != "false"
)

app = App(
    token=os.environ.get("SLACK_BOT_TOKEN"),
    process_before_response=True,
    token_verification_enabled=_token_verification_enabled,
)

# ------------------------------------------------------------------
# Storage and conversation wiring
# ------------------------------------------------------------------

_database = connect_database(config.MONGODB_URI)
session_store = ConversationSessionStore.for_database(_database)
if _database is not None:
    event_store = MongoEventRepository.from_database(_database)
else:
    event_store = MemoryEventRepository(autocreate=True)
logger.info(
    "Feedback storage ready (persistent=%s)", session_store.is_persistent
)

engine = ConversationEngine(
    store=session_store,
    generator=GenerationAdapter(provider=config.LLM_PROVIDER),
    events=event_store,
)
aggregator = AnalyticsAggregator(session_store, event_store)

# Initialize a single thread pool for the application
executor = ThreadPoolExecutor(max_workers=10)

# Shared scheduler for periodic maintenance
scheduler = Scheduler(executor)


def _sweep_session_cache() -> None:
    """Drop idle conversations from the session cache."""
    try:
        session_store.evict_idle(config.SESSION_CACHE_IDLE_SECONDS)
    except Exception:  # pragma: no cover – ensure scheduler thread survives
        logger.exception("Error sweeping session cache")


scheduler.schedule_repeating(config.SESSION_CACHE_SWEEP_SECONDS, _sweep_session_cache)


def shutdown_executor():
    """Gracefully shut down scheduler and thread pool executor."""
    logger.info("Shutting down scheduler and thread pool executor...")
    # Stop scheduler first so it doesn't submit new tasks while executor is shutting down
    try:
        scheduler.shutdown()
    except Exception:  # pragma: no cover – ensure shutdown continues
        logger.exception("Error shutting down scheduler")

    executor.shutdown(wait=True)
    logger.info("Scheduler and thread pool executor shut down gracefully.")


# Register the shutdown function to be called on exit
atexit.register(shutdown_executor)


# Log all incoming messages to help with debugging
@app.middleware
def log_request(logger, body, next):
    logger.debug(f"Received event: {body}")
    return next()


def _help_text() -> str:
    """Return a help message describing bot purpose and usage."""

    return (
        "*Event Feedback Bot*\n\n"
        "I chat with event attendees one question at a time and turn their answers "
        "into ratings, sentiment and key topics for the organizers.\n\n"
        "*Commands*\n"
        "• `@feedback-bot help` — show this message.\n"
        f"• `{config.FEEDBACK_COMMAND} <event-id>` — invite everyone in the current channel to give feedback by DM.\n"
        f"• `{config.ANALYTICS_COMMAND} <event-id>` — receive the event's analytics report (organizer or admin only).\n\n"
        "Attendees simply reply to my direct message to answer."
    )


@app.event("app_mention")
def handle_app_mention(event, say, logger: logging.Logger):
    """Respond to `@feedback-bot help`; other mentions are ignored."""
    text = event.get("text", "").lower()
    if "help" in text:
        say(_help_text())
    else:
        logger.debug("Ignoring mention without help: %s", text)


# ------------------------------------------------------------------
# Thread helper utilities
# ------------------------------------------------------------------


def _log_future_exception(fut: Future) -> None:  # noqa: WPS430 – small util
    """Logs any exception raised by a completed *Future*."""
    exc = fut.exception()
    if exc is not None:
        logger.exception("Background task raised an exception: %s", exc, exc_info=exc)


def submit_background(func, /, *args, **kwargs) -> Future:  # noqa: WPS110
    """Submit *func* to the shared thread pool with automatic error logging."""

    fut = executor.submit(func, *args, **kwargs)
    fut.add_done_callback(_log_future_exception)
    return fut


@app.command(config.FEEDBACK_COMMAND)
def handle_feedback_command(
    ack: Ack,
    command: Dict[str, Any],
    client: WebClient,
    logger: logging.Logger,
    respond: Respond,
):
    """Invite the current channel's members to give feedback on an event."""
    ack()
    try:
        submit_background(
            process_feedback_command,
            command=command,
            client=client,
            logger=logger,
            respond=respond,
            store=session_store,
            events=event_store,
        )
        logger.info(
            "Submitted %s request for user '%s' to thread pool.",
            config.FEEDBACK_COMMAND,
            command["user_id"],
        )
    except Exception as e:
        logger.error(
            "Error submitting %s for user '%s' to thread pool: %s",
            config.FEEDBACK_COMMAND,
            command.get("user_id"),
            e,
            exc_info=True,
        )
        respond("Sorry, there was an issue submitting your request. Please try again.")


@app.command(config.ANALYTICS_COMMAND)
def analytics_command_wrapper(
    ack: Ack,
    command: Dict[str, Any],
    client: WebClient,
    logger: logging.Logger,
    respond: Respond,
):
    ack()
    submit_background(
        handle_analytics_command,
        command=command,
        client=client,
        logger=logger,
        respond=respond,
        aggregator=aggregator,
        events=event_store,
        admin_user_ids=config.ADMIN_USER_IDS,
    )


@app.event("message")
def direct_message_wrapper(event, say: Say, logger: logging.Logger):
    handle_direct_message(
        event,
        say,
        logger,
        engine=engine,
        events=event_store,
        store=session_store,
    )


# Error handler
@app.error
def custom_error_handler(error, body, logger):
    logger.exception(f"Error handling request: {error}")
    logger.debug(f"Request body: {body}")


# NOTE: Runtime startup lives in src/main.py to keep this module import-safe and testable.
