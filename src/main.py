"""Application bootstrap for the event feedback bot.

Starts the Slack Bolt application via Socket Mode when executed as a script.
``src/app.py`` only wires listeners and storage; the blocking runtime lives
here.
"""
from __future__ import annotations

import os
import sys
from contextlib import suppress

from slack_bolt.adapter.socket_mode import SocketModeHandler

from src.app import app, logger, session_store, shutdown_executor


def main() -> None:  # pragma: no cover - manual run path
    """Start the Slack bot in Socket Mode.

    Blocks until the process is interrupted, then stops the scheduler and
    thread pool.
    """

    app_token = os.getenv("SLACK_APP_TOKEN")
    if not app_token:
        logger.error(
            "Environment variable SLACK_APP_TOKEN is required to start the bot."
        )
        sys.exit(1)

    if not session_store.is_persistent:
        logger.warning("Running without MongoDB; feedback will not survive a restart.")

    logger.info("Launching SocketModeHandler…")
    handler = SocketModeHandler(app, app_token)

    try:
        logger.info("Feedback bot is ready to receive messages via Socket Mode.")
        handler.start()  # Blocking call
    except KeyboardInterrupt:  # pragma: no cover
        logger.info("Shutdown requested (KeyboardInterrupt). Exiting…")
    finally:
        with suppress(Exception):
            shutdown_executor()
        logger.info("Goodbye.")


if __name__ == "__main__":  # pragma: no cover
    main()
