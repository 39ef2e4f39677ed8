"""Runtime configuration read from environment variables.

Values are resolved once at import time; ``src.app`` loads ``.env`` before
importing anything that reads them.
"""
from __future__ import annotations

import logging
import os
from typing import FrozenSet, Optional

logger = logging.getLogger(__name__)


def _int_from_env(name: str, default: int) -> int:
    """Return a positive integer from *name*, or *default* when unset/invalid."""
    raw_val = os.getenv(name)
    if not raw_val:
        return default
    try:
        parsed = int(raw_val)
    except ValueError:
        logger.warning("Invalid %s value '%s'; must be integer.", name, raw_val)
        return default
    if parsed <= 0:
        logger.warning("Ignoring %s=%s (must be positive int)", name, raw_val)
        return default
    return parsed


def _float_from_env(name: str, default: float) -> float:
    raw_val = os.getenv(name)
    if not raw_val:
        return default
    try:
        parsed = float(raw_val)
    except ValueError:
        logger.warning("Invalid %s value '%s'; must be a number.", name, raw_val)
        return default
    return parsed if parsed > 0 else default


def _id_set_from_env(name: str) -> FrozenSet[str]:
    raw_val = os.getenv(name, "")
    return frozenset(part.strip() for part in raw_val.split(",") if part.strip())


LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# Persistence
MONGODB_URI: str = os.getenv(
    "MONGODB_URI", "mongodb://localhost:27017/event-feedback"
)
MONGODB_TIMEOUT_MS: int = _int_from_env("MONGODB_TIMEOUT_MS", 5000)

# Remote completion service
LLM_PROVIDER: Optional[str] = os.getenv("LLM_PROVIDER") or None
LLM_TIMEOUT_SECONDS: float = _float_from_env("LLM_TIMEOUT_SECONDS", 5.0)
LLM_RATE_LIMIT_CALLS: int = _int_from_env("LLM_RATE_LIMIT_CALLS", 10)
LLM_RATE_LIMIT_WINDOW_SECONDS: float = _float_from_env(
    "LLM_RATE_LIMIT_WINDOW_SECONDS", 60.0
)

# Session cache
SESSION_CACHE_IDLE_SECONDS: int = _int_from_env("SESSION_CACHE_IDLE_SECONDS", 3600)
SESSION_CACHE_SWEEP_SECONDS: int = _int_from_env("SESSION_CACHE_SWEEP_SECONDS", 3600)

# Slack surface
FEEDBACK_COMMAND: str = os.getenv("FEEDBACK_COMMAND", "/event-feedback")
ANALYTICS_COMMAND: str = os.getenv("ANALYTICS_COMMAND", "/event-analytics")
ADMIN_USER_IDS: FrozenSet[str] = _id_set_from_env("ADMIN_USER_IDS")
