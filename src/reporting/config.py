"""Configuration constants for the analytics report."""
from __future__ import annotations

import os

# Maximum number of emojis displayed in the sentiment bar
MAX_EMOJI_BAR: int = int(os.getenv("REPORT_MAX_EMOJI_BAR", "20"))

# Number of most mentioned topics reported per event
MAX_TOPICS: int = 5

# Response rate (percent) under which the report flags low participation
LOW_RESPONSE_RATE_THRESHOLD: int = int(
    os.getenv("REPORT_LOW_RESPONSE_RATE_THRESHOLD", "50")
)
