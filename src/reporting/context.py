"""Context dataclass for rendering analytics reports.

This module defines `ReportContext`, a typed container that holds all
values expected by the Jinja2 template located in
`src/reporting/templates/analytics.md.j2`.

The snapshot keeps raw rating lists; averages, the emoji bar and
participation flags are presentation concerns computed here.
"""
from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from datetime import datetime as _dt
from datetime import timezone as _tz
from typing import Any, Dict, List, Optional

from src.reporting import config
from src.reporting.models import AnalyticsSnapshot

__all__ = [
    "RatingSummary",
    "ReportContext",
    "build_report_context",
]

_CATEGORY_TITLES = {
    "overall": "Overall experience",
    "content": "Content",
    "speakers": "Speakers",
    "venue": "Venue",
}


@dataclass(slots=True)
class RatingSummary:
    """Average and count for one rating category."""

    category: str
    title: str
    count: int
    average: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:  # noqa: D401 – simple helper
        """Return a *plain* ``dict`` representation suitable for Jinja."""
        return asdict(self)


@dataclass(slots=True)
class ReportContext:
    """Container with all fields used by the analytics report template."""

    event_id: str
    event_name: str
    date: str  # ISO-8601 date string (UTC)

    total_responses: int
    response_rate: int
    low_response_rate: bool

    emoji_bar: str
    sentiments: Dict[str, int]
    ratings: List[RatingSummary] = field(default_factory=list)
    key_topics: List[str] = field(default_factory=list)

    version: str = "1"

    def to_dict(self) -> Dict[str, Any]:  # noqa: D401 – simple helper
        """Return a *plain* ``dict`` (recursively) for Jinja rendering."""
        return asdict(self)


def _emoji_bar(percentages: dict[str, int], max_emoji: int = 20) -> str:
    """Return a string bar of emojis based on sentiment *percentages*.

    Positive → 😊, Neutral → 😐, Negative → 🙁.  Limit total length to
    *max_emoji*.
    """

    pos = percentages.get("positive", 0)
    neu = percentages.get("neutral", 0)
    neg = percentages.get("negative", 0)
    total = pos + neu + neg or 1

    scale = max_emoji / total
    pos_e = "😊" * max(1 if pos else 0, round(pos * scale))
    neu_e = "😐" * max(1 if neu else 0, round(neu * scale))
    neg_e = "🙁" * max(1 if neg else 0, round(neg * scale))
    return pos_e + neu_e + neg_e


def _rating_summaries(snapshot: AnalyticsSnapshot) -> List[RatingSummary]:
    summaries = []
    for category, values in snapshot.ratings.items():
        average = snapshot.average_rating(category)
        summaries.append(
            RatingSummary(
                category=category,
                title=_CATEGORY_TITLES.get(category, category.title()),
                count=len(values),
                average=round(average, 2) if average is not None else None,
            )
        )
    return summaries


def build_report_context(
    snapshot: AnalyticsSnapshot, *, event_name: str = ""
) -> ReportContext:
    """Convert an :class:`AnalyticsSnapshot` into :class:`ReportContext`.

    The function is *pure* – it does not mutate *snapshot*.
    """

    return ReportContext(
        event_id=snapshot.event_id,
        event_name=event_name or snapshot.event_id,
        date=_dt.now(tz=_tz.utc).strftime("%Y-%m-%d"),
        total_responses=snapshot.total_responses,
        response_rate=snapshot.response_rate,
        low_response_rate=(
            snapshot.total_responses > 0
            and snapshot.response_rate < config.LOW_RESPONSE_RATE_THRESHOLD
        ),
        emoji_bar=_emoji_bar(snapshot.sentiments, config.MAX_EMOJI_BAR),
        sentiments=dict(snapshot.sentiments),
        ratings=_rating_summaries(snapshot),
        key_topics=list(snapshot.key_topics),
        version=os.getenv("REPORT_VERSION", "1"),
    )
