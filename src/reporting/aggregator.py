"""Aggregate completed feedback sessions into an :class:`AnalyticsSnapshot`."""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from typing import Dict, Iterable, List, Optional, Protocol

from src.analysis.sentiment import SentimentLabel, label_from_description
from src.conversation.questions import RATING_QUESTION_IDS, SENTIMENT_QUESTION_IDS
from src.conversation.validator import parse_rating
from src.exceptions import EventNotFoundError
from src.reporting import config
from src.reporting.models import AnalyticsSnapshot
from src.session_data import SessionData

logger = logging.getLogger(__name__)

# Topic list inside a stored sentiment description, e.g. "Topics: food, venue."
TOPIC_RE = re.compile(r"topics?:?\s*([^.;]+)[.;]", re.IGNORECASE)


class CompletedSessionSource(Protocol):
    def find_completed(self, event_id: str) -> List[SessionData]: ...


class EventLookup(Protocol):
    def find_by_id(self, event_id: str): ...


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def extract_topics(description: str) -> List[str]:
    """Return the comma separated topics named in *description*."""
    match = TOPIC_RE.search(description or "")
    if not match:
        return []
    return [t.strip() for t in match.group(1).split(",") if t.strip()]


def _percentages(counts: Dict[SentimentLabel, int]) -> Dict[str, int]:
    total = sum(counts.values())
    return {
        label.value: _round_half_up(counts[label] / total * 100) if total else 0
        for label in SentimentLabel
    }


def _response_rate(completed: int, expected: Optional[int]) -> int:
    if not expected:
        return 0
    return min(100, _round_half_up(completed / expected * 100))


def compute_analytics(
    event_id: str,
    sessions: Iterable[SessionData],
    expected_count: Optional[int],
) -> AnalyticsSnapshot:
    """Build the analytics snapshot for *event_id* from completed *sessions*.

    The function is read-only; it does not mutate the sessions.
    """

    ratings: Dict[str, List[int]] = {qid: [] for qid in RATING_QUESTION_IDS}
    sentiment_counts: Counter[SentimentLabel] = Counter(
        {label: 0 for label in SentimentLabel}
    )
    topics: Counter[str] = Counter()
    total = 0

    for session in sessions:
        total += 1
        for question_id in RATING_QUESTION_IDS:
            rating = parse_rating(session.answers.get(question_id))
            if rating is not None:
                ratings[question_id].append(rating)

        for question_id in SENTIMENT_QUESTION_IDS:
            description = session.sentiments.get(question_id)
            if not description:
                continue
            lowered = description.lower()
            sentiment_counts[label_from_description(lowered)] += 1
            topics.update(extract_topics(lowered))

    return AnalyticsSnapshot(
        event_id=event_id,
        total_responses=total,
        ratings=ratings,
        sentiments=_percentages(sentiment_counts),
        key_topics=[topic for topic, _ in topics.most_common(config.MAX_TOPICS)],
        response_rate=_response_rate(total, expected_count),
    )


class AnalyticsAggregator:
    """Reads completed sessions and the event record, then aggregates."""

    def __init__(self, sessions: CompletedSessionSource, events: EventLookup) -> None:
        self._sessions = sessions
        self._events = events

    def snapshot(self, event_id: str) -> AnalyticsSnapshot:
        """Return analytics for *event_id*.

        Raises
        ------
        EventNotFoundError
            If the event does not exist.
        """
        event = self._events.find_by_id(event_id)
        if event is None:
            raise EventNotFoundError("Event not found")

        completed = self._sessions.find_completed(event_id)
        snapshot = compute_analytics(event_id, completed, event.feedback_count)
        logger.debug(
            "Analytics computed for event=%s responses=%d",
            event_id,
            snapshot.total_responses,
        )
        return snapshot
