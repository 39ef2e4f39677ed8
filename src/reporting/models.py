"""Data structures for the analytics pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(slots=True)
class AnalyticsSnapshot:
    """Point-in-time analytics for one event, computed from completed sessions."""

    event_id: str
    total_responses: int
    ratings: Dict[str, List[int]]
    sentiments: Dict[str, int]
    key_topics: List[str] = field(default_factory=list)
    response_rate: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Return the public camelCase payload."""
        return {
            "eventId": self.event_id,
            "totalResponses": self.total_responses,
            "ratings": {k: list(v) for k, v in self.ratings.items()},
            "sentiments": dict(self.sentiments),
            "keyTopics": list(self.key_topics),
            "responseRate": self.response_rate,
        }

    def average_rating(self, category: str) -> float | None:
        """Return the mean rating for *category* or ``None`` without ratings."""
        values = self.ratings.get(category) or []
        if not values:
            return None
        return sum(values) / len(values)
