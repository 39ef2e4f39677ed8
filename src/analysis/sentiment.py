"""Sentiment description of free-text answers.

``describe_sentiment`` asks the remote completion service for a short
description in the same shape produced by
:func:`src.analysis.static_responses.basic_sentiment_analysis`:

    Sentiment: Positive. <one sentence summary>. Topics: content, venue.

The description is stored verbatim; analytics later recovers a
:class:`SentimentLabel` from it with :func:`label_from_description`.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, List

from ..openai_client import chat_completion

_logger = logging.getLogger(__name__)


class SentimentLabel(str, Enum):
    """Enumeration of supported sentiment classes."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


def label_from_description(description: str) -> SentimentLabel:
    """Classify a stored sentiment description.

    "positive" anywhere in the text wins, then "negative"; anything else is
    neutral.
    """

    lowered = (description or "").lower()
    if SentimentLabel.POSITIVE.value in lowered:
        return SentimentLabel.POSITIVE
    if SentimentLabel.NEGATIVE.value in lowered:
        return SentimentLabel.NEGATIVE
    return SentimentLabel.NEUTRAL


_PROMPT_SYSTEM = (
    "You are a sentiment analysis tool. Analyze the sentiment of the "
    "following event feedback and classify it as positive, negative, or "
    "neutral. Respond in exactly this format: 'Sentiment: <Positive|Negative|"
    "Neutral>. <one sentence summary>. Topics: <comma separated short topics>.'"
)


def build_messages(text: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": _PROMPT_SYSTEM},
        {"role": "user", "content": text},
    ]


def describe_sentiment(
    text: str,
    *,
    temperature: float = 0.3,
    max_tokens: int = 150,
    completion: Callable[..., Dict[str, Any]] = None,  # type: ignore[assignment]
) -> str:
    """Return the remote service's sentiment description for *text*.

    Raises
    ------
    ValueError
        If the response lacks content or the content is blank.
    """

    completion = completion or chat_completion
    response = completion(
        build_messages(text), temperature=temperature, max_tokens=max_tokens
    )
    try:
        content = response["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ValueError("Model response missing expected fields") from exc

    if not isinstance(content, str) or not content.strip():
        raise ValueError("Model returned an empty sentiment description")
    return content.strip()
