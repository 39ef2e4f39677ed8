"""Reply, sentiment and conclusion generation with graceful degradation.

The :class:`GenerationAdapter` tries the remote completion service exactly
once per request. When the service is unconfigured, over the rate limit,
slow, failing or returns nothing usable, the adapter answers from
:mod:`src.analysis.static_responses` instead. Callers never see an exception
and cannot tell which tier produced the text.
"""
from __future__ import annotations

import logging
import random
from typing import Any, Callable, Dict, List, Optional, Sequence

from src import config
from src.analysis import static_responses
from src.analysis.sentiment import describe_sentiment
from src.openai_client import chat_completion, is_configured
from src.rate_limiter import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)

ChatHistory = Sequence[Dict[str, str]]

CONCLUSION_INSTRUCTION = (
    "Create a friendly thank you message for completing the feedback. Mention "
    "that their feedback will help improve future events."
)


class GenerationAdapter:
    """Single entry point for all generated text used by the conversation."""

    def __init__(
        self,
        *,
        completion: Optional[Callable[..., Dict[str, Any]]] = None,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        configured: Optional[Callable[[], bool]] = None,
        rng: Optional[random.Random] = None,
        provider: Optional[str] = None,
    ) -> None:
        self._completion = completion or chat_completion
        self._rate_limiter = rate_limiter or SlidingWindowRateLimiter(
            max_calls=config.LLM_RATE_LIMIT_CALLS,
            window_seconds=config.LLM_RATE_LIMIT_WINDOW_SECONDS,
        )
        self._provider = provider
        self._configured = configured or (lambda: is_configured(self._provider))
        self._rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def generate_reply(
        self, history: ChatHistory, instruction: Optional[str] = None
    ) -> str:
        """Return a conversational reply to the latest user message."""
        messages = _with_instruction(history, instruction)
        try:
            return self._remote_text(messages, temperature=0.7, max_tokens=500)
        except Exception as exc:  # noqa: BLE001 – every failure degrades
            logger.warning("Reply generation fell back to static responses: %s", exc)
        last_user = _last_user_message(history)
        if last_user is None:
            return static_responses.DEFAULT_REPLY
        return static_responses.get_static_response(last_user, rng=self._rng)

    def classify_sentiment(self, text: str) -> str:
        """Return a sentiment description for a free-text answer."""
        if not (text or "").strip():
            return static_responses.basic_sentiment_analysis(text)
        try:
            self._check_available()
            return describe_sentiment(text, completion=self._call)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Sentiment analysis fell back to keyword heuristic: %s", exc)
            return static_responses.basic_sentiment_analysis(text)

    def generate_conclusion(self, history: ChatHistory) -> str:
        """Return the closing thank-you message of a finished conversation."""
        messages = _with_instruction(history, CONCLUSION_INSTRUCTION)
        try:
            return self._remote_text(messages, temperature=0.7, max_tokens=500)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Conclusion generation fell back to static responses: %s", exc)
        return static_responses.generate_conclusion_message(rng=self._rng)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _check_available(self) -> None:
        if not self._configured():
            raise RuntimeError("remote completion service is not configured")
        self._rate_limiter.acquire()

    def _call(self, messages: List[Dict[str, str]], **kwargs: Any) -> Dict[str, Any]:
        if self._provider:
            kwargs["provider"] = self._provider
        return self._completion(messages, **kwargs)

    def _remote_text(self, messages: List[Dict[str, str]], **kwargs: Any) -> str:
        if not messages:
            raise ValueError("No messages provided for chat completion")
        self._check_available()
        response = self._call(messages, **kwargs)
        try:
            content = response["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ValueError("Model response missing expected fields") from exc
        if not isinstance(content, str) or not content.strip():
            raise ValueError("Model returned an empty response")
        return content.strip()


def _with_instruction(
    history: ChatHistory, instruction: Optional[str]
) -> List[Dict[str, str]]:
    messages = [{"role": m["role"], "content": m["content"]} for m in history]
    if instruction:
        messages.append({"role": "system", "content": instruction})
    return messages


def _last_user_message(history: ChatHistory) -> Optional[str]:
    for message in reversed(list(history)):
        if message.get("role") == "user":
            return message.get("content", "")
    return None
