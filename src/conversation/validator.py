"""Answer validation by expected question type."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from src.conversation.questions import AnswerType, Question

RATING_MIN = 1
RATING_MAX = 5

RATING_REASON = "Please provide a rating between 1 and 5."
YES_NO_REASON = "Please answer with a yes or no."

YES_NO_TOKENS: tuple[str, ...] = ("yes", "yeah", "sure", "no", "nope", "nah")

# Leading integer, the rest of the text is ignored ("4 stars" -> 4).
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: Optional[str] = None


VALID = ValidationResult(valid=True)


def parse_rating(text: Optional[str]) -> Optional[int]:
    """Return the leading integer of *text* or ``None`` if there is none."""
    if not text:
        return None
    match = _LEADING_INT_RE.match(text)
    if not match:
        return None
    return int(match.group(1))


def validate(question: Question, raw_answer: str) -> ValidationResult:
    """Check *raw_answer* against the answer type of *question*.

    Pure and total: never raises for string input.
    """
    if question.answer_type is AnswerType.RATING:
        rating = parse_rating(raw_answer)
        if rating is None or not RATING_MIN <= rating <= RATING_MAX:
            return ValidationResult(valid=False, reason=RATING_REASON)
        return VALID

    if question.answer_type is AnswerType.YES_NO:
        lowered = (raw_answer or "").strip().lower()
        if not any(token in lowered for token in YES_NO_TOKENS):
            return ValidationResult(valid=False, reason=YES_NO_REASON)
        return VALID

    # Free text has no length or content requirement.
    return VALID
