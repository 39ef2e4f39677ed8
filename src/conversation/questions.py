"""Fixed questionnaire walked through by the feedback conversation."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Sequence


class AnswerType(str, Enum):
    """Expected shape of an answer."""

    RATING = "rating"
    FREE_TEXT = "text"
    YES_NO = "yesno"


@dataclass(frozen=True)
class Question:
    """A single scripted question."""

    id: str
    prompt_text: str
    answer_type: AnswerType


class QuestionCatalog:
    """Ordered, immutable sequence of questions.

    The order is the canonical progression of a conversation; the current
    position is always derived from which ids already have answers.
    """

    def __init__(self, questions: Iterable[Question]) -> None:
        self._questions: tuple[Question, ...] = tuple(questions)
        ids = [q.id for q in self._questions]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate question ids in catalog: {ids}")
        self._positions = {qid: i for i, qid in enumerate(ids)}

    def by_index(self, index: int) -> Question:
        return self._questions[index]

    def length(self) -> int:
        return len(self._questions)

    def index_of(self, question_id: str) -> Optional[int]:
        """Return the position of *question_id* or ``None`` when unknown."""
        return self._positions.get(question_id)

    def ids(self) -> List[str]:
        return [q.id for q in self._questions]

    def __len__(self) -> int:
        return len(self._questions)

    def __iter__(self) -> Iterator[Question]:
        return iter(self._questions)

    def __repr__(self) -> str:
        return f"QuestionCatalog({self.ids()})"


IMPROVEMENTS_QUESTION_ID = "improvements"

_DEFAULT_QUESTIONS: Sequence[Question] = (
    Question(
        "overall",
        "On a scale of 1-5, how would you rate your overall experience at the event?",
        AnswerType.RATING,
    ),
    Question(
        "content",
        "How satisfied were you with the content and topics covered? (1-5)",
        AnswerType.RATING,
    ),
    Question(
        "speakers",
        "How would you rate the speakers and presenters? (1-5)",
        AnswerType.RATING,
    ),
    Question(
        "venue",
        "How satisfied were you with the venue and facilities? (1-5)",
        AnswerType.RATING,
    ),
    Question(
        "highlights",
        "What were the highlights of the event for you?",
        AnswerType.FREE_TEXT,
    ),
    Question(
        IMPROVEMENTS_QUESTION_ID,
        "What aspects of the event could be improved?",
        AnswerType.FREE_TEXT,
    ),
    Question(
        "future",
        "Would you be interested in attending similar events in the future?",
        AnswerType.YES_NO,
    ),
)

QUESTIONS = QuestionCatalog(_DEFAULT_QUESTIONS)

# Ids the analytics aggregator reads from completed sessions
RATING_QUESTION_IDS: tuple[str, ...] = tuple(
    q.id for q in QUESTIONS if q.answer_type is AnswerType.RATING
)
SENTIMENT_QUESTION_IDS: tuple[str, ...] = tuple(
    q.id for q in QUESTIONS if q.answer_type is AnswerType.FREE_TEXT
)
