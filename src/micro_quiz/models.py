"""Quiz, Question, and Attempt entities plus their validation rules.

Entities are frozen dataclasses. Each one round-trips through ``to_dict`` /
``from_dict`` using camelCase keys (``correctAnswer``, ``timeLimit``,
``createdAt``) so data exported from the browser version keeps loading.
Answers are a small tagged union: ``ChoiceAnswer`` for index-based question
types and ``TextAnswer`` for short answers. In JSON the tag is the value's
type (integer vs string).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Mapping, MutableMapping, Optional, Union

from .errors import PersistenceError

__all__ = [
    "QuestionType",
    "Difficulty",
    "QUESTION_TYPES",
    "DIFFICULTIES",
    "TRUE_FALSE_LABELS",
    "MIN_POINTS",
    "MAX_POINTS",
    "DEFAULT_POINTS",
    "MIN_OPTIONS",
    "MAX_OPTIONS",
    "MAX_TIME_LIMIT_MINUTES",
    "ChoiceAnswer",
    "TextAnswer",
    "Answer",
    "answer_from_json",
    "Question",
    "Quiz",
    "Attempt",
    "percentage_of",
    "round_half_up",
    "utcnow",
    "validate_quiz_info",
    "validate_question",
    "validate_quiz",
]

QuestionType = Literal["multiple-choice", "true-false", "short-answer"]
Difficulty = Literal["easy", "medium", "hard"]

QUESTION_TYPES: tuple[str, ...] = ("multiple-choice", "true-false", "short-answer")
DIFFICULTIES: tuple[str, ...] = ("easy", "medium", "hard")
TRUE_FALSE_LABELS: tuple[str, str] = ("True", "False")

MIN_POINTS = 1
MAX_POINTS = 100
DEFAULT_POINTS = 10
MIN_OPTIONS = 2
MAX_OPTIONS = 6
MAX_TIME_LIMIT_MINUTES = 180
MIN_TITLE_LENGTH = 3
MIN_DESCRIPTION_LENGTH = 10


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def round_half_up(value: float) -> int:
    """Round like ``Math.round``: halves go up, not to the even neighbour."""

    return int(math.floor(value + 0.5))


def percentage_of(score: int, total: int) -> int:
    if total <= 0:
        return 0
    return round_half_up(100 * score / total)


@dataclass(frozen=True)
class ChoiceAnswer:
    """Selected option index (multiple-choice) or 0/1 (true-false)."""

    index: int

    def to_json(self) -> int:
        return self.index


@dataclass(frozen=True)
class TextAnswer:
    """Typed short answer, compared verbatim."""

    text: str

    def to_json(self) -> str:
        return self.text


Answer = Union[ChoiceAnswer, TextAnswer]


def answer_from_json(value: Any) -> Answer:
    if isinstance(value, bool):
        raise PersistenceError("Stored answers must be integers or strings.")
    if isinstance(value, int):
        return ChoiceAnswer(value)
    if isinstance(value, str):
        return TextAnswer(value)
    raise PersistenceError(
        f"Unsupported stored answer type: {type(value).__name__}"
    )


@dataclass(frozen=True)
class Question:
    """A single gradable prompt."""

    id: str
    type: QuestionType
    prompt: str
    correct_answer: Union[int, str]
    points: int = DEFAULT_POINTS
    options: tuple[str, ...] = ()
    explanation: Optional[str] = None

    @property
    def uses_choices(self) -> bool:
        return self.type != "short-answer"

    @property
    def choices(self) -> tuple[str, ...]:
        """Labels a taker picks from; empty for short-answer questions."""

        if self.type == "true-false":
            return TRUE_FALSE_LABELS
        return self.options

    def expected_answer(self) -> Answer:
        if self.uses_choices:
            return ChoiceAnswer(int(self.correct_answer))
        return TextAnswer(str(self.correct_answer))

    def is_correct(self, answer: Optional[Answer]) -> bool:
        return answer is not None and answer == self.expected_answer()

    def describe(self, answer: Optional[Answer]) -> Optional[str]:
        """Human readable text for ``answer`` (option label or typed text)."""

        if answer is None:
            return None
        if isinstance(answer, TextAnswer):
            return answer.text
        if 0 <= answer.index < len(self.choices):
            return self.choices[answer.index]
        return f"#{answer.index}"

    def to_dict(self) -> MutableMapping[str, Any]:
        payload: MutableMapping[str, Any] = {
            "id": self.id,
            "type": self.type,
            "question": self.prompt,
            "correctAnswer": self.correct_answer,
            "points": self.points,
        }
        if self.type == "multiple-choice":
            payload["options"] = list(self.options)
        if self.explanation:
            payload["explanation"] = self.explanation
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Question":
        try:
            qtype = str(payload["type"])
            correct = payload["correctAnswer"]
            question = cls(
                id=str(payload["id"]),
                type=qtype,  # type: ignore[arg-type]
                prompt=str(payload["question"]),
                correct_answer=correct if isinstance(correct, (int, str)) else str(correct),
                points=int(payload.get("points", DEFAULT_POINTS)),
                options=tuple(str(opt) for opt in payload.get("options") or ()),
                explanation=payload.get("explanation") or None,
            )
        except KeyError as exc:
            raise PersistenceError(
                f"Question payload missing required field: {exc}"
            ) from exc
        except (TypeError, ValueError) as exc:
            raise PersistenceError(f"Malformed question payload: {exc}") from exc
        if qtype not in QUESTION_TYPES:
            raise PersistenceError(f"Unknown question type '{qtype}'.")
        return question


@dataclass(frozen=True)
class Quiz:
    """An ordered, named collection of questions."""

    id: str
    title: str
    description: str
    category: str
    difficulty: Difficulty
    questions: tuple[Question, ...]
    created_at: datetime
    updated_at: datetime
    time_limit_minutes: Optional[int] = None

    @property
    def total_points(self) -> int:
        return sum(question.points for question in self.questions)

    @property
    def time_limit_seconds(self) -> Optional[int]:
        if not self.time_limit_minutes:
            return None
        return self.time_limit_minutes * 60

    def question(self, question_id: str) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def to_dict(self) -> MutableMapping[str, Any]:
        payload: MutableMapping[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "difficulty": self.difficulty,
            "questions": [question.to_dict() for question in self.questions],
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
        if self.time_limit_minutes:
            payload["timeLimit"] = self.time_limit_minutes
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Quiz":
        try:
            raw_limit = payload.get("timeLimit")
            return cls(
                id=str(payload["id"]),
                title=str(payload["title"]),
                description=str(payload["description"]),
                category=str(payload["category"]),
                difficulty=str(payload.get("difficulty", "medium")),  # type: ignore[arg-type]
                questions=tuple(
                    Question.from_dict(item) for item in payload["questions"]
                ),
                created_at=_parse_timestamp(payload["createdAt"]),
                updated_at=_parse_timestamp(payload["updatedAt"]),
                time_limit_minutes=int(raw_limit) if raw_limit else None,
            )
        except KeyError as exc:
            raise PersistenceError(
                f"Quiz payload missing required field: {exc}"
            ) from exc
        except (TypeError, ValueError) as exc:
            raise PersistenceError(f"Malformed quiz payload: {exc}") from exc


@dataclass(frozen=True)
class Attempt:
    """Immutable, graded record of one run through a quiz."""

    id: str
    quiz_id: str
    answers: Mapping[str, Answer]
    score: int
    total_points: int
    time_spent_seconds: int
    completed_at: datetime
    percentage: int = field(default=0)

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "id": self.id,
            "quizId": self.quiz_id,
            "answers": {
                qid: answer.to_json() for qid, answer in self.answers.items()
            },
            "score": self.score,
            "totalPoints": self.total_points,
            "timeSpent": self.time_spent_seconds,
            "completedAt": self.completed_at.isoformat(),
            "percentage": self.percentage,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Attempt":
        try:
            raw_answers = payload.get("answers") or {}
            if not isinstance(raw_answers, Mapping):
                raise PersistenceError("Attempt answers must be a mapping.")
            return cls(
                id=str(payload["id"]),
                quiz_id=str(payload["quizId"]),
                answers={
                    str(qid): answer_from_json(value)
                    for qid, value in raw_answers.items()
                },
                score=int(payload["score"]),
                total_points=int(payload["totalPoints"]),
                time_spent_seconds=int(payload.get("timeSpent", 0)),
                completed_at=_parse_timestamp(payload["completedAt"]),
                percentage=int(payload["percentage"]),
            )
        except KeyError as exc:
            raise PersistenceError(
                f"Attempt payload missing required field: {exc}"
            ) from exc
        except (TypeError, ValueError) as exc:
            raise PersistenceError(f"Malformed attempt payload: {exc}") from exc


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def validate_quiz_info(
    *,
    title: str,
    description: str,
    category: str,
    difficulty: str = "medium",
    time_limit_minutes: Optional[int] = None,
) -> dict[str, str]:
    """Return field errors for the quiz information step (empty when valid)."""

    errors: dict[str, str] = {}
    title = (title or "").strip()
    description = (description or "").strip()
    if not title:
        errors["title"] = "Title is required"
    elif len(title) < MIN_TITLE_LENGTH:
        errors["title"] = f"Title must be at least {MIN_TITLE_LENGTH} characters"
    if not description:
        errors["description"] = "Description is required"
    elif len(description) < MIN_DESCRIPTION_LENGTH:
        errors["description"] = (
            f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters"
        )
    if not (category or "").strip():
        errors["category"] = "Category is required"
    if difficulty not in DIFFICULTIES:
        errors["difficulty"] = "Difficulty must be easy, medium, or hard"
    if time_limit_minutes is not None and (
        isinstance(time_limit_minutes, bool)
        or not isinstance(time_limit_minutes, int)
        or not 1 <= time_limit_minutes <= MAX_TIME_LIMIT_MINUTES
    ):
        errors["time_limit_minutes"] = (
            f"Time limit must be between 1 and {MAX_TIME_LIMIT_MINUTES} minutes"
        )
    return errors


def validate_question(question: Question) -> dict[str, str]:
    """Return field errors for a finished question (empty when valid)."""

    errors: dict[str, str] = {}
    if question.type not in QUESTION_TYPES:
        errors["type"] = f"Unknown question type '{question.type}'"
        return errors
    if not question.prompt.strip():
        errors["question"] = "Question is required"
    if (
        isinstance(question.points, bool)
        or not isinstance(question.points, int)
        or not MIN_POINTS <= question.points <= MAX_POINTS
    ):
        errors["points"] = f"Points must be between {MIN_POINTS} and {MAX_POINTS}"

    correct = question.correct_answer
    if question.type == "multiple-choice":
        if len([opt for opt in question.options if opt.strip()]) < MIN_OPTIONS:
            errors["options"] = f"At least {MIN_OPTIONS} options are required"
        elif len(question.options) > MAX_OPTIONS:
            errors["options"] = f"At most {MAX_OPTIONS} options are allowed"
        if (
            not _is_index(correct)
            or not 0 <= correct < len(question.options)  # type: ignore[operator]
            or not question.options[correct].strip()  # type: ignore[index]
        ):
            errors["correctAnswer"] = "Please select a valid correct answer"
    elif question.type == "true-false":
        if question.options:
            errors["options"] = "True/false questions do not take options"
        if not _is_index(correct) or correct not in (0, 1):
            errors["correctAnswer"] = "Correct answer must be True (0) or False (1)"
    elif not isinstance(correct, str) or not correct.strip():
        errors["correctAnswer"] = "Correct answer is required"
    return errors


def validate_quiz(quiz: Quiz) -> dict[str, str]:
    """Full validity check applied before a quiz is persisted."""

    errors = validate_quiz_info(
        title=quiz.title,
        description=quiz.description,
        category=quiz.category,
        difficulty=quiz.difficulty,
        time_limit_minutes=quiz.time_limit_minutes,
    )
    if not quiz.questions:
        errors["questions"] = "At least one question is required"
    seen: set[str] = set()
    for position, question in enumerate(quiz.questions, start=1):
        if question.id in seen:
            errors[f"questions[{position}].id"] = "Duplicate question id"
        seen.add(question.id)
        for name, message in validate_question(question).items():
            errors[f"questions[{position}].{name}"] = message
    return errors


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
