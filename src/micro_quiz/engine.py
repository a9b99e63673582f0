"""Quiz-taking engine: answer collection, countdown, grading, and review.

A :class:`QuizTaker` walks one quiz question by question. It is a two-state
machine (in progress, completed). Submission happens explicitly, when
``next`` is called on the last question, or when the countdown reaches zero
during ``tick``. Whichever comes first grades the answers and writes exactly
one :class:`~micro_quiz.models.Attempt`. Later calls are ignored.

The engine never schedules anything itself. Callers drive time by calling
``tick`` once per second (a Textual interval) or ``advance`` with elapsed
wall-clock seconds (the console session).
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Dict, Literal, Mapping, Optional, Sequence

from .errors import PersistenceError, ValidationError
from .models import (
    Answer,
    Attempt,
    ChoiceAnswer,
    Question,
    Quiz,
    TextAnswer,
    percentage_of,
    utcnow,
)
from .store import QuizStore

__all__ = [
    "TakerState",
    "SubmitReason",
    "QuestionGrade",
    "GradeResult",
    "ReviewItem",
    "QuizTaker",
    "coerce_answer",
    "grade",
    "start_quiz",
    "review_attempt",
    "is_personal_best",
]

logger = logging.getLogger(__name__)

SubmitReason = Literal["manual", "timeout", "last-question"]


class TakerState(enum.Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


@dataclass(frozen=True)
class QuestionGrade:
    question_id: str
    answer: Optional[Answer]
    correct: bool
    points_awarded: int


@dataclass(frozen=True)
class GradeResult:
    score: int
    total_points: int
    percentage: int
    questions: tuple[QuestionGrade, ...]

    @property
    def correct_count(self) -> int:
        return sum(1 for item in self.questions if item.correct)


@dataclass(frozen=True)
class ReviewItem:
    """One question of a finished attempt, ready for display."""

    position: int
    question: Question
    answer: Optional[Answer]
    answer_text: Optional[str]
    correct_answer_text: str
    correct: bool
    points_awarded: int

    @property
    def explanation(self) -> Optional[str]:
        return self.question.explanation


def grade(quiz: Quiz, answers: Mapping[str, Answer]) -> GradeResult:
    """Grade ``answers`` against the quiz key; unanswered counts as wrong."""

    results = []
    score = 0
    total = 0
    for question in quiz.questions:
        total += question.points
        answer = answers.get(question.id)
        correct = question.is_correct(answer)
        awarded = question.points if correct else 0
        score += awarded
        results.append(
            QuestionGrade(
                question_id=question.id,
                answer=answer,
                correct=correct,
                points_awarded=awarded,
            )
        )
    return GradeResult(
        score=score,
        total_points=total,
        percentage=percentage_of(score, total),
        questions=tuple(results),
    )


def coerce_answer(question: Question, value: Any) -> Answer:
    """Convert raw input into the answer variant ``question`` expects."""

    if isinstance(value, (ChoiceAnswer, TextAnswer)):
        answer = value
    elif question.type == "short-answer":
        if not isinstance(value, str):
            raise ValidationError({"answer": "Short answers must be text"})
        answer = TextAnswer(value)
    elif question.type == "true-false" and isinstance(value, bool):
        answer = ChoiceAnswer(0 if value else 1)
    elif isinstance(value, int) and not isinstance(value, bool):
        answer = ChoiceAnswer(value)
    else:
        raise ValidationError({"answer": "Choose one of the listed options"})

    if question.uses_choices != isinstance(answer, ChoiceAnswer):
        raise ValidationError({"answer": "Answer does not fit the question type"})
    if isinstance(answer, ChoiceAnswer) and not (
        0 <= answer.index < len(question.choices)
    ):
        raise ValidationError(
            {"answer": f"Option {answer.index + 1} does not exist"}
        )
    return answer


class QuizTaker:
    """Drive one quiz-taking session from first question to attempt."""

    def __init__(
        self,
        quiz: Quiz,
        store: QuizStore,
        *,
        clock: Callable[[], datetime] = utcnow,
        on_complete: Optional[Callable[[Attempt], None]] = None,
    ) -> None:
        if not quiz.questions:
            raise ValidationError(
                {"questions": "Cannot start a quiz without questions"}
            )
        self._quiz = quiz
        self._store = store
        self._clock = clock
        self._on_complete = on_complete
        self._state = TakerState.IN_PROGRESS
        self._index = 0
        self._answers: Dict[str, Answer] = {}
        self._elapsed = 0
        self._remaining = quiz.time_limit_seconds
        self._attempt: Optional[Attempt] = None
        self._submit_reason: Optional[SubmitReason] = None

    @property
    def quiz(self) -> Quiz:
        return self._quiz

    @property
    def state(self) -> TakerState:
        return self._state

    @property
    def is_completed(self) -> bool:
        return self._state is TakerState.COMPLETED

    @property
    def index(self) -> int:
        return self._index

    @property
    def current(self) -> Question:
        return self._quiz.questions[self._index]

    @property
    def total_questions(self) -> int:
        return len(self._quiz.questions)

    @property
    def is_last(self) -> bool:
        return self._index == self.total_questions - 1

    @property
    def answers(self) -> Mapping[str, Answer]:
        return MappingProxyType(self._answers)

    @property
    def elapsed_seconds(self) -> int:
        return self._elapsed

    @property
    def remaining_seconds(self) -> Optional[int]:
        """Seconds left on the countdown, or ``None`` for untimed quizzes."""

        return self._remaining

    @property
    def attempt(self) -> Optional[Attempt]:
        return self._attempt

    @property
    def submit_reason(self) -> Optional[SubmitReason]:
        return self._submit_reason

    def answered_count(self) -> int:
        return len(self._answers)

    def is_answered(self, question_id: str) -> bool:
        return question_id in self._answers

    def answer_for(self, question_id: str) -> Optional[Answer]:
        return self._answers.get(question_id)

    def answer(self, question_id: str, value: Any) -> bool:
        """Record or overwrite the answer for ``question_id``."""

        if self._ignored("answer"):
            return False
        question = self._quiz.question(question_id)
        if question is None:
            raise ValidationError(
                {"question": f"Question {question_id} is not part of this quiz"}
            )
        self._answers[question_id] = coerce_answer(question, value)
        return True

    def answer_current(self, value: Any) -> bool:
        return self.answer(self.current.id, value)

    def next(self) -> bool:
        """Move forward; on the last question this submits the quiz."""

        if self._ignored("next"):
            return False
        if self.is_last:
            self.submit(reason="last-question")
        else:
            self._index += 1
        return True

    def previous(self) -> bool:
        if self._ignored("previous"):
            return False
        if self._index > 0:
            self._index -= 1
        return True

    def tick(self) -> Optional[Attempt]:
        """Account for one elapsed second.

        Returns the attempt when this tick ran the countdown out.
        """

        if self.is_completed:
            return None
        if self._remaining == 0:
            # An earlier timeout submit failed to save; retry it.
            return self.submit(reason="timeout")
        self._elapsed += 1
        if self._remaining is None:
            return None
        self._remaining = max(self._remaining - 1, 0)
        if self._remaining == 0:
            logger.info(
                "Time limit reached",
                extra={"event": "timer_expired", "quiz_id": self._quiz.id},
            )
            return self.submit(reason="timeout")
        return None

    def advance(self, seconds: int) -> Optional[Attempt]:
        expired: Optional[Attempt] = None
        for _ in range(max(int(seconds), 0)):
            if self.is_completed:
                break
            expired = self.tick() or expired
        return expired

    def submit(self, reason: SubmitReason = "manual") -> Attempt:
        """Grade, persist, and freeze the attempt (only the first call writes).

        If the store refuses the write the session stays in progress with
        all answers intact so the caller can retry.
        """

        if self._attempt is not None:
            logger.debug(
                "Duplicate submission ignored",
                extra={"quiz_id": self._quiz.id, "reason": reason},
            )
            return self._attempt

        result = grade(self._quiz, self._answers)
        attempt = Attempt(
            id=self._store.generate_id(),
            quiz_id=self._quiz.id,
            answers=dict(self._answers),
            score=result.score,
            total_points=result.total_points,
            time_spent_seconds=self._elapsed,
            completed_at=self._clock(),
            percentage=result.percentage,
        )
        try:
            self._store.save_attempt(attempt)
        except PersistenceError:
            logger.exception(
                "Saving attempt failed", extra={"quiz_id": self._quiz.id}
            )
            raise

        self._attempt = attempt
        self._submit_reason = reason
        self._state = TakerState.COMPLETED
        logger.info(
            "Quiz submitted",
            extra={
                "event": "quiz_submitted",
                "quiz_id": self._quiz.id,
                "attempt_id": attempt.id,
                "reason": reason,
                "score": attempt.score,
                "total_points": attempt.total_points,
            },
        )
        if self._on_complete is not None:
            self._on_complete(attempt)
        return attempt

    def _ignored(self, action: str) -> bool:
        if not self.is_completed:
            return False
        logger.debug(
            "Action after completion ignored",
            extra={"quiz_id": self._quiz.id, "action": action},
        )
        return True


def start_quiz(
    quiz: Quiz,
    store: QuizStore,
    *,
    clock: Callable[[], datetime] = utcnow,
    on_complete: Optional[Callable[[Attempt], None]] = None,
) -> QuizTaker:
    return QuizTaker(quiz, store, clock=clock, on_complete=on_complete)


def review_attempt(quiz: Quiz, attempt: Attempt) -> list[ReviewItem]:
    """Pair each question with the stored answer and its outcome."""

    items: list[ReviewItem] = []
    for position, question in enumerate(quiz.questions, start=1):
        answer = attempt.answers.get(question.id)
        correct = question.is_correct(answer)
        items.append(
            ReviewItem(
                position=position,
                question=question,
                answer=answer,
                answer_text=question.describe(answer),
                correct_answer_text=question.describe(question.expected_answer())
                or "",
                correct=correct,
                points_awarded=question.points if correct else 0,
            )
        )
    return items


def is_personal_best(attempt: Attempt, attempts: Sequence[Attempt]) -> bool:
    """True when no attempt on the same quiz scored a higher percentage."""

    scores = [a.percentage for a in attempts if a.quiz_id == attempt.quiz_id]
    scores.append(attempt.percentage)
    return attempt.percentage >= max(scores)
