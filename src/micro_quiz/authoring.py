"""Quiz authoring flow: info, then questions, then preview, then save."""

from __future__ import annotations

import enum
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional, Sequence

from .editor import submit_question_editor
from .errors import PersistenceError, ValidationError
from .models import Question, Quiz, utcnow, validate_quiz_info
from .store import QuizStore

__all__ = [
    "AuthoringState",
    "QuizInfo",
    "QuizPreview",
    "QuizAuthoring",
    "build_quiz_from_definition",
    "preview_quiz",
]

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class AuthoringState(enum.Enum):
    INFO = "info"
    QUESTIONS = "questions"
    PREVIEW = "preview"
    SAVED = "saved"


@dataclass(frozen=True)
class QuizInfo:
    title: str
    description: str
    category: str
    difficulty: str = "medium"
    time_limit_minutes: Optional[int] = None


@dataclass(frozen=True)
class QuizPreview:
    """Read-only summary shown before the quiz is saved."""

    info: QuizInfo
    questions: tuple[Question, ...]
    total_points: int
    type_counts: Mapping[str, int]

    @property
    def question_count(self) -> int:
        return len(self.questions)


class QuizAuthoring:
    """State machine driving creation or editing of one quiz."""

    def __init__(
        self,
        *,
        editing: Optional[Quiz] = None,
        clock: Clock = utcnow,
    ) -> None:
        self._editing = editing
        self._clock = clock
        self._state = AuthoringState.INFO
        self._info: Optional[QuizInfo] = None
        self._questions: List[Question] = []
        self._saved: Optional[Quiz] = None
        if editing is not None:
            self._info = QuizInfo(
                title=editing.title,
                description=editing.description,
                category=editing.category,
                difficulty=editing.difficulty,
                time_limit_minutes=editing.time_limit_minutes,
            )
            self._questions = list(editing.questions)

    @classmethod
    def for_quiz(cls, quiz: Quiz, *, clock: Clock = utcnow) -> "QuizAuthoring":
        return cls(editing=quiz, clock=clock)

    @property
    def state(self) -> AuthoringState:
        return self._state

    @property
    def info(self) -> Optional[QuizInfo]:
        return self._info

    @property
    def questions(self) -> tuple[Question, ...]:
        return tuple(self._questions)

    @property
    def is_editing(self) -> bool:
        return self._editing is not None

    @property
    def saved_quiz(self) -> Optional[Quiz]:
        return self._saved

    def is_valid(self) -> bool:
        return self._info is not None and bool(self._questions)

    def submit_info(
        self,
        *,
        title: str,
        description: str,
        category: str,
        difficulty: str = "medium",
        time_limit_minutes: Optional[int] = None,
    ) -> QuizInfo:
        self._require(AuthoringState.INFO)
        errors = validate_quiz_info(
            title=title,
            description=description,
            category=category,
            difficulty=difficulty,
            time_limit_minutes=time_limit_minutes,
        )
        if errors:
            raise ValidationError(errors)
        self._info = QuizInfo(
            title=title.strip(),
            description=description.strip(),
            category=category.strip(),
            difficulty=difficulty,
            time_limit_minutes=time_limit_minutes or None,
        )
        self._state = AuthoringState.QUESTIONS
        return self._info

    def add_question(self, question: Question) -> int:
        """Append ``question`` and return its position."""

        self._require(AuthoringState.QUESTIONS)
        self._questions.append(question)
        return len(self._questions) - 1

    def replace_question(self, index: int, question: Question) -> None:
        self._require(AuthoringState.QUESTIONS)
        self._check_index(index)
        self._questions[index] = question

    def delete_question(self, index: int) -> Question:
        self._require(AuthoringState.QUESTIONS)
        self._check_index(index)
        return self._questions.pop(index)

    def preview(self) -> QuizPreview:
        if self._state is AuthoringState.QUESTIONS:
            if not self._questions:
                raise ValidationError(
                    {"questions": "At least one question is required"}
                )
            self._state = AuthoringState.PREVIEW
        self._require(AuthoringState.PREVIEW)
        assert self._info is not None
        return _make_preview(self._info, self._questions)

    def back_to_questions(self) -> None:
        self._require(AuthoringState.PREVIEW)
        self._state = AuthoringState.QUESTIONS

    def back_to_info(self) -> None:
        if self._state not in (AuthoringState.QUESTIONS, AuthoringState.PREVIEW):
            raise ValidationError(
                {"state": f"Cannot edit info from the {self._state.value} step"}
            )
        self._state = AuthoringState.INFO

    def save(self, store: QuizStore) -> Quiz:
        """Persist the quiz; on a store failure the flow stays in preview."""

        self._require(AuthoringState.PREVIEW)
        if not self.is_valid():
            raise ValidationError(
                {"questions": "At least one question is required"}
            )
        assert self._info is not None
        now = self._clock()
        editing = self._editing
        quiz = Quiz(
            id=editing.id if editing else store.generate_id(),
            title=self._info.title,
            description=self._info.description,
            category=self._info.category,
            difficulty=self._info.difficulty,  # type: ignore[arg-type]
            time_limit_minutes=self._info.time_limit_minutes,
            questions=tuple(self._questions),
            created_at=editing.created_at if editing else now,
            updated_at=now,
        )
        try:
            store.save_quiz(quiz)
        except PersistenceError:
            logger.exception(
                "Saving quiz failed", extra={"quiz_id": quiz.id}
            )
            raise
        self._saved = quiz
        self._state = AuthoringState.SAVED
        logger.info(
            "Quiz authored",
            extra={
                "event": "quiz_authored",
                "quiz_id": quiz.id,
                "edited": editing is not None,
                "questions": len(quiz.questions),
            },
        )
        return quiz

    def _require(self, expected: AuthoringState) -> None:
        if self._state is not expected:
            raise ValidationError(
                {
                    "state": (
                        f"Expected the {expected.value} step but the flow is "
                        f"at {self._state.value}"
                    )
                }
            )

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._questions):
            raise ValidationError({"index": f"No question at position {index + 1}"})


def build_quiz_from_definition(
    definition: Mapping[str, Any],
    store: QuizStore,
    *,
    existing: Optional[Quiz] = None,
    clock: Clock = utcnow,
) -> Quiz:
    """Run the full authoring flow from a declarative quiz definition.

    ``definition`` carries ``title``, ``description``, ``category``, optional
    ``difficulty`` and ``time_limit`` (minutes), and a ``questions`` list of
    editor form mappings. Question errors are reported with their position.
    When ``existing`` is given its id and creation time are kept; questions
    keep their ids when the definition repeats them.
    """

    flow = QuizAuthoring(editing=existing, clock=clock)
    base = existing
    raw_limit = definition.get("time_limit", base.time_limit_minutes if base else None)
    flow.submit_info(
        title=str(definition.get("title", base.title if base else "")),
        description=str(
            definition.get("description", base.description if base else "")
        ),
        category=str(definition.get("category", base.category if base else "")),
        difficulty=str(
            definition.get("difficulty", base.difficulty if base else "medium")
        ),
        time_limit_minutes=raw_limit or None,
    )

    raw_questions = definition.get("questions")
    if raw_questions is None and existing is not None:
        raw_questions = [question.to_dict() for question in existing.questions]
    if not isinstance(raw_questions, list):
        raise ValidationError({"questions": "A list of questions is required"})

    previous = {q.id: q for q in existing.questions} if existing else {}
    # The definition replaces the question list wholesale.
    while flow.questions:
        flow.delete_question(0)
    errors: dict[str, str] = {}
    for position, form in enumerate(raw_questions, start=1):
        if not isinstance(form, Mapping):
            errors[f"questions[{position}]"] = "Question must be a table"
            continue
        qid = form.get("id")
        try:
            question = submit_question_editor(
                form,
                existing=previous.get(str(qid)) if qid else None,
                id_factory=lambda: str(qid) if qid else store.generate_id(),
            )
        except ValidationError as exc:
            for field, message in exc.errors.items():
                errors[f"questions[{position}].{field}"] = message
            continue
        flow.add_question(question)
    if errors:
        raise ValidationError(errors)

    flow.preview()
    return flow.save(store)


def preview_quiz(quiz: Quiz) -> QuizPreview:
    """Preview of an already saved quiz."""

    info = QuizInfo(
        title=quiz.title,
        description=quiz.description,
        category=quiz.category,
        difficulty=quiz.difficulty,
        time_limit_minutes=quiz.time_limit_minutes,
    )
    return _make_preview(info, quiz.questions)


def _make_preview(info: QuizInfo, questions: Sequence[Question]) -> QuizPreview:
    frozen = tuple(questions)
    return QuizPreview(
        info=info,
        questions=frozen,
        total_points=sum(q.points for q in frozen),
        type_counts=dict(Counter(q.type for q in frozen)),
    )
