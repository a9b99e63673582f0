"""Question editor: a mutable draft that produces validated questions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Union

from .errors import ValidationError
from .models import (
    DEFAULT_POINTS,
    MAX_OPTIONS,
    MIN_OPTIONS,
    QUESTION_TYPES,
    Question,
    validate_question,
)
from .store import generate_id

__all__ = [
    "QuestionDraft",
    "submit_question_editor",
]

logger = logging.getLogger(__name__)


@dataclass
class QuestionDraft:
    """Editable form state for one question.

    ``options`` always holds between two and six entries (blank entries
    allowed while editing). ``correct`` is an option index for the
    index-based question types and the expected text for short answers.
    """

    type: str = "multiple-choice"
    prompt: str = ""
    options: List[str] = field(default_factory=lambda: [""] * 4)
    correct: Union[int, str] = 0
    explanation: str = ""
    points: int = DEFAULT_POINTS
    question_id: Optional[str] = None

    def __post_init__(self) -> None:
        self.options = _clamp_options(self.options)

    @classmethod
    def from_question(cls, question: Question) -> "QuestionDraft":
        return cls(
            type=question.type,
            prompt=question.prompt,
            options=list(question.options) or [""] * 4,
            correct=question.correct_answer,
            explanation=question.explanation or "",
            points=question.points,
            question_id=question.id,
        )

    def set_type(self, question_type: str) -> None:
        if question_type not in QUESTION_TYPES:
            raise ValidationError({"type": f"Unknown question type '{question_type}'"})
        self.type = question_type
        self.correct = "" if question_type == "short-answer" else 0

    def set_points(self, value: Any) -> None:
        # Non-numeric input falls back to the default like the form field.
        try:
            self.points = int(value)
        except (TypeError, ValueError):
            self.points = DEFAULT_POINTS

    def set_correct(self, value: Union[int, str]) -> None:
        self.correct = value

    def set_option(self, index: int, text: str) -> None:
        if not 0 <= index < len(self.options):
            raise ValidationError({"options": f"No option at position {index + 1}"})
        self.options[index] = text

    def add_option(self) -> bool:
        if len(self.options) >= MAX_OPTIONS:
            return False
        self.options.append("")
        return True

    def remove_option(self, index: int) -> bool:
        """Drop option ``index`` keeping ``correct`` on the same option.

        Removing the correct option itself resets the answer to the first
        option. Returns ``False`` when the draft is already at the minimum.
        """

        if len(self.options) <= MIN_OPTIONS:
            return False
        if not 0 <= index < len(self.options):
            raise ValidationError({"options": f"No option at position {index + 1}"})
        del self.options[index]
        if isinstance(self.correct, int):
            if self.correct == index:
                self.correct = 0
            elif self.correct > index:
                self.correct -= 1
        return True

    def validate(self) -> dict[str, str]:
        return validate_question(self._assemble(self.question_id or "draft"))

    def build(self, id_factory: Callable[[], str] = generate_id) -> Question:
        """Return the finished question or raise :class:`ValidationError`."""

        errors = self.validate()
        if errors:
            raise ValidationError(errors)
        question = self._assemble(self.question_id or id_factory())
        logger.debug(
            "Question built",
            extra={"question_id": question.id, "question_type": question.type},
        )
        return question

    def _assemble(self, question_id: str) -> Question:
        options: tuple[str, ...] = ()
        correct: Union[int, str] = self.correct
        if self.type == "multiple-choice":
            options, correct = _compact_options(self.options, self.correct)
        elif self.type == "short-answer":
            correct = "" if self.correct is None else str(self.correct)
        return Question(
            id=question_id,
            type=self.type,  # type: ignore[arg-type]
            prompt=self.prompt.strip(),
            correct_answer=correct,
            points=self.points,
            options=options,
            explanation=self.explanation.strip() or None,
        )


def _clamp_options(options: List[str]) -> List[str]:
    clamped = [str(opt) for opt in options][:MAX_OPTIONS]
    while len(clamped) < MIN_OPTIONS:
        clamped.append("")
    return clamped


def _compact_options(
    options: List[str], correct: Union[int, str]
) -> tuple[tuple[str, ...], Union[int, str]]:
    """Drop blank options, re-targeting ``correct`` to the same option.

    A correct index that points at a blank option stays invalid (``-1``) so
    validation reports it instead of silently picking another answer.
    """

    if not isinstance(correct, int) or isinstance(correct, bool):
        return tuple(opt.strip() for opt in options if opt.strip()), correct
    kept: List[str] = []
    mapped = -1
    for index, option in enumerate(options):
        if not option.strip():
            continue
        if index == correct:
            mapped = len(kept)
        kept.append(option.strip())
    return tuple(kept), mapped


def submit_question_editor(
    form_values: Mapping[str, Any],
    *,
    existing: Optional[Question] = None,
    id_factory: Callable[[], str] = generate_id,
) -> Question:
    """Validate raw form values and return the resulting question.

    Accepted keys mirror the editor form: ``type``, ``question``,
    ``options``, ``correctAnswer``, ``explanation`` and ``points``. Values
    missing from ``form_values`` keep the ``existing`` question's values.
    """

    draft = (
        QuestionDraft.from_question(existing) if existing else QuestionDraft()
    )
    if "type" in form_values and form_values["type"] != draft.type:
        draft.set_type(str(form_values["type"]))
    if "question" in form_values:
        draft.prompt = str(form_values["question"] or "")
    if "options" in form_values:
        raw = form_values["options"] or []
        if len(raw) > MAX_OPTIONS:
            raise ValidationError(
                {"options": f"At most {MAX_OPTIONS} options are allowed"}
            )
        draft.options = _clamp_options(list(raw))
    if "correctAnswer" in form_values:
        draft.set_correct(_coerce_correct(draft.type, form_values["correctAnswer"]))
    if "explanation" in form_values:
        draft.explanation = str(form_values["explanation"] or "")
    if "points" in form_values:
        draft.set_points(form_values["points"])
    return draft.build(id_factory)


def _coerce_correct(question_type: str, value: Any) -> Union[int, str]:
    if question_type == "short-answer":
        return "" if value is None else str(value)
    if question_type == "true-false":
        if isinstance(value, bool):
            return 0 if value else 1
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return 0 if value.strip().lower() == "true" else 1
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            {"correctAnswer": "Please select a valid correct answer"}
        ) from None
