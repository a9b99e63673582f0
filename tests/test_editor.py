from __future__ import annotations

import pytest

from conftest import sequential_ids
from micro_quiz.editor import QuestionDraft, submit_question_editor
from micro_quiz.errors import ValidationError
from micro_quiz.models import Question


def _draft(correct: int = 2) -> QuestionDraft:
    return QuestionDraft(
        prompt="Pick the prime",
        options=["4", "6", "7", "9"],
        correct=correct,
    )


def test_new_draft_has_four_blank_options():
    draft = QuestionDraft()

    assert draft.options == ["", "", "", ""]
    assert draft.correct == 0
    assert draft.points == 10


def test_options_are_clamped_between_two_and_six():
    assert QuestionDraft(options=["only"]).options == ["only", ""]
    assert len(QuestionDraft(options=list("abcdefgh")).options) == 6


def test_set_option_edits_text_in_place():
    draft = _draft()

    draft.set_option(1, "8")

    assert draft.options == ["4", "8", "7", "9"]
    with pytest.raises(ValidationError):
        draft.set_option(4, "11")


def test_removing_the_correct_option_resets_to_first():
    draft = _draft(correct=2)

    assert draft.remove_option(2)

    assert draft.correct == 0
    assert draft.options == ["4", "6", "9"]


def test_removing_an_earlier_option_shifts_correct_down():
    draft = _draft(correct=2)

    draft.remove_option(0)

    assert draft.correct == 1
    assert draft.options[draft.correct] == "7"


def test_removing_a_later_option_keeps_correct():
    draft = _draft(correct=2)

    draft.remove_option(3)

    assert draft.correct == 2


def test_option_count_limits():
    draft = QuestionDraft(options=["a", "b"])
    assert not draft.remove_option(0)
    assert draft.options == ["a", "b"]

    for _ in range(4):
        assert draft.add_option()
    assert not draft.add_option()
    assert len(draft.options) == 6


def test_set_type_resets_correct_answer():
    draft = _draft(correct=3)

    draft.set_type("short-answer")
    assert draft.correct == ""

    draft.set_type("true-false")
    assert draft.correct == 0

    with pytest.raises(ValidationError):
        draft.set_type("essay")


def test_non_numeric_points_fall_back_to_default():
    draft = _draft()

    draft.set_points("lots")
    assert draft.points == 10

    draft.set_points("25")
    assert draft.points == 25


def test_build_drops_blank_options_and_retargets_correct():
    draft = QuestionDraft(
        prompt="Pick the vowel", options=["", "b", "", "e"], correct=3
    )

    question = draft.build(sequential_ids("q"))

    assert question.id == "q-1"
    assert question.options == ("b", "e")
    assert question.correct_answer == 1


def test_build_rejects_blank_correct_option():
    draft = QuestionDraft(prompt="Pick", options=["a", "b", ""], correct=2)

    with pytest.raises(ValidationError) as excinfo:
        draft.build()

    assert excinfo.value.errors == {
        "correctAnswer": "Please select a valid correct answer"
    }


def test_build_rejects_too_few_filled_options():
    draft = QuestionDraft(prompt="Pick", options=["a", "", ""], correct=0)

    with pytest.raises(ValidationError) as excinfo:
        draft.build()

    assert "options" in excinfo.value.errors


def test_submit_question_editor_true_false():
    question = submit_question_editor(
        {
            "type": "true-false",
            "question": "Water boils at 100C at sea level.",
            "correctAnswer": "true",
            "points": 5,
        },
        id_factory=lambda: "tf-1",
    )

    assert question == Question(
        id="tf-1",
        type="true-false",
        prompt="Water boils at 100C at sea level.",
        correct_answer=0,
        points=5,
    )


def test_submit_question_editor_short_answer():
    question = submit_question_editor(
        {
            "type": "short-answer",
            "question": "  Capital of France?  ",
            "correctAnswer": "Paris",
            "explanation": "It is on the Seine.",
        },
        id_factory=lambda: "sa-1",
    )

    assert question.prompt == "Capital of France?"
    assert question.correct_answer == "Paris"
    assert question.explanation == "It is on the Seine."
    assert question.points == 10


def test_submit_question_editor_reports_all_field_errors():
    with pytest.raises(ValidationError) as excinfo:
        submit_question_editor(
            {
                "type": "multiple-choice",
                "question": "",
                "options": ["only"],
                "correctAnswer": 0,
                "points": 0,
            }
        )

    errors = excinfo.value.errors
    assert errors["question"] == "Question is required"
    assert errors["points"] == "Points must be between 1 and 100"
    assert errors["options"] == "At least 2 options are required"


def test_submit_question_editor_rejects_word_answers_for_choices():
    with pytest.raises(ValidationError) as excinfo:
        submit_question_editor(
            {
                "type": "multiple-choice",
                "question": "Pick",
                "options": ["a", "b"],
                "correctAnswer": "true",
            }
        )

    assert "correctAnswer" in excinfo.value.errors


def test_submit_question_editor_rejects_seven_options():
    with pytest.raises(ValidationError) as excinfo:
        submit_question_editor(
            {"question": "Pick", "options": list("abcdefg"), "correctAnswer": 0}
        )

    assert excinfo.value.errors == {"options": "At most 6 options are allowed"}


def test_editing_keeps_id_and_unspecified_fields():
    existing = Question(
        id="q9",
        type="multiple-choice",
        prompt="Largest planet?",
        options=("Mars", "Jupiter"),
        correct_answer=1,
        points=20,
        explanation="By mass and volume.",
    )

    updated = submit_question_editor(
        {"question": "Largest planet in the solar system?"},
        existing=existing,
        id_factory=lambda: "unused",
    )

    assert updated.id == "q9"
    assert updated.options == ("Mars", "Jupiter")
    assert updated.correct_answer == 1
    assert updated.points == 20
    assert updated.explanation == "By mass and volume."
