from __future__ import annotations

import pytest

from conftest import EPOCH, make_quiz
from micro_quiz.engine import (
    QuizTaker,
    TakerState,
    coerce_answer,
    grade,
    is_personal_best,
    review_attempt,
    start_quiz,
)
from micro_quiz.errors import PersistenceError, ValidationError
from micro_quiz.models import Attempt, ChoiceAnswer, Question, TextAnswer
from micro_quiz.store import MemoryStore


def _two_question_quiz(**kwargs):
    return make_quiz(
        questions=(
            Question(id="a", type="true-false", prompt="A?", correct_answer=0, points=10),
            Question(id="b", type="true-false", prompt="B?", correct_answer=0, points=15),
        ),
        **kwargs,
    )


def test_grade_bounds(quiz):
    empty = grade(quiz, {})
    assert (empty.score, empty.total_points, empty.percentage) == (0, 20, 0)

    perfect = grade(
        quiz,
        {"q1": ChoiceAnswer(1), "q2": ChoiceAnswer(0), "q3": TextAnswer("ten")},
    )
    assert (perfect.score, perfect.percentage) == (20, 100)
    assert perfect.correct_count == 3


def test_partial_credit_example():
    result = grade(_two_question_quiz(), {"a": ChoiceAnswer(0), "b": ChoiceAnswer(1)})

    assert (result.score, result.total_points, result.percentage) == (10, 25, 40)
    assert [q.points_awarded for q in result.questions] == [10, 0]


def test_true_false_index_one_is_false():
    question = Question(id="t", type="true-false", prompt="?", correct_answer=1)
    quiz = make_quiz(questions=(question,))

    assert grade(quiz, {"t": ChoiceAnswer(1)}).score == 10


def test_coerce_answer_matches_question_type(quiz):
    mc, tf, sa = quiz.questions

    assert coerce_answer(mc, 2) == ChoiceAnswer(2)
    assert coerce_answer(tf, False) == ChoiceAnswer(1)
    assert coerce_answer(sa, "ten") == TextAnswer("ten")
    with pytest.raises(ValidationError):
        coerce_answer(mc, 3)
    with pytest.raises(ValidationError):
        coerce_answer(sa, 1)
    with pytest.raises(ValidationError):
        coerce_answer(mc, TextAnswer("4"))


def test_empty_quiz_cannot_start(store):
    with pytest.raises(ValidationError):
        start_quiz(make_quiz(questions=()), store)


def test_navigation_and_answer_overwrite(quiz, store, clock):
    taker = start_quiz(quiz, store, clock=clock)

    assert taker.previous()
    assert taker.index == 0
    taker.answer_current(0)
    taker.answer_current(1)
    assert taker.answer_for("q1") == ChoiceAnswer(1)
    assert taker.answered_count() == 1
    assert taker.is_answered("q1")
    assert not taker.is_answered("q2")

    taker.next()
    taker.next()
    assert taker.is_last
    taker.previous()
    assert taker.index == 1
    assert taker.state is TakerState.IN_PROGRESS

    with pytest.raises(ValidationError):
        taker.answer("nope", 0)


def test_next_on_last_question_submits(quiz, store, clock):
    taker = QuizTaker(quiz, store, clock=clock)
    taker.answer("q3", "ten")
    for _ in range(3):
        taker.next()

    assert taker.is_completed
    assert taker.submit_reason == "last-question"
    attempt = taker.attempt
    assert attempt.score == 5
    assert attempt.completed_at == EPOCH
    assert store.list_attempts() == [attempt]


def test_manual_submit_builds_attempt(quiz, store, clock):
    seen = []
    taker = start_quiz(quiz, store, clock=clock, on_complete=seen.append)
    taker.answer("q1", 1)
    taker.advance(42)

    attempt = taker.submit()

    assert attempt == Attempt(
        id="attempt-1",
        quiz_id="quiz-1",
        answers={"q1": ChoiceAnswer(1)},
        score=10,
        total_points=20,
        time_spent_seconds=42,
        completed_at=EPOCH,
        percentage=50,
    )
    assert seen == [attempt]
    assert taker.submit_reason == "manual"


def test_actions_after_completion_are_ignored(quiz, store):
    taker = start_quiz(quiz, store)
    first = taker.submit()

    assert taker.submit() is first
    assert taker.next() is False
    assert taker.previous() is False
    assert taker.answer("q1", 1) is False
    assert taker.tick() is None
    assert taker.answers == {}
    assert len(store.list_attempts()) == 1


def test_timer_expiry_writes_exactly_one_attempt(store):
    quiz = _two_question_quiz(time_limit_minutes=1)
    taker = start_quiz(quiz, store)
    taker.answer("a", 0)

    assert taker.remaining_seconds == 60
    assert taker.advance(59) is None
    assert taker.remaining_seconds == 1
    expired = taker.tick()

    assert expired is not None
    assert taker.submit_reason == "timeout"
    assert expired.time_spent_seconds == 60
    assert (expired.score, expired.percentage) == (10, 40)
    assert taker.advance(30) is None
    assert taker.submit() is expired
    assert store.list_attempts() == [expired]


def test_advance_past_limit_stops_at_expiry(store):
    taker = start_quiz(_two_question_quiz(time_limit_minutes=1), store)

    expired = taker.advance(500)

    assert expired is not None
    assert taker.elapsed_seconds == 60
    assert taker.remaining_seconds == 0


def test_untimed_quiz_counts_elapsed_only(quiz, store):
    taker = start_quiz(quiz, store)

    taker.advance(3)

    assert taker.remaining_seconds is None
    assert taker.elapsed_seconds == 3
    assert not taker.is_completed


def test_save_failure_keeps_session_open(quiz):
    class FlakyStore(MemoryStore):
        fail = True

        def save_attempt(self, attempt):
            if self.fail:
                raise PersistenceError("disk full")
            super().save_attempt(attempt)

    store = FlakyStore([quiz])
    taker = start_quiz(quiz, store)
    taker.answer("q1", 1)

    with pytest.raises(PersistenceError):
        taker.submit()

    assert taker.state is TakerState.IN_PROGRESS
    assert taker.attempt is None
    assert taker.answer_for("q1") == ChoiceAnswer(1)

    store.fail = False
    attempt = taker.submit()
    assert store.list_attempts() == [attempt]


def test_failed_timeout_save_is_retried_on_next_tick():
    quiz = _two_question_quiz(time_limit_minutes=1)

    class FlakyStore(MemoryStore):
        fail = True

        def save_attempt(self, attempt):
            if self.fail:
                raise PersistenceError("disk full")
            super().save_attempt(attempt)

    store = FlakyStore([quiz])
    taker = start_quiz(quiz, store)

    with pytest.raises(PersistenceError):
        taker.advance(60)
    assert taker.remaining_seconds == 0
    assert not taker.is_completed

    store.fail = False
    attempt = taker.tick()

    assert attempt is not None
    assert taker.submit_reason == "timeout"
    assert attempt.time_spent_seconds == 60
    assert store.list_attempts() == [attempt]


def test_review_attempt_pairs_answers(quiz):
    attempt = Attempt(
        id="a1",
        quiz_id=quiz.id,
        answers={"q1": ChoiceAnswer(0), "q3": TextAnswer("ten")},
        score=5,
        total_points=20,
        time_spent_seconds=10,
        completed_at=EPOCH,
        percentage=25,
    )

    items = review_attempt(quiz, attempt)

    assert [item.position for item in items] == [1, 2, 3]
    first, second, third = items
    assert (first.answer_text, first.correct_answer_text, first.correct) == ("3", "4", False)
    assert first.explanation == "Two pairs make four."
    assert second.answer is None and second.answer_text is None
    assert second.correct_answer_text == "True"
    assert third.correct and third.points_awarded == 5


def test_personal_best_compares_same_quiz_only():
    def attempt(aid, quiz_id, pct):
        return Attempt(
            id=aid,
            quiz_id=quiz_id,
            answers={},
            score=0,
            total_points=10,
            time_spent_seconds=1,
            completed_at=EPOCH,
            percentage=pct,
        )

    history = [attempt("a1", "quiz-1", 60), attempt("a2", "quiz-2", 95)]

    assert is_personal_best(attempt("a3", "quiz-1", 80), history)
    assert is_personal_best(attempt("a4", "quiz-1", 60), history)
    assert not is_personal_best(attempt("a5", "quiz-1", 50), history)
    assert is_personal_best(attempt("a6", "quiz-3", 0), [])
