from __future__ import annotations

from datetime import timedelta

from rich.console import Console

from conftest import EPOCH, make_quiz
from micro_quiz.analytics import dashboard_summary, request_analytics
from micro_quiz.authoring import preview_quiz
from micro_quiz.engine import review_attempt
from micro_quiz.models import Attempt, ChoiceAnswer
from micro_quiz.reports import (
    format_time_ago,
    render_analytics,
    render_dashboard,
    render_quiz_preview,
    render_quiz_table,
    render_review,
)
from micro_quiz.store import MemoryStore


def make_console() -> Console:
    return Console(record=True, width=100, force_terminal=True)


def _attempt(aid: str, quiz_id: str, pct: int, hours_ago: int = 0) -> Attempt:
    return Attempt(
        id=aid,
        quiz_id=quiz_id,
        answers={"q1": ChoiceAnswer(1)},
        score=pct // 5,
        total_points=20,
        time_spent_seconds=95,
        completed_at=EPOCH - timedelta(hours=hours_ago),
        percentage=pct,
    )


def test_format_time_ago():
    assert format_time_ago(EPOCH, now=EPOCH + timedelta(minutes=30)) == "Recently"
    assert format_time_ago(EPOCH, now=EPOCH + timedelta(hours=5)) == "5h ago"
    assert format_time_ago(EPOCH, now=EPOCH + timedelta(days=3, hours=1)) == "3d ago"


def test_quiz_table_lists_quizzes():
    console = make_console()

    render_quiz_table(console, [make_quiz(time_limit_minutes=15)])

    output = console.export_text()
    assert "quiz-1" in output
    assert "Arithmetic" in output
    assert "15 min" in output


def test_quiz_table_empty_message():
    console = make_console()

    render_quiz_table(console, [])

    assert "No quizzes match." in console.export_text()


def test_quiz_preview_shows_answers_and_totals():
    console = make_console()

    render_quiz_preview(console, preview_quiz(make_quiz(time_limit_minutes=5)))

    output = console.export_text()
    assert "3 questions" in output
    assert "20 total points" in output
    assert "5 minutes" in output
    assert "True/False" in output
    assert "ten" in output


def test_dashboard_numbers():
    console = make_console()
    quiz = make_quiz()

    render_dashboard(console, dashboard_summary([quiz], [_attempt("a1", quiz.id, 80)]))

    output = console.export_text()
    assert "Total quizzes" in output
    assert "80%" in output
    assert "2m" in output


def test_analytics_empty_state():
    console = make_console()

    render_analytics(console, request_analytics(MemoryStore()))

    assert "No attempts yet." in console.export_text()


def test_analytics_lists_recent_and_unknown_quizzes():
    quiz = make_quiz()
    store = MemoryStore(
        [quiz],
        [_attempt("a1", quiz.id, 90, hours_ago=30), _attempt("a2", "deleted", 50, hours_ago=2)],
    )
    console = make_console()

    render_analytics(console, request_analytics(store), now=EPOCH)

    output = console.export_text()
    assert "Overview" in output
    assert "Score distribution" in output
    assert "Unknown Quiz" in output
    assert "Arithmetic" in output
    assert "2h ago" in output
    assert "1d ago" in output
    assert "Pass rate" in output


def test_review_panels():
    quiz = make_quiz()
    attempt = _attempt("a1", quiz.id, 50)
    console = make_console()

    render_review(console, quiz, attempt, review_attempt(quiz, attempt))

    output = console.export_text()
    assert "Review: Arithmetic" in output
    assert "Question 1 (10/10 pts)" in output
    assert "Question 2 (0/5 pts)" in output
    assert "(no answer)" in output
    assert "Two pairs make four." in output
