"""Rich renderers for quiz catalogs, previews, analytics, and reviews."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .analytics import AnalyticsReport, AttemptStats, DashboardSummary
from .authoring import QuizPreview
from .engine import ReviewItem
from .models import Attempt, Quiz
from .session import format_duration

__all__ = [
    "render_quiz_table",
    "render_quiz_preview",
    "render_dashboard",
    "render_analytics",
    "render_review",
    "format_time_ago",
]

_TYPE_LABELS = {
    "multiple-choice": "Multiple choice",
    "true-false": "True/False",
    "short-answer": "Short answer",
}


def format_time_ago(moment: datetime, *, now: Optional[datetime] = None) -> str:
    reference = now or datetime.now(timezone.utc)
    hours = int((reference - moment).total_seconds() // 3600)
    days = hours // 24
    if days > 0:
        return f"{days}d ago"
    if hours > 0:
        return f"{hours}h ago"
    return "Recently"


def _score_style(percentage: int) -> str:
    if percentage >= 80:
        return "green"
    if percentage >= 60:
        return "yellow"
    return "red"


def render_quiz_table(console: Console, quizzes: Sequence[Quiz]) -> None:
    if not quizzes:
        console.print("[yellow]No quizzes match.[/]")
        return
    table = Table(title="Quizzes", box=box.SIMPLE, expand=True)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", overflow="fold")
    table.add_column("Category")
    table.add_column("Difficulty")
    table.add_column("Questions", justify="right")
    table.add_column("Points", justify="right")
    table.add_column("Time limit", justify="right")
    for quiz in quizzes:
        table.add_row(
            quiz.id,
            quiz.title,
            quiz.category,
            quiz.difficulty,
            str(len(quiz.questions)),
            str(quiz.total_points),
            f"{quiz.time_limit_minutes} min" if quiz.time_limit_minutes else "-",
        )
    console.print(table)


def render_quiz_preview(console: Console, preview: QuizPreview) -> None:
    info = preview.info
    facts = [
        info.category,
        info.difficulty,
        f"{preview.question_count} question"
        + ("" if preview.question_count == 1 else "s"),
        f"{preview.total_points} total points",
    ]
    if info.time_limit_minutes:
        facts.append(f"{info.time_limit_minutes} minutes")
    console.print(
        Panel(
            Text(info.description),
            title=info.title,
            subtitle=" | ".join(facts),
            border_style="cyan",
        )
    )
    table = Table(box=box.SIMPLE, expand=True)
    table.add_column("#", justify="right")
    table.add_column("Type")
    table.add_column("Question", overflow="fold")
    table.add_column("Answer")
    table.add_column("Points", justify="right")
    for position, question in enumerate(preview.questions, start=1):
        table.add_row(
            str(position),
            _TYPE_LABELS.get(question.type, question.type),
            question.prompt,
            question.describe(question.expected_answer()) or "",
            str(question.points),
        )
    console.print(table)


def render_dashboard(console: Console, summary: DashboardSummary) -> None:
    table = Table(show_header=False, box=box.MINIMAL_DOUBLE_HEAD, expand=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Total quizzes", str(summary.total_quizzes))
    table.add_row("Quiz attempts", str(summary.total_attempts))
    table.add_row("Average score", f"{summary.average_percentage}%")
    table.add_row("Time spent", f"{summary.total_time_minutes}m")
    console.print(table)


def _stats_table(stats: AttemptStats, *, title: str) -> Table:
    table = Table(title=title, show_header=False, box=box.SIMPLE, expand=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Attempts", str(stats.count))
    table.add_row(
        "Average score",
        Text(f"{stats.average_percentage}%", style=_score_style(stats.average_percentage)),
    )
    table.add_row("Best score", f"{stats.best_percentage}%")
    table.add_row("Average time", format_duration(stats.average_time_seconds))
    table.add_row("Pass rate", f"{stats.pass_rate}%")
    return table


def _distribution_table(stats: AttemptStats) -> Table:
    table = Table(title="Score distribution", box=box.SIMPLE, expand=False)
    table.add_column("Grade")
    table.add_column("Attempts", justify="right")
    table.add_column("")
    peak = max(stats.distribution.values(), default=0)
    for grade, count in stats.distribution.items():
        width = int(20 * count / peak) if peak else 0
        table.add_row(grade, str(count), "█" * width)
    return table


def render_analytics(
    console: Console,
    report: AnalyticsReport,
    *,
    now: Optional[datetime] = None,
) -> None:
    if report.total_attempts == 0:
        console.print(
            "[yellow]No attempts yet.[/] Take your first quiz to see your "
            "performance analytics here."
        )
        return
    console.print(_stats_table(report.overview, title="Overview"))
    console.print(_distribution_table(report.overview))

    if report.recent:
        recent = Table(title="Recent attempts", box=box.SIMPLE, expand=True)
        recent.add_column("Attempt", style="cyan", no_wrap=True)
        recent.add_column("Quiz", overflow="fold")
        recent.add_column("Score", justify="right")
        recent.add_column("Time", justify="right")
        recent.add_column("When", justify="right")
        for attempt in report.recent:
            recent.add_row(
                attempt.id,
                report.title_for(attempt.quiz_id),
                Text(f"{attempt.percentage}%", style=_score_style(attempt.percentage)),
                format_duration(attempt.time_spent_seconds),
                format_time_ago(attempt.completed_at, now=now),
            )
        console.print(recent)

    for row in report.per_quiz:
        console.print(_stats_table(row.stats, title=row.quiz.title))


def render_review(
    console: Console,
    quiz: Quiz,
    attempt: Attempt,
    items: Sequence[ReviewItem],
) -> None:
    console.rule(Text(f"Review: {quiz.title}", style="bold magenta"))
    console.print(
        f"Score {attempt.score}/{attempt.total_points} "
        f"([bold]{attempt.percentage}%[/]) in "
        f"{format_duration(attempt.time_spent_seconds)}"
    )
    for item in items:
        mark = "[green]correct[/]" if item.correct else "[red]incorrect[/]"
        body = Text.assemble(
            (item.question.prompt + "\n", "bold"),
            ("Your answer: ", "dim"),
            (item.answer_text or "(no answer)") + "\n",
            ("Correct answer: ", "dim"),
            item.correct_answer_text,
        )
        if item.explanation:
            body.append("\n" + item.explanation, style="italic")
        console.print(
            Panel(
                body,
                title=f"Question {item.position} ({item.points_awarded}/"
                f"{item.question.points} pts)",
                subtitle=mark,
                border_style="green" if item.correct else "red",
            )
        )
