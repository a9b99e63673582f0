"""Rich-powered console session that drives a :class:`QuizTaker`.

The loop renders the current question, reads one command per line from an
injectable input provider, and applies it to the engine. Time is measured
with an injectable monotonic clock; whole elapsed seconds are fed to the
engine before each command so an expired countdown submits the quiz before
any further input is accepted.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, List, Literal, Optional, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .engine import QuizTaker, ReviewItem, is_personal_best, review_attempt
from .errors import PersistenceError, ValidationError
from .models import Attempt

__all__ = [
    "ExitAction",
    "SessionCommand",
    "QuizSessionResult",
    "parse_session_command",
    "run_quiz_session",
    "format_duration",
]

InputProvider = Callable[[], str]
MonotonicClock = Callable[[], float]
ExitAction = Literal["submitted", "timeout", "quit"]

_CHOICE_KEYS = "ABCDEF"


@dataclass(frozen=True)
class SessionCommand:
    """Normalized user command parsed from console input."""

    type: Literal["next", "prev", "submit", "quit", "select", "text"]
    value: Optional[str] = None


@dataclass(frozen=True)
class QuizSessionResult:
    """Return value from :func:`run_quiz_session`."""

    exit_action: ExitAction
    attempt: Optional[Attempt]
    review: List[ReviewItem] = field(default_factory=list)


def parse_session_command(
    raw: Optional[str],
    *,
    free_text: bool = False,
    true_false: bool = False,
) -> Optional[SessionCommand]:
    """Parse one input line.

    With ``free_text`` (short-answer questions) anything that is not a
    navigation keyword becomes the typed answer. A leading ``=`` always
    marks answer text so keywords themselves can be submitted as answers.
    With ``true_false`` the words ``t``/``true`` and ``f``/``false`` pick
    A and B; other question types treat a lone ``f`` as option F.
    """

    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    if text.startswith("="):
        return SessionCommand("text", text[1:].strip())
    lowered = text.lower()
    if lowered in {"n", "next"}:
        return SessionCommand("next")
    if lowered in {"p", "prev", "previous"}:
        return SessionCommand("prev")
    if lowered in {"s", "submit"}:
        return SessionCommand("submit")
    if lowered in {"q", "quit", "exit"}:
        return SessionCommand("quit")
    if free_text:
        return SessionCommand("text", text)
    if true_false and lowered in {"true", "t"}:
        return SessionCommand("select", "A")
    if true_false and lowered in {"false", "f"}:
        return SessionCommand("select", "B")
    if len(text) == 1 and text.upper() in _CHOICE_KEYS:
        return SessionCommand("select", text.upper())
    if text.isdigit() and 1 <= int(text) <= len(_CHOICE_KEYS):
        return SessionCommand("select", _CHOICE_KEYS[int(text) - 1])
    return None


def format_duration(seconds: int) -> str:
    minutes, secs = divmod(max(int(seconds), 0), 60)
    return f"{minutes:02d}:{secs:02d}"


def run_quiz_session(
    taker: QuizTaker,
    console: Console,
    input_provider: InputProvider,
    *,
    show_explanations: bool = True,
    clock: MonotonicClock = time.monotonic,
    history: Sequence[Attempt] = (),
) -> QuizSessionResult:
    """Run the interactive loop until submission, timeout, or quit.

    The countdown is checked when a line of input arrives, so an expired
    quiz is submitted on the next keypress: ``time_spent_seconds`` stops at
    the limit but ``completed_at`` is the time of that keypress. A failed
    save leaves the quiz in progress and is retried on the next input.
    """

    last_sync = clock()
    exit_action: ExitAction = "quit"
    while not taker.is_completed:
        _render_question(console, taker)
        try:
            raw = input_provider()
        except (EOFError, KeyboardInterrupt, StopIteration):
            console.print("\n[bold yellow]Session interrupted.[/]")
            break

        elapsed = int(clock() - last_sync)
        try:
            if elapsed > 0:
                last_sync += elapsed
                taker.advance(elapsed)
            elif taker.remaining_seconds == 0:
                taker.submit(reason="timeout")
        except PersistenceError as exc:
            console.print(f"[red]Could not save your attempt:[/] {exc}")
            if parse_session_command(raw) == SessionCommand("quit"):
                console.print("\n[bold yellow]Ending session without submission.[/]")
                break
            continue
        if taker.is_completed:
            console.print("\n[bold red]Time is up![/] Your answers were submitted.")
            exit_action = "timeout"
            break

        command = parse_session_command(
            raw,
            free_text=taker.current.type == "short-answer",
            true_false=taker.current.type == "true-false",
        )
        if command is None:
            console.print("[red]Unrecognized command. Try again.[/]")
            continue
        if command.type == "quit":
            console.print("\n[bold yellow]Ending session without submission.[/]")
            break
        try:
            _apply_command(command, taker, console)
        except PersistenceError as exc:
            console.print(f"[red]Could not save your attempt:[/] {exc}")
            continue
        if taker.is_completed:
            exit_action = "submitted"

    attempt = taker.attempt
    if attempt is None:
        return QuizSessionResult("quit", None)
    review = review_attempt(taker.quiz, attempt)
    result = QuizSessionResult(exit_action, attempt, review)
    _render_summary(
        console,
        result,
        title=taker.quiz.title,
        personal_best=is_personal_best(attempt, history),
        show_explanations=show_explanations,
    )
    return result


def _apply_command(
    command: SessionCommand,
    taker: QuizTaker,
    console: Console,
) -> None:
    if command.type == "select" and command.value:
        index = _CHOICE_KEYS.index(command.value)
        try:
            taker.answer_current(index)
        except ValidationError:
            console.print(
                f"[red]'{command.value}' is not a valid choice for this "
                "question.[/red]"
            )
            return
        console.print(f"Selected [bold]{command.value}[/].")
    elif command.type == "text":
        try:
            taker.answer_current(command.value or "")
        except ValidationError as exc:
            console.print(f"[red]{exc}[/red]")
            return
        console.print("Answer recorded.")
    elif command.type == "next":
        taker.next()
    elif command.type == "prev":
        taker.previous()
    elif command.type == "submit":
        taker.submit()


def _render_question(console: Console, taker: QuizTaker) -> None:
    question = taker.current
    header = Text.assemble(
        (f"Question {taker.index + 1}", "bold cyan"),
        (f" / {taker.total_questions}", "dim"),
        (f"  ({question.points} pts)", "dim"),
    )
    console.print()
    console.rule(header)
    console.print(Text(question.prompt, style="bold"))

    current = taker.answer_for(question.id)
    if question.uses_choices:
        table = Table(show_header=False, box=box.SIMPLE, expand=True)
        table.add_column("Key", justify="center", style="cyan")
        table.add_column("Choice")
        for index, label in enumerate(question.choices):
            selected = current is not None and getattr(current, "index", None) == index
            row = Text(("• " if selected else "  ") + label)
            if selected:
                row.stylize("bold green")
            table.add_row(_CHOICE_KEYS[index], row)
        console.print(table)
        keys = ", ".join(_CHOICE_KEYS[: len(question.choices)])
        hint = f"choices [{keys}]"
        if question.type == "true-false":
            hint += " or t/f"
    else:
        typed = question.describe(current)
        console.print(
            Text(f"Your answer: {typed}" if typed else "Type your answer.", style="italic")
        )
        hint = "type an answer (prefix with = to answer a keyword)"

    status = f"Answered {taker.answered_count()}/{taker.total_questions}"
    if taker.remaining_seconds is not None:
        status += f" | Time left {format_duration(taker.remaining_seconds)}"
    console.print(
        Text(
            f"{status} | Commands: {hint}, n (next), p (prev), submit, quit",
            style="dim",
        )
    )


def _render_summary(
    console: Console,
    result: QuizSessionResult,
    *,
    title: str,
    personal_best: bool,
    show_explanations: bool,
) -> None:
    attempt = result.attempt
    assert attempt is not None
    console.print()
    console.rule(Text(f"Results: {title}", style="bold magenta"))

    overview = Table(show_header=False, box=box.MINIMAL_DOUBLE_HEAD, expand=False)
    overview.add_column("Metric", style="bold")
    overview.add_column("Value", justify="right")
    overview.add_row("Score", f"{attempt.score} / {attempt.total_points}")
    overview.add_row("Percentage", f"{attempt.percentage}%")
    overview.add_row(
        "Correct",
        f"{sum(1 for item in result.review if item.correct)} / {len(result.review)}",
    )
    overview.add_row("Time spent", format_duration(attempt.time_spent_seconds))
    if personal_best:
        overview.add_row("Personal best", "yes")
    console.print(overview)

    responses = Table(title="Responses", box=box.SIMPLE, expand=True)
    responses.add_column("#", justify="right")
    responses.add_column("Question", overflow="fold")
    responses.add_column("Your answer")
    responses.add_column("Correct answer")
    responses.add_column("Result", justify="center")
    for item in result.review:
        responses.add_row(
            str(item.position),
            item.question.prompt,
            item.answer_text or "-",
            item.correct_answer_text,
            "✅" if item.correct else "❌",
        )
    console.print(responses)

    if not show_explanations:
        return
    for item in result.review:
        if not item.explanation:
            continue
        console.print(
            Panel(
                item.explanation,
                title=f"Explanation: question {item.position}",
                border_style="green" if item.correct else "red",
            )
        )
