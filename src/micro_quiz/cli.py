"""Command-line entry point for micro-quiz."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

from rich.console import Console

from . import config as config_mod
from .analytics import (
    AnalyticsFilter,
    dashboard_summary,
    filter_quizzes,
    request_analytics,
)
from .authoring import build_quiz_from_definition, preview_quiz
from .core.config import TomlConfigError, load_toml
from .core.logging import configure_logger
from .core.workspace import WorkspaceError, ensure_workspace
from .engine import review_attempt, start_quiz
from .errors import NotFoundError, PersistenceError, ValidationError
from .models import DIFFICULTIES
from .reports import (
    render_analytics,
    render_dashboard,
    render_quiz_preview,
    render_quiz_table,
    render_review,
)
from .samples import seed_samples
from .session import run_quiz_session
from .store import JsonFileStore, open_store

logger = logging.getLogger(__name__)

Handler = Callable[[argparse.Namespace, config_mod.QuizConfig], int]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="microquiz",
        description="Author quizzes, take them in the terminal, and track results.",
    )
    parser.add_argument(
        "--config",
        help=(
            "Path to microquiz.toml (defaults to MICRO_QUIZ_CONFIG or "
            "<workspace>/config/microquiz.toml)."
        ),
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Mirror log records to stderr.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser(
        "init",
        help="Create the workspace and a commented config template.",
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing config file.",
    )

    seed_parser = subparsers.add_parser(
        "seed",
        help="Load the bundled sample quizzes into the store.",
    )
    seed_parser.add_argument(
        "--force",
        action="store_true",
        help="Replace sample quizzes that already exist.",
    )

    quiz_parser = subparsers.add_parser("quiz", help="Manage quizzes.")
    quiz_sub = quiz_parser.add_subparsers(dest="quiz_command", required=True)
    list_parser = quiz_sub.add_parser("list", help="List quizzes.")
    list_parser.add_argument("--search", help="Match title or description.")
    list_parser.add_argument("--category", help="Exact category name.")
    list_parser.add_argument(
        "--difficulty", choices=sorted(DIFFICULTIES), help="Difficulty level."
    )
    show_parser = quiz_sub.add_parser("show", help="Preview one quiz.")
    show_parser.add_argument("quiz_id")
    delete_parser = quiz_sub.add_parser("delete", help="Delete a quiz.")
    delete_parser.add_argument("quiz_id")
    create_parser = quiz_sub.add_parser(
        "create", help="Create a quiz from a TOML or JSON definition."
    )
    create_parser.add_argument("--from", dest="source", required=True)
    edit_parser = quiz_sub.add_parser(
        "edit", help="Replace a quiz with a TOML or JSON definition."
    )
    edit_parser.add_argument("quiz_id")
    edit_parser.add_argument("--from", dest="source", required=True)

    take_parser = subparsers.add_parser("take", help="Take a quiz.")
    take_parser.add_argument("quiz_id")
    take_parser.add_argument(
        "--tui",
        action="store_true",
        help="Use the full-screen Textual interface.",
    )
    take_parser.add_argument("--explain", dest="explain", action="store_true")
    take_parser.add_argument("--no-explain", dest="explain", action="store_false")
    take_parser.set_defaults(explain=None)

    results_parser = subparsers.add_parser(
        "results", help="Show performance analytics."
    )
    results_parser.add_argument("--quiz", dest="quiz_id", help="Limit to one quiz.")
    results_parser.add_argument("--search", help="Match quiz title.")

    review_parser = subparsers.add_parser(
        "review", help="Review a stored attempt question by question."
    )
    review_parser.add_argument("attempt_id")
    return parser


def _to_path(value: str | None) -> Path | None:
    if value is None:
        return None
    return Path(value).expanduser().resolve()


def _make_console() -> Console:
    return Console()


def _read_line() -> str:
    return input("> ")


def _configure_logging(cfg: config_mod.QuizConfig, *, verbose: bool) -> None:
    layout = cfg.workspace(create=True)
    configure_logger(
        "micro_quiz",
        log_dir=layout.path_for("logs"),
        level=cfg.logging.level,
        verbose=cfg.logging.verbose or verbose,
    )


def _format_created(created: Mapping[str, bool], key: str) -> str:
    return "created" if created.get(key, False) else "exists"


def _handle_init(args: argparse.Namespace) -> int:
    explicit_path = _to_path(args.config)
    try:
        layout = ensure_workspace()
        target, _ = config_mod.resolve_config_path(explicit_path=explicit_path)
        if target.exists() and not args.force:
            print(f"Config already exists at {target}")
        else:
            config_mod.write_template(target, overwrite=args.force)
            print(f"Wrote config template to {target}")
    except (WorkspaceError, config_mod.ConfigError) as exc:
        _print_error(str(exc))
        return 2

    lines = [f"Workspace ready at {layout.home} ({_format_created(layout.created, 'home')})"]
    width = max((len(name) for name in layout.directories), default=0)
    for name, directory in layout.items():
        status = _format_created(layout.created, name)
        lines.append(f"  {name.ljust(width)}  {directory} ({status})")
    sys.stdout.write("\n".join(lines) + "\n")
    return 0


def _handle_seed(args: argparse.Namespace, cfg: config_mod.QuizConfig) -> int:
    store = open_store(cfg)
    written = seed_samples(store, overwrite=args.force)
    if not written:
        print("Sample quizzes already present. Use --force to replace them.")
        return 0
    for quiz in written:
        print(f"Seeded {quiz.id}: {quiz.title}")
    return 0


def _handle_quiz(args: argparse.Namespace, cfg: config_mod.QuizConfig) -> int:
    store = open_store(cfg)
    command = args.quiz_command
    if command == "list":
        quizzes = filter_quizzes(
            store.list_quizzes(),
            search=args.search,
            category=args.category,
            difficulty=args.difficulty,
        )
        render_quiz_table(_make_console(), quizzes)
        return 0
    if command == "show":
        render_quiz_preview(_make_console(), preview_quiz(store.get_quiz(args.quiz_id)))
        return 0
    if command == "delete":
        quiz = store.get_quiz(args.quiz_id)
        store.delete_quiz(quiz.id)
        print(f"Deleted {quiz.id}: {quiz.title}")
        return 0
    if command in ("create", "edit"):
        return _save_definition(args, store)
    raise RuntimeError(f"Unhandled quiz command: {command}")


def _save_definition(args: argparse.Namespace, store: JsonFileStore) -> int:
    definition = _load_definition(Path(args.source).expanduser())
    existing = store.get_quiz(args.quiz_id) if args.quiz_command == "edit" else None
    quiz = build_quiz_from_definition(definition, store, existing=existing)
    verb = "Updated" if existing else "Created"
    print(
        f"{verb} {quiz.id}: {quiz.title} "
        f"({len(quiz.questions)} questions, {quiz.total_points} points)"
    )
    return 0


def _load_definition(path: Path) -> Mapping[str, Any]:
    if path.suffix.lower() == ".toml":
        try:
            return load_toml(path)
        except TomlConfigError as exc:
            raise ValidationError({"source": str(exc)}) from exc
    if path.suffix.lower() == ".json":
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ValidationError({"source": f"File not found: {path}"}) from exc
        except json.JSONDecodeError as exc:
            raise ValidationError({"source": f"Invalid JSON in {path}: {exc}"}) from exc
        if not isinstance(payload, dict):
            raise ValidationError({"source": f"{path} must contain a JSON object"})
        return payload
    raise ValidationError({"source": "Quiz definitions must be .toml or .json files"})


def _handle_take(args: argparse.Namespace, cfg: config_mod.QuizConfig) -> int:
    store = open_store(cfg)
    quiz = store.get_quiz(args.quiz_id)
    history = store.attempts_for(quiz.id)
    taker = start_quiz(quiz, store)
    console = _make_console()
    if args.tui:
        from .view import TakeQuizApp

        attempt = TakeQuizApp(taker).run()
        if attempt is None:
            console.print("[bold yellow]Ending session without submission.[/]")
            return 0
        render_review(console, quiz, attempt, review_attempt(quiz, attempt))
        return 0

    show_explanations = (
        cfg.session.show_explanations if args.explain is None else args.explain
    )
    run_quiz_session(
        taker,
        console,
        _read_line,
        show_explanations=show_explanations,
        history=history,
    )
    return 0


def _handle_results(args: argparse.Namespace, cfg: config_mod.QuizConfig) -> int:
    store = open_store(cfg)
    console = _make_console()
    render_dashboard(
        console, dashboard_summary(store.list_quizzes(), store.list_attempts())
    )
    report = request_analytics(
        store,
        AnalyticsFilter(quiz_id=args.quiz_id, search=args.search),
        recent_limit=cfg.session.recent_limit,
    )
    render_analytics(console, report)
    return 0


def _handle_review(args: argparse.Namespace, cfg: config_mod.QuizConfig) -> int:
    store = open_store(cfg)
    attempt = store.get_attempt(args.attempt_id)
    try:
        quiz = store.get_quiz(attempt.quiz_id)
    except NotFoundError:
        _print_error(
            f"Attempt {attempt.id} belongs to a deleted quiz; "
            f"score was {attempt.score}/{attempt.total_points} "
            f"({attempt.percentage}%)."
        )
        return 1
    render_review(_make_console(), quiz, attempt, review_attempt(quiz, attempt))
    return 0


_HANDLERS: Mapping[str, Handler] = {
    "seed": _handle_seed,
    "quiz": _handle_quiz,
    "take": _handle_take,
    "results": _handle_results,
    "review": _handle_review,
}


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    try:
        args = parser.parse_args(list(argv) if argv is not None else None)
    except SystemExit as exc:  # pragma: no cover - argparse already handles
        return int(exc.code)

    if args.command == "init":
        return _handle_init(args)

    handler = _HANDLERS.get(args.command)
    if handler is None:
        parser.error("Command not implemented yet.")
        return 2

    try:
        cfg = config_mod.load_config(explicit_path=_to_path(args.config))
        _configure_logging(cfg, verbose=args.verbose)
    except (config_mod.ConfigError, WorkspaceError) as exc:
        _print_error(str(exc))
        return 2

    try:
        return handler(args, cfg)
    except ValidationError as exc:
        _print_error(f"Error: {exc}")
        return 2
    except NotFoundError as exc:
        _print_error(f"Error: {exc}")
        return 1
    except PersistenceError as exc:
        logger.error("Command failed", extra={"command": args.command})
        _print_error(f"Error: {exc}")
        return 1


def _print_error(message: str) -> None:
    sys.stderr.write(message + "\n")


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
