from __future__ import annotations

import itertools
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Iterator

import pytest

TESTS_DIR = Path(__file__).resolve().parent
ROOT = TESTS_DIR.parent
SRC = ROOT / "src"
for extra in (TESTS_DIR, SRC):
    if str(extra) not in sys.path:
        sys.path.insert(0, str(extra))

from micro_quiz.models import Question, Quiz  # noqa: E402
from micro_quiz.store import MemoryStore  # noqa: E402

EPOCH = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Wall clock that moves only when told to."""

    def __init__(self, start: datetime = EPOCH) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


def sequential_ids(prefix: str = "id") -> Callable[[], str]:
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


def make_quiz(
    quiz_id: str = "quiz-1",
    *,
    title: str = "Arithmetic",
    time_limit_minutes: int | None = None,
    questions: tuple[Question, ...] | None = None,
) -> Quiz:
    if questions is None:
        questions = (
            Question(
                id="q1",
                type="multiple-choice",
                prompt="2 + 2 = ?",
                options=("3", "4", "5"),
                correct_answer=1,
                points=10,
                explanation="Two pairs make four.",
            ),
            Question(
                id="q2",
                type="true-false",
                prompt="Zero is even.",
                correct_answer=0,
                points=5,
            ),
            Question(
                id="q3",
                type="short-answer",
                prompt="Spell the number after nine.",
                correct_answer="ten",
                points=5,
            ),
        )
    return Quiz(
        id=quiz_id,
        title=title,
        description="Warm-up questions about numbers.",
        category="Math",
        difficulty="easy",
        questions=questions,
        created_at=EPOCH,
        updated_at=EPOCH,
        time_limit_minutes=time_limit_minutes,
    )


def make_provider(commands: list[str]):
    iterator = iter(commands)

    def _provider() -> str:
        return next(iterator)

    return _provider


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def quiz() -> Quiz:
    return make_quiz()


@pytest.fixture
def store(quiz: Quiz) -> MemoryStore:
    return MemoryStore([quiz], id_factory=sequential_ids("attempt"))


@pytest.fixture
def data_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point the workspace and config lookup at a per-test directory."""

    home = tmp_path / "data-home"
    monkeypatch.setenv("MICRO_QUIZ_DATA_HOME", str(home))
    monkeypatch.delenv("MICRO_QUIZ_CONFIG", raising=False)
    yield home
