"""Bundled sample quizzes used to seed an empty store."""

from __future__ import annotations

import json
import logging
from importlib import resources
from typing import List

from .errors import PersistenceError
from .models import Quiz
from .store import QuizStore

__all__ = ["load_sample_quizzes", "seed_samples"]

logger = logging.getLogger(__name__)

_PACKAGE = "micro_quiz.data"
_FILENAME = "sample_quizzes.json"


def load_sample_quizzes() -> List[Quiz]:
    try:
        raw = resources.files(_PACKAGE).joinpath(_FILENAME).read_text(
            encoding="utf-8"
        )
    except FileNotFoundError as exc:  # pragma: no cover - packaging guard
        raise PersistenceError("Sample quiz resource is missing.") from exc
    return [Quiz.from_dict(item) for item in json.loads(raw)]


def seed_samples(store: QuizStore, *, overwrite: bool = False) -> List[Quiz]:
    """Save the sample quizzes, skipping ids already present unless ``overwrite``."""

    existing = {quiz.id for quiz in store.list_quizzes()}
    written: List[Quiz] = []
    for quiz in load_sample_quizzes():
        if quiz.id in existing and not overwrite:
            continue
        store.save_quiz(quiz)
        written.append(quiz)
    logger.info(
        "Sample quizzes seeded",
        extra={"event": "samples_seeded", "count": len(written)},
    )
    return written
