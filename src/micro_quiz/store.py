"""Persistence for quizzes and attempts.

Two ordered collections live side by side: quizzes (upserted by id) and
attempts (append-only). ``JsonFileStore`` keeps each collection in one JSON
file and rewrites the whole file atomically on every save, so a failed write
leaves the previous contents untouched. ``MemoryStore`` offers the same
contract for tests and scratch sessions.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
import uuid
from pathlib import Path
from typing import Any, Callable, List, Protocol, Sequence, runtime_checkable

from .config import QuizConfig
from .core.workspace import WorkspaceError
from .errors import NotFoundError, PersistenceError, ValidationError
from .models import Attempt, Quiz, validate_quiz

__all__ = [
    "QuizStore",
    "BaseStore",
    "JsonFileStore",
    "MemoryStore",
    "generate_id",
    "open_store",
]

logger = logging.getLogger(__name__)

QUIZZES_FILENAME = "quizzes.json"
ATTEMPTS_FILENAME = "attempts.json"
_LOCK_FILENAME = ".lock"
_LOCK_TIMEOUT_SECONDS = 5.0
# A lock file older than this was left by a process that died holding it.
_STALE_LOCK_SECONDS = 30.0


def generate_id() -> str:
    return uuid.uuid4().hex


@runtime_checkable
class QuizStore(Protocol):
    """Contract the core relies on; presentation code may swap implementations."""

    def list_quizzes(self) -> List[Quiz]: ...

    def save_quiz(self, quiz: Quiz) -> None: ...

    def delete_quiz(self, quiz_id: str) -> None: ...

    def list_attempts(self) -> List[Attempt]: ...

    def save_attempt(self, attempt: Attempt) -> None: ...

    def generate_id(self) -> str: ...


class BaseStore:
    """Shared behaviour layered over the six primitive store operations."""

    def __init__(self, *, id_factory: Callable[[], str] = generate_id) -> None:
        self._id_factory = id_factory

    def generate_id(self) -> str:
        return self._id_factory()

    def list_quizzes(self) -> List[Quiz]:  # pragma: no cover - abstract
        raise NotImplementedError

    def list_attempts(self) -> List[Attempt]:  # pragma: no cover - abstract
        raise NotImplementedError

    def get_quiz(self, quiz_id: str) -> Quiz:
        for quiz in self.list_quizzes():
            if quiz.id == quiz_id:
                return quiz
        raise NotFoundError("Quiz", quiz_id)

    def get_attempt(self, attempt_id: str) -> Attempt:
        for attempt in self.list_attempts():
            if attempt.id == attempt_id:
                return attempt
        raise NotFoundError("Attempt", attempt_id)

    def attempts_for(self, quiz_id: str) -> List[Attempt]:
        return [a for a in self.list_attempts() if a.quiz_id == quiz_id]

    def _check_quiz(self, quiz: Quiz) -> None:
        errors = validate_quiz(quiz)
        if errors:
            raise ValidationError(errors)


class MemoryStore(BaseStore):
    """In-process store; nothing survives the interpreter."""

    def __init__(
        self,
        quizzes: Sequence[Quiz] = (),
        attempts: Sequence[Attempt] = (),
        *,
        id_factory: Callable[[], str] = generate_id,
    ) -> None:
        super().__init__(id_factory=id_factory)
        self._quizzes: List[Quiz] = list(quizzes)
        self._attempts: List[Attempt] = list(attempts)

    def list_quizzes(self) -> List[Quiz]:
        return list(self._quizzes)

    def save_quiz(self, quiz: Quiz) -> None:
        self._check_quiz(quiz)
        self._quizzes = _upsert(self._quizzes, quiz)

    def delete_quiz(self, quiz_id: str) -> None:
        self._quizzes = [q for q in self._quizzes if q.id != quiz_id]

    def list_attempts(self) -> List[Attempt]:
        return list(self._attempts)

    def save_attempt(self, attempt: Attempt) -> None:
        self._attempts.append(attempt)


class JsonFileStore(BaseStore):
    """Store both collections as JSON arrays under ``root``."""

    def __init__(
        self,
        root: Path,
        *,
        id_factory: Callable[[], str] = generate_id,
    ) -> None:
        super().__init__(id_factory=id_factory)
        self._root = root
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(
                f"Storage directory unavailable: {root}"
            ) from exc

    @property
    def root(self) -> Path:
        return self._root

    @property
    def quizzes_path(self) -> Path:
        return self._root / QUIZZES_FILENAME

    @property
    def attempts_path(self) -> Path:
        return self._root / ATTEMPTS_FILENAME

    def list_quizzes(self) -> List[Quiz]:
        return [Quiz.from_dict(item) for item in self._read(self.quizzes_path)]

    def list_attempts(self) -> List[Attempt]:
        return [
            Attempt.from_dict(item) for item in self._read(self.attempts_path)
        ]

    def save_quiz(self, quiz: Quiz) -> None:
        self._check_quiz(quiz)
        with _StoreLock(self._root / _LOCK_FILENAME):
            quizzes = _upsert(self.list_quizzes(), quiz)
            self._write(self.quizzes_path, [q.to_dict() for q in quizzes])
        logger.info(
            "Quiz saved",
            extra={"event": "quiz_saved", "quiz_id": quiz.id},
        )

    def delete_quiz(self, quiz_id: str) -> None:
        with _StoreLock(self._root / _LOCK_FILENAME):
            quizzes = self.list_quizzes()
            remaining = [q for q in quizzes if q.id != quiz_id]
            if len(remaining) == len(quizzes):
                return
            self._write(self.quizzes_path, [q.to_dict() for q in remaining])
        logger.info(
            "Quiz deleted",
            extra={"event": "quiz_deleted", "quiz_id": quiz_id},
        )

    def save_attempt(self, attempt: Attempt) -> None:
        with _StoreLock(self._root / _LOCK_FILENAME):
            payload = list(self._read(self.attempts_path))
            payload.append(attempt.to_dict())
            self._write(self.attempts_path, payload)
        logger.info(
            "Attempt saved",
            extra={
                "event": "attempt_saved",
                "attempt_id": attempt.id,
                "quiz_id": attempt.quiz_id,
                "percentage": attempt.percentage,
            },
        )

    def _read(self, path: Path) -> List[Any]:
        if not path.exists():
            return []
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            logger.error("Corrupt store file", extra={"path": path})
            raise PersistenceError(f"Failed to parse store file: {path}") from exc
        except OSError as exc:
            raise PersistenceError(f"Failed to read store file: {path}") from exc
        if not isinstance(payload, list):
            raise PersistenceError(f"Store file must hold a JSON array: {path}")
        return payload

    def _write(self, path: Path, payload: List[Any]) -> None:
        try:
            _atomic_write_json(path, payload)
        except OSError as exc:
            raise PersistenceError(f"Failed to write store file: {path}") from exc


def _upsert(quizzes: List[Quiz], quiz: Quiz) -> List[Quiz]:
    updated = list(quizzes)
    for index, existing in enumerate(updated):
        if existing.id == quiz.id:
            updated[index] = quiz
            return updated
    updated.append(quiz)
    return updated


class _StoreLock:
    """Exclusive lock file held around each read-modify-write."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def __enter__(self) -> "_StoreLock":
        deadline = time.monotonic() + _LOCK_TIMEOUT_SECONDS
        while True:
            try:
                fd = os.open(self._path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
                os.close(fd)
                return self
            except FileExistsError:
                if self._break_stale():
                    continue
                if time.monotonic() > deadline:
                    raise PersistenceError(
                        f"Timed out waiting for store lock: {self._path}"
                    )
                time.sleep(0.05)
            except OSError as exc:
                raise PersistenceError(
                    f"Cannot create store lock: {self._path}"
                ) from exc

    def _break_stale(self) -> bool:
        try:
            age = time.time() - self._path.stat().st_mtime
        except FileNotFoundError:
            return True
        except OSError:
            return False
        if age < _STALE_LOCK_SECONDS:
            return False
        logger.warning(
            "Removing stale store lock",
            extra={"path": self._path, "age_seconds": int(age)},
        )
        self._path.unlink(missing_ok=True)
        return True

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self._path.unlink(missing_ok=True)


def _atomic_write_json(path: Path, payload: List[Any]) -> None:
    handle = tempfile.NamedTemporaryFile(
        "w",
        delete=False,
        encoding="utf-8",
        dir=str(path.parent),
        suffix=".tmp",
    )
    try:
        json.dump(payload, handle, indent=2, ensure_ascii=False)
        handle.flush()
        os.fsync(handle.fileno())
    except BaseException:
        handle.close()
        Path(handle.name).unlink(missing_ok=True)
        raise
    handle.close()
    try:
        os.replace(handle.name, path)
    except OSError:
        Path(handle.name).unlink(missing_ok=True)
        raise
    try:
        path.chmod(0o600)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass


def open_store(config: QuizConfig) -> JsonFileStore:
    """Open the JSON store inside the configured workspace."""

    try:
        layout = config.workspace(create=True)
    except WorkspaceError as exc:
        raise PersistenceError(str(exc)) from exc
    return JsonFileStore(layout.path_for("store"))
