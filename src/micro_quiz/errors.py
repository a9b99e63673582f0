"""Exception hierarchy shared by the micro-quiz core."""

from __future__ import annotations

from typing import Mapping

__all__ = [
    "QuizError",
    "ValidationError",
    "PersistenceError",
    "NotFoundError",
]


class QuizError(RuntimeError):
    """Base class for all micro-quiz errors."""


class ValidationError(QuizError):
    """User input failed one or more field rules.

    ``errors`` maps the offending field name to a human readable message so
    a presentation layer can show them inline next to each input.
    """

    def __init__(self, errors: Mapping[str, str]) -> None:
        self.errors = dict(errors)
        summary = "; ".join(
            f"{field}: {message}" for field, message in self.errors.items()
        )
        super().__init__(summary or "Validation failed.")


class PersistenceError(QuizError):
    """The store could not be read or written."""


class NotFoundError(QuizError, KeyError):
    """A quiz or attempt id is not present in the store."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")

    def __str__(self) -> str:
        return str(self.args[0])
