"""micro-quiz: author quizzes, take them with a countdown, review results."""

from __future__ import annotations

from .analytics import AnalyticsFilter, AnalyticsReport, request_analytics
from .authoring import QuizAuthoring, build_quiz_from_definition
from .editor import QuestionDraft, submit_question_editor
from .engine import QuizTaker, grade, start_quiz
from .errors import NotFoundError, PersistenceError, QuizError, ValidationError
from .models import Attempt, ChoiceAnswer, Question, Quiz, TextAnswer
from .store import JsonFileStore, MemoryStore, QuizStore, open_store

__all__ = [
    "AnalyticsFilter",
    "AnalyticsReport",
    "Attempt",
    "ChoiceAnswer",
    "JsonFileStore",
    "MemoryStore",
    "NotFoundError",
    "PersistenceError",
    "Question",
    "QuestionDraft",
    "Quiz",
    "QuizAuthoring",
    "QuizError",
    "QuizStore",
    "QuizTaker",
    "TextAnswer",
    "ValidationError",
    "build_quiz_from_definition",
    "grade",
    "open_store",
    "request_analytics",
    "start_quiz",
    "submit_question_editor",
]
