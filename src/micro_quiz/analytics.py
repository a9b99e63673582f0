"""Read-only statistics over quizzes and attempts.

Nothing here mutates the store. Every aggregate over an empty set of
attempts is zero (or an all-zero distribution), never an error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from .models import Attempt, Quiz, round_half_up
from .store import QuizStore

__all__ = [
    "PASS_THRESHOLD",
    "UNKNOWN_QUIZ_TITLE",
    "GRADE_BANDS",
    "AttemptStats",
    "QuizStats",
    "DashboardSummary",
    "AnalyticsFilter",
    "AnalyticsReport",
    "letter_grade",
    "grade_distribution",
    "filter_attempts",
    "summarize_attempts",
    "per_quiz_stats",
    "recent_attempts",
    "quiz_title",
    "dashboard_summary",
    "request_analytics",
    "filter_quizzes",
    "list_categories",
]

PASS_THRESHOLD = 70
UNKNOWN_QUIZ_TITLE = "Unknown Quiz"

# (letter, inclusive lower bound); checked top down.
GRADE_BANDS: tuple[tuple[str, int], ...] = (
    ("A", 90),
    ("B", 80),
    ("C", 70),
    ("D", 60),
    ("F", 0),
)


def letter_grade(percentage: int) -> str:
    for letter, lower in GRADE_BANDS:
        if percentage >= lower:
            return letter
    return "F"


def grade_distribution(attempts: Sequence[Attempt]) -> Dict[str, int]:
    counts = {letter: 0 for letter, _ in GRADE_BANDS}
    for attempt in attempts:
        counts[letter_grade(attempt.percentage)] += 1
    return counts


@dataclass(frozen=True)
class AttemptStats:
    count: int = 0
    average_percentage: int = 0
    best_percentage: int = 0
    average_time_seconds: int = 0
    pass_rate: int = 0
    distribution: Mapping[str, int] = field(
        default_factory=lambda: {letter: 0 for letter, _ in GRADE_BANDS}
    )


@dataclass(frozen=True)
class QuizStats:
    quiz: Quiz
    stats: AttemptStats


@dataclass(frozen=True)
class DashboardSummary:
    total_quizzes: int
    total_attempts: int
    average_percentage: int
    total_time_minutes: int


@dataclass(frozen=True)
class AnalyticsFilter:
    quiz_id: Optional[str] = None
    search: Optional[str] = None


@dataclass(frozen=True)
class AnalyticsReport:
    criteria: AnalyticsFilter
    total_attempts: int
    overview: AttemptStats
    per_quiz: tuple[QuizStats, ...]
    recent: tuple[Attempt, ...]
    titles: Mapping[str, str]

    def title_for(self, quiz_id: str) -> str:
        return self.titles.get(quiz_id, UNKNOWN_QUIZ_TITLE)


def summarize_attempts(attempts: Sequence[Attempt]) -> AttemptStats:
    count = len(attempts)
    if count == 0:
        return AttemptStats()
    passed = sum(1 for a in attempts if a.percentage >= PASS_THRESHOLD)
    return AttemptStats(
        count=count,
        average_percentage=round_half_up(
            sum(a.percentage for a in attempts) / count
        ),
        best_percentage=max(a.percentage for a in attempts),
        average_time_seconds=round_half_up(
            sum(a.time_spent_seconds for a in attempts) / count
        ),
        pass_rate=round_half_up(100 * passed / count),
        distribution=grade_distribution(attempts),
    )


def filter_attempts(
    attempts: Sequence[Attempt],
    quizzes: Sequence[Quiz],
    *,
    quiz_id: Optional[str] = None,
    search: Optional[str] = None,
) -> List[Attempt]:
    """Keep attempts for ``quiz_id`` whose quiz title contains ``search``.

    Attempts whose quiz no longer exists have no title, so they drop out as
    soon as a search term is given.
    """

    titles = {quiz.id: quiz.title.lower() for quiz in quizzes}
    needle = (search or "").strip().lower()
    selected: List[Attempt] = []
    for attempt in attempts:
        if quiz_id and attempt.quiz_id != quiz_id:
            continue
        if needle:
            title = titles.get(attempt.quiz_id)
            if title is None or needle not in title:
                continue
        selected.append(attempt)
    return selected


def per_quiz_stats(
    quizzes: Sequence[Quiz],
    attempts: Sequence[Attempt],
    *,
    quiz_id: Optional[str] = None,
) -> List[QuizStats]:
    """Stats for every quiz that has attempts, or just for ``quiz_id``."""

    grouped: Dict[str, List[Attempt]] = {}
    for attempt in attempts:
        grouped.setdefault(attempt.quiz_id, []).append(attempt)
    rows: List[QuizStats] = []
    for quiz in quizzes:
        if quiz_id and quiz.id != quiz_id:
            continue
        quiz_attempts = grouped.get(quiz.id)
        if not quiz_attempts:
            continue
        rows.append(QuizStats(quiz=quiz, stats=summarize_attempts(quiz_attempts)))
    return rows


def recent_attempts(attempts: Sequence[Attempt], limit: int = 5) -> List[Attempt]:
    ordered = sorted(attempts, key=lambda a: a.completed_at, reverse=True)
    return ordered[: max(limit, 0)]


def quiz_title(quizzes: Sequence[Quiz], quiz_id: str) -> str:
    for quiz in quizzes:
        if quiz.id == quiz_id:
            return quiz.title
    return UNKNOWN_QUIZ_TITLE


def dashboard_summary(
    quizzes: Sequence[Quiz], attempts: Sequence[Attempt]
) -> DashboardSummary:
    total_seconds = sum(a.time_spent_seconds for a in attempts)
    return DashboardSummary(
        total_quizzes=len(quizzes),
        total_attempts=len(attempts),
        average_percentage=summarize_attempts(attempts).average_percentage,
        total_time_minutes=round_half_up(total_seconds / 60),
    )


def request_analytics(
    store: QuizStore,
    analytics_filter: Optional[AnalyticsFilter] = None,
    *,
    recent_limit: int = 5,
) -> AnalyticsReport:
    """Build the results view model from the store contents."""

    active = analytics_filter or AnalyticsFilter()
    quizzes = store.list_quizzes()
    attempts = store.list_attempts()
    selected = filter_attempts(
        attempts, quizzes, quiz_id=active.quiz_id, search=active.search
    )
    return AnalyticsReport(
        criteria=active,
        total_attempts=len(attempts),
        overview=summarize_attempts(selected),
        per_quiz=tuple(per_quiz_stats(quizzes, attempts, quiz_id=active.quiz_id)),
        recent=tuple(recent_attempts(selected, recent_limit)),
        titles={quiz.id: quiz.title for quiz in quizzes},
    )


def filter_quizzes(
    quizzes: Sequence[Quiz],
    *,
    search: Optional[str] = None,
    category: Optional[str] = None,
    difficulty: Optional[str] = None,
) -> List[Quiz]:
    """Catalog filter: text search over title/description plus exact facets."""

    needle = (search or "").strip().lower()
    matches: List[Quiz] = []
    for quiz in quizzes:
        if needle and not (
            needle in quiz.title.lower() or needle in quiz.description.lower()
        ):
            continue
        if category and category != "all" and quiz.category != category:
            continue
        if difficulty and difficulty != "all" and quiz.difficulty != difficulty:
            continue
        matches.append(quiz)
    return matches


def list_categories(quizzes: Sequence[Quiz]) -> List[str]:
    """Distinct categories in first-seen order."""

    seen: Dict[str, None] = {}
    for quiz in quizzes:
        seen.setdefault(quiz.category, None)
    return list(seen)
