"""
Domain models for study sessions and their reports.
"""

from dataclasses import dataclass, field
from datetime import date, datetime

from cadence.domain.scheduling.models import Rating


def empty_histogram() -> dict[Rating, int]:
    return {rating: 0 for rating in Rating}


@dataclass(frozen=True)
class StudySession:
    """
    Running tally of one review session.

    `ended_at` stays None while the session is active. Instances are never
    mutated; the accumulator returns a new one per rating.
    """

    id: str
    started_at: datetime
    ended_at: datetime | None = None

    reviewed: int = 0
    correct: int = 0
    incorrect: int = 0
    rating_counts: dict[Rating, int] = field(default_factory=empty_histogram)

    total_time_ms: int = 0
    timed_reviews: int = 0  # Ratings that came with a time-to-answer

    @property
    def is_finished(self) -> bool:
        return self.ended_at is not None

    @property
    def accuracy(self) -> float | None:
        """Share of correct ratings (0.0-1.0), None before the first rating."""
        if self.reviewed == 0:
            return None
        return self.correct / self.reviewed

    @property
    def average_time_ms(self) -> float | None:
        if self.timed_reviews == 0:
            return None
        return self.total_time_ms / self.timed_reviews

    @property
    def elapsed_seconds(self) -> float | None:
        if self.ended_at is None:
            return None
        return (self.ended_at - self.started_at).total_seconds()


@dataclass(frozen=True)
class ForecastBuckets:
    """How many cards fall due soon after a session."""

    due_tomorrow: int
    due_within_three_days: int
    due_later: int


@dataclass(frozen=True)
class SessionSummary:
    """End-of-session report."""

    session_id: str
    reviewed: int
    correct_percentage: float
    rating_distribution: dict[Rating, int]
    rating_percentages: dict[Rating, float]
    total_time_seconds: float
    average_time_seconds: float
    forecast: ForecastBuckets | None = None


@dataclass(frozen=True)
class DailyStats:
    day: date
    cards: int
    correct: int


@dataclass(frozen=True)
class HistoryStats:
    """Aggregate over many sessions within a trailing window of days."""

    total_sessions: int
    total_cards: int
    correct_rate: float  # Percentage, 0-100
    average_cards_per_day: float
    daily: list[DailyStats] = field(default_factory=list)
