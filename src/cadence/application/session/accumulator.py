"""
Session accumulator: per-session bookkeeping of submitted ratings.

In-memory only. Every call returns a new StudySession; nothing is mutated.
"""

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime

from ulid import ULID

from cadence.application.scheduler.forecast import forecast_buckets
from cadence.domain.errors import ContractViolation, SessionClosedError
from cadence.domain.scheduling.models import CardSchedulingState, Rating
from cadence.domain.session.models import SessionSummary, StudySession

logger = logging.getLogger(__name__)


def generate_session_id() -> str:
    """Generate a sortable session ID using ULID."""
    return f"session_{ULID()}"


class SessionAccumulator:
    """Tracks counts, accuracy, rating distribution and timing for sessions."""

    def start(self, now: datetime, session_id: str | None = None) -> StudySession:
        session = StudySession(id=session_id or generate_session_id(), started_at=now)
        logger.debug(f"Started session {session.id}")
        return session

    def record(
        self,
        session: StudySession,
        rating: Rating | int,
        time_to_answer_ms: int | None = None,
    ) -> StudySession:
        """
        Add one rating to the session.

        Must be called exactly once per scheduler update, in the same order.

        Raises:
            SessionClosedError: the session was already finished.
            InvalidRatingError: rating is not one of the four values.
        """
        if session.is_finished:
            raise SessionClosedError(f"Session {session.id} is finished")
        rating = Rating.parse(rating)
        if time_to_answer_ms is not None and time_to_answer_ms < 0:
            raise ContractViolation(f"time_to_answer_ms must be >= 0, got {time_to_answer_ms}")

        counts = dict(session.rating_counts)
        counts[rating] = counts.get(rating, 0) + 1

        timed = time_to_answer_ms is not None
        return replace(
            session,
            reviewed=session.reviewed + 1,
            correct=session.correct + (1 if rating.is_success else 0),
            incorrect=session.incorrect + (0 if rating.is_success else 1),
            rating_counts=counts,
            total_time_ms=session.total_time_ms + (time_to_answer_ms or 0),
            timed_reviews=session.timed_reviews + (1 if timed else 0),
        )

    def finish(self, session: StudySession, now: datetime) -> StudySession:
        """Freeze the session. Finishing twice returns the first result unchanged."""
        if session.is_finished:
            return session
        logger.info(
            f"Session {session.id} finished: {session.reviewed} reviewed, "
            f"{session.correct} correct"
        )
        return replace(session, ended_at=max(now, session.started_at))

    def summarize(
        self,
        session: StudySession,
        cards: Iterable[CardSchedulingState] | None = None,
        now: datetime | None = None,
    ) -> SessionSummary:
        """
        Build the end-of-session report.

        Args:
            session: The session, finished or not.
            cards: Card states after the session, for the due forecast.
            now: Reference time for the forecast; defaults to session end.
        """
        reviewed = session.reviewed
        distribution = {rating: session.rating_counts.get(rating, 0) for rating in Rating}
        percentages = {
            rating: (count / reviewed * 100.0 if reviewed else 0.0)
            for rating, count in distribution.items()
        }

        forecast = None
        if cards is not None:
            reference = now or session.ended_at or session.started_at
            forecast = forecast_buckets(cards, reference)

        return SessionSummary(
            session_id=session.id,
            reviewed=reviewed,
            correct_percentage=(session.correct / reviewed * 100.0) if reviewed else 0.0,
            rating_distribution=distribution,
            rating_percentages=percentages,
            total_time_seconds=session.elapsed_seconds or 0.0,
            average_time_seconds=(session.average_time_ms or 0.0) / 1000.0,
            forecast=forecast,
        )
