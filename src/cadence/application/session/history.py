"""
Study history statistics across many sessions.
"""

from collections.abc import Iterable
from datetime import date, datetime, timedelta

from cadence.domain.constants import DEFAULT_HISTORY_DAYS
from cadence.domain.session.models import DailyStats, HistoryStats, StudySession


def summarize_history(
    sessions: Iterable[StudySession],
    now: datetime,
    days: int = DEFAULT_HISTORY_DAYS,
) -> HistoryStats:
    """
    Aggregate sessions started within the last `days` days.

    Args:
        sessions: Sessions in any order; older ones are ignored.
        now: End of the window.
        days: Window length. Every calendar day it touches gets a DailyStats
            entry, including days without sessions, so `daily` holds
            days + 1 entries.

    Returns:
        HistoryStats with totals, correct rate (percent) and daily breakdown.
        average_cards_per_day divides by `days`, the window length, not by
        the number of calendar days in `daily`.
    """
    if days <= 0:
        return HistoryStats(
            total_sessions=0, total_cards=0, correct_rate=0.0, average_cards_per_day=0.0
        )

    window_start = now - timedelta(days=days)
    first_day = window_start.date()

    # [cards, correct] per calendar day, both window ends included
    daily: dict[date, list[int]] = {
        first_day + timedelta(days=i): [0, 0] for i in range(days + 1)
    }

    total_sessions = total_cards = total_correct = 0
    for session in sessions:
        if not window_start <= session.started_at <= now:
            continue
        total_sessions += 1
        total_cards += session.reviewed
        total_correct += session.correct

        started = session.started_at
        if started.tzinfo is not None and now.tzinfo is not None:
            started = started.astimezone(now.tzinfo)
        bucket = daily.setdefault(started.date(), [0, 0])
        bucket[0] += session.reviewed
        bucket[1] += session.correct

    return HistoryStats(
        total_sessions=total_sessions,
        total_cards=total_cards,
        correct_rate=(total_correct / total_cards * 100.0) if total_cards else 0.0,
        average_cards_per_day=total_cards / days,
        daily=[
            DailyStats(day=day, cards=cards, correct=correct)
            for day, (cards, correct) in sorted(daily.items())
        ],
    )
