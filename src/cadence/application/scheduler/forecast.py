"""
Forecasting helpers over a collection of card states.

Pure functions; nothing here mutates a card.
"""

import math
from collections.abc import Iterable
from datetime import date, datetime, timedelta

from cadence.domain.constants import (
    DEFAULT_FORECAST_DAYS,
    MIN_OVERDUE_PENALTY,
    SECONDS_PER_DAY,
)
from cadence.domain.scheduling.models import CardSchedulingState
from cadence.domain.session.models import ForecastBuckets


def review_forecast(
    cards: Iterable[CardSchedulingState],
    now: datetime,
    days: int = DEFAULT_FORECAST_DAYS,
) -> dict[date, int]:
    """
    Count cards falling due on each calendar day, starting today.

    Overdue cards count toward today. Suspended cards and cards due beyond
    the window are left out. Days use the timezone of `now`.

    Returns:
        Ordered mapping of day -> card count, one entry per day in the window.
    """
    today = now.date()
    forecast = {today + timedelta(days=i): 0 for i in range(max(days, 0))}
    if not forecast:
        return forecast

    for card in cards:
        if card.suspended:
            continue
        due_day = _local_date(card.due_at, now)
        if due_day < today:
            due_day = today
        if due_day in forecast:
            forecast[due_day] += 1
    return forecast


def forecast_buckets(cards: Iterable[CardSchedulingState], now: datetime) -> ForecastBuckets:
    """
    Bucket cards by how soon they come back: within a day, within three
    days, or later.
    """
    tomorrow = now + timedelta(days=1)
    three_days = now + timedelta(days=3)

    due_tomorrow = due_three = due_later = 0
    for card in cards:
        if card.suspended:
            continue
        if card.due_at <= tomorrow:
            due_tomorrow += 1
        elif card.due_at <= three_days:
            due_three += 1
        else:
            due_later += 1

    return ForecastBuckets(
        due_tomorrow=due_tomorrow,
        due_within_three_days=due_three,
        due_later=due_later,
    )


def overdue_penalty(card: CardSchedulingState, now: datetime) -> float:
    """
    Weight in [0.5, 1.0] that shrinks logarithmically with whole days overdue.

    1.0 when the card is not overdue.
    """
    if card.due_at > now:
        return 1.0
    days_overdue = math.floor((now - card.due_at).total_seconds() / SECONDS_PER_DAY)
    return max(1.0 - math.log(days_overdue + 1) / 10.0, MIN_OVERDUE_PENALTY)


def _local_date(moment: datetime, reference: datetime) -> date:
    if moment.tzinfo is not None and reference.tzinfo is not None:
        moment = moment.astimezone(reference.tzinfo)
    return moment.date()
