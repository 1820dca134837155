"""
Due-set selection for study sessions.

Picks which cards a session presents, and in what order:
1. Keep cards that are due and not suspended
2. Order by due time, most overdue first
3. Break ties by lifecycle stage (struggling cards first), then card id
4. Truncate to the daily limit
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta

from cadence.domain.constants import DEFAULT_FORECAST_DAYS
from cadence.domain.scheduling.models import CardSchedulingState, LearningState

logger = logging.getLogger(__name__)

# Lower sorts first among cards due at the same instant
STATE_PRIORITY = {
    LearningState.RELEARNING: 0,
    LearningState.LEARNING: 1,
    LearningState.REVIEW: 2,
    LearningState.NEW: 3,
}


def due_order_key(card: CardSchedulingState) -> tuple:
    return (card.due_at, STATE_PRIORITY[card.state], card.card_id)


class DueSetSelector:
    """
    Read-only selection over snapshots of card states.

    Performs no mutation, so it can run concurrently over the same snapshot.
    """

    def __init__(self, default_limit: int | None = None):
        """
        Args:
            default_limit: Limit used when select_due gets none, typically
                the user's validated max_cards_per_day.
        """
        self.default_limit = default_limit

    def select_due(
        self,
        cards: Iterable[CardSchedulingState],
        now: datetime,
        limit: int | None = None,
    ) -> list[CardSchedulingState]:
        """
        Select the cards to present in a session.

        Args:
            cards: Candidate card states.
            now: Reference time; cards due at or before it are eligible.
            limit: Maximum number of cards. Zero or negative selects nothing.
                Falls back to default_limit, then to no limit.

        Returns:
            Eligible cards in presentation order, at most `limit` of them.
        """
        if limit is None:
            limit = self.default_limit
        if limit is not None and limit <= 0:
            return []

        eligible = sorted((c for c in cards if c.is_due(now)), key=due_order_key)
        selected = eligible if limit is None else eligible[:limit]

        logger.debug(f"Selected {len(selected)} of {len(eligible)} due cards (limit={limit})")
        return selected

    def count_due(self, cards: Iterable[CardSchedulingState], now: datetime) -> int:
        """Number of eligible cards, ignoring any limit."""
        return sum(1 for c in cards if c.is_due(now))

    def upcoming(
        self,
        cards: Iterable[CardSchedulingState],
        now: datetime,
        days: int = DEFAULT_FORECAST_DAYS,
    ) -> list[CardSchedulingState]:
        """Cards that fall due after `now` but within the next `days` days."""
        horizon = now + timedelta(days=days)
        found = [c for c in cards if not c.suspended and now < c.due_at <= horizon]
        return sorted(found, key=due_order_key)

    def by_state(
        self, cards: Iterable[CardSchedulingState], state: LearningState
    ) -> list[CardSchedulingState]:
        return [c for c in cards if c.state == state]
