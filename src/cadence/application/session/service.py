"""
Review session service, the application-layer orchestrator.

Drives one study session: selects the due set, hands out one card at a
time, applies ratings through the scheduler and keeps the session tally.
Persistence of the returned states and events stays with the caller.
"""

import logging
from collections import deque
from collections.abc import Iterable
from datetime import datetime, time

from cadence.application.config import SchedulerConfig
from cadence.application.scheduler.core import SchedulerCore
from cadence.application.scheduler.selector import DueSetSelector
from cadence.domain.errors import ContractViolation, SessionClosedError
from cadence.domain.scheduling.models import (
    CardSchedulingState,
    Rating,
    ReviewEvent,
    SchedulingResult,
)
from cadence.domain.session.models import SessionSummary, StudySession

from .accumulator import SessionAccumulator

logger = logging.getLogger(__name__)


def end_of_day(now: datetime) -> datetime:
    return datetime.combine(now.date(), time.max, tzinfo=now.tzinfo)


class ReviewSessionService:
    """
    Application service for a single review session.

    Not thread-safe: one instance serves one learner's session.
    """

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        core: SchedulerCore | None = None,
        selector: DueSetSelector | None = None,
        accumulator: SessionAccumulator | None = None,
    ):
        self.config = config or SchedulerConfig()
        self._core = core or SchedulerCore(self.config)
        self._selector = selector or DueSetSelector(self.config.max_cards_per_day)
        self._acc = accumulator or SessionAccumulator()

        self.session: StudySession | None = None
        self.events: list[ReviewEvent] = []
        self._queue: deque[CardSchedulingState] = deque()
        self._latest: dict[str, CardSchedulingState] = {}

    @property
    def current(self) -> CardSchedulingState | None:
        """The card to present next, or None when the queue is exhausted."""
        return self._queue[0] if self._queue else None

    @property
    def remaining(self) -> int:
        return len(self._queue)

    @property
    def is_complete(self) -> bool:
        return self.session is not None and (self.session.is_finished or not self._queue)

    @property
    def cards(self) -> list[CardSchedulingState]:
        """Latest state of every card selected for this session."""
        return list(self._latest.values())

    def begin(
        self,
        cards: Iterable[CardSchedulingState],
        now: datetime,
        limit: int | None = None,
    ) -> StudySession:
        """
        Select the due set and start the session.

        Raises:
            ContractViolation: a session is already running on this service.
        """
        if self.session is not None and not self.session.is_finished:
            raise ContractViolation(f"Session {self.session.id} is still active")

        due = self._selector.select_due(cards, now, limit)
        self._queue = deque(due)
        self._latest = {card.card_id: card for card in due}
        self.events = []
        self.session = self._acc.start(now)

        logger.info(f"Session {self.session.id} started with {len(due)} cards")
        return self.session

    def rate(
        self,
        rating: Rating | int,
        now: datetime,
        time_to_answer_ms: int | None = None,
    ) -> SchedulingResult:
        """
        Rate the current card.

        The card leaves the queue, or goes to its back when requeue_same_day
        is set and it falls due again before the end of the day.

        Raises:
            SessionClosedError: no session, session finished, or queue empty.
            InvalidRatingError, InvalidCardStateError, ContractViolation: the
                rating was rejected. The card stays at the front of the queue.
        """
        if self.session is None or self.session.is_finished:
            raise SessionClosedError("No active session")
        if not self._queue:
            raise SessionClosedError(f"Session {self.session.id} has no cards left")

        card = self._queue[0]
        result = self._core.review(
            card,
            rating,
            now,
            session_id=self.session.id,
            time_to_answer_ms=time_to_answer_ms,
        )
        self.session = self._acc.record(self.session, result.event.rating, time_to_answer_ms)
        self._queue.popleft()
        self.events.append(result.event)
        self._latest[card.card_id] = result.state

        if self.config.requeue_same_day and result.state.due_at <= end_of_day(now):
            self._queue.append(result.state)
            logger.debug(f"Card {card.card_id} due again today, requeued")

        return result

    def finish(self, now: datetime) -> StudySession:
        """Finalize the session (idempotent) and drop any unrated cards."""
        if self.session is None:
            raise SessionClosedError("No session to finish")
        self.session = self._acc.finish(self.session, now)
        self._queue.clear()
        return self.session

    def summary(self, now: datetime | None = None) -> SessionSummary:
        if self.session is None:
            raise SessionClosedError("No session to summarize")
        return self._acc.summarize(self.session, self.cards, now)
