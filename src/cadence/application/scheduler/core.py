"""
Scheduler core: computes the next scheduling state of a card from a rating.

This is a pure computation module with no I/O. `review` and `update` are
deterministic for identical inputs, so callers can preview or retry them
freely.

Memory model
------------
Retrievability follows an exponential forgetting curve anchored at the
reference retention (0.9): R(t) = exp(ln(0.9) * t / S), so R == 0.9 when
t == S. The next interval solves R(t) == request_retention for t:
interval = S * ln(request_retention) / ln(0.9).
"""

import logging
import math
from dataclasses import replace
from datetime import datetime, timedelta

from cadence.application.config import SchedulerConfig
from cadence.domain.constants import (
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
    MIN_STABILITY,
    REFERENCE_RETENTION,
    SECONDS_PER_DAY,
)
from cadence.domain.errors import InvalidCardStateError
from cadence.domain.scheduling.models import (
    CardSchedulingState,
    LearningState,
    Rating,
    ReviewEvent,
    SchedulingResult,
)
from cadence.domain.scheduling.parameters import ModelParameters

logger = logging.getLogger(__name__)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def forgetting_curve(elapsed_days: float, stability: float) -> float:
    """Probability of recall after `elapsed_days` for a given stability."""
    if stability <= 0:
        return 0.0
    return math.exp(math.log(REFERENCE_RETENTION) * max(elapsed_days, 0.0) / stability)


class SchedulerCore:
    """
    Computes card state transitions for the four-state lifecycle
    NEW -> LEARNING -> REVIEW <-> RELEARNING.

    Stateless and side-effect free; holds only configuration.
    """

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        parameters: ModelParameters | None = None,
    ):
        """
        Args:
            config: Scheduling policy (steps, retention, interval clamp).
            parameters: Memory-model weights; defaults to the FSRS preset.
        """
        self.config = config or SchedulerConfig()
        self.params = parameters or ModelParameters()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def update(
        self, state: CardSchedulingState, rating: Rating | int, now: datetime
    ) -> CardSchedulingState:
        """Return the next scheduling state for `state` rated `rating` at `now`."""
        return self.review(state, rating, now).state

    def review(
        self,
        state: CardSchedulingState,
        rating: Rating | int,
        now: datetime,
        session_id: str | None = None,
        time_to_answer_ms: int | None = None,
    ) -> SchedulingResult:
        """
        Apply a rating and emit the matching ReviewEvent.

        Args:
            state: Latest committed state of the card.
            rating: Recall quality, 1-4.
            now: Time of the rating. Must not precede state.last_review_at.
            session_id: Session the rating belongs to, if any.
            time_to_answer_ms: Time the learner took to answer, if measured.

        Returns:
            SchedulingResult with the new state and the review event.

        Raises:
            InvalidRatingError: rating is not one of the four values.
            InvalidCardStateError: state fields contradict each other.
        """
        rating = Rating.parse(rating)
        self.validate(state, now)

        elapsed = self._elapsed_days(state, now)
        retrievability = self.retrievability(state, now)

        if state.state == LearningState.NEW:
            next_state, interval = self._first_rating(state, rating, now)
        elif state.state == LearningState.REVIEW:
            next_state, interval = self._review_rating(state, rating, now, retrievability)
        else:
            next_state, interval = self._ladder_rating(state, rating, now)

        next_state = replace(next_state, last_review_at=now, reps=state.reps + 1)

        logger.debug(
            f"Card {state.card_id}: {state.state.value} -> {next_state.state.value} "
            f"on {rating.name}, due in {interval:.4f}d"
        )

        event = ReviewEvent(
            card_id=state.card_id,
            session_id=session_id,
            rating=rating,
            reviewed_at=now,
            state_before=state.state,
            state_after=next_state.state,
            difficulty_before=state.difficulty,
            difficulty_after=next_state.difficulty,
            stability_before=state.stability,
            stability_after=next_state.stability,
            retrievability=retrievability,
            elapsed_days=elapsed,
            scheduled_days=interval,
            time_to_answer_ms=time_to_answer_ms,
        )
        return SchedulingResult(state=next_state, event=event)

    def preview(
        self, state: CardSchedulingState, now: datetime
    ) -> dict[Rating, SchedulingResult]:
        """Would-be outcome of each rating, without committing any of them."""
        return {rating: self.review(state, rating, now) for rating in Rating}

    def retrievability(self, state: CardSchedulingState, now: datetime) -> float:
        """
        Current recall probability of a card.

        Derived from stability and time since the last review; 0.0 for cards
        that have never been reviewed.
        """
        if state.last_review_at is None:
            return 0.0
        return forgetting_curve(self._elapsed_days(state, now), state.stability)

    def next_interval_days(self, stability: float) -> float:
        """Days until recall probability decays to request_retention, clamped."""
        raw = (
            stability
            * math.log(self.config.request_retention)
            / math.log(REFERENCE_RETENTION)
        )
        return _clamp(
            raw, self.config.minimum_interval_days, self.config.maximum_interval_days
        )

    def validate(self, state: CardSchedulingState, now: datetime) -> None:
        """
        Fail fast on states no sequence of updates could have produced.

        Raises:
            InvalidCardStateError
        """
        cid = state.card_id
        if not isinstance(state.state, LearningState):
            raise InvalidCardStateError(f"Card {cid}: unknown state {state.state!r}")
        if state.reps < 0 or state.lapses < 0 or state.step_index < 0:
            raise InvalidCardStateError(f"Card {cid}: counters must be non-negative")
        if not MIN_DIFFICULTY <= state.difficulty <= MAX_DIFFICULTY:
            raise InvalidCardStateError(
                f"Card {cid}: difficulty {state.difficulty} outside "
                f"[{MIN_DIFFICULTY}, {MAX_DIFFICULTY}]"
            )
        if state.stability < 0:
            raise InvalidCardStateError(f"Card {cid}: negative stability")

        if state.state == LearningState.NEW:
            if state.reps or state.lapses or state.last_review_at is not None:
                raise InvalidCardStateError(
                    f"Card {cid}: NEW card must have reps=0, lapses=0 and no last review"
                )
            return

        if state.last_review_at is None or state.reps == 0:
            raise InvalidCardStateError(
                f"Card {cid}: {state.state.value} card must have a last review and reps > 0"
            )
        if state.state == LearningState.REVIEW and state.stability <= 0:
            raise InvalidCardStateError(f"Card {cid}: REVIEW card must have stability > 0")
        if now < state.last_review_at:
            raise InvalidCardStateError(
                f"Card {cid}: rating time {now.isoformat()} precedes last review "
                f"{state.last_review_at.isoformat()}"
            )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _first_rating(
        self, state: CardSchedulingState, rating: Rating, now: datetime
    ) -> tuple[CardSchedulingState, float]:
        step = self.config.learning_step(0)
        next_state = replace(
            state,
            state=LearningState.LEARNING,
            step_index=0,
            stability=max(self.params.initial_stability(rating), MIN_STABILITY),
            difficulty=self._initial_difficulty(rating),
            due_at=now + step,
        )
        return next_state, step.total_seconds() / SECONDS_PER_DAY

    def _ladder_rating(
        self, state: CardSchedulingState, rating: Rating, now: datetime
    ) -> tuple[CardSchedulingState, float]:
        """LEARNING and RELEARNING share the ladder mechanics."""
        relearning = state.state == LearningState.RELEARNING
        steps = self.config.ladder(relearning)
        # A ladder shortened by a config change leaves the card on its last step.
        index = min(state.step_index, len(steps) - 1)

        # Relearning keeps the lapse-penalised stability; learning refines the seed.
        if relearning:
            stability = state.stability
        else:
            stability = max(state.stability * self.params.short_term_factor(rating), MIN_STABILITY)

        if rating == Rating.AGAIN:
            index = 0
        elif rating in (Rating.GOOD, Rating.EASY):
            index += 1
            if index >= len(steps):
                return self._graduate(state, stability, now)

        step = timedelta(minutes=steps[index])
        next_state = replace(state, step_index=index, stability=stability, due_at=now + step)
        return next_state, step.total_seconds() / SECONDS_PER_DAY

    def _graduate(
        self, state: CardSchedulingState, stability: float, now: datetime
    ) -> tuple[CardSchedulingState, float]:
        interval = self.next_interval_days(stability)
        next_state = replace(
            state,
            state=LearningState.REVIEW,
            step_index=0,
            stability=stability,
            due_at=now + timedelta(days=interval),
        )
        return next_state, interval

    def _review_rating(
        self,
        state: CardSchedulingState,
        rating: Rating,
        now: datetime,
        retrievability: float,
    ) -> tuple[CardSchedulingState, float]:
        difficulty = self._next_difficulty(state.difficulty, rating)

        if rating == Rating.AGAIN:
            step = self.config.relearning_step(0)
            next_state = replace(
                state,
                state=LearningState.RELEARNING,
                step_index=0,
                difficulty=difficulty,
                stability=self._lapse_stability(state.stability, difficulty, retrievability),
                lapses=state.lapses + 1,
                due_at=now + step,
            )
            return next_state, step.total_seconds() / SECONDS_PER_DAY

        stability = self._success_stability(state.stability, difficulty, retrievability, rating)
        interval = self.next_interval_days(stability)
        next_state = replace(
            state,
            difficulty=difficulty,
            stability=stability,
            due_at=now + timedelta(days=interval),
        )
        return next_state, interval

    # ------------------------------------------------------------------
    # Formulas
    # ------------------------------------------------------------------

    def _initial_difficulty(self, rating: Rating) -> float:
        raw = self.params.initial_difficulty - self.params.initial_difficulty_step * (
            int(rating) - 3
        )
        return _clamp(raw, MIN_DIFFICULTY, MAX_DIFFICULTY)

    def _next_difficulty(self, difficulty: float, rating: Rating) -> float:
        """
        Shift difficulty by rating, damped near the bound it moves toward.

        AGAIN and HARD raise it, EASY lowers it, GOOD leaves it unchanged.
        """
        delta = -self.params.difficulty_step * (int(rating) - 3)
        span = MAX_DIFFICULTY - MIN_DIFFICULTY
        if delta > 0:
            damping = (MAX_DIFFICULTY - difficulty) / span
        else:
            damping = (difficulty - MIN_DIFFICULTY) / span
        return _clamp(difficulty + delta * damping, MIN_DIFFICULTY, MAX_DIFFICULTY)

    def _success_stability(
        self, stability: float, difficulty: float, retrievability: float, rating: Rating
    ) -> float:
        p = self.params
        growth = (
            math.exp(p.growth_scale)
            * (11.0 - difficulty)
            * math.pow(stability, -p.growth_stability_decay)
            * (math.exp(p.growth_retrievability_weight * (1.0 - retrievability)) - 1.0)
            * p.growth_multiplier(rating)
        )
        return max(stability * (1.0 + growth), MIN_STABILITY)

    def _lapse_stability(
        self, stability: float, difficulty: float, retrievability: float
    ) -> float:
        p = self.params
        forgotten = (
            p.lapse_scale
            * math.pow(difficulty, -p.lapse_difficulty_decay)
            * (math.pow(stability + 1.0, p.lapse_stability_power) - 1.0)
            * math.exp(p.lapse_retrievability_weight * (1.0 - retrievability))
        )
        ceiling = stability / p.lapse_ceiling_factor
        return max(min(forgotten, ceiling), MIN_STABILITY)

    @staticmethod
    def _elapsed_days(state: CardSchedulingState, now: datetime) -> float:
        if state.last_review_at is None:
            return 0.0
        return max((now - state.last_review_at).total_seconds() / SECONDS_PER_DAY, 0.0)
