"""
Domain models for card scheduling.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum

from cadence.domain.constants import DEFAULT_DIFFICULTY
from cadence.domain.errors import InvalidRatingError

_RATING_DESCRIPTIONS = {
    1: "Again - Complete failure to recall",
    2: "Hard - Recalled with significant difficulty",
    3: "Good - Recalled correctly with some effort",
    4: "Easy - Perfect recall with no hesitation",
}


class Rating(IntEnum):
    """Recall quality reported by the learner (1=Again, 2=Hard, 3=Good, 4=Easy)."""

    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4

    @property
    def is_success(self) -> bool:
        return self >= Rating.GOOD

    @property
    def description(self) -> str:
        return _RATING_DESCRIPTIONS[self.value]

    @classmethod
    def parse(cls, value: "Rating | int | str") -> "Rating":
        """
        Convert user or file input into a Rating.

        Accepts a Rating, an int 1-4, a digit string, or a case-insensitive
        name ("good"). Anything else raises InvalidRatingError.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise InvalidRatingError(f"Rating must be 1-4, got {value!r}")
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise InvalidRatingError(f"Rating must be 1-4, got {value!r}") from None
        if isinstance(value, str):
            text = value.strip()
            if text.isdigit():
                return cls.parse(int(text))
            try:
                return cls[text.upper()]
            except KeyError:
                raise InvalidRatingError(f"Unknown rating {value!r}") from None
        raise InvalidRatingError(f"Unsupported rating type: {type(value).__name__}")


class LearningState(str, Enum):
    """Lifecycle stage of a card."""

    NEW = "NEW"
    LEARNING = "LEARNING"
    REVIEW = "REVIEW"
    RELEARNING = "RELEARNING"

    @property
    def in_ladder(self) -> bool:
        return self in (LearningState.LEARNING, LearningState.RELEARNING)


@dataclass(frozen=True)
class CardSchedulingState:
    """
    Scheduling state of one flashcard.

    Attributes:
        card_id: Identifier of the owning card.
        due_at: Next scheduled presentation time.
        state: Lifecycle stage.
        difficulty: Intrinsic recall difficulty, 1 (easiest) to 10 (hardest).
        stability: Days until retrievability decays to the reference retention.
        last_review_at: Time of the last rating, None only for NEW cards.
        reps: Number of ratings received.
        lapses: Number of failed recalls while in REVIEW.
        step_index: Position on the learning or relearning step ladder.
        suspended: Excluded from due selection. Not a scheduling state.
    """

    card_id: str
    due_at: datetime
    state: LearningState = LearningState.NEW
    difficulty: float = DEFAULT_DIFFICULTY
    stability: float = 0.0
    last_review_at: datetime | None = None
    reps: int = 0
    lapses: int = 0
    step_index: int = 0
    suspended: bool = False

    @classmethod
    def new(cls, card_id: str, now: datetime) -> "CardSchedulingState":
        """A never-reviewed card, due immediately."""
        return cls(card_id=card_id, due_at=now)

    def is_due(self, now: datetime) -> bool:
        return not self.suspended and self.due_at <= now


@dataclass(frozen=True)
class ReviewEvent:
    """
    Append-only record of one rating submission.

    Snapshots the memory state before and after the rating so callers can
    audit the change or show its effect before committing it.
    """

    card_id: str
    session_id: str | None
    rating: Rating
    reviewed_at: datetime

    state_before: LearningState
    state_after: LearningState
    difficulty_before: float
    difficulty_after: float
    stability_before: float
    stability_after: float

    retrievability: float  # Pre-rating recall probability
    elapsed_days: float  # Days since the previous rating
    scheduled_days: float  # Gap between reviewed_at and the new due_at
    time_to_answer_ms: int | None = None


@dataclass(frozen=True)
class SchedulingResult:
    """Next state for a card together with the event that produced it."""

    state: CardSchedulingState
    event: ReviewEvent
