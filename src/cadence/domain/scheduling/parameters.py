"""
Memory-model parameters for the scheduler.

Defaults follow the public FSRS preset. Field names describe the role of
each weight inside the update formulas rather than its index in the preset.
"""

import math
from dataclasses import dataclass

from cadence.domain.constants import DEFAULT_DIFFICULTY
from cadence.domain.scheduling.models import Rating


@dataclass(frozen=True)
class ModelParameters:
    """
    Tunable weights of the stability/difficulty model.

    Attributes:
        initial_stability_*: Stability seeded by the first rating (days).
        initial_difficulty: Difficulty for a first rating of GOOD.
        initial_difficulty_step: Shift of the seeded difficulty per rating point.
        difficulty_step: Difficulty shift per rating point in REVIEW.
        growth_scale: e^growth_scale scales stability growth on success.
        growth_stability_decay: Larger stabilities grow proportionally slower.
        growth_retrievability_weight: Low recall probability boosts growth.
        hard_penalty: Growth multiplier for HARD.
        easy_bonus: Growth multiplier for EASY.
        lapse_scale, lapse_difficulty_decay, lapse_stability_power,
        lapse_retrievability_weight: Post-lapse stability formula.
        short_term_scale, short_term_offset: Stability change per step
            rating while on the learning ladder.
    """

    initial_stability_again: float = 0.40255
    initial_stability_hard: float = 1.18385
    initial_stability_good: float = 3.173
    initial_stability_easy: float = 15.69105

    initial_difficulty: float = DEFAULT_DIFFICULTY
    initial_difficulty_step: float = 0.3
    difficulty_step: float = 1.0

    growth_scale: float = 1.54575
    growth_stability_decay: float = 0.1192
    growth_retrievability_weight: float = 1.01925
    hard_penalty: float = 0.2315
    easy_bonus: float = 2.9898

    lapse_scale: float = 1.9395
    lapse_difficulty_decay: float = 0.11
    lapse_stability_power: float = 0.29605
    lapse_retrievability_weight: float = 2.2698

    short_term_scale: float = 0.51655
    short_term_offset: float = 0.6621

    def initial_stability(self, rating: Rating) -> float:
        return {
            Rating.AGAIN: self.initial_stability_again,
            Rating.HARD: self.initial_stability_hard,
            Rating.GOOD: self.initial_stability_good,
            Rating.EASY: self.initial_stability_easy,
        }[rating]

    def growth_multiplier(self, rating: Rating) -> float:
        if rating == Rating.HARD:
            return self.hard_penalty
        if rating == Rating.EASY:
            return self.easy_bonus
        return 1.0

    def short_term_factor(self, rating: Rating) -> float:
        """Stability multiplier for one rating on the learning ladder."""
        return math.exp(self.short_term_scale * (int(rating) - 3 + self.short_term_offset))

    @property
    def lapse_ceiling_factor(self) -> float:
        """Post-lapse stability never exceeds pre-lapse stability divided by this."""
        return math.exp(self.short_term_scale * self.short_term_offset)
