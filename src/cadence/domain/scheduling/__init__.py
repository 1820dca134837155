# Domain Scheduling Package
from .models import (
    CardSchedulingState,
    LearningState,
    Rating,
    ReviewEvent,
    SchedulingResult,
)
from .parameters import ModelParameters

__all__ = [
    "Rating",
    "LearningState",
    "CardSchedulingState",
    "ReviewEvent",
    "SchedulingResult",
    "ModelParameters",
]
