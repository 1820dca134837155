# Application Scheduler Package
from .core import SchedulerCore, forgetting_curve
from .forecast import forecast_buckets, overdue_penalty, review_forecast
from .selector import DueSetSelector

__all__ = [
    "SchedulerCore",
    "DueSetSelector",
    "forgetting_curve",
    "review_forecast",
    "forecast_buckets",
    "overdue_penalty",
]
