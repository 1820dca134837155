# Domain Session Package
from .models import (
    DailyStats,
    ForecastBuckets,
    HistoryStats,
    SessionSummary,
    StudySession,
)

__all__ = ["StudySession", "SessionSummary", "ForecastBuckets", "DailyStats", "HistoryStats"]
