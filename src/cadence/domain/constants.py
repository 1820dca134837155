"""Centralized constants for cadence.

All scheduling defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Forgetting curve ----------
# Retrievability at t == stability. Stability is defined against this point.
REFERENCE_RETENTION = 0.9
DEFAULT_REQUEST_RETENTION = 0.9

# ---------- Bounds ----------
MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0
DEFAULT_DIFFICULTY = 5.0
MIN_STABILITY = 0.01  # days

# ---------- Step ladders (minutes) ----------
DEFAULT_LEARNING_STEPS = [1.0, 10.0]
DEFAULT_RELEARNING_STEPS = [10.0]

# ---------- Intervals (days) ----------
DEFAULT_MINIMUM_INTERVAL = 1.0
DEFAULT_MAXIMUM_INTERVAL = 36500.0
MAXIMUM_INTERVAL_LIMIT = 36500.0  # Keeps due dates inside the datetime range

# ---------- Due set ----------
DEFAULT_MAX_CARDS_PER_DAY = 50
MAX_CARDS_PER_DAY_RANGE = (5, 500)

# ---------- Forecast ----------
DEFAULT_FORECAST_DAYS = 7
DEFAULT_HISTORY_DAYS = 30
MIN_OVERDUE_PENALTY = 0.5

SECONDS_PER_DAY = 86400.0
