"""
Exception hierarchy for cadence.

Every error raised by the scheduling core is a contract violation: the
caller passed something the core cannot act on. There is nothing to retry.
"""


class SchedulingError(Exception):
    pass


class ContractViolation(SchedulingError, ValueError):
    """Raised when the caller breaks an input contract."""


class InvalidRatingError(ContractViolation):
    pass


class InvalidCardStateError(ContractViolation):
    pass


class SessionClosedError(ContractViolation):
    """Raised when a finished or exhausted session receives another rating."""


class CardFileError(SchedulingError):
    """Raised when a card file cannot be read or does not validate."""
