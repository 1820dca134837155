# Application Session Package
from .accumulator import SessionAccumulator, generate_session_id
from .history import summarize_history
from .service import ReviewSessionService

__all__ = [
    "SessionAccumulator",
    "ReviewSessionService",
    "generate_session_id",
    "summarize_history",
]
