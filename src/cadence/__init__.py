"""cadence: spaced-repetition scheduling core for flashcard reviews."""

from cadence.consts import VERSION

__version__ = VERSION
