"""
Card file adapter: reads card states from YAML or JSON for the CLI.

Accepted layouts:
    cards:
      - card_id: c1
        due_at: 2026-10-18T09:00:00+00:00
        state: REVIEW
        ...
or a bare top-level list of the same records. JSON is valid YAML, so one
loader handles both.
"""

import logging
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from cadence.domain.constants import DEFAULT_DIFFICULTY
from cadence.domain.errors import CardFileError
from cadence.domain.scheduling.models import (
    CardSchedulingState,
    LearningState,
    ReviewEvent,
)

logger = logging.getLogger(__name__)


class CardRecord(BaseModel):
    """One card as stored in a card file."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    card_id: str = Field(alias="id")
    due_at: datetime
    state: LearningState = LearningState.NEW
    difficulty: float = DEFAULT_DIFFICULTY
    stability: float = 0.0
    last_review_at: datetime | None = None
    reps: int = 0
    lapses: int = 0
    step_index: int = 0
    suspended: bool = False

    @field_validator("card_id", mode="before")
    @classmethod
    def stringify_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("due_at", "last_review_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        # Naive timestamps in files are read as UTC
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("state", mode="before")
    @classmethod
    def upper_state(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    def to_state(self) -> CardSchedulingState:
        return CardSchedulingState(**self.model_dump())


def load_cards(path: Path) -> list[CardSchedulingState]:
    """
    Load card states from a YAML or JSON file.

    Raises:
        CardFileError: unreadable file, bad layout, or invalid record.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise CardFileError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise CardFileError(f"Invalid YAML/JSON in {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("cards")
    if not isinstance(data, list):
        raise CardFileError(f"{path}: expected a list of cards or a 'cards' key")

    cards: list[CardSchedulingState] = []
    for i, raw in enumerate(data):
        if not isinstance(raw, dict):
            raise CardFileError(f"{path}: card #{i + 1} is not a mapping")
        try:
            cards.append(CardRecord.model_validate(raw).to_state())
        except ValidationError as e:
            raise CardFileError(f"{path}: card #{i + 1} is invalid: {e}") from e

    logger.debug(f"Loaded {len(cards)} cards from {path}")
    return cards


def find_card(cards: list[CardSchedulingState], card_id: str) -> CardSchedulingState:
    for card in cards:
        if card.card_id == card_id:
            return card
    raise CardFileError(f"Card {card_id!r} not found")


def state_to_dict(state: CardSchedulingState) -> dict[str, Any]:
    """JSON-ready representation of a card state."""
    return CardRecord.model_validate(asdict(state)).model_dump(mode="json", by_alias=False)


def event_to_dict(event: ReviewEvent) -> dict[str, Any]:
    return {
        "card_id": event.card_id,
        "session_id": event.session_id,
        "rating": event.rating.name,
        "reviewed_at": event.reviewed_at.isoformat(),
        "state_before": event.state_before.value,
        "state_after": event.state_after.value,
        "difficulty_before": event.difficulty_before,
        "difficulty_after": event.difficulty_after,
        "stability_before": event.stability_before,
        "stability_after": event.stability_after,
        "retrievability": event.retrievability,
        "elapsed_days": event.elapsed_days,
        "scheduled_days": event.scheduled_days,
        "time_to_answer_ms": event.time_to_answer_ms,
    }
