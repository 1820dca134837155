from datetime import timedelta
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from cadence.domain.constants import (
    DEFAULT_LEARNING_STEPS,
    DEFAULT_MAX_CARDS_PER_DAY,
    DEFAULT_MAXIMUM_INTERVAL,
    DEFAULT_MINIMUM_INTERVAL,
    DEFAULT_RELEARNING_STEPS,
    DEFAULT_REQUEST_RETENTION,
    MAXIMUM_INTERVAL_LIMIT,
    MAX_CARDS_PER_DAY_RANGE,
)

CONFIG_FILES = [
    Path(".config/cadence/config.toml"),
    Path(".cadence.toml"),
]


class SchedulerConfig(BaseSettings):
    """
    Scheduling policy for cadence.
    Supports loading from:
    1. Environment variables (CADENCE_*)
    2. Config file (~/.config/cadence/config.toml)
    3. Manual overrides (CLI or caller)
    """

    model_config = SettingsConfigDict(
        env_prefix="CADENCE_",
        toml_file=[Path.home() / f for f in CONFIG_FILES],
        extra="ignore",
    )

    # Retention target used to turn stability into an interval
    request_retention: float = Field(default=DEFAULT_REQUEST_RETENTION, gt=0.0, lt=1.0)

    # Step ladders, in minutes
    learning_steps: list[float] = Field(default_factory=lambda: list(DEFAULT_LEARNING_STEPS))
    relearning_steps: list[float] = Field(
        default_factory=lambda: list(DEFAULT_RELEARNING_STEPS)
    )

    # Interval clamp, in days
    minimum_interval_days: float = Field(default=DEFAULT_MINIMUM_INTERVAL, gt=0.0)
    maximum_interval_days: float = Field(
        default=DEFAULT_MAXIMUM_INTERVAL, gt=0.0, le=MAXIMUM_INTERVAL_LIMIT
    )

    # Due set
    max_cards_per_day: int = DEFAULT_MAX_CARDS_PER_DAY
    max_cards_per_day_range: tuple[int, int] = MAX_CARDS_PER_DAY_RANGE

    # Session loop
    requeue_same_day: bool = True

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # Find the first existing file
        toml_file = None
        for f in CONFIG_FILES:
            candidate = Path.home() / f
            if candidate.exists():
                toml_file = candidate
                break

        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (
            init_settings,
            env_settings,
        )

    @field_validator("learning_steps", "relearning_steps")
    @classmethod
    def check_steps(cls, v: list[float]) -> list[float]:
        if not v:
            raise ValueError("step ladder must contain at least one step")
        if any(step <= 0 for step in v):
            raise ValueError("step durations must be positive")
        return v

    @model_validator(mode="after")
    def check_ranges(self) -> "SchedulerConfig":
        if self.maximum_interval_days < self.minimum_interval_days:
            raise ValueError("maximum_interval_days is below minimum_interval_days")

        low, high = self.max_cards_per_day_range
        if low > high:
            raise ValueError(f"invalid max_cards_per_day_range {self.max_cards_per_day_range}")
        if not low <= self.max_cards_per_day <= high:
            raise ValueError(f"max_cards_per_day must be within [{low}, {high}]")
        return self

    def learning_step(self, index: int) -> timedelta:
        return timedelta(minutes=self.learning_steps[index])

    def relearning_step(self, index: int) -> timedelta:
        return timedelta(minutes=self.relearning_steps[index])

    def ladder(self, relearning: bool) -> list[float]:
        return self.relearning_steps if relearning else self.learning_steps


def resolve_config(overrides: dict[str, Any] | None = None) -> SchedulerConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in SchedulerConfig
    2. ~/.config/cadence/config.toml (if exists)
    3. Environment variables (CADENCE_*)
    4. overrides (CLI options or caller), Nones dropped
    """
    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
    return SchedulerConfig(**overrides)
