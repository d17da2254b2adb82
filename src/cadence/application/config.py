from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from cadence.domain import constants as C
from cadence.domain.models import SchedulerConfig


def config_files() -> list[Path]:
    return [
        Path.home() / ".config/cadence/config.toml",
        Path.home() / ".cadence.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for cadence.
    Supports loading from:
    1. Environment variables (CADENCE_*)
    2. Config file (~/.config/cadence/config.toml)
    3. Manual overrides (CLI, API)
    """

    model_config = SettingsConfigDict(
        env_prefix="CADENCE_",
        extra="ignore",
    )

    # Storage
    backend: Literal["sqlite", "memory"] = "sqlite"
    db_path: Path = Field(default_factory=lambda: Path.home() / ".config/cadence/cards.db")
    user_id: str = "local"

    # Session
    new_cards_per_day: int = Field(default=C.DEFAULT_NEW_CARDS_PER_DAY, ge=0)
    requeue_offset: int = Field(default=C.DEFAULT_REQUEUE_OFFSET, ge=1)

    # Scheduler
    initial_ease: float = C.INITIAL_EASE
    minimum_ease: float = Field(default=C.MINIMUM_EASE, gt=0)
    again_penalty: float = Field(default=C.AGAIN_EASE_PENALTY, ge=0)
    hard_penalty: float = Field(default=C.HARD_EASE_PENALTY, ge=0)
    easy_bonus: float = Field(default=C.EASY_EASE_BONUS, ge=0)
    hard_multiplier: float = Field(default=C.HARD_MULTIPLIER, gt=0)
    easy_multiplier: float = Field(default=C.EASY_MULTIPLIER, ge=1)
    learning_steps: Annotated[list[int], NoDecode] = Field(
        default_factory=lambda: list(C.LEARNING_STEPS_MINUTES)
    )
    hard_step_multiplier: float = Field(default=C.HARD_STEP_MULTIPLIER, ge=1)
    graduating_interval: int = Field(default=C.GRADUATING_INTERVAL_DAYS, ge=1)
    easy_interval: int = Field(default=C.EASY_INTERVAL_DAYS, ge=1)
    max_interval_days: int = Field(default=C.MAX_INTERVAL_DAYS, ge=1)

    verbose: int = 1

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

        # First existing file wins
        toml_file = next((f for f in config_files() if f.exists()), None)

        # Earlier sources take priority
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("db_path", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Path:
        return Path(v).expanduser()

    @field_validator("learning_steps", mode="before")
    @classmethod
    def parse_steps(cls, v: Any) -> Any:
        # Env vars arrive as "10,60,360"
        if isinstance(v, str):
            return [int(part) for part in v.split(",") if part.strip()]
        return v

    @field_validator("learning_steps")
    @classmethod
    def check_steps(cls, v: list[int]) -> list[int]:
        if not v:
            raise ValueError("learning_steps must not be empty")
        if any(step <= 0 or step >= C.MINUTES_PER_DAY for step in v):
            raise ValueError("learning steps must be between 1 minute and 1 day")
        if v != sorted(v):
            raise ValueError("learning steps must be ascending")
        return v

    @model_validator(mode="after")
    def check_ease(self) -> "AppConfig":
        if self.initial_ease < self.minimum_ease:
            raise ValueError("initial_ease must not be below minimum_ease")
        return self

    def scheduler_config(self) -> SchedulerConfig:
        return SchedulerConfig(
            initial_ease=self.initial_ease,
            minimum_ease=self.minimum_ease,
            again_penalty=self.again_penalty,
            hard_penalty=self.hard_penalty,
            easy_bonus=self.easy_bonus,
            hard_multiplier=self.hard_multiplier,
            easy_multiplier=self.easy_multiplier,
            learning_steps=tuple(self.learning_steps),
            hard_step_multiplier=self.hard_step_multiplier,
            graduating_interval=self.graduating_interval,
            easy_interval=self.easy_interval,
            max_interval_days=self.max_interval_days,
        )


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/cadence/config.toml (if exists)
    3. Environment variables (CADENCE_*)
    4. cli_overrides (passed from Typer or the API)
    """
    # Typer passes every option; unset ones arrive as None
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
