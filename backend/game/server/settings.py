"""Game server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class GameServerSettings(BaseSettings):
    model_config = {"env_prefix": "GAME_"}

    database_path: str = Field(default="backend/data/game.db", min_length=1)
    log_dir: str = Field(default="backend/logs/game", min_length=1)
    cors_origins: list[str] = ["http://localhost:8712"]

    # Remote term service; the SQLite terms table is used when unset.
    term_source_url: str | None = None
    term_batch_size: int = Field(default=100, ge=1, le=1000)
    seed_sample_terms: bool = True  # import the sample pool into an empty terms table

    remote_timeout_seconds: float = Field(default=5.0, gt=0)
    score_retry_attempts: int = Field(default=2, ge=0, le=10)
    score_retry_backoff_seconds: float = Field(default=0.5, ge=0)
    confirm_retry_attempts: int = Field(default=3, ge=1, le=10)
    confirm_retry_backoff_seconds: float = Field(default=0.25, ge=0)
    max_score: int = Field(default=10000, ge=1)
    rng_seed: int | None = None

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
