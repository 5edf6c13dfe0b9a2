from pydantic import BaseModel, ConfigDict, Field, field_validator

from game.logic.enums import GuessDirection
from game.logic.term_supply import MAX_CUSTOM_TERM_LENGTH
from shared.validators import normalize_category


class StartGameRequest(BaseModel):
    """Body of POST /games. A custom_seed starts a custom game and overrides category."""

    model_config = ConfigDict(extra="forbid")

    category: str = Field(default="general", min_length=1, max_length=50)
    custom_seed: str | None = Field(default=None, min_length=1, max_length=MAX_CUSTOM_TERM_LENGTH)

    @field_validator("category")
    @classmethod
    def _normalize_category(cls, v: str) -> str:
        return normalize_category(v)

    @field_validator("custom_seed")
    @classmethod
    def _strip_custom_seed(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("custom_seed must not be blank")
        return v


class GuessRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    direction: GuessDirection
