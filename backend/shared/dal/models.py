"""Exchange models shared between the game core and the persistence adapters."""

from pydantic import BaseModel, Field

# Pseudo-categories that draw from every category.
ALL_TERMS_CATEGORIES = frozenset({"everything", "general"})


class Term(BaseModel, frozen=True):
    """A single comparable item with a popularity score."""

    id: str = Field(min_length=1)
    text: str
    category: str
    score: int = Field(ge=0)
    placeholder: bool = False  # synthetic or repair-substituted, never from the term source


class TermPage(BaseModel, frozen=True):
    """One page of terms returned by a term source."""

    terms: list[Term] = Field(default_factory=list)
    next_cursor: str | None = None  # opaque, only meaningful to the source that issued it
    has_more: bool = False


class LeaderboardEntry(BaseModel, frozen=True):
    player_id: str
    score: int = Field(ge=0)
