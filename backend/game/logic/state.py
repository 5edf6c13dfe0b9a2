"""
Game state model for a higher/lower game.

GameState is immutable; the round engine produces a new state for every
accepted guess via model_copy.
"""

from __future__ import annotations

from typing import Any, Self

from pydantic import BaseModel, Field, model_validator

from game.logic.enums import GamePhase
from shared.dal.models import Term


class GameState(BaseModel, frozen=True):
    """Authoritative in-memory shape of one game."""

    game_id: str = Field(min_length=1)
    player_id: str = ""
    category: str
    round: int = Field(default=1, ge=1)
    known_term: Term | None = None
    hidden_term: Term | None = None
    started: bool = False
    finished: bool = False
    used_term_ids: tuple[str, ...] = ()  # append-only, in order of first appearance
    pending_terms: tuple[Term, ...] = ()  # consumed front to back
    custom_seed: str | None = None
    repaired: bool = False  # set when repair() had to substitute or initialize fields

    @model_validator(mode="after")
    def _check_invariants(self) -> Self:
        if self.started and not self.finished and (self.known_term is None or self.hidden_term is None):
            raise ValueError("active game requires both known_term and hidden_term")
        if self.known_term is not None and self.hidden_term is not None and self.known_term.id == self.hidden_term.id:
            raise ValueError(f"known_term and hidden_term share id {self.known_term.id!r}")
        if len(set(self.used_term_ids)) != len(self.used_term_ids):
            raise ValueError("used_term_ids contains duplicates")
        return self

    @property
    def phase(self) -> GamePhase:
        if self.finished:
            return GamePhase.FINISHED
        if self.started:
            return GamePhase.ACTIVE
        return GamePhase.NOT_STARTED

    @property
    def score(self) -> int:
        """Number of correct guesses made so far."""
        return self.round - 1

    def is_used(self, term_id: str) -> bool:
        return term_id in self.used_term_ids

    def to_document(self) -> dict[str, Any]:
        """JSON-compatible form persisted to the game store."""
        return self.model_dump(mode="json")
