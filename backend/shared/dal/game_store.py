"""Abstract interface for the authoritative game state store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class StaleStateError(Exception):
    """A write would move a stored game back to an earlier round."""

    def __init__(self, game_id: str, stored_round: int, incoming_round: int) -> None:
        self.game_id = game_id
        self.stored_round = stored_round
        self.incoming_round = incoming_round
        super().__init__(f"stale write for game {game_id}: stored round {stored_round} > incoming {incoming_round}")


class GameStore(ABC):
    """Authoritative store for game state documents.

    Documents are plain JSON-compatible dicts. They are returned unvalidated
    because persisted data may be malformed; the state reconciler is
    responsible for turning them into a usable game state.
    """

    @abstractmethod
    async def read_game(self, game_id: str) -> dict[str, Any] | None: ...

    @abstractmethod
    async def write_game(self, game_id: str, document: dict[str, Any]) -> None:
        """Persist a game document.

        Raises StaleStateError if the stored document has a higher round.
        """
        ...
