"""Abstract interface for per-player best scores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shared.dal.models import LeaderboardEntry


class ScoreStore(ABC):
    """Authoritative store for each player's best score per category.

    Implementations can use SQLite, PostgreSQL, etc.
    """

    @abstractmethod
    async def read_best_score(self, player_id: str, category: str) -> int:
        """Return the stored best score, or 0 when the player has none."""
        ...

    @abstractmethod
    async def write_best_score(self, player_id: str, category: str, score: int) -> None:
        """Store score as the new best only if it is strictly greater than the stored one."""
        ...

    @abstractmethod
    async def top_scores(self, category: str, limit: int) -> list[LeaderboardEntry]: ...
