"""SQLite-backed best score store."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from shared.dal.models import LeaderboardEntry
from shared.dal.score_store import ScoreStore

if TYPE_CHECKING:
    from shared.db.connection import Database


class SqliteScoreStore(ScoreStore):
    """SQLite implementation of ScoreStore.

    The update-if-greater rule is enforced inside a single upsert so a late
    retry carrying an older, lower score can never lower a stored best.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def read_best_score(self, player_id: str, category: str) -> int:
        row = self._db.connection.execute(
            "SELECT score FROM high_scores WHERE player_id = ? AND category = ?",
            (player_id, category),
        ).fetchone()
        if row is None:
            return 0
        return int(row[0])

    async def write_best_score(self, player_id: str, category: str, score: int) -> None:
        async with self._lock:
            self._db.connection.execute(
                "INSERT INTO high_scores (player_id, category, score, updated_at) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(player_id, category) DO UPDATE SET "
                "  score = excluded.score, "
                "  updated_at = excluded.updated_at "
                "WHERE excluded.score > high_scores.score",
                (player_id, category, score, datetime.now(UTC).isoformat()),
            )
            self._db.connection.commit()

    async def top_scores(self, category: str, limit: int) -> list[LeaderboardEntry]:
        """Return the best scores for a category, highest first, ties broken by earliest."""
        rows = self._db.connection.execute(
            "SELECT player_id, score FROM high_scores WHERE category = ? ORDER BY score DESC, updated_at ASC LIMIT ?",
            (category, limit),
        ).fetchall()
        return [LeaderboardEntry(player_id=row[0], score=row[1]) for row in rows]
