"""SQLite-backed game state store."""

from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

from shared.dal.game_store import GameStore, StaleStateError

if TYPE_CHECKING:
    from shared.db.connection import Database

logger = structlog.get_logger()


class SqliteGameStore(GameStore):
    """SQLite implementation of GameStore.

    Stores full game documents as JSON with indexed round/finished columns.
    Writes are conditional: a document never replaces one with a higher round,
    and a finished game is never reopened at the same round.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def read_game(self, game_id: str) -> dict[str, Any] | None:
        """Return the raw stored document, or None if the game is unknown or unparseable."""
        row = self._db.connection.execute(
            "SELECT data FROM games WHERE id = ?",
            (game_id,),
        ).fetchone()
        if row is None:
            return None
        try:
            document = json.loads(row[0])
        except json.JSONDecodeError:
            logger.warning("stored game document is not valid JSON", game_id=game_id)
            return {"game_id": game_id}
        if not isinstance(document, dict):
            logger.warning("stored game document is not an object", game_id=game_id)
            return {"game_id": game_id}
        return document

    async def write_game(self, game_id: str, document: dict[str, Any]) -> None:
        """Upsert a game document. Raises StaleStateError if it would move the game backwards."""
        incoming_round = int(document.get("round", 1))
        finished = 1 if document.get("finished") else 0
        async with self._lock:
            cursor = self._db.connection.execute(
                "INSERT INTO games (id, round, finished, updated_at, data) VALUES (?, ?, ?, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET "
                "  round = excluded.round, "
                "  finished = excluded.finished, "
                "  updated_at = excluded.updated_at, "
                "  data = excluded.data "
                "WHERE games.round < excluded.round "
                "   OR (games.round = excluded.round AND games.finished <= excluded.finished)",
                (game_id, incoming_round, finished, datetime.now(UTC).isoformat(), json.dumps(document)),
            )
            self._db.connection.commit()
            if cursor.rowcount == 0:
                row = self._db.connection.execute("SELECT round FROM games WHERE id = ?", (game_id,)).fetchone()
                stored_round = row[0] if row is not None else incoming_round
                logger.warning(
                    "rejected stale game write",
                    game_id=game_id,
                    stored_round=stored_round,
                    incoming_round=incoming_round,
                )
                raise StaleStateError(game_id, stored_round, incoming_round)
