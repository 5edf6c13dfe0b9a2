"""SQLite database layer: connection management and store implementations."""

from shared.db.connection import Database
from shared.db.game_store import SqliteGameStore
from shared.db.score_store import SqliteScoreStore
from shared.db.term_source import SqliteTermSource

__all__ = [
    "Database",
    "SqliteGameStore",
    "SqliteScoreStore",
    "SqliteTermSource",
]
