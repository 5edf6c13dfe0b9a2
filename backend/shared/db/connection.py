"""SQLite database connection and schema management."""

from __future__ import annotations

import os
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Iterable

    from shared.dal.models import Term

logger = structlog.get_logger()

_DB_FILE_PERMISSIONS = 0o600

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS games (
    id TEXT PRIMARY KEY,
    round INTEGER NOT NULL,
    finished INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL,
    data TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS high_scores (
    player_id TEXT NOT NULL,
    category TEXT NOT NULL,
    score INTEGER NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (player_id, category)
);

CREATE INDEX IF NOT EXISTS idx_high_scores_category_score
    ON high_scores (category, score DESC);

CREATE TABLE IF NOT EXISTS terms (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    text TEXT NOT NULL,
    category TEXT NOT NULL,
    score INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_terms_category_seq
    ON terms (category, seq);
"""


class Database:
    """SQLite database wrapper with schema management and term import."""

    def __init__(self, path: str | Path) -> None:
        self._path = str(path)
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Return the active connection or raise if disconnected."""
        if self._conn is None:
            raise RuntimeError("Database is not connected")
        return self._conn

    def connect(self) -> None:
        """Open the database, apply pragmas, create schema, and harden file permissions."""
        parent = Path(self._path).parent
        parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(self._path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.executescript(_SCHEMA_SQL)

        self._harden_permissions()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def term_count(self) -> int:
        row = self.connection.execute("SELECT COUNT(*) FROM terms").fetchone()
        return row[0]

    def import_terms(self, terms: Iterable[Term]) -> int:
        """Insert terms into the term table, skipping ids that already exist.

        Runs in a single transaction; any failure rolls the whole import back.
        Returns the number of rows inserted.
        """
        conn = self.connection
        inserted = 0
        try:
            conn.execute("BEGIN")
            for term in terms:
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO terms (id, text, category, score) VALUES (?, ?, ?, ?)",
                    (term.id, term.text, term.category.lower(), term.score),
                )
                inserted += cursor.rowcount
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise
        logger.info("imported terms", count=inserted, path=self._path)
        return inserted

    def _harden_permissions(self) -> None:
        """Set restrictive file permissions on POSIX systems (best effort).

        Covers the main DB file and the WAL/SHM sibling files created by WAL mode.
        """
        if os.name != "posix":  # pragma: no cover
            return
        for suffix in ("", "-wal", "-shm"):
            p = Path(self._path + suffix)
            if p.exists():
                try:
                    p.chmod(_DB_FILE_PERMISSIONS)
                except OSError:
                    logger.warning("could not set file permissions", permissions=oct(_DB_FILE_PERMISSIONS), path=str(p))
