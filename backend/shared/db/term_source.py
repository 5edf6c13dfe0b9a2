"""SQLite-backed term source."""

from __future__ import annotations

from typing import TYPE_CHECKING

from shared.dal.models import ALL_TERMS_CATEGORIES, Term, TermPage
from shared.dal.term_source import TermSource

if TYPE_CHECKING:
    from shared.db.connection import Database


class SqliteTermSource(TermSource):
    """Page through the terms table in insertion order.

    The cursor is the insertion sequence number of the last term returned.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    async def fetch_terms(self, category: str, cursor: str | None, limit: int) -> TermPage:
        after = int(cursor) if cursor else 0
        category = category.lower()
        # fetch one extra row to learn whether another page exists
        if category in ALL_TERMS_CATEGORIES:
            rows = self._db.connection.execute(
                "SELECT seq, id, text, category, score FROM terms WHERE seq > ? ORDER BY seq LIMIT ?",
                (after, limit + 1),
            ).fetchall()
        else:
            rows = self._db.connection.execute(
                "SELECT seq, id, text, category, score FROM terms WHERE category = ? AND seq > ? ORDER BY seq LIMIT ?",
                (category, after, limit + 1),
            ).fetchall()

        has_more = len(rows) > limit
        rows = rows[:limit]
        terms = [Term(id=row[1], text=row[2], category=row[3], score=row[4]) for row in rows]
        next_cursor = str(rows[-1][0]) if rows else cursor
        return TermPage(terms=terms, next_cursor=next_cursor, has_more=has_more)
