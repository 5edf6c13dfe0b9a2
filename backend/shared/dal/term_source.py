"""Abstract interface for the external term source."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shared.dal.models import TermPage


class TermSource(ABC):
    """Paginated supplier of candidate terms for a category.

    Implementations may be remote (HTTP) or local (SQLite). Errors are raised
    as-is; callers decide how to fall back.
    """

    @abstractmethod
    async def fetch_terms(self, category: str, cursor: str | None, limit: int) -> TermPage: ...
