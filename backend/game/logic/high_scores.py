"""
Per-player, per-category best score tracking.

The local cache is written synchronously and always reflects the best score
known to this process. Persistence to the score store happens in a background
task with a fixed-backoff retry budget; entries whose persistence failed stay
in a pending set until a later sync_pending() succeeds.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from game.logic.exceptions import InvalidScoreError
from shared.dal.models import LeaderboardEntry

if TYPE_CHECKING:
    from shared.dal.score_store import ScoreStore

logger = structlog.get_logger()

MAX_PLAUSIBLE_SCORE = 10000
MAX_LEADERBOARD_SIZE = 100


class LocalScoreCache:
    """In-memory best scores keyed by (player_id, category)."""

    def __init__(self) -> None:
        self._scores: dict[tuple[str, str], int] = {}

    def get(self, player_id: str, category: str) -> int | None:
        return self._scores.get((player_id, category))

    def raise_to(self, player_id: str, category: str, score: int) -> bool:
        """Store score if it beats the cached value. Returns True if the cache changed."""
        key = (player_id, category)
        current = self._scores.get(key)
        if current is not None and score <= current:
            return False
        self._scores[key] = score
        return True

    def entries(self, category: str) -> list[LeaderboardEntry]:
        """All cached scores for a category, best first."""
        entries = [
            LeaderboardEntry(player_id=player_id, score=score)
            for (player_id, cat), score in self._scores.items()
            if cat == category
        ]
        return sorted(entries, key=lambda e: e.score, reverse=True)


class HighScoreTracker:
    def __init__(
        self,
        store: ScoreStore | None = None,
        *,
        local_cache: LocalScoreCache | None = None,
        retry_attempts: int = 2,
        retry_backoff: float = 0.5,
        timeout: float = 5.0,
        max_score: int = MAX_PLAUSIBLE_SCORE,
    ) -> None:
        self._store = store
        self._local = local_cache or LocalScoreCache()
        self._retry_attempts = retry_attempts
        self._retry_backoff = retry_backoff
        self._timeout = timeout
        self._max_score = max_score
        self._pending: set[tuple[str, str]] = set()
        self._tasks: set[asyncio.Task[bool]] = set()

    @property
    def pending_sync(self) -> frozenset[tuple[str, str]]:
        """(player_id, category) pairs whose local best has not reached the store yet."""
        return frozenset(self._pending)

    def best_score(self, player_id: str, category: str) -> int:
        return self._local.get(player_id, category.lower()) or 0

    async def record_score(self, player_id: str, category: str, score: int) -> bool:
        """Record a finished game's score. Returns True if it set a new best.

        Raises InvalidScoreError, without touching any state, for scores
        outside 0..max_score.
        """
        if not 0 <= score <= self._max_score:
            raise InvalidScoreError(f"score {score} outside plausible range 0-{self._max_score}")
        if not player_id:
            logger.warning("skipping high score without player id", category=category, score=score)
            return False

        category = category.lower()
        current = await self._current_best(player_id, category)
        if score <= current or not self._local.raise_to(player_id, category, score):
            logger.debug("not a new high score", category=category, score=score, best=current)
            return False

        logger.info("new high score", player_id=player_id, category=category, score=score, previous=current)
        if self._store is not None:
            self._pending.add((player_id, category))
            task = asyncio.create_task(self._persist(player_id, category, score))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return True

    async def sync_pending(self) -> int:
        """Retry persisting every unsynced best score. Returns how many were stored."""
        synced = 0
        for player_id, category in sorted(self._pending):
            score = self._local.get(player_id, category)
            if score is None:  # pragma: no cover
                self._pending.discard((player_id, category))
                continue
            if await self._persist(player_id, category, score):
                synced += 1
        return synced

    async def get_leaderboard_top(self, category: str, n: int = 10) -> list[LeaderboardEntry]:
        """Best scores for a category from the store, or from the local cache if the store is unreachable."""
        category = category.lower()
        n = max(1, min(n, MAX_LEADERBOARD_SIZE))
        if self._store is not None:
            try:
                async with asyncio.timeout(self._timeout):
                    return await self._store.top_scores(category, n)
            except Exception:
                logger.warning("leaderboard read failed, serving local scores", category=category, exc_info=True)
        return self._local.entries(category)[:n]

    async def drain(self) -> None:
        """Wait for in-flight persistence tasks to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _current_best(self, player_id: str, category: str) -> int:
        local = self._local.get(player_id, category)
        if local is not None or self._store is None:
            return local or 0
        try:
            async with asyncio.timeout(self._timeout):
                remote = await self._store.read_best_score(player_id, category)
        except Exception:
            logger.warning("best score read failed, using local cache", category=category, exc_info=True)
            return 0
        self._local.raise_to(player_id, category, remote)
        return remote

    async def _persist(self, player_id: str, category: str, score: int) -> bool:
        """Write score to the store with up to retry_attempts retries. Returns True on success."""
        if self._store is None:  # pragma: no cover
            return False
        attempts = 1 + self._retry_attempts
        for attempt in range(1, attempts + 1):
            try:
                async with asyncio.timeout(self._timeout):
                    await self._store.write_best_score(player_id, category, score)
            except Exception:
                logger.warning(
                    "failed to persist high score",
                    category=category,
                    score=score,
                    attempt=attempt,
                    attempts=attempts,
                    exc_info=True,
                )
                if attempt < attempts:
                    await asyncio.sleep(self._retry_backoff)
                continue
            # a better score may have been recorded while this write was in flight
            if self._local.get(player_id, category) == score:
                self._pending.discard((player_id, category))
            return True

        logger.warning("high score kept locally until next sync", category=category, score=score)
        return False
