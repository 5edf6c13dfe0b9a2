"""
Session manager: the entry point for every game operation.

Writes are two-phase. The new state lands in the local cache first, so the
player sees the result immediately, then it is committed to the game store
with a small retry budget. If the store never confirms, the game is marked
unconfirmed and the local copy stays authoritative until refresh() pushes it.
A finished game leaves the cache once the store confirms it.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from game.logic.engine import generate_game_id
from game.logic.enums import StateSource
from game.logic.exceptions import (
    CorruptStateError,
    GameAlreadyFinishedError,
    GameBusyError,
    GameNotFoundError,
)
from game.logic.reconciler import StateReconciler
from game.session.state_cache import LocalStateCache
from shared.dal.game_store import StaleStateError

if TYPE_CHECKING:
    from collections.abc import Callable

    from game.logic.engine import RoundEngine
    from game.logic.high_scores import HighScoreTracker
    from game.logic.state import GameState
    from game.logic.types import GuessOutcome
    from shared.dal.game_store import GameStore
    from shared.dal.models import LeaderboardEntry

logger = structlog.get_logger()

_MAX_ID_ATTEMPTS = 10


def _anonymous() -> str:
    return ""


class GameSessionManager:
    def __init__(
        self,
        engine: RoundEngine,
        high_scores: HighScoreTracker,
        *,
        game_store: GameStore | None = None,
        reconciler: StateReconciler | None = None,
        identity: Callable[[], str] | None = None,
        confirm_attempts: int = 3,
        confirm_backoff: float = 0.25,
        store_timeout: float = 5.0,
    ) -> None:
        self._engine = engine
        self._high_scores = high_scores
        self._store = game_store
        self._reconciler = reconciler or StateReconciler()
        self._identity = identity or _anonymous
        self._confirm_attempts = max(1, confirm_attempts)
        self._confirm_backoff = confirm_backoff
        self._store_timeout = store_timeout
        self._cache = LocalStateCache()
        self._game_locks: dict[str, asyncio.Lock] = {}  # game_id -> Lock
        self._unconfirmed: set[str] = set()

    @property
    def game_count(self) -> int:
        return len(self._cache)

    @property
    def unconfirmed_games(self) -> frozenset[str]:
        """Games whose latest local state the store has not acknowledged."""
        return frozenset(self._unconfirmed)

    def get_local_state(self, game_id: str) -> GameState | None:
        return self._cache.get(game_id)

    async def start_game(
        self,
        category: str,
        *,
        player_id: str | None = None,
        custom_seed: str | None = None,
    ) -> GameState:
        game_id = self._new_game_id()
        if player_id is None:
            player_id = self._identity()
        with structlog.contextvars.bound_contextvars(game_id=game_id):
            state = await self._engine.start_game(game_id, category, player_id=player_id, custom_seed=custom_seed)
            self._cache.put(state)
            await self._commit(state)
            return state

    async def guess(self, game_id: str, guessed_higher: bool) -> GuessOutcome:  # noqa: FBT001
        """Apply one guess. Only one guess per game may be in flight at a time.

        Raises GameBusyError rather than queueing when another guess for the
        same game is still being processed.
        """
        lock = self._game_locks.setdefault(game_id, asyncio.Lock())
        if lock.locked():
            raise GameBusyError(game_id)

        with structlog.contextvars.bound_contextvars(game_id=game_id):
            async with lock:
                state = await self._load(game_id)
                if state is None:
                    self._game_locks.pop(game_id, None)
                    raise GameNotFoundError(game_id)
                try:
                    outcome = await self._engine.apply_guess(state, guessed_higher)
                except GameAlreadyFinishedError:
                    if game_id not in self._cache:
                        self._game_locks.pop(game_id, None)
                    raise
                self._hold(outcome.state)
                if await self._commit(outcome.state) and outcome.state.finished:
                    self._release(game_id)
                return outcome

    async def end_game(self, game_id: str) -> None:
        """Finish a game and drop it from the local cache. Unknown or finished games are a no-op.

        A game the store has not confirmed as finished stays cached, so later
        guesses still see it as over and refresh() can push it once the store
        is reachable again.
        """
        lock = self._game_locks.setdefault(game_id, asyncio.Lock())
        with structlog.contextvars.bound_contextvars(game_id=game_id):
            async with lock:
                state = await self._load(game_id)
                if state is None:
                    self._game_locks.pop(game_id, None)
                    return
                if not state.finished:
                    state = await self._engine.finish_game(state)
                    self._hold(state)
                    confirmed = await self._commit(state)
                elif game_id in self._unconfirmed:
                    confirmed = await self._commit(state)
                else:
                    confirmed = True
                if not confirmed:
                    logger.warning("ended game kept locally until the store confirms it", round=state.round)
                    return
                self._release(game_id)

    async def refresh(self, game_id: str) -> GameState | None:
        """Reconcile the local copy with the stored copy and return the winner.

        Pushes the local copy when the store is behind it or never confirmed
        it. Returns None when neither copy exists.
        """
        with structlog.contextvars.bound_contextvars(game_id=game_id):
            local = self._cache.get(game_id)
            remote = await self._read_remote(game_id)
            result = self._reconciler.merge(local, remote)
            if result.state is None:
                return None
            if result.source is StateSource.REMOTE and local is not None:
                self._cache.put(result.state)
            if result.push_remote or (result.source is StateSource.LOCAL and game_id in self._unconfirmed):
                await self._commit(result.state, refresh_on_stale=False)
            if result.state.finished and game_id not in self._unconfirmed:
                self._release(game_id)
            return result.state

    async def get_leaderboard_top(self, category: str, n: int = 10) -> list[LeaderboardEntry]:
        return await self._high_scores.get_leaderboard_top(category, n)

    async def shutdown(self) -> None:
        """Flush score persistence before the process exits."""
        await self._high_scores.drain()
        if self._high_scores.pending_sync:
            synced = await self._high_scores.sync_pending()
            logger.info("synced pending high scores", synced=synced, remaining=len(self._high_scores.pending_sync))

    def _new_game_id(self) -> str:
        for _ in range(_MAX_ID_ATTEMPTS):
            game_id = generate_game_id()
            if game_id not in self._cache and game_id not in self._game_locks:
                return game_id
        raise RuntimeError("could not allocate a free game id")

    def _release(self, game_id: str) -> None:
        """Forget a finished game the store has confirmed; later reads go to the store."""
        if self._store is None:
            return
        self._cache.evict(game_id)
        self._game_locks.pop(game_id, None)

    def _hold(self, state: GameState) -> None:
        kept = self._reconciler.accept(self._cache.get(state.game_id), state)
        if kept is not None:
            self._cache.put(kept)

    async def _load(self, game_id: str) -> GameState | None:
        state = self._cache.get(game_id)
        if state is not None:
            return state
        state = await self._read_remote(game_id)
        # finished games read back from the store are already confirmed
        if state is not None and not state.finished:
            self._cache.put(state)
        return state

    async def _read_remote(self, game_id: str) -> GameState | None:
        if self._store is None:
            return None
        try:
            async with asyncio.timeout(self._store_timeout):
                document = await self._store.read_game(game_id)
        except Exception:
            logger.warning("game store read failed", exc_info=True)
            return None
        if document is None:
            return None
        try:
            return self._reconciler.repair(document)
        except CorruptStateError:
            logger.exception("stored game state is unusable")
            return None

    async def _commit(self, state: GameState, *, refresh_on_stale: bool = True) -> bool:
        """Write state to the game store. Returns True once the store confirms it."""
        if self._store is None:
            return True
        for attempt in range(1, self._confirm_attempts + 1):
            try:
                async with asyncio.timeout(self._store_timeout):
                    await self._store.write_game(state.game_id, state.to_document())
            except StaleStateError:
                logger.warning("store holds a newer state, reconciling", round=state.round)
                self._unconfirmed.discard(state.game_id)
                if refresh_on_stale:
                    await self.refresh(state.game_id)
                return False
            except Exception:
                logger.warning(
                    "game store write failed",
                    round=state.round,
                    attempt=attempt,
                    attempts=self._confirm_attempts,
                    exc_info=True,
                )
                if attempt < self._confirm_attempts:
                    await asyncio.sleep(self._confirm_backoff)
                continue
            self._unconfirmed.discard(state.game_id)
            return True

        self._unconfirmed.add(state.game_id)
        logger.warning(
            "state discrepancy: store did not confirm game state, local copy stays authoritative",
            round=state.round,
            finished=state.finished,
        )
        return False
