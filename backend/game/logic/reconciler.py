"""
Reconciliation between the local optimistic copy of a game and the stored copy.

Round numbers only move forward, so the copy with the higher round is always
the one to keep. A copy with a lower round than the one already held is stale
(typically a retried network write arriving late) and is discarded, never
merged field by field.

repair() is a normalization pass for persisted documents that are missing
fields or carry malformed terms. It exists so callers never crash on bad
data; a repaired state is flagged and should not be relied on for scoring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from game.logic.enums import StateSource
from game.logic.exceptions import CorruptStateError
from game.logic.state import GameState
from game.logic.types import MergeResult
from shared.dal.models import Term

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = structlog.get_logger()

PLACEHOLDER_TEXT = "Unavailable term"
PLACEHOLDER_SCORE = 0
DEFAULT_CATEGORY = "general"


class StateReconciler:
    def accept(self, held: GameState | None, incoming: GameState | None) -> GameState | None:
        """Return the state to keep when incoming arrives while held is current.

        Incoming is discarded when its round is lower than held's, or when it
        would reopen a game held as finished at the same round.
        """
        if held is None:
            return incoming
        if incoming is None:
            return held
        _check_same_game(held, incoming)
        if incoming.round < held.round:
            logger.warning(
                "discarding stale game state",
                game_id=held.game_id,
                held_round=held.round,
                incoming_round=incoming.round,
            )
            return held
        if incoming.round == held.round and held.finished and not incoming.finished:
            logger.warning("discarding state that would reopen a finished game", game_id=held.game_id)
            return held
        return incoming

    def merge(self, local: GameState | None, remote: GameState | None) -> MergeResult:
        """Pick between the local and the stored copy of one game.

        The higher round wins. At equal rounds a finished copy beats an
        unfinished one; otherwise local is kept. push_remote is set whenever
        the store is behind local.
        """
        if local is None and remote is None:
            return MergeResult(state=None, source=StateSource.NONE)
        if local is None:
            return MergeResult(state=remote, source=StateSource.REMOTE)
        if remote is None:
            return MergeResult(state=local, source=StateSource.LOCAL, push_remote=True)

        _check_same_game(local, remote)
        if remote.round > local.round:
            logger.info("remote game state is ahead", game_id=local.game_id, local_round=local.round, remote_round=remote.round)
            return MergeResult(state=remote, source=StateSource.REMOTE)
        if local.round > remote.round:
            logger.info("local game state is ahead", game_id=local.game_id, local_round=local.round, remote_round=remote.round)
            return MergeResult(state=local, source=StateSource.LOCAL, push_remote=True)
        if remote.finished and not local.finished:
            return MergeResult(state=remote, source=StateSource.REMOTE)
        return MergeResult(state=local, source=StateSource.LOCAL, push_remote=local.finished and not remote.finished)

    def repair(self, document: Mapping[str, Any]) -> GameState:
        """Build a usable GameState from a possibly malformed stored document.

        Missing or invalid terms become labeled placeholder terms, missing
        collections start empty, and the result is flagged repaired=True when
        anything had to change. Raises CorruptStateError if the document has
        no usable game id.
        """
        game_id = document.get("game_id")
        if not isinstance(game_id, str) or not game_id:
            raise CorruptStateError("game document has no game_id")

        repairs: list[str] = []

        category = document.get("category")
        if not isinstance(category, str) or not category:
            category = DEFAULT_CATEGORY
            repairs.append("category")

        round_number = document.get("round")
        if not isinstance(round_number, int) or isinstance(round_number, bool) or round_number < 1:
            round_number = 1
            repairs.append("round")

        known = _parse_term(document.get("known_term"))
        if known is None:
            known = _placeholder_term(game_id, "known", category)
            repairs.append("known_term")
        hidden = _parse_term(document.get("hidden_term"))
        if hidden is None or hidden.id == known.id:
            hidden = _placeholder_term(game_id, "hidden", category)
            repairs.append("hidden_term")

        raw_pending = document.get("pending_terms")
        if not isinstance(raw_pending, list):
            raw_pending = []
            repairs.append("pending_terms")
        pending = [term for term in (_parse_term(item) for item in raw_pending) if term is not None]
        if len(pending) != len(raw_pending):
            repairs.append("pending_terms")

        raw_used = document.get("used_term_ids")
        if not isinstance(raw_used, list):
            raw_used = []
            repairs.append("used_term_ids")
        used = list(dict.fromkeys(item for item in raw_used if isinstance(item, str) and item))
        for term_id in (known.id, hidden.id):
            if term_id not in used:
                used.append(term_id)
        if used != raw_used and "used_term_ids" not in repairs:
            repairs.append("used_term_ids")

        custom_seed = document.get("custom_seed")
        player_id = document.get("player_id")

        state = GameState(
            game_id=game_id,
            player_id=player_id if isinstance(player_id, str) else "",
            category=category,
            round=round_number,
            known_term=known,
            hidden_term=hidden,
            started=bool(document.get("started", True)),
            finished=bool(document.get("finished", False)),
            used_term_ids=tuple(used),
            pending_terms=tuple(pending),
            custom_seed=custom_seed if isinstance(custom_seed, str) else None,
            repaired=bool(repairs) or bool(document.get("repaired", False)),
        )
        if repairs:
            logger.warning("repaired game state", game_id=game_id, fields=sorted(set(repairs)))
        return state


def _check_same_game(a: GameState, b: GameState) -> None:
    if a.game_id != b.game_id:
        raise ValueError(f"cannot reconcile different games: {a.game_id} vs {b.game_id}")


def _parse_term(raw: object) -> Term | None:
    if isinstance(raw, Term):
        return raw
    if not isinstance(raw, dict):
        return None
    try:
        return Term.model_validate(raw)
    except ValidationError:
        return None


def _placeholder_term(game_id: str, role: str, category: str) -> Term:
    return Term(
        id=f"placeholder-{role}-{game_id}",
        text=PLACEHOLDER_TEXT,
        category=category,
        score=PLACEHOLDER_SCORE,
        placeholder=True,
    )
