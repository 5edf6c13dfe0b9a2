"""
Round engine: builds the initial game state and applies guesses.

The engine holds no per-game state of its own. Every call takes a GameState
and returns a new one; persistence, caching and the one-guess-at-a-time rule
belong to the session layer.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

from game.logic.evaluator import evaluate_guess
from game.logic.exceptions import (
    GameAlreadyFinishedError,
    GameNotStartedError,
    InsufficientTermsError,
    InvalidScoreError,
)
from game.logic.state import GameState
from game.logic.term_supply import CUSTOM_CATEGORY, CUSTOM_POOL_CATEGORY
from game.logic.types import GuessOutcome
from shared.dal.models import Term

if TYPE_CHECKING:
    from collections.abc import Sequence

    from game.logic.high_scores import HighScoreTracker
    from game.logic.term_supply import TermSupply

logger = structlog.get_logger()

GAME_ID_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # no 0/O or 1/I
GAME_ID_LENGTH = 6
DEFAULT_INITIAL_BATCH = 100
_SYNTHETIC_MIN_CEILING = 100  # synthetic scores span at least 0..100


def generate_game_id(rng: random.Random | None = None) -> str:
    """Return a short, human-friendly game code."""
    rng = rng or random.Random()  # noqa: S311
    return "".join(rng.choice(GAME_ID_ALPHABET) for _ in range(GAME_ID_LENGTH))


class RoundEngine:
    def __init__(
        self,
        term_supply: TermSupply,
        *,
        high_scores: HighScoreTracker | None = None,
        initial_batch: int = DEFAULT_INITIAL_BATCH,
        shuffle_terms: bool = True,
        rng: random.Random | None = None,
    ) -> None:
        self._term_supply = term_supply
        self._high_scores = high_scores
        self._initial_batch = initial_batch
        self._shuffle_terms = shuffle_terms
        self._rng = rng or random.Random()  # noqa: S311

    async def start_game(
        self,
        game_id: str,
        category: str,
        *,
        player_id: str = "",
        custom_seed: str | None = None,
    ) -> GameState:
        """Draw the opening terms and build a round-1 state.

        Category games shuffle the whole batch. Custom games keep the seed
        term as the first known term and shuffle only the terms after it.
        Raises InsufficientTermsError when fewer than two distinct terms exist.
        """
        if custom_seed is not None:
            category = CUSTOM_CATEGORY
            drawn = await self._term_supply.draw_custom(custom_seed)
            terms = [drawn[0], *self._shuffled(drawn[1:])]
        else:
            category = category.lower()
            terms = self._shuffled(await self._term_supply.ensure_available(category, self._initial_batch))

        terms = _dedupe(terms)
        if len(terms) < 2:
            raise InsufficientTermsError(category, len(terms))

        state = GameState(
            game_id=game_id,
            player_id=player_id,
            category=category,
            round=1,
            known_term=terms[0],
            hidden_term=terms[1],
            started=True,
            finished=False,
            used_term_ids=(terms[0].id, terms[1].id),
            pending_terms=tuple(terms[2:]),
            custom_seed=custom_seed.strip() if custom_seed is not None else None,
        )
        logger.info("game started", game_id=game_id, category=category, pending=len(state.pending_terms))
        return state

    async def apply_guess(self, state: GameState, guessed_higher: bool) -> GuessOutcome:  # noqa: FBT001
        """Apply one higher/lower guess and return the resulting state.

        A correct guess promotes the hidden term to known, draws the next
        hidden term and advances the round. An incorrect guess finishes the
        game, leaving both terms in place, and records the final score.
        """
        if state.finished:
            raise GameAlreadyFinishedError(state.game_id)
        if not state.started or state.known_term is None or state.hidden_term is None:
            raise GameNotStartedError(state.game_id)

        correct = evaluate_guess(state.known_term.score, state.hidden_term.score, guessed_higher)
        logger.debug(
            "guess evaluated",
            game_id=state.game_id,
            round=state.round,
            guessed_higher=guessed_higher,
            correct=correct,
        )

        if not correct:
            finished = state.model_copy(update={"finished": True})
            logger.info("game over", game_id=state.game_id, category=state.category, score=finished.score)
            await self._record_final_score(finished)
            return GuessOutcome(correct=False, state=finished)

        new_known = state.hidden_term
        next_hidden, pending = await self._draw_next(state)
        used = state.used_term_ids
        if not state.is_used(new_known.id):
            used = (*used, new_known.id)
        used = (*used, next_hidden.id)

        advanced = state.model_copy(
            update={
                "round": state.round + 1,
                "known_term": new_known,
                "hidden_term": next_hidden,
                "used_term_ids": used,
                "pending_terms": pending,
            },
        )
        return GuessOutcome(correct=True, state=advanced)

    async def finish_game(self, state: GameState) -> GameState:
        """End a game early, recording the score reached. Finished games are returned unchanged."""
        if state.finished:
            return state
        finished = state.model_copy(update={"finished": True})
        logger.info("game ended early", game_id=state.game_id, category=state.category, score=finished.score)
        if finished.started:
            await self._record_final_score(finished)
        return finished

    async def _draw_next(self, state: GameState) -> tuple[Term, tuple[Term, ...]]:
        """Pick the next hidden term and the pending queue that remains after it.

        Order of preference: the pending queue, a freshly fetched batch, then
        a synthetic placeholder so the game never stalls for lack of terms.
        """
        used = set(state.used_term_ids)
        pending = [t for t in state.pending_terms if t.id not in used]
        if pending:
            return pending[0], tuple(pending[1:])

        pool_category = CUSTOM_POOL_CATEGORY if state.category == CUSTOM_CATEGORY else state.category
        fresh = await self._term_supply.fetch_more(pool_category, exclude_ids=used)
        if fresh:
            logger.info("refilled pending terms", game_id=state.game_id, fetched=len(fresh))
            return fresh[0], tuple(fresh[1:])

        logger.warning("terms exhausted, using synthetic term", game_id=state.game_id, round=state.round)
        return self._synthetic_term(state), ()

    def _synthetic_term(self, state: GameState) -> Term:
        # the hidden term is about to become the known term the player compares against
        reference = state.hidden_term.score if state.hidden_term is not None else 0
        ceiling = max(reference * 2, _SYNTHETIC_MIN_CEILING)
        return Term(
            id=f"synthetic-{uuid4().hex}",
            text=f"Term {self._rng.randint(1, 999)}",
            category=state.category,
            score=self._rng.randint(0, ceiling),
            placeholder=True,
        )

    async def _record_final_score(self, state: GameState) -> None:
        if self._high_scores is None:
            return
        try:
            await self._high_scores.record_score(state.player_id, state.category, state.score)
        except InvalidScoreError:
            logger.warning("final score rejected by plausibility check", game_id=state.game_id, score=state.score)

    def _shuffled(self, terms: Sequence[Term]) -> list[Term]:
        result = list(terms)
        if self._shuffle_terms:
            self._rng.shuffle(result)
        return result


def _dedupe(terms: Sequence[Term]) -> list[Term]:
    seen: set[str] = set()
    result = []
    for term in terms:
        if term.id not in seen:
            seen.add(term.id)
            result.append(term)
    return result
