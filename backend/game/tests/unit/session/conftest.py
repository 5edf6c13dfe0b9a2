import random

import pytest

from game.logic.engine import RoundEngine
from game.logic.high_scores import HighScoreTracker
from game.logic.term_supply import TermSupply
from game.session.manager import GameSessionManager
from game.tests.mocks.stores import InMemoryGameStore, InMemoryScoreStore, InMemoryTermSource, make_term

# Ascending scores: "higher" is always the correct guess while terms last.
TERMS = [make_term(f"t-{i}", i * 10) for i in range(1, 11)]


@pytest.fixture
def game_store() -> InMemoryGameStore:
    return InMemoryGameStore()


@pytest.fixture
def score_store() -> InMemoryScoreStore:
    return InMemoryScoreStore()


@pytest.fixture
async def high_scores(score_store):
    tracker = HighScoreTracker(score_store, retry_backoff=0)
    yield tracker
    await tracker.drain()


@pytest.fixture
def engine(high_scores) -> RoundEngine:
    supply = TermSupply(InMemoryTermSource(TERMS), sample_terms=(), rng=random.Random(1))
    return RoundEngine(supply, high_scores=high_scores, shuffle_terms=False)


@pytest.fixture
def manager(engine, high_scores, game_store) -> GameSessionManager:
    return GameSessionManager(
        engine,
        high_scores,
        game_store=game_store,
        identity=lambda: "alice",
        confirm_attempts=2,
        confirm_backoff=0,
    )
