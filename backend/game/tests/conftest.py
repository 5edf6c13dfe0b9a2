import random

import pytest
from starlette.testclient import TestClient

from game.logic.engine import RoundEngine
from game.logic.high_scores import HighScoreTracker
from game.logic.term_supply import TermSupply
from game.server.app import create_app
from game.server.settings import GameServerSettings
from game.session.manager import GameSessionManager
from game.tests.mocks.stores import InMemoryGameStore, InMemoryScoreStore, InMemoryTermSource, make_term

# Ascending scores with shuffling off: "higher" is the correct guess until the terms run out.
ASCENDING_TERMS = [make_term(f"tech-{i}", i * 100) for i in range(1, 9)]


@pytest.fixture
def score_store() -> InMemoryScoreStore:
    return InMemoryScoreStore()


@pytest.fixture
def game_store() -> InMemoryGameStore:
    return InMemoryGameStore()


@pytest.fixture
def session_manager(score_store, game_store) -> GameSessionManager:
    supply = TermSupply(InMemoryTermSource(ASCENDING_TERMS), sample_terms=(), rng=random.Random(1))
    high_scores = HighScoreTracker(score_store, retry_backoff=0)
    engine = RoundEngine(supply, high_scores=high_scores, shuffle_terms=False)
    return GameSessionManager(engine, high_scores, game_store=game_store, confirm_backoff=0)


@pytest.fixture
def app(session_manager):
    return create_app(settings=GameServerSettings(), session_manager=session_manager)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
