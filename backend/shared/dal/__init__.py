"""Data access layer: store and term source interfaces and shared exchange models."""

from shared.dal.game_store import GameStore, StaleStateError
from shared.dal.models import LeaderboardEntry, Term, TermPage
from shared.dal.score_store import ScoreStore
from shared.dal.term_source import TermSource

__all__ = [
    "GameStore",
    "LeaderboardEntry",
    "ScoreStore",
    "StaleStateError",
    "Term",
    "TermPage",
    "TermSource",
]
