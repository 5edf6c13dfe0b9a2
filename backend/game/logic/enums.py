"""
String enum definitions for game concepts.
"""

from enum import Enum


class GamePhase(str, Enum):
    """Lifecycle phase of a game. FINISHED is terminal."""

    NOT_STARTED = "not_started"
    ACTIVE = "active"
    FINISHED = "finished"


class GuessDirection(str, Enum):
    """Player's prediction for the hidden term relative to the known term."""

    HIGHER = "higher"
    LOWER = "lower"

    @property
    def guessed_higher(self) -> bool:
        return self is GuessDirection.HIGHER


class StateSource(str, Enum):
    """Which copy of a game state won a reconciliation."""

    LOCAL = "local"
    REMOTE = "remote"
    NONE = "none"
