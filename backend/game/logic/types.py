"""Result types returned by the game core."""

from pydantic import BaseModel

from game.logic.enums import StateSource
from game.logic.state import GameState


class GuessOutcome(BaseModel, frozen=True):
    correct: bool
    state: GameState


class MergeResult(BaseModel, frozen=True):
    """Outcome of reconciling a local and a remote copy of one game.

    push_remote is True when the local copy is ahead of (or missing from) the
    store and should be written back.
    """

    state: GameState | None
    source: StateSource
    push_remote: bool = False
