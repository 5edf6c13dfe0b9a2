"""Typed domain exceptions for the game core.

Invariant violations and input validation failures are raised as subclasses
of GameError so the transport layer can convert them consistently. Transient
backend failures never surface here: term supply and score persistence absorb
them with local fallbacks.
"""


class GameError(Exception):
    """Base exception for game rule and input violations."""


class InsufficientTermsError(GameError):
    """Fewer than two terms could be produced to start a game, even from fallback data."""

    def __init__(self, category: str, available: int) -> None:
        self.category = category
        self.available = available
        super().__init__(f"not enough terms for category {category!r}: {available} available, 2 required")


class GameAlreadyFinishedError(GameError):
    """A guess was made on a game that has already ended."""

    def __init__(self, game_id: str) -> None:
        self.game_id = game_id
        super().__init__(f"game {game_id} is already finished")


class GameNotStartedError(GameError):
    """A guess was made on a game that was never started."""

    def __init__(self, game_id: str) -> None:
        self.game_id = game_id
        super().__init__(f"game {game_id} has not started")


class GameBusyError(GameError):
    """Another guess for the same game is still being processed."""

    def __init__(self, game_id: str) -> None:
        self.game_id = game_id
        super().__init__(f"a guess for game {game_id} is already in progress")


class GameNotFoundError(GameError):
    """No local or stored state exists for the game id."""

    def __init__(self, game_id: str) -> None:
        self.game_id = game_id
        super().__init__(f"game {game_id} not found")


class InvalidScoreError(GameError, ValueError):
    """A score outside the plausible range was submitted."""


class InvalidCustomTermError(GameError, ValueError):
    """Custom game seed text is empty or unusable."""


class CorruptStateError(GameError):
    """A persisted game document is too damaged to repair."""
