from game.logic.state import GameState


class LocalStateCache:
    """In-memory optimistic copy of each game served by this process.

    Holds the latest state the process has produced or accepted for a game,
    whether or not the game store has confirmed it yet. Games are evicted
    when they end.
    """

    def __init__(self) -> None:
        self._states: dict[str, GameState] = {}  # game_id -> GameState

    def get(self, game_id: str) -> GameState | None:
        return self._states.get(game_id)

    def put(self, state: GameState) -> None:
        self._states[state.game_id] = state

    def evict(self, game_id: str) -> GameState | None:
        """Remove a game, returning the state it held."""
        return self._states.pop(game_id, None)

    def __contains__(self, game_id: object) -> bool:
        return game_id in self._states

    def __len__(self) -> int:
        return len(self._states)
