"""Tests for the domain exception hierarchy."""

import pytest

from game.logic.exceptions import (
    CorruptStateError,
    GameAlreadyFinishedError,
    GameBusyError,
    GameError,
    GameNotFoundError,
    GameNotStartedError,
    InsufficientTermsError,
    InvalidCustomTermError,
    InvalidScoreError,
)
from shared.dal.game_store import StaleStateError


class TestHierarchy:
    @pytest.mark.parametrize(
        "error",
        [
            InsufficientTermsError("technology", 1),
            GameAlreadyFinishedError("ABC234"),
            GameNotStartedError("ABC234"),
            GameBusyError("ABC234"),
            GameNotFoundError("ABC234"),
            InvalidScoreError("bad"),
            InvalidCustomTermError("bad"),
            CorruptStateError("bad"),
        ],
    )
    def test_all_are_game_errors(self, error):
        assert isinstance(error, GameError)

    def test_input_errors_are_value_errors(self):
        assert issubclass(InvalidScoreError, ValueError)
        assert issubclass(InvalidCustomTermError, ValueError)

    def test_stale_state_is_not_a_game_error(self):
        assert not issubclass(StaleStateError, GameError)


class TestContext:
    def test_insufficient_terms_message(self):
        err = InsufficientTermsError("music", 1)
        assert err.category == "music"
        assert err.available == 1
        assert str(err) == "not enough terms for category 'music': 1 available, 2 required"

    def test_game_id_is_kept(self):
        assert GameBusyError("ABC234").game_id == "ABC234"
        assert str(GameNotFoundError("XYZ789")) == "game XYZ789 not found"

    def test_stale_state_rounds(self):
        err = StaleStateError("ABC234", stored_round=5, incoming_round=3)
        assert (err.stored_round, err.incoming_round) == (5, 3)
        assert "stored round 5" in str(err)
