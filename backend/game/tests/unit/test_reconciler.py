import pytest

from game.logic.enums import StateSource
from game.logic.exceptions import CorruptStateError
from game.logic.reconciler import PLACEHOLDER_TEXT, StateReconciler
from game.logic.state import GameState
from game.tests.mocks.stores import make_term


def _state(round_number: int, *, finished: bool = False, game_id: str = "ABC234") -> GameState:
    known = make_term(f"k{round_number}", 100)
    hidden = make_term(f"h{round_number}", 200)
    return GameState(
        game_id=game_id,
        category="technology",
        round=round_number,
        known_term=known,
        hidden_term=hidden,
        started=True,
        finished=finished,
        used_term_ids=(known.id, hidden.id),
    )


@pytest.fixture
def reconciler() -> StateReconciler:
    return StateReconciler()


class TestMerge:
    def test_local_ahead_wins(self, reconciler):
        result = reconciler.merge(_state(5), _state(3))

        assert result.state.round == 5
        assert result.source is StateSource.LOCAL
        assert result.push_remote is True

    def test_remote_ahead_wins(self, reconciler):
        result = reconciler.merge(_state(5), _state(7))

        assert result.state.round == 7
        assert result.source is StateSource.REMOTE
        assert result.push_remote is False

    def test_equal_rounds_prefer_finished(self, reconciler):
        result = reconciler.merge(_state(4), _state(4, finished=True))

        assert result.state.finished is True
        assert result.source is StateSource.REMOTE

    def test_equal_rounds_keep_local_finished(self, reconciler):
        result = reconciler.merge(_state(4, finished=True), _state(4))

        assert result.state.finished is True
        assert result.source is StateSource.LOCAL
        assert result.push_remote is True

    def test_identical_rounds_keep_local_without_push(self, reconciler):
        local = _state(4)
        result = reconciler.merge(local, _state(4))

        assert result.state is local
        assert result.push_remote is False

    def test_only_remote(self, reconciler):
        result = reconciler.merge(None, _state(2))

        assert result.source is StateSource.REMOTE
        assert result.state.round == 2

    def test_only_local_is_pushed(self, reconciler):
        result = reconciler.merge(_state(2), None)

        assert result.source is StateSource.LOCAL
        assert result.push_remote is True

    def test_neither(self, reconciler):
        result = reconciler.merge(None, None)

        assert result.state is None
        assert result.source is StateSource.NONE

    def test_different_games_raise(self, reconciler):
        with pytest.raises(ValueError, match="different games"):
            reconciler.merge(_state(1), _state(1, game_id="XYZ789"))


class TestAccept:
    def test_stale_incoming_is_discarded(self, reconciler):
        held = _state(5)

        assert reconciler.accept(held, _state(4)) is held

    def test_newer_incoming_replaces_held(self, reconciler):
        incoming = _state(6)

        assert reconciler.accept(_state(5), incoming) is incoming

    def test_same_round_cannot_reopen_finished_game(self, reconciler):
        held = _state(5, finished=True)

        assert reconciler.accept(held, _state(5)) is held

    def test_same_round_may_finish_game(self, reconciler):
        incoming = _state(5, finished=True)

        assert reconciler.accept(_state(5), incoming) is incoming

    def test_nothing_held(self, reconciler):
        incoming = _state(1)

        assert reconciler.accept(None, incoming) is incoming


class TestRepair:
    def test_valid_document_is_unchanged(self, reconciler):
        state = _state(3)

        repaired = reconciler.repair(state.to_document())

        assert repaired == state
        assert repaired.repaired is False

    def test_missing_terms_become_placeholders(self, reconciler):
        repaired = reconciler.repair({"game_id": "ABC234", "category": "technology", "round": 2})

        assert repaired.repaired is True
        assert repaired.known_term.placeholder is True
        assert repaired.hidden_term.placeholder is True
        assert repaired.known_term.id != repaired.hidden_term.id
        assert repaired.known_term.text == PLACEHOLDER_TEXT
        assert repaired.round == 2

    def test_malformed_term_becomes_placeholder(self, reconciler):
        document = _state(2).to_document()
        document["hidden_term"] = {"id": "h2", "text": "Broken"}  # no score

        repaired = reconciler.repair(document)

        assert repaired.known_term.id == "k2"
        assert repaired.hidden_term.placeholder is True
        assert repaired.repaired is True

    def test_missing_collections_start_empty(self, reconciler):
        document = _state(2).to_document()
        del document["pending_terms"]
        del document["used_term_ids"]

        repaired = reconciler.repair(document)

        assert repaired.pending_terms == ()
        assert repaired.used_term_ids == ("k2", "h2")
        assert repaired.repaired is True

    def test_used_ids_are_deduplicated(self, reconciler):
        document = _state(2).to_document()
        document["used_term_ids"] = ["x", "k2", "x", "h2"]

        repaired = reconciler.repair(document)

        assert repaired.used_term_ids == ("x", "k2", "h2")

    def test_invalid_round_is_clamped(self, reconciler):
        document = _state(2).to_document()
        document["round"] = -4

        repaired = reconciler.repair(document)

        assert repaired.round == 1
        assert repaired.repaired is True

    def test_invalid_pending_entries_are_dropped(self, reconciler):
        document = _state(2).to_document()
        document["pending_terms"] = [{"id": "ok", "text": "Ok", "category": "technology", "score": 1}, "junk"]

        repaired = reconciler.repair(document)

        assert [t.id for t in repaired.pending_terms] == ["ok"]

    def test_duplicate_term_ids_are_separated(self, reconciler):
        document = _state(2).to_document()
        document["hidden_term"] = document["known_term"]

        repaired = reconciler.repair(document)

        assert repaired.hidden_term.placeholder is True
        assert repaired.known_term.id != repaired.hidden_term.id

    def test_bare_document_from_store(self, reconciler):
        repaired = reconciler.repair({"game_id": "BAD234"})

        assert repaired.game_id == "BAD234"
        assert repaired.category == "general"
        assert repaired.repaired is True

    @pytest.mark.parametrize("document", [{}, {"game_id": ""}, {"game_id": 42}])
    def test_missing_game_id_raises(self, reconciler, document):
        with pytest.raises(CorruptStateError):
            reconciler.repair(document)
