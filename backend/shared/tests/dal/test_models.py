"""Tests for DAL exchange models."""

import pytest
from pydantic import ValidationError

from shared.dal.models import LeaderboardEntry, Term, TermPage


class TestTerm:
    def test_defaults_to_real_term(self):
        term = Term(id="laptop", text="Laptop", category="technology", score=90)
        assert term.placeholder is False

    def test_rejects_negative_score(self):
        with pytest.raises(ValidationError):
            Term(id="laptop", text="Laptop", category="technology", score=-1)

    def test_rejects_empty_id(self):
        with pytest.raises(ValidationError):
            Term(id="", text="Laptop", category="technology", score=1)

    def test_is_immutable(self):
        term = Term(id="laptop", text="Laptop", category="technology", score=90)
        with pytest.raises(ValidationError):
            term.score = 5  # type: ignore[misc]


class TestTermPage:
    def test_empty_page_defaults(self):
        page = TermPage()
        assert page.terms == []
        assert page.next_cursor is None
        assert page.has_more is False

    def test_parses_from_json(self):
        page = TermPage.model_validate_json(
            '{"terms": [{"id": "a", "text": "A", "category": "x", "score": 3}], "next_cursor": "7", "has_more": true}',
        )
        assert page.terms[0].score == 3
        assert page.next_cursor == "7"


class TestLeaderboardEntry:
    def test_rejects_negative_score(self):
        with pytest.raises(ValidationError):
            LeaderboardEntry(player_id="alice", score=-3)
