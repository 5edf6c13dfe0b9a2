"""Built-in sample term pool used when the term source cannot supply terms."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import yaml

from shared.dal.models import ALL_TERMS_CATEGORIES, Term

if TYPE_CHECKING:
    from collections.abc import Sequence


def _get_default_path() -> Path:
    return Path(__file__).resolve().parent.parent / "data" / "sample_terms.yaml"


def load_sample_terms(path: Path | None = None) -> tuple[Term, ...]:
    """Load the sample pool from YAML (``terms: [{id, text, category, score}, ...]``)."""
    source = path or _get_default_path()
    with source.open(encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}
    return tuple(Term.model_validate(item) for item in config.get("terms", []))


def sample_terms_for(terms: Sequence[Term], category: str) -> list[Term]:
    """Filter the pool for a category.

    The everything/general pseudo-categories get the whole pool, as does a
    category with no sample terms of its own.
    """
    category = category.lower()
    if category in ALL_TERMS_CATEGORIES:
        return list(terms)
    matching = [t for t in terms if t.category == category]
    return matching or list(terms)
