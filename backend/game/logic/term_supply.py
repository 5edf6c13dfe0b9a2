"""
Per-category term cache with paginated fetching and sample-pool fallback.

One TermSupply instance is shared by every game served by a process. It keeps,
per category, the terms fetched so far, the source's pagination cursor, and a
"more available" flag that stops repeated fruitless fetches once the source
has run dry. Source errors and timeouts never propagate: the built-in sample
pool is served instead so a game can always start.
"""

from __future__ import annotations

import asyncio
import random
import statistics
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

from game.logic.exceptions import InvalidCustomTermError
from game.logic.sample_terms import load_sample_terms, sample_terms_for
from shared.dal.models import Term

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from shared.dal.models import TermPage
    from shared.dal.term_source import TermSource

logger = structlog.get_logger()

CUSTOM_CATEGORY = "custom"
CUSTOM_POOL_CATEGORY = "general"
MAX_CUSTOM_TERM_LENGTH = 100

# Used when no reference scores exist to estimate a custom term from.
_CUSTOM_SCORE_RANGE = (1, 1_000_000)


@dataclass
class _CategoryCache:
    terms: list[Term] = field(default_factory=list)
    ids: set[str] = field(default_factory=set)
    cursor: str | None = None
    has_more: bool = True
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class TermSupply:
    def __init__(
        self,
        source: TermSource | None = None,
        *,
        sample_terms: Sequence[Term] | None = None,
        batch_size: int = 100,
        fetch_timeout: float = 5.0,
        custom_depth: int = 50,
        rng: random.Random | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._source = source
        self._sample_terms = tuple(sample_terms) if sample_terms is not None else load_sample_terms()
        self._batch_size = batch_size
        self._fetch_timeout = fetch_timeout
        self._custom_depth = custom_depth
        self._rng = rng or random.Random()  # noqa: S311
        self._caches: dict[str, _CategoryCache] = {}

    def has_more(self, category: str) -> bool:
        return self._cache_for(category).has_more

    def cached_terms(self, category: str) -> list[Term]:
        return list(self._cache_for(category).terms)

    async def ensure_available(self, category: str, min_count: int) -> list[Term]:
        """Return at least min_count terms for the category when the source can supply them.

        Fetches pages while the cache is short and the source has more.
        An exhausted source is not an error: whatever is cached is returned.
        If the source failed, or produced nothing at all, the sample pool tops
        the result up.
        """
        category = category.lower()
        cache = self._cache_for(category)
        failed = False
        async with cache.lock:
            while len(cache.terms) < min_count and cache.has_more:
                limit = max(self._batch_size, min_count - len(cache.terms))
                page = await self._fetch_page(category, cache.cursor, limit)
                if page is None:
                    failed = True
                    break
                self._absorb(category, cache, page, limit)
            terms = list(cache.terms)

        if terms and not (failed and len(terms) < min_count):
            return terms

        seen = {t.id for t in terms}
        fallback = [t for t in sample_terms_for(self._sample_terms, category) if t.id not in seen]
        logger.info("serving sample terms", category=category, cached=len(terms), fallback=len(fallback))
        return terms + fallback

    async def fetch_more(self, category: str, exclude_ids: Collection[str] = ()) -> list[Term]:
        """Return terms not in exclude_ids, pulling the next page first if the source has more.

        Terms already cached for the category (fetched on behalf of other
        games) follow the fresh page. Falls back to the sample pool when the
        source fails. Returns an empty list once everything is exhausted.
        """
        category = category.lower()
        cache = self._cache_for(category)
        failed = False
        async with cache.lock:
            if cache.has_more:
                page = await self._fetch_page(category, cache.cursor, self._batch_size)
                if page is None:
                    failed = True
                else:
                    fresh = self._absorb(category, cache, page, self._batch_size)
                    logger.debug("fetched more terms", category=category, fresh=len(fresh))
            candidates = list(cache.terms)

        if failed:
            candidates += sample_terms_for(self._sample_terms, category)
        return _unique_excluding(candidates, exclude_ids)

    async def draw_custom(self, seed_text: str) -> list[Term]:
        """Build a custom game's term sequence: the seed term first, then unrelated general terms.

        The seed term's score is unknown, so it is estimated from the general
        pool's median score with some random spread.
        """
        text = seed_text.strip()
        if not text:
            raise InvalidCustomTermError("custom term must not be empty")
        if len(text) > MAX_CUSTOM_TERM_LENGTH:
            raise InvalidCustomTermError(f"custom term must be at most {MAX_CUSTOM_TERM_LENGTH} characters")

        pool = await self.ensure_available(CUSTOM_POOL_CATEGORY, self._custom_depth)
        related = [t for t in pool if t.text.casefold() != text.casefold()]
        self._rng.shuffle(related)
        related = related[: self._custom_depth]

        seed = Term(
            id=f"custom-{uuid4().hex[:12]}",
            text=text,
            category=CUSTOM_CATEGORY,
            score=self._estimate_score(related),
        )
        logger.info("drew custom terms", seed_score=seed.score, related=len(related))
        return [seed, *related]

    def _estimate_score(self, reference: Sequence[Term]) -> int:
        if not reference:
            return self._rng.randint(*_CUSTOM_SCORE_RANGE)
        median = statistics.median(t.score for t in reference)
        return max(0, int(median * self._rng.uniform(0.5, 1.5)))

    def _cache_for(self, category: str) -> _CategoryCache:
        category = category.lower()
        cache = self._caches.get(category)
        if cache is None:
            cache = _CategoryCache(has_more=self._source is not None)
            self._caches[category] = cache
        return cache

    async def _fetch_page(self, category: str, cursor: str | None, limit: int) -> TermPage | None:
        """Fetch one page, or None if the source is missing, failed, or timed out."""
        if self._source is None:
            return None
        try:
            async with asyncio.timeout(self._fetch_timeout):
                return await self._source.fetch_terms(category, cursor, limit)
        except TimeoutError:
            logger.warning("term source timed out", category=category, timeout=self._fetch_timeout)
        except Exception:
            logger.exception("term source failed", category=category)
        return None

    @staticmethod
    def _absorb(category: str, cache: _CategoryCache, page: TermPage, limit: int) -> list[Term]:
        """Append a page's new terms to the cache and advance the cursor. Returns the new terms."""
        fresh = [t for t in page.terms if t.id not in cache.ids]
        cache.terms.extend(fresh)
        cache.ids.update(t.id for t in fresh)
        if page.next_cursor is not None:
            cache.cursor = page.next_cursor
        # a short page means the source has nothing further for this category
        cache.has_more = page.has_more and len(page.terms) >= limit
        if not cache.has_more:
            logger.info("term source exhausted", category=category, cached=len(cache.terms))
        return fresh


def _unique_excluding(terms: Sequence[Term], exclude_ids: Collection[str]) -> list[Term]:
    seen = set(exclude_ids)
    result = []
    for term in terms:
        if term.id not in seen:
            seen.add(term.id)
            result.append(term)
    return result
