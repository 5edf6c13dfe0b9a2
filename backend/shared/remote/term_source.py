"""HTTP client for a remote term service."""

from __future__ import annotations

from http import HTTPStatus

import httpx
import structlog

from shared.dal.models import TermPage
from shared.dal.term_source import TermSource

logger = structlog.get_logger()


class TermSourceError(Exception):
    """The remote term service answered with an unusable response."""


class HttpTermSource(TermSource):
    """Fetch term pages from ``GET {base_url}/terms``.

    Query parameters: ``category``, ``limit`` and, after the first page,
    ``cursor``. The response body is a JSON object matching TermPage.
    Transport errors propagate as httpx exceptions; bad responses raise
    TermSourceError.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch_terms(self, category: str, cursor: str | None, limit: int) -> TermPage:
        params: dict[str, str | int] = {"category": category, "limit": limit}
        if cursor:
            params["cursor"] = cursor

        response = await self._client.get(f"{self._base_url}/terms", params=params)
        if response.status_code != HTTPStatus.OK:
            raise TermSourceError(f"term service returned {response.status_code}")

        try:
            return TermPage.model_validate(response.json())
        except ValueError as e:
            raise TermSourceError(f"malformed term page: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
