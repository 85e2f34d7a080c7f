"""Name suggestions from the NLM Clinical Tables RxTerms API.

Search-as-you-type only: results populate the candidate input box and
never feed the analysis directly, so failures degrade to "no
suggestions" instead of raising.

API endpoint used:
- GET {base}/search?terms=<prefix>&maxList=<limit>

The response is a JSON array: [total, [names], extra, [[display, ...], ...]].
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from medcheck.config import HTTP_TIMEOUT_SECONDS, RXTERMS_BASE_URL

logger = logging.getLogger(__name__)


def parse_search_response(payload: Any) -> list[str]:
    """Pull display strings out of an RxTerms search response."""
    if not isinstance(payload, list) or len(payload) < 2:
        return []
    names = payload[1] or []
    displays = payload[3] if len(payload) > 3 and payload[3] else []
    results: list[str] = []
    for idx, name in enumerate(names):
        display = displays[idx] if idx < len(displays) else None
        if isinstance(display, list) and display:
            results.append(str(display[0]))
        else:
            results.append(str(name))
    return results


class RxTermsClient:
    """Async client for RxTerms drug-name search."""

    def __init__(
        self,
        base_url: str = RXTERMS_BASE_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._http.aclose()

    async def suggest(self, prefix: str, limit: int = 10) -> list[str]:
        """Suggest drug names for a partially typed prefix.

        Args:
            prefix: What the user has typed so far (at least two characters).
            limit: Maximum number of suggestions.

        Returns:
            Up to ``limit`` display names; empty on any failure.
        """
        term = prefix.strip()
        if len(term) < 2 or limit <= 0:
            return []

        url = f"{self.base_url}/search"
        try:
            params = {"terms": term, "maxList": limit}
            response = await self._http.get(url, params=params)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("RxTerms search for %r failed: %s", term, exc)
            return []

        return parse_search_response(payload)[:limit]
