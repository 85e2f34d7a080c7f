"""Bounded drug-detail resolution.

BoundedDetailResolver sits between the analysis session and a Detail
Provider. For each canonical key it:
1. Returns the cached record if there is one (no provider call)
2. Otherwise calls the provider with a deadline (1.5 s by default)
3. On timeout or provider failure, builds a fallback record instead
4. Caches whatever it ended up with, permanently

Resolution failures never reach the caller. The worst case for a drug is
a record that says "Information unavailable".
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from medcheck.cache import DetailCache, get_detail_cache
from medcheck.config import DETAIL_TIMEOUT_SECONDS
from medcheck.models import DrugDetail
from medcheck.providers import DetailProvider

logger = logging.getLogger(__name__)

UNAVAILABLE = "Information unavailable"


def fallback_detail(key: str) -> DrugDetail:
    """Build the stand-in record used when a lookup times out or fails."""
    return DrugDetail(
        name=key,
        category="Unknown",
        indication=UNAVAILABLE,
        mechanism=UNAVAILABLE,
        dosing=UNAVAILABLE,
        monitoring=UNAVAILABLE,
        side_effects=(UNAVAILABLE,),
        contraindications=(UNAVAILABLE,),
    )


class BoundedDetailResolver:
    """Resolve canonical keys to DrugDetail records through a shared cache.

    Attributes:
        provider: The Detail Provider consulted on a cache miss.
        cache: Where resolved and fallback records are kept.
        timeout: Deadline in seconds for a single provider call.
    """

    def __init__(
        self,
        provider: DetailProvider,
        cache: DetailCache | None = None,
        timeout: float = DETAIL_TIMEOUT_SECONDS,
    ) -> None:
        self.provider = provider
        self.cache = cache if cache is not None else get_detail_cache()
        self.timeout = timeout

    async def resolve(self, key: str) -> DrugDetail:
        """Resolve one canonical key.

        Args:
            key: A normalized drug name.

        Returns:
            The provider's record, or a fallback record if the provider
            was too slow or failed.
        """
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Detail cache hit for %r", key)
            return cached

        logger.debug("Detail cache miss for %r — querying provider", key)
        detail = await self._lookup(key)
        return self.cache.put_if_absent(key, detail)

    async def resolve_many(self, keys: Iterable[str]) -> dict[str, DrugDetail]:
        """Resolve several keys concurrently.

        Returns only once every key has settled (real record or fallback),
        so callers never see a partial batch.

        Returns:
            Mapping of key -> DrugDetail, in the order the keys were given.
        """
        unique = list(dict.fromkeys(keys))
        details = await asyncio.gather(*(self.resolve(key) for key in unique))
        return dict(zip(unique, details))

    async def _lookup(self, key: str) -> DrugDetail:
        """Call the provider under the deadline; fall back on any failure.

        wait_for cancels the provider call when the deadline passes, so a
        slow lookup does not keep running in the background.
        """
        try:
            return await asyncio.wait_for(
                self.provider.get_drug_details(key), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Detail lookup for %r timed out after %.2fs — using fallback",
                key,
                self.timeout,
            )
        except Exception as exc:
            logger.warning(
                "Detail lookup for %r failed (%s) — using fallback", key, exc
            )
        return fallback_detail(key)
