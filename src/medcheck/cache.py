"""Process-wide cache of resolved drug details.

The cache is append-only per key: the first record stored for a key
(real or fallback) is the one every later lookup sees. There is no
expiry and no eviction; clear() exists for tests and for an explicit
operator reset.

Usage:
    cache = get_detail_cache()
    detail = cache.get("warfarin")
    if detail is None:
        detail = cache.put_if_absent("warfarin", fetched)
"""

from __future__ import annotations

import logging

from medcheck.models import DrugDetail

logger = logging.getLogger(__name__)


class DetailCache:
    """Map of canonical key -> DrugDetail with insert-if-absent writes."""

    def __init__(self) -> None:
        self._entries: dict[str, DrugDetail] = {}

    def get(self, key: str) -> DrugDetail | None:
        return self._entries.get(key)

    def put_if_absent(self, key: str, detail: DrugDetail) -> DrugDetail:
        """Store ``detail`` unless the key already has a record.

        Lookups racing for the same key leave exactly one entry.

        Returns:
            The record now stored for the key (which may be the earlier one).
        """
        stored = self._entries.setdefault(key, detail)
        if stored is not detail:
            logger.debug("Detail for %r already cached — keeping first record", key)
        return stored

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


# --- Module-level singleton ---
# One cache shared by every session in the process.

_cache: DetailCache | None = None


def get_detail_cache() -> DetailCache:
    """Get or create the shared DetailCache."""
    global _cache  # noqa: PLW0603
    if _cache is None:
        _cache = DetailCache()
    return _cache
