"""Drug-name normalization.

Every free-text drug name entering the engine passes through normalize()
before it is compared, cached, or used as a matrix index. Two names with
the same normalized key are the same drug everywhere in this package.
"""

from __future__ import annotations


def normalize(raw: str | None) -> str:
    """Turn a free-text drug name into its canonical comparison key.

    Trims surrounding whitespace and lower-cases. Never raises; ``None``
    and whitespace-only input both give the empty key, which callers
    must discard.

    Args:
        raw: The drug name as typed or suggested (e.g., "  Warfarin ").

    Returns:
        The canonical key (e.g., "warfarin").
    """
    if not raw:
        return ""
    return raw.strip().lower()


def normalize_all(names: list[str] | tuple[str, ...]) -> list[str]:
    """Normalize a list of names, dropping empties but keeping order and repeats."""
    keys = []
    for name in names:
        key = normalize(name)
        if key:
            keys.append(key)
    return keys
