"""Source attribution — render a drug's provenances as ordered badges."""

from __future__ import annotations

from collections.abc import Iterable

from medcheck.models import Provenance

# Highest priority first. Decides the badge order and the "primary source"
# stamped on a promoted medication.
SOURCE_PRIORITY: tuple[Provenance, ...] = (
    Provenance.AI_SUGGESTED,
    Provenance.LOGIC_SUGGESTED,
    Provenance.MANUAL,
    Provenance.AD_HOC,
)

BADGE_LABELS: dict[Provenance, str] = {
    Provenance.AI_SUGGESTED: "AI",
    Provenance.LOGIC_SUGGESTED: "Logic",
    Provenance.MANUAL: "Manual",
    Provenance.AD_HOC: "AdHoc",
}


def ordered_sources(provenances: Iterable[Provenance]) -> list[Provenance]:
    present = set(provenances)
    return [p for p in SOURCE_PRIORITY if p in present]


def badges(provenances: Iterable[Provenance]) -> list[str]:
    """Badge labels for a drug, e.g. ["AI", "Manual"]."""
    return [BADGE_LABELS[p] for p in ordered_sources(provenances)]


def primary_source(
    provenances: Iterable[Provenance],
    among: Iterable[Provenance] = SOURCE_PRIORITY,
) -> Provenance | None:
    """Return the highest-priority provenance, optionally restricted to ``among``.

    Returns None when no provenance qualifies.
    """
    allowed = set(among)
    for provenance in ordered_sources(provenances):
        if provenance in allowed:
            return provenance
    return None
