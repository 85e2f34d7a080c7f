"""Candidate aggregation — merge the four candidate sources into one active set.

Candidates arrive from four places:
- Manual:         medications the clinician entered on the form
- AISuggested:    drugs proposed by the AI analysis
- LogicSuggested: drugs proposed by the rule engine
- AdHoc:          drugs added by hand from the search box

aggregate() normalizes every name, drops empties, unions the sources,
subtracts the removed set, and records which sources produced each key.
Provenance is always recomputed from the inputs of the current call.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from medcheck.models import Provenance
from medcheck.normalizer import normalize


@dataclass(frozen=True)
class Aggregation:
    """Result of one aggregate() call.

    Attributes:
        active: Canonical keys in first-seen order (manual, AI, logic, ad-hoc),
            without duplicates and without removed keys.
        sources: For each active key, every provenance that listed it.
    """

    active: tuple[str, ...] = ()
    sources: dict[str, frozenset[Provenance]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.active

    def __contains__(self, key: object) -> bool:
        return key in self.sources


def aggregate(
    manual: Iterable[str] = (),
    ai_suggested: Iterable[str] = (),
    logic_suggested: Iterable[str] = (),
    ad_hoc: Iterable[str] = (),
    removed: Iterable[str] = (),
) -> Aggregation:
    """Merge candidate lists into a deduplicated, removal-aware active set.

    Args:
        manual: Names entered on the medication form.
        ai_suggested: Names proposed by the AI analysis.
        logic_suggested: Names proposed by the rule engine.
        ad_hoc: Names added from the search box.
        removed: Names the clinician excluded. Normalized here too, so
            callers may pass display names.

    Returns:
        The active keys and their source attribution.
    """
    excluded = {normalize(name) for name in removed}
    order: list[str] = []
    sources: dict[str, set[Provenance]] = {}

    for provenance, names in (
        (Provenance.MANUAL, manual),
        (Provenance.AI_SUGGESTED, ai_suggested),
        (Provenance.LOGIC_SUGGESTED, logic_suggested),
        (Provenance.AD_HOC, ad_hoc),
    ):
        for name in names:
            key = normalize(name)
            if not key or key in excluded:
                continue
            if key not in sources:
                sources[key] = set()
                order.append(key)
            sources[key].add(provenance)

    return Aggregation(
        active=tuple(order),
        sources={key: frozenset(provs) for key, provs in sources.items()},
    )
