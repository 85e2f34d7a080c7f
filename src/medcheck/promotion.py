"""Suggestion promotion — turn a surfaced drug into a confirmed medication.

Drugs that reached the active set through the Manual, AI or Logic sources
get a suggestion card. The clinician fills in dose, frequency, and route
(a draft) and then promotes the card. Promotion is all-or-nothing: any
of the three fields left blank rejects the whole request.

Once promoted, the fields are locked. remove() discards the promoted
medication together with its draft, which unlocks the card again.
Drugs that only came from ad-hoc additions are still checked for
interactions but never get a card.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace

from medcheck.attribution import BADGE_LABELS, primary_source
from medcheck.models import DrugDetail, Provenance, SuggestedMedication
from medcheck.normalizer import normalize

logger = logging.getLogger(__name__)

ELIGIBLE_SOURCES: frozenset[Provenance] = frozenset(
    {Provenance.MANUAL, Provenance.AI_SUGGESTED, Provenance.LOGIC_SUGGESTED}
)

REQUIRED_FIELDS: tuple[str, ...] = ("dose", "frequency", "route")


class PromotionError(Exception):
    """Raised when a promotion is missing one or more mandatory fields."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"missing: {', '.join(missing)}")


class PromotionLockedError(Exception):
    """Raised when editing the fields of an already promoted medication."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"{name!r} is already promoted; remove it before editing")


class IneligibleDrugError(Exception):
    """Raised when promoting or drafting a drug with no Manual, AI or Logic source."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"{name!r} was not suggested by a Manual, AI or Logic source")


def evaluate(detail: DrugDetail | None, sources: Iterable[Provenance]) -> bool:
    """Whether a drug belongs in the suggestion workflow.

    The detail record is accepted so callers can pass the pipeline output
    unchanged; eligibility depends on the sources alone.
    """
    return not ELIGIBLE_SOURCES.isdisjoint(sources)


@dataclass(frozen=True)
class Draft:
    """Unsaved dose/frequency/route for one suggestion card."""

    dose: str = ""
    frequency: str = ""
    route: str = ""

    def missing(self) -> list[str]:
        return [name for name in REQUIRED_FIELDS if not getattr(self, name).strip()]


class SuggestionWorkflow:
    """Drafts and promoted medications for one session, keyed by canonical name."""

    def __init__(self) -> None:
        self._drafts: dict[str, Draft] = {}
        self._promoted: dict[str, SuggestedMedication] = {}

    # --- Drafts ---

    def draft(self, name: str) -> Draft:
        key = normalize(name)
        promoted = self._promoted.get(key)
        if promoted is not None:
            return Draft(promoted.dose, promoted.frequency, promoted.route)
        return self._drafts.get(key, Draft())

    def edit(
        self,
        name: str,
        dose: str | None = None,
        frequency: str | None = None,
        route: str | None = None,
    ) -> Draft:
        """Update the draft fields that are given; the rest stay as they were.

        Raises:
            PromotionLockedError: If the medication is already promoted.
        """
        key = normalize(name)
        if key in self._promoted:
            raise PromotionLockedError(name)
        changes = {
            field: value
            for field, value in zip(REQUIRED_FIELDS, (dose, frequency, route))
            if value is not None
        }
        updated = replace(self._drafts.get(key, Draft()), **changes)
        self._drafts[key] = updated
        return updated

    def is_locked(self, name: str) -> bool:
        return normalize(name) in self._promoted

    # --- Promotion ---

    def promote(
        self,
        name: str,
        sources: Iterable[Provenance],
        dose: str | None = None,
        frequency: str | None = None,
        route: str | None = None,
    ) -> SuggestedMedication:
        """Confirm a suggested drug as a medication.

        Fields that are not given are taken from the draft. A previous
        promotion of the same drug is replaced.

        Args:
            name: Display name of the drug.
            sources: Provenances that surfaced the drug.
            dose: e.g. "5mg".
            frequency: e.g. "QD".
            route: e.g. "Oral".

        Returns:
            The promoted medication.

        Raises:
            IneligibleDrugError: If no source is Manual, AI or Logic.
            PromotionError: If dose, frequency or route is blank.
        """
        provenances = set(sources)
        if not evaluate(None, provenances):
            raise IneligibleDrugError(name)

        key = normalize(name)
        base = self._drafts.get(key, Draft())
        candidate = Draft(
            dose=base.dose if dose is None else dose,
            frequency=base.frequency if frequency is None else frequency,
            route=base.route if route is None else route,
        )
        missing = candidate.missing()
        if missing:
            raise PromotionError(missing)

        primary = primary_source(provenances, among=ELIGIBLE_SOURCES)
        medication = SuggestedMedication(
            name=name.strip(),
            source=BADGE_LABELS[primary],
            dose=candidate.dose.strip(),
            frequency=candidate.frequency.strip(),
            route=candidate.route.strip(),
            is_complete=True,
        )
        self._promoted[key] = medication
        self._drafts.pop(key, None)
        logger.info(
            "Promoted %r (%s): %s, %s, %s",
            key,
            medication.source,
            medication.dose,
            medication.frequency,
            medication.route,
        )
        return medication

    def remove(self, name: str) -> SuggestedMedication | None:
        """Discard the promoted medication and its draft fields."""
        key = normalize(name)
        self._drafts.pop(key, None)
        return self._promoted.pop(key, None)

    def get(self, name: str) -> SuggestedMedication | None:
        return self._promoted.get(normalize(name))

    def medications(self) -> list[SuggestedMedication]:
        return list(self._promoted.values())

    def clear(self) -> None:
        self._drafts.clear()
        self._promoted.clear()
