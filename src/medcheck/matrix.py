"""Interaction matrix — batch interaction checks with severity classification.

The builder hands the selected drugs to the Interaction Checker in a
single call (pairwise enumeration is the checker's job), then tallies the
findings per severity tier and derives the analysis status:

- at least one finding -> success
- no findings          -> no_interactions
- checker raised       -> error, with no findings kept

Findings are replaced wholesale on every run. Nothing is merged with an
earlier run.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from medcheck.config import MIN_SELECTION
from medcheck.models import AnalysisStatus, InteractionFinding, Severity, SeverityTally
from medcheck.providers import InteractionChecker

logger = logging.getLogger(__name__)

SEVERITY_ORDER: dict[Severity, int] = {
    Severity.MAJOR: 0,
    Severity.MODERATE: 1,
    Severity.MINOR: 2,
}


class SelectionError(Exception):
    """Raised when a user-triggered check has too few drugs selected."""

    def __init__(self, selected: int, minimum: int = MIN_SELECTION) -> None:
        self.selected = selected
        self.minimum = minimum
        super().__init__(
            f"Select at least {minimum} drugs to check interactions "
            f"({selected} selected)"
        )


@dataclass(frozen=True)
class MatrixResult:
    """Outcome of one interaction check."""

    status: AnalysisStatus
    findings: tuple[InteractionFinding, ...] = ()
    tally: SeverityTally = field(default_factory=SeverityTally)
    error: str | None = None


def sort_findings(findings: Iterable[InteractionFinding]) -> list[InteractionFinding]:
    """Most severe first; the checker's order is kept within a tier."""
    return sorted(findings, key=lambda f: SEVERITY_ORDER[f.severity])


def default_selection(
    active: Sequence[str],
    previous: Iterable[str],
    explicit: bool,
) -> tuple[list[str], bool]:
    """Pick the selection for an automatic re-analysis.

    An explicit selection survives only while every key in it is still
    active and it still holds at least MIN_SELECTION drugs. Otherwise
    everything active is selected again.

    Args:
        active: The new active keys, in display order.
        previous: The selection before the active set changed.
        explicit: Whether the previous selection was chosen by the user.

    Returns:
        (selection, explicit) — the new selection and whether it is still
        the user's own choice.
    """
    kept = list(previous)
    if explicit and len(kept) >= MIN_SELECTION and set(kept) <= set(active):
        return [key for key in active if key in set(kept)], True
    return list(active), False


class InteractionMatrixBuilder:
    """Run batch interaction checks against an Interaction Checker."""

    def __init__(
        self, checker: InteractionChecker, min_selection: int = MIN_SELECTION
    ) -> None:
        self.checker = checker
        self.min_selection = min_selection

    def validate(self, selected: Sequence[str]) -> None:
        """Raise SelectionError if a user-triggered check is not allowed."""
        if len(selected) < self.min_selection:
            raise SelectionError(len(selected), self.min_selection)

    async def build_matrix(
        self,
        selected: Sequence[str],
        *,
        user_triggered: bool = True,
    ) -> MatrixResult:
        """Check the selected drugs for interactions.

        Args:
            selected: Canonical keys to check together.
            user_triggered: True for an explicit re-check. Such a check is
                rejected with SelectionError when too few drugs are
                selected. Automatic runs with fewer than two drugs just
                report no interactions without calling the checker.

        Returns:
            The findings (most severe first), their tally, and the status.

        Raises:
            SelectionError: On a user-triggered check with too few drugs.
        """
        keys = list(dict.fromkeys(selected))
        if user_triggered:
            self.validate(keys)
        elif len(keys) < self.min_selection:
            return MatrixResult(status=AnalysisStatus.NO_INTERACTIONS)

        try:
            findings = await self.checker.check_all_interactions(keys)
        except Exception as exc:
            logger.warning("Interaction check failed for %d drugs: %s", len(keys), exc)
            return MatrixResult(
                status=AnalysisStatus.ERROR, error=str(exc) or type(exc).__name__
            )

        ordered = tuple(sort_findings(findings))
        tally = SeverityTally.from_findings(ordered)
        status = AnalysisStatus.SUCCESS if ordered else AnalysisStatus.NO_INTERACTIONS
        logger.info(
            "Interaction check over %d drugs: %d finding(s) "
            "(major=%d, moderate=%d, minor=%d)",
            len(keys),
            tally.total,
            tally.major,
            tally.moderate,
            tally.minor,
        )
        return MatrixResult(status=status, findings=ordered, tally=tally)
