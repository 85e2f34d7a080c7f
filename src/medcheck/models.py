"""Data model shared by every stage of the analysis pipeline.

These are Pydantic models so the same objects flow unchanged from the
collaborators, through the engine, and out of the FastAPI endpoints.
Records that must not change once produced (drug details, findings,
promoted medications) are frozen.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from medcheck.normalizer import normalize


class Provenance(str, Enum):
    """Where a candidate drug name came from."""

    MANUAL = "Manual"
    AI_SUGGESTED = "AISuggested"
    LOGIC_SUGGESTED = "LogicSuggested"
    AD_HOC = "AdHoc"


class Severity(str, Enum):
    """Severity tier of an interaction finding."""

    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"


class AnalysisStatus(str, Enum):
    """Outcome of the most recent analysis run.

    idle -> loading -> (success | no_interactions | error). Every triggered
    run resets the status to loading.
    """

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    NO_INTERACTIONS = "no_interactions"
    ERROR = "error"


SEVERITY_MARKERS: dict[Severity, str] = {
    Severity.MAJOR: "\U0001f534",
    Severity.MODERATE: "\U0001f7e1",
    Severity.MINOR: "\U0001f7e2",
}


class DrugDetail(BaseModel):
    """Structured reference information for one drug.

    A fallback record (informational fields set to "Information
    unavailable") is a normal value, not an error.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    generic_name: str | None = None
    category: str
    indication: str
    mechanism: str
    dosing: str
    monitoring: str
    side_effects: tuple[str, ...] = ()
    contraindications: tuple[str, ...] = ()

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_distinct_generic(self) -> bool:
        """True when the generic name is worth showing next to the name."""
        return bool(self.generic_name) and normalize(self.generic_name) != normalize(
            self.name
        )


class InteractionFinding(BaseModel):
    """One interaction between an unordered pair of drugs."""

    model_config = ConfigDict(frozen=True)

    drug_a: str
    drug_b: str
    severity: Severity
    description: str
    mechanism: str | None = None
    recommendation: str | None = None
    source: str = "database"
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)

    @field_validator("drug_a", "drug_b")
    @classmethod
    def _canonical_name(cls, value: str) -> str:
        return normalize(value)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def marker(self) -> str:
        """Coloured dot shown next to the severity label."""
        return SEVERITY_MARKERS[self.severity]


class SuggestedMedication(BaseModel):
    """A surfaced drug the clinician confirmed with dose, frequency, and route."""

    model_config = ConfigDict(frozen=True)

    name: str
    source: str  # Badge label of the primary provenance: "AI", "Logic" or "Manual"
    dose: str
    frequency: str
    route: str
    is_complete: bool = True


class SeverityTally(BaseModel):
    """Count of findings per severity tier."""

    model_config = ConfigDict(frozen=True)

    major: int = 0
    moderate: int = 0
    minor: int = 0

    @property
    def total(self) -> int:
        return self.major + self.moderate + self.minor

    @classmethod
    def from_findings(cls, findings: Iterable[InteractionFinding]) -> SeverityTally:
        counts = {severity: 0 for severity in Severity}
        for finding in findings:
            counts[finding.severity] += 1
        return cls(
            major=counts[Severity.MAJOR],
            moderate=counts[Severity.MODERATE],
            minor=counts[Severity.MINOR],
        )


# ---------------------------------------------------------------------------
# Read-only views returned by every session mutator
# ---------------------------------------------------------------------------


class DrugView(BaseModel):
    """One active drug as the form layer sees it."""

    key: str
    name: str
    badges: list[str]
    primary_source: str | None
    selected: bool
    eligible_for_suggestion: bool
    detail: DrugDetail | None = None


class SessionSnapshot(BaseModel):
    """Complete derived state of an analysis session after a mutation."""

    session_id: str
    sequence: int
    status: AnalysisStatus
    drugs: list[DrugView]
    removed: list[str]
    selection: list[str]
    findings: list[InteractionFinding]
    tally: SeverityTally
    suggested: list[SuggestedMedication]
    error: str | None = None
