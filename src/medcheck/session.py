"""Analysis session — the engine behind the medication form.

An AnalysisSession owns everything one clinician is working on: the four
candidate lists, the removed set, the interaction selection, the latest
findings, and the suggestion cards. Every mutator recomputes what it
affects and returns a SessionSnapshot, so callers never need to observe
state indirectly.

The analysis pipeline for one trigger:
1. Aggregate the candidate lists (minus removed drugs) into the active set
2. Resolve a DrugDetail for every active drug (bounded, cached, concurrent)
3. Pick the selection (keep the user's choice if still valid, else all)
4. Run one batch interaction check on the selection

Concept — run sequence numbers:
    Triggers can overlap (the candidates change again while a slow run is
    still resolving details). Each run takes the next sequence number when
    it starts; when it finishes, it applies its results only if no newer
    run has started since. An older run can therefore never overwrite a
    newer one, whichever finishes first.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Sequence

from medcheck.aggregator import Aggregation, aggregate
from medcheck.attribution import BADGE_LABELS, badges, primary_source
from medcheck.cache import get_detail_cache
from medcheck.config import DETAIL_PROVIDER, SUGGESTION_SOURCE
from medcheck.matrix import InteractionMatrixBuilder, MatrixResult, default_selection
from medcheck.models import (
    AnalysisStatus,
    DrugDetail,
    DrugView,
    InteractionFinding,
    Provenance,
    SessionSnapshot,
    SeverityTally,
    SuggestedMedication,
)
from medcheck.normalizer import normalize, normalize_all
from medcheck.promotion import IneligibleDrugError, SuggestionWorkflow, evaluate
from medcheck.providers import (
    DetailProvider,
    DetailProviderError,
    InteractionChecker,
    NameSuggestionSource,
)
from medcheck.resolver import BoundedDetailResolver

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 10


async def merge_suggestions(
    prefix: str,
    source: NameSuggestionSource | None,
    catalog_names: Iterable[str] = (),
    limit: int = MAX_SUGGESTIONS,
) -> list[str]:
    """Merge a suggestion source with catalog names that contain the prefix.

    Source results come first. Every name is capitalized and duplicates are
    dropped case-insensitively. Prefixes shorter than two characters match
    nothing.
    """
    term = normalize(prefix)
    if len(term) < 2:
        return []

    primary: list[str] = []
    if source is not None:
        primary = await source.suggest(prefix, limit)
    catalog = [name for name in catalog_names if term in normalize(name)]

    merged: dict[str, str] = {}
    for name in [*primary, *catalog]:
        merged.setdefault(normalize(name), name[:1].upper() + name[1:])
    return list(merged.values())[:limit]


class UnknownDrugError(LookupError):
    """Raised when an operation names a drug that is not in the active set."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"{name!r} is not an active drug in this session")


class AnalysisSession:
    """Candidate aggregation, detail resolution, and interaction analysis.

    Attributes:
        session_id: Identifier used by the HTTP layer.
        resolver: Resolves drug details through the shared cache.
        matrix: Runs interaction checks.
        suggestion_source: Optional search-as-you-type source.
        catalog_names: Extra names (e.g., the knowledge base) offered as
            suggestions next to the suggestion source's.
    """

    def __init__(
        self,
        resolver: BoundedDetailResolver,
        matrix: InteractionMatrixBuilder,
        suggestion_source: NameSuggestionSource | None = None,
        catalog_names: Iterable[str] = (),
        session_id: str | None = None,
    ) -> None:
        self.session_id = session_id or uuid.uuid4().hex
        self.resolver = resolver
        self.matrix = matrix
        self.suggestion_source = suggestion_source
        self.catalog_names = list(catalog_names)

        # Inputs
        self._manual: list[str] = []
        self._ai_suggested: list[str] = []
        self._logic_suggested: list[str] = []
        self._ad_hoc: list[str] = []
        self._removed: set[str] = set()

        # Derived state
        self._aggregation = Aggregation()
        self._details: dict[str, DrugDetail] = {}
        self._selection: list[str] = []
        self._explicit_selection = False
        self._findings: tuple[InteractionFinding, ...] = ()
        self._tally = SeverityTally()
        self._status = AnalysisStatus.IDLE
        self._error: str | None = None

        self._workflow = SuggestionWorkflow()

        # Sequence of the most recently *started* run
        self._sequence = 0

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def status(self) -> AnalysisStatus:
        return self._status

    @property
    def active(self) -> tuple[str, ...]:
        return self._aggregation.active

    @property
    def removed(self) -> frozenset[str]:
        return frozenset(self._removed)

    @property
    def selection(self) -> list[str]:
        return list(self._selection)

    @property
    def findings(self) -> tuple[InteractionFinding, ...]:
        return self._findings

    @property
    def tally(self) -> SeverityTally:
        return self._tally

    @property
    def sequence(self) -> int:
        return self._sequence

    @property
    def workflow(self) -> SuggestionWorkflow:
        return self._workflow

    def sources(self, name: str) -> frozenset[Provenance]:
        return self._aggregation.sources.get(normalize(name), frozenset())

    def detail(self, name: str) -> DrugDetail | None:
        return self._details.get(normalize(name))

    def snapshot(self) -> SessionSnapshot:
        selected = set(self._selection)
        drugs = []
        for key in self._aggregation.active:
            provs = self._aggregation.sources[key]
            detail = self._details.get(key)
            primary = primary_source(provs)
            drugs.append(
                DrugView(
                    key=key,
                    name=detail.name if detail else key,
                    badges=badges(provs),
                    primary_source=BADGE_LABELS[primary] if primary else None,
                    selected=key in selected,
                    eligible_for_suggestion=evaluate(detail, provs),
                    detail=detail,
                )
            )
        return SessionSnapshot(
            session_id=self.session_id,
            sequence=self._sequence,
            status=self._status,
            drugs=drugs,
            removed=sorted(self._removed),
            selection=list(self._selection),
            findings=list(self._findings),
            tally=self._tally,
            suggested=self._workflow.medications(),
            error=self._error,
        )

    # ------------------------------------------------------------------
    # Candidate mutators (each one re-runs the analysis)
    # ------------------------------------------------------------------

    async def set_candidates(
        self,
        manual: Sequence[str] = (),
        ai_suggested: Sequence[str] = (),
        logic_suggested: Sequence[str] = (),
        ad_hoc: Sequence[str] | None = None,
    ) -> SessionSnapshot:
        """Replace the candidate lists and re-analyze.

        Args:
            manual: Medications from the form.
            ai_suggested: Drugs named by the AI analysis.
            logic_suggested: Drugs named by the rule engine.
            ad_hoc: Search-box additions. None keeps the current list.
        """
        self._manual = list(manual)
        self._ai_suggested = list(ai_suggested)
        self._logic_suggested = list(logic_suggested)
        if ad_hoc is not None:
            self._ad_hoc = normalize_all(list(ad_hoc))
        return await self.analyze()

    async def add_drug(self, name: str) -> SessionSnapshot:
        """Add a drug from the search box.

        A previously removed drug is restored instead of added twice.
        """
        key = normalize(name)
        if not key:
            return self.snapshot()
        if key in self._removed:
            self._removed.discard(key)
        if key not in self._ad_hoc:
            self._ad_hoc.append(key)
        return await self.analyze()

    async def remove(self, name: str) -> SessionSnapshot:
        """Exclude a drug from analysis, whatever its sources."""
        key = normalize(name)
        if not key or key in self._removed:
            return self.snapshot()
        self._removed.add(key)
        return await self.analyze()

    async def unremove(self, name: str) -> SessionSnapshot:
        """Bring a removed drug back; its sources come from the current inputs."""
        key = normalize(name)
        if key not in self._removed:
            return self.snapshot()
        self._removed.discard(key)
        return await self.analyze()

    async def clear(self) -> SessionSnapshot:
        """Drop ad-hoc additions, removals, and suggestion cards, then re-analyze.

        The shared detail cache is left alone.
        """
        self._ad_hoc = []
        self._removed.clear()
        self._workflow.clear()
        logger.info("Session %s cleared", self.session_id)
        return await self.analyze()

    # ------------------------------------------------------------------
    # Selection and explicit checks
    # ------------------------------------------------------------------

    def toggle_selection(self, name: str) -> SessionSnapshot:
        """Add a drug to, or take it out of, the interaction selection.

        Raises:
            UnknownDrugError: If the drug is not active.
        """
        key = normalize(name)
        if key not in self._aggregation:
            raise UnknownDrugError(name)
        if key in self._selection:
            self._selection.remove(key)
        else:
            self._selection.append(key)
            order = {k: i for i, k in enumerate(self._aggregation.active)}
            self._selection.sort(key=order.__getitem__)
        self._explicit_selection = True
        return self.snapshot()

    async def run_check(self) -> SessionSnapshot:
        """Re-check interactions for the current selection.

        Raises:
            SelectionError: With fewer than two drugs selected. Nothing
                changes and the checker is not called.
        """
        selection = list(self._selection)
        self.matrix.validate(selection)

        sequence = self._begin_run()
        details = await self.resolver.resolve_many(selection)
        result = await self.matrix.build_matrix(selection, user_triggered=True)
        if not self._is_latest(sequence):
            return self.snapshot()

        self._details.update(details)
        self._apply(result)
        return self.snapshot()

    # ------------------------------------------------------------------
    # Suggestion workflow
    # ------------------------------------------------------------------

    def edit_suggestion(
        self,
        name: str,
        dose: str | None = None,
        frequency: str | None = None,
        route: str | None = None,
    ) -> SessionSnapshot:
        """Update the draft fields of a suggestion card.

        Raises:
            UnknownDrugError: If the drug is not active.
            IneligibleDrugError: If it only came from ad-hoc additions.
            PromotionLockedError: If the drug is already promoted.
        """
        key = self._require_active(name)
        if not evaluate(None, self._aggregation.sources[key]):
            raise IneligibleDrugError(name)
        self._workflow.edit(name, dose=dose, frequency=frequency, route=route)
        return self.snapshot()

    def promote(
        self,
        name: str,
        dose: str | None = None,
        frequency: str | None = None,
        route: str | None = None,
    ) -> SuggestedMedication:
        """Confirm a surfaced drug as a medication.

        Raises:
            UnknownDrugError: If the drug is not active.
            IneligibleDrugError: If it only came from ad-hoc additions.
            PromotionError: If dose, frequency or route is blank.
        """
        key = self._require_active(name)
        detail = self._details.get(key)
        display = detail.name if detail and normalize(detail.name) == key else key
        return self._workflow.promote(
            display,
            self._aggregation.sources[key],
            dose=dose,
            frequency=frequency,
            route=route,
        )

    def unpromote(self, name: str) -> SessionSnapshot:
        """Remove a promoted medication and clear its fields."""
        self._workflow.remove(name)
        return self.snapshot()

    # ------------------------------------------------------------------
    # Search-as-you-type
    # ------------------------------------------------------------------

    async def suggest(self, prefix: str, limit: int = MAX_SUGGESTIONS) -> list[str]:
        """Suggest drug names for the search box.

        Merges the suggestion source with catalog names that contain the
        prefix, capitalized and de-duplicated case-insensitively.
        """
        return await merge_suggestions(
            prefix, self.suggestion_source, self.catalog_names, limit
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def analyze(self) -> SessionSnapshot:
        """Run the full pipeline for the current inputs.

        Returns:
            The snapshot after this run, or the current snapshot if a
            newer run started while this one was in flight.
        """
        sequence = self._begin_run()
        aggregation = aggregate(
            self._manual,
            self._ai_suggested,
            self._logic_suggested,
            self._ad_hoc,
            removed=self._removed,
        )
        self._aggregation = aggregation
        self._selection, self._explicit_selection = default_selection(
            aggregation.active, self._selection, self._explicit_selection
        )

        if aggregation.is_empty:
            self._details = {}
            self._findings = ()
            self._tally = SeverityTally()
            self._error = None
            self._status = AnalysisStatus.IDLE
            logger.info("Run %d: no active drugs — idle", sequence)
            return self.snapshot()

        selection = list(self._selection)
        details = await self.resolver.resolve_many(aggregation.active)
        result = await self.matrix.build_matrix(selection, user_triggered=False)

        if not self._is_latest(sequence):
            return self.snapshot()

        self._details = details
        self._apply(result)
        return self.snapshot()

    def _begin_run(self) -> int:
        self._sequence += 1
        self._status = AnalysisStatus.LOADING
        logger.debug("Session %s: run %d started", self.session_id, self._sequence)
        return self._sequence

    def _is_latest(self, sequence: int) -> bool:
        if sequence == self._sequence:
            return True
        logger.warning(
            "Session %s: discarding run %d (run %d started since)",
            self.session_id,
            sequence,
            self._sequence,
        )
        return False

    def _apply(self, result: MatrixResult) -> None:
        self._findings = result.findings
        self._tally = result.tally
        self._status = result.status
        self._error = result.error
        logger.info(
            "Session %s: run %d finished with status %s",
            self.session_id,
            self._sequence,
            result.status.value,
        )

    def _require_active(self, name: str) -> str:
        key = normalize(name)
        if key not in self._aggregation:
            raise UnknownDrugError(name)
        return key


# ---------------------------------------------------------------------------
# Default wiring
# ---------------------------------------------------------------------------


def build_detail_provider(kind: str = DETAIL_PROVIDER) -> DetailProvider:
    """Create the Detail Provider named by DETAIL_PROVIDER ("local" or "openfda")."""
    from medcheck.providers.knowledge_base import KnowledgeBase
    from medcheck.providers.openfda import OpenFDAClient

    if kind == "openfda":
        return OpenFDAClient()
    if kind != "local":
        logger.warning(
            "Unknown DETAIL_PROVIDER %r — using the local knowledge base", kind
        )
    return KnowledgeBase()


def build_suggestion_source(
    kind: str = SUGGESTION_SOURCE,
    dataset: NameSuggestionSource | None = None,
) -> NameSuggestionSource:
    """Create the suggestion source named by SUGGESTION_SOURCE.

    "rxterms" searches NLM RxTerms. Anything else uses the bundled name
    list, reusing `dataset` when one is already loaded.
    """
    from medcheck.providers.dataset import InteractionDataset
    from medcheck.providers.rxterms import RxTermsClient

    if kind == "rxterms":
        return RxTermsClient()
    if kind != "dataset":
        logger.warning(
            "Unknown SUGGESTION_SOURCE %r — using the bundled drug names", kind
        )
    return dataset if dataset is not None else InteractionDataset()


def catalog_names_for(provider: DetailProvider) -> list[str]:
    """Names the Detail Provider can offer as suggestions (knowledge base only)."""
    from medcheck.providers.knowledge_base import KnowledgeBase

    if not isinstance(provider, KnowledgeBase):
        return []
    try:
        return provider.names()
    except DetailProviderError as exc:
        logger.warning("Knowledge base names unavailable for suggestions: %s", exc)
        return []


def create_session(
    provider: DetailProvider | None = None,
    checker: InteractionChecker | None = None,
    suggestion_source: NameSuggestionSource | None = None,
    catalog_names: Iterable[str] | None = None,
) -> AnalysisSession:
    """Build a session wired to the configured collaborators.

    Anything not passed in comes from configuration: the Detail Provider
    named by DETAIL_PROVIDER, the bundled interaction dataset, the
    suggestion source named by SUGGESTION_SOURCE, and the shared detail
    cache.
    """
    from medcheck.providers.dataset import InteractionDataset

    if provider is None:
        provider = build_detail_provider()
    dataset: InteractionDataset | None = None
    if checker is None:
        dataset = InteractionDataset()
        checker = dataset
    if suggestion_source is None:
        suggestion_source = build_suggestion_source(dataset=dataset)
    if catalog_names is None:
        catalog_names = catalog_names_for(provider)

    resolver = BoundedDetailResolver(provider, cache=get_detail_cache())
    return AnalysisSession(
        resolver,
        InteractionMatrixBuilder(checker),
        suggestion_source=suggestion_source,
        catalog_names=catalog_names,
    )
