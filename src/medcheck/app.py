"""FastAPI server — the HTTP entry point for the analysis engine.

The form layer talks to the engine through these endpoints. Each request
names a session; every mutating endpoint answers with the session's full
snapshot (active drugs with source badges and details, selection,
findings with severity tally, status, and promoted medications).

- GET    /health                                 — liveness check
- POST   /sessions                               — start a session
- GET    /sessions/{sid}                         — current snapshot
- PUT    /sessions/{sid}/candidates              — replace candidate lists
- POST   /sessions/{sid}/drugs                   — add a drug (search box)
- DELETE /sessions/{sid}/drugs/{name}            — remove a drug
- POST   /sessions/{sid}/drugs/{name}/restore    — undo a removal
- POST   /sessions/{sid}/selection/{name}        — toggle selection
- POST   /sessions/{sid}/check                   — re-check the selection
- PATCH  /sessions/{sid}/suggested/{name}        — edit a suggestion draft
- PUT    /sessions/{sid}/suggested/{name}        — promote a suggestion
- DELETE /sessions/{sid}/suggested/{name}        — unpromote
- POST   /sessions/{sid}/clear                   — clear additions and removals
- GET    /suggest?q=...                          — drug-name suggestions

Run locally with:
    uvicorn medcheck.app:app --reload
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from medcheck.config import LOG_LEVEL
from medcheck.matrix import SelectionError
from medcheck.models import SessionSnapshot, SuggestedMedication
from medcheck.promotion import IneligibleDrugError, PromotionError, PromotionLockedError
from medcheck.providers import DetailProvider, NameSuggestionSource
from medcheck.providers.dataset import InteractionDataset
from medcheck.session import (
    AnalysisSession,
    UnknownDrugError,
    build_detail_provider,
    build_suggestion_source,
    catalog_names_for,
    create_session,
    merge_suggestions,
)

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Close the shared HTTP collaborators on shutdown."""
    yield
    await close_clients()


app = FastAPI(
    title="Medication Interaction Engine",
    description="Aggregate candidate medications and check them for interactions",
    version="0.1.0",
    lifespan=lifespan,
)


class CandidatesRequest(BaseModel):
    """Candidate lists sent by the form layer."""

    manual: list[str] = Field(default_factory=list)
    ai_suggested: list[str] = Field(default_factory=list)
    logic_suggested: list[str] = Field(default_factory=list)
    ad_hoc: list[str] | None = None  # None keeps the current search-box additions


class AddDrugRequest(BaseModel):
    name: str


class DraftRequest(BaseModel):
    """Partial edit of a suggestion card. Omitted fields are left unchanged."""

    dose: str | None = None
    frequency: str | None = None
    route: str | None = None


class PromoteRequest(BaseModel):
    """Fields entered on a suggestion card. Omitted fields come from the draft."""

    dose: str | None = None
    frequency: str | None = None
    route: str | None = None


# --- Session registry ---
# Sessions live in memory for the lifetime of the process. The Detail
# Provider, the dataset and the suggestion source are created once and
# shared by every session.

_sessions: dict[str, AnalysisSession] = {}
_dataset: InteractionDataset | None = None
_provider: DetailProvider | None = None
_suggestion_source: NameSuggestionSource | None = None


def get_dataset() -> InteractionDataset:
    global _dataset  # noqa: PLW0603
    if _dataset is None:
        _dataset = InteractionDataset()
    return _dataset


def get_provider() -> DetailProvider:
    global _provider  # noqa: PLW0603
    if _provider is None:
        _provider = build_detail_provider()
    return _provider


def get_suggestion_source() -> NameSuggestionSource:
    global _suggestion_source  # noqa: PLW0603
    if _suggestion_source is None:
        _suggestion_source = build_suggestion_source(dataset=get_dataset())
    return _suggestion_source


async def close_clients() -> None:
    """Close the shared collaborators that hold HTTP connection pools."""
    global _provider, _suggestion_source  # noqa: PLW0603
    for client in (_provider, _suggestion_source):
        close = getattr(client, "close", None)
        if close is not None:
            await close()
    _provider = None
    _suggestion_source = None
    logger.info("Closed shared clients")


def _get_session(session_id: str) -> AnalysisSession:
    session = _sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session {session_id!r}")
    return session


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint. Returns 200 if the server is running."""
    return {"status": "ok"}


@app.post("/sessions", response_model=SessionSnapshot, status_code=201)
async def create() -> SessionSnapshot:
    session = create_session(
        provider=get_provider(),
        checker=get_dataset(),
        suggestion_source=get_suggestion_source(),
    )
    _sessions[session.session_id] = session
    logger.info("Created session %s", session.session_id)
    return session.snapshot()


@app.get("/sessions/{session_id}", response_model=SessionSnapshot)
async def read(session_id: str) -> SessionSnapshot:
    return _get_session(session_id).snapshot()


@app.put("/sessions/{session_id}/candidates", response_model=SessionSnapshot)
async def set_candidates(
    session_id: str, request: CandidatesRequest
) -> SessionSnapshot:
    """Replace the candidate lists and re-run the analysis."""
    session = _get_session(session_id)
    return await session.set_candidates(
        manual=request.manual,
        ai_suggested=request.ai_suggested,
        logic_suggested=request.logic_suggested,
        ad_hoc=request.ad_hoc,
    )


@app.post("/sessions/{session_id}/drugs", response_model=SessionSnapshot)
async def add_drug(session_id: str, request: AddDrugRequest) -> SessionSnapshot:
    return await _get_session(session_id).add_drug(request.name)


@app.delete("/sessions/{session_id}/drugs/{name}", response_model=SessionSnapshot)
async def remove_drug(session_id: str, name: str) -> SessionSnapshot:
    return await _get_session(session_id).remove(name)


@app.post("/sessions/{session_id}/drugs/{name}/restore", response_model=SessionSnapshot)
async def restore_drug(session_id: str, name: str) -> SessionSnapshot:
    return await _get_session(session_id).unremove(name)


@app.post("/sessions/{session_id}/selection/{name}", response_model=SessionSnapshot)
async def toggle_selection(session_id: str, name: str) -> SessionSnapshot:
    session = _get_session(session_id)
    try:
        return session.toggle_selection(name)
    except UnknownDrugError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@app.post("/sessions/{session_id}/check", response_model=SessionSnapshot)
async def run_check(session_id: str) -> SessionSnapshot:
    """Re-check the selected drugs. Needs at least two selected (422 otherwise)."""
    session = _get_session(session_id)
    try:
        return await session.run_check()
    except SelectionError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@app.patch("/sessions/{session_id}/suggested/{name}", response_model=SessionSnapshot)
async def edit_suggestion(
    session_id: str, name: str, request: DraftRequest
) -> SessionSnapshot:
    """Save draft fields for a suggestion card (409 once it is promoted).

    Ad-hoc-only drugs have no suggestion card and get a 422.
    """
    session = _get_session(session_id)
    try:
        return session.edit_suggestion(
            name, dose=request.dose, frequency=request.frequency, route=request.route
        )
    except UnknownDrugError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except PromotionLockedError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except IneligibleDrugError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@app.put("/sessions/{session_id}/suggested/{name}", response_model=SuggestedMedication)
async def promote(
    session_id: str, name: str, request: PromoteRequest
) -> SuggestedMedication:
    """Promote a suggested drug. All of dose, frequency, and route are required."""
    session = _get_session(session_id)
    try:
        return session.promote(
            name, dose=request.dose, frequency=request.frequency, route=request.route
        )
    except UnknownDrugError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except PromotionError as e:
        raise HTTPException(
            status_code=422, detail={"message": str(e), "missing": e.missing}
        ) from e
    except IneligibleDrugError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@app.delete("/sessions/{session_id}/suggested/{name}", response_model=SessionSnapshot)
async def unpromote(session_id: str, name: str) -> SessionSnapshot:
    return _get_session(session_id).unpromote(name)


@app.post("/sessions/{session_id}/clear", response_model=SessionSnapshot)
async def clear(session_id: str) -> SessionSnapshot:
    return await _get_session(session_id).clear()


@app.get("/suggest")
async def suggest(q: str, limit: int = 10) -> dict[str, list[str]]:
    """Drug-name suggestions for the search box."""
    catalog = catalog_names_for(get_provider())
    suggestions = await merge_suggestions(q, get_suggestion_source(), catalog, limit)
    return {"suggestions": suggestions}
