"""Smoke tests — verify the package is wired up correctly.

These tests don't check analysis behaviour. They ensure that:
1. All modules can be imported without errors
2. The FastAPI app starts up properly
3. Configuration loads with default values

This is the first thing CI runs, so if these fail, nothing else will work.
"""

from fastapi.testclient import TestClient


def test_imports() -> None:
    """Verify all modules can be imported without crashing."""
    import medcheck  # noqa: F401
    import medcheck.aggregator  # noqa: F401
    import medcheck.app  # noqa: F401
    import medcheck.attribution  # noqa: F401
    import medcheck.cache  # noqa: F401
    import medcheck.config  # noqa: F401
    import medcheck.matrix  # noqa: F401
    import medcheck.models  # noqa: F401
    import medcheck.normalizer  # noqa: F401
    import medcheck.promotion  # noqa: F401
    import medcheck.providers  # noqa: F401
    import medcheck.providers.dataset  # noqa: F401
    import medcheck.providers.knowledge_base  # noqa: F401
    import medcheck.providers.openfda  # noqa: F401
    import medcheck.providers.rxterms  # noqa: F401
    import medcheck.resolver  # noqa: F401
    import medcheck.session  # noqa: F401


def test_config_defaults() -> None:
    """Config should load with sensible defaults even without a .env file."""
    from pathlib import Path

    from medcheck.config import (
        DETAIL_TIMEOUT_SECONDS,
        INTERACTIONS_CSV_PATH,
        KNOWLEDGE_BASE_PATH,
        MIN_SELECTION,
    )

    assert DETAIL_TIMEOUT_SECONDS == 1.5
    assert MIN_SELECTION == 2
    assert Path(KNOWLEDGE_BASE_PATH).is_file()
    assert Path(INTERACTIONS_CSV_PATH).is_file()


def test_build_detail_provider() -> None:
    """DETAIL_PROVIDER picks the provider; unknown values fall back to local."""
    from medcheck.providers.knowledge_base import KnowledgeBase
    from medcheck.providers.openfda import OpenFDAClient
    from medcheck.session import build_detail_provider

    assert isinstance(build_detail_provider("local"), KnowledgeBase)
    assert isinstance(build_detail_provider("openfda"), OpenFDAClient)
    assert isinstance(build_detail_provider("bogus"), KnowledgeBase)


def test_build_suggestion_source() -> None:
    """SUGGESTION_SOURCE picks the source; unknown values fall back to the dataset."""
    from medcheck.config import SUGGESTION_SOURCE
    from medcheck.providers.dataset import InteractionDataset
    from medcheck.providers.rxterms import RxTermsClient
    from medcheck.session import build_suggestion_source

    dataset = InteractionDataset()

    assert SUGGESTION_SOURCE == "dataset"
    assert isinstance(build_suggestion_source("rxterms"), RxTermsClient)
    assert build_suggestion_source("dataset", dataset=dataset) is dataset
    assert isinstance(build_suggestion_source("bogus"), InteractionDataset)


def test_health_endpoint() -> None:
    """The /health endpoint should return 200 OK."""
    from medcheck.app import app

    client = TestClient(app)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
