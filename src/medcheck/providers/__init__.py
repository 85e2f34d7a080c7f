"""External collaborators the analysis engine consumes.

The engine only depends on the three protocols below. Each module in this
package is one concrete implementation:

- knowledge_base.py: Detail Provider backed by a local JSON knowledge base
- openfda.py:        Detail Provider backed by the openFDA drug label API
- dataset.py:        Interaction Checker + name suggestions from a CSV table
- rxterms.py:        Name suggestions from the NLM RxTerms search API
"""

from __future__ import annotations

from typing import Protocol

from medcheck.models import DrugDetail, InteractionFinding


class DetailProviderError(Exception):
    """Raised when a Detail Provider cannot produce a record for a drug."""


class InteractionCheckerError(Exception):
    """Raised when a batch interaction check fails."""


class DetailProvider(Protocol):
    async def get_drug_details(self, name: str) -> DrugDetail: ...


class InteractionChecker(Protocol):
    async def check_all_interactions(
        self, names: list[str]
    ) -> list[InteractionFinding]: ...


class NameSuggestionSource(Protocol):
    async def suggest(self, prefix: str, limit: int = 10) -> list[str]: ...
