"""Detail Provider backed by a local JSON knowledge base.

The knowledge base is a JSON object mapping lower-case drug names to
DrugDetail fields:

    {"warfarin": {"name": "Warfarin", "category": "Anticoagulant", ...}}

Lookups try an exact match first, then the first entry whose name
contains (or is contained in) the requested name. Unknown drugs get an
"uncategorized" record rather than an error, so this provider only
fails when the file itself is unreadable.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from medcheck.config import KNOWLEDGE_BASE_PATH
from medcheck.models import DrugDetail
from medcheck.normalizer import normalize
from medcheck.providers import DetailProviderError

logger = logging.getLogger(__name__)


def uncategorized_detail(name: str) -> DrugDetail:
    """Record returned for a drug the knowledge base does not know."""
    return DrugDetail(
        name=name,
        generic_name=name,
        category="Uncategorized",
        indication="Detailed information not available in offline database.",
        mechanism="Unknown",
        dosing="Consult clinical resources.",
        monitoring="Standard monitoring.",
    )


class KnowledgeBase:
    """In-memory drug knowledge base loaded from a JSON file.

    Attributes:
        path: Location of the JSON file.
    """

    def __init__(self, path: str | Path = KNOWLEDGE_BASE_PATH) -> None:
        self.path = Path(path)
        self._records: dict[str, DrugDetail] | None = None

    def load(self) -> dict[str, DrugDetail]:
        """Read and validate the JSON file (once).

        Raises:
            DetailProviderError: If the file is missing or malformed.
        """
        if self._records is not None:
            return self._records

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise DetailProviderError(
                f"Could not read knowledge base {self.path}: {exc}"
            ) from exc

        records: dict[str, DrugDetail] = {}
        for key, fields in raw.items():
            try:
                records[normalize(key)] = DrugDetail.model_validate(fields)
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed knowledge base entry %r: %s", key, exc
                )

        logger.info("Loaded %d drug(s) from %s", len(records), self.path)
        self._records = records
        return records

    def names(self) -> list[str]:
        """Display names of every drug in the knowledge base."""
        return [detail.name for detail in self.load().values()]

    def lookup(self, name: str) -> DrugDetail:
        records = self.load()
        key = normalize(name)

        if key in records:
            return records[key]

        # Partial match, e.g. "aspirin 81" -> "aspirin"
        for candidate, detail in records.items():
            if key and (key in candidate or candidate in key):
                return detail.model_copy(update={"name": name})

        return uncategorized_detail(name)

    async def get_drug_details(self, name: str) -> DrugDetail:
        """Look up a drug by name.

        Args:
            name: Drug name; matched case-insensitively.

        Returns:
            The matching record, or an uncategorized record.

        Raises:
            DetailProviderError: If the knowledge base cannot be loaded.
        """
        return self.lookup(name)
