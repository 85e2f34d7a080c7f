"""Detail Provider backed by the openFDA drug label API.

openFDA publishes the structured product labels (SPL) of US drugs. One
label is enough to fill a DrugDetail: the indications, mechanism, dosing,
warnings, adverse reactions, and contraindications sections map onto its
fields one to one.

API endpoint used:
- GET {base}/label.json?search=openfda.generic_name:"x"+openfda.brand_name:"x"&limit=1

No API key is needed; a key only raises the daily rate limit.

Usage:
    client = OpenFDAClient()
    detail = await client.get_drug_details("warfarin")
    await client.close()
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from medcheck.config import HTTP_TIMEOUT_SECONDS, OPENFDA_API_KEY, OPENFDA_BASE_URL
from medcheck.models import DrugDetail
from medcheck.providers import DetailProviderError

logger = logging.getLogger(__name__)

# Label sections are free text and can run to several pages
MAX_SECTION_CHARS = 600
MAX_LIST_ITEMS = 8

# DrugDetail field -> label sections to try, in order
SECTION_MAP: dict[str, tuple[str, ...]] = {
    "indication": ("indications_and_usage", "purpose"),
    "mechanism": ("mechanism_of_action", "clinical_pharmacology"),
    "dosing": ("dosage_and_administration",),
    "monitoring": ("warnings_and_cautions", "warnings", "precautions"),
}

NOT_LABELED = "Not stated on label."


def _truncate(text: str, limit: int = MAX_SECTION_CHARS) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def _first_section(label: dict[str, Any], keys: tuple[str, ...]) -> str:
    for key in keys:
        values = label.get(key)
        if values:
            return _truncate(values[0] if isinstance(values, list) else str(values))
    return NOT_LABELED


def _section_items(label: dict[str, Any], key: str) -> tuple[str, ...]:
    """Split a label section into short items (sentences)."""
    values = label.get(key) or []
    if isinstance(values, str):
        values = [values]
    items: list[str] = []
    for block in values:
        for sentence in " ".join(block.split()).split(". "):
            sentence = sentence.strip().rstrip(".")
            if sentence:
                items.append(_truncate(sentence, 160))
            if len(items) >= MAX_LIST_ITEMS:
                return tuple(items)
    return tuple(items)


def label_to_detail(name: str, label: dict[str, Any]) -> DrugDetail:
    """Convert one openFDA label result into a DrugDetail.

    Args:
        name: The name the caller asked for (kept as the record's name).
        label: One element of the ``results`` array.
    """
    openfda = label.get("openfda") or {}
    generic = (openfda.get("generic_name") or [None])[0]
    classes = openfda.get("pharm_class_epc") or []

    fields = {field: _first_section(label, keys) for field, keys in SECTION_MAP.items()}
    return DrugDetail(
        name=name,
        generic_name=generic.title() if generic else None,
        category=", ".join(classes) if classes else "Uncategorized",
        side_effects=_section_items(label, "adverse_reactions"),
        contraindications=_section_items(label, "contraindications"),
        **fields,
    )


class OpenFDAClient:
    """Async client for openFDA drug labels.

    Attributes:
        base_url: openFDA drug API root (e.g., "https://api.fda.gov/drug").
        api_key: Optional openFDA API key.
    """

    def __init__(
        self,
        base_url: str = OPENFDA_BASE_URL,
        api_key: str = OPENFDA_API_KEY,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._http = httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._http.aclose()

    async def get_label(self, name: str) -> dict[str, Any]:
        """Fetch the first label whose generic or brand name matches.

        Raises:
            DetailProviderError: On transport errors, HTTP errors, no
                match (openFDA answers 404), or an unexpected payload.
        """
        term = name.strip().replace('"', "")
        params: dict[str, Any] = {
            "search": f'openfda.generic_name:"{term}" openfda.brand_name:"{term}"',
            "limit": 1,
        }
        if self.api_key:
            params["api_key"] = self.api_key

        url = f"{self.base_url}/label.json"
        try:
            response = await self._http.get(url, params=params)
        except httpx.HTTPError as exc:
            raise DetailProviderError(f"Request to {url} failed: {exc}") from exc

        if response.status_code == 404:
            raise DetailProviderError(f"No openFDA label found for {name!r}")
        if response.status_code >= 400:
            raise DetailProviderError(
                f"openFDA returned HTTP {response.status_code}: {response.text}"
            )

        try:
            results = response.json()["results"]
            return results[0]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise DetailProviderError(
                f"Unexpected openFDA payload for {name!r}: {exc}"
            ) from exc

    async def get_drug_details(self, name: str) -> DrugDetail:
        """Look up a drug's label and map it to a DrugDetail.

        Raises:
            DetailProviderError: If no usable label could be fetched.
        """
        label = await self.get_label(name)
        logger.debug("openFDA label %s matched %r", label.get("id", "?"), name)
        return label_to_detail(name, label)
