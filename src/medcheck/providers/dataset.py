"""Interaction Checker and name suggestions from a tabular interaction dataset.

Two files feed this module:
- An interaction CSV with one row per drug pair. Columns are found by
  header name ("drug 1", "drug 2", "description"/"interaction",
  "severity", and optionally "mechanism" and "recommendation"); without a
  header the first four columns are used in that order.
- A plain-text list of drug names, one per line, for search-as-you-type.

Rows are indexed under both drugs so a pair is found whichever way round
it was written. A missing or empty dataset behaves as an empty one: no
findings and no suggestions, with the error logged. A CSV that exists but
cannot be parsed makes every check raise InteractionCheckerError.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pandas as pd

from medcheck.config import DRUG_NAMES_PATH, INTERACTIONS_CSV_PATH
from medcheck.models import InteractionFinding, Severity
from medcheck.normalizer import normalize
from medcheck.providers import InteractionCheckerError

logger = logging.getLogger(__name__)

# Confidence for rows whose severity column could not be classified
UNCLASSIFIED_CONFIDENCE = 0.5


def classify_severity(raw: str) -> Severity | None:
    """Map a free-text severity ("Major", "high", "Low risk"...) to a tier."""
    text = (raw or "").lower()
    if "major" in text or "high" in text:
        return Severity.MAJOR
    if "moderate" in text or "medium" in text:
        return Severity.MODERATE
    if "minor" in text or "low" in text:
        return Severity.MINOR
    return None


def _find_column(
    headers: list[str], *needles: str, exact: tuple[str, ...] = ()
) -> int | None:
    for idx, header in enumerate(headers):
        if header in exact or any(needle in header for needle in needles):
            return idx
    return None


class InteractionDataset:
    """Pairwise interaction lookups over a CSV table.

    Attributes:
        interactions_path: CSV file of interaction rows.
        names_path: Text file of known drug names.
    """

    def __init__(
        self,
        interactions_path: str | Path = INTERACTIONS_CSV_PATH,
        names_path: str | Path = DRUG_NAMES_PATH,
    ) -> None:
        self.interactions_path = Path(interactions_path)
        self.names_path = Path(names_path)
        self._pairs: dict[str, list[dict[str, Any]]] = {}
        self._names: list[str] = []
        self._loaded = False
        self._load_error: str | None = None

    # --- Loading ---

    def load(self) -> None:
        """Load both files (once). Errors are logged, never raised."""
        if self._loaded:
            return
        self._loaded = True
        self._load_names()
        self._load_interactions()

    def _load_names(self) -> None:
        try:
            text = self.names_path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.error("Could not load drug names from %s: %s", self.names_path, exc)
            return
        seen: dict[str, None] = {}
        for line in text.splitlines():
            key = normalize(line)
            if key:
                seen.setdefault(key, None)
        self._names = list(seen)
        logger.info("Loaded %d drug name(s) from %s", len(self._names), self.names_path)

    def _load_interactions(self) -> None:
        try:
            frame = pd.read_csv(
                self.interactions_path,
                header=None,
                dtype=str,
                keep_default_na=False,
                skipinitialspace=True,
            )
        except (OSError, pd.errors.EmptyDataError) as exc:
            logger.error(
                "Could not load interactions from %s: %s", self.interactions_path, exc
            )
            return
        except pd.errors.ParserError as exc:
            logger.error(
                "Malformed interaction table %s: %s", self.interactions_path, exc
            )
            self._load_error = str(exc)
            return

        headers: list[str] = []
        if len(frame):
            first = [str(value).strip().lower() for value in frame.iloc[0]]
            joined = ",".join(first)
            if "drug" in joined and "interaction" in joined:
                headers = first
                frame = frame.iloc[1:]

        idx_d1, idx_d2, idx_desc, idx_sev = 0, 1, 2, 3
        idx_mech: int | None = None
        idx_rec: int | None = None
        if headers:
            found_d1 = _find_column(headers, "drug 1", exact=("drug1",))
            found_d2 = _find_column(headers, "drug 2", exact=("drug2",))
            found_desc = _find_column(headers, "description", "interaction")
            idx_d1 = found_d1 if found_d1 is not None else 0
            idx_d2 = found_d2 if found_d2 is not None else 1
            idx_desc = found_desc if found_desc is not None else 2
            idx_sev = _find_column(headers, "severity")
            idx_mech = _find_column(headers, "mechanism")
            idx_rec = _find_column(headers, "recommendation")

        def cell(row: tuple[Any, ...], idx: int | None) -> str:
            if idx is None or idx >= len(row) or pd.isna(row[idx]):
                return ""
            return str(row[idx]).strip()

        count = 0
        for row in frame.itertuples(index=False, name=None):
            d1 = normalize(cell(row, idx_d1))
            d2 = normalize(cell(row, idx_d2))
            if not d1 or not d2:
                continue
            entry = {
                "drug1": d1,
                "drug2": d2,
                "severity": classify_severity(cell(row, idx_sev)),
                "description": cell(row, idx_desc) or "Interaction detected.",
                "mechanism": cell(row, idx_mech) or None,
                "recommendation": cell(row, idx_rec) or None,
            }
            self._pairs.setdefault(d1, []).append(entry)
            if d2 != d1:
                self._pairs.setdefault(d2, []).append(entry)
            count += 1

        logger.info(
            "Loaded %d interaction row(s) from %s", count, self.interactions_path
        )

    # --- Queries ---

    def lookup(self, drug_a: str, drug_b: str) -> dict[str, Any] | None:
        """First interaction row recorded for the pair, in either order."""
        self.load()
        a, b = normalize(drug_a), normalize(drug_b)
        for entry in self._pairs.get(a, []):
            if (entry["drug1"], entry["drug2"]) in ((a, b), (b, a)):
                return entry
        return None

    async def check_all_interactions(
        self, names: list[str]
    ) -> list[InteractionFinding]:
        """Check every unordered pair of ``names`` against the table.

        Args:
            names: Drug names; pairs are visited in input order (i < j).

        Returns:
            One finding per pair that has a row in the table.

        Raises:
            InteractionCheckerError: If the CSV exists but could not be parsed.
        """
        self.load()
        if self._load_error is not None:
            raise InteractionCheckerError(
                f"Interaction table {self.interactions_path} is unreadable: "
                f"{self._load_error}"
            )
        findings: list[InteractionFinding] = []
        for i, drug_a in enumerate(names):
            for drug_b in names[i + 1 :]:
                entry = self.lookup(drug_a, drug_b)
                if entry is None:
                    continue
                severity = entry["severity"]
                findings.append(
                    InteractionFinding(
                        drug_a=drug_a,
                        drug_b=drug_b,
                        severity=severity or Severity.MODERATE,
                        description=entry["description"],
                        mechanism=entry["mechanism"],
                        recommendation=entry["recommendation"],
                        source="database",
                        confidence=1.0 if severity else UNCLASSIFIED_CONFIDENCE,
                    )
                )
        return findings

    def names(self) -> list[str]:
        self.load()
        return list(self._names)

    async def suggest(self, prefix: str, limit: int = 10) -> list[str]:
        """Drug names matching a search prefix.

        Names that start with the prefix come first, then names that only
        contain it. Prefixes shorter than two characters match nothing.
        """
        term = normalize(prefix)
        if len(term) < 2 or limit <= 0:
            return []

        names = self.names()
        matches = [name for name in names if name.startswith(term)]
        if len(matches) < limit:
            matches += [n for n in names if term in n and not n.startswith(term)]
        return matches[:limit]
