"""Configuration for the medication interaction engine.

Loads settings from environment variables (via a .env file or the system
environment). Every setting has a default so the package can be imported
and tested without any environment at all.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists (absent in CI)
_env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(_env_path)

# Bundled sample data shipped inside the package
_DATA_DIR = Path(__file__).resolve().parent / "data"

# --- Detail resolution ---
# Upper bound (seconds) on a single drug-detail lookup. A lookup that takes
# longer is abandoned and replaced by a fallback record.
DETAIL_TIMEOUT_SECONDS: float = float(os.getenv("DETAIL_TIMEOUT_SECONDS", "1.5"))

# Which Detail Provider backs the resolver: "local" (JSON knowledge base)
# or "openfda" (openFDA drug label API).
DETAIL_PROVIDER: str = os.getenv("DETAIL_PROVIDER", "local")

# Which source backs search-as-you-type: "dataset" (bundled drug name list)
# or "rxterms" (NLM RxTerms search).
SUGGESTION_SOURCE: str = os.getenv("SUGGESTION_SOURCE", "dataset")

# --- Interaction checking ---
# A user-triggered check needs at least this many drugs selected.
MIN_SELECTION: int = 2

# --- Local data files ---
KNOWLEDGE_BASE_PATH: str = os.getenv(
    "KNOWLEDGE_BASE_PATH", str(_DATA_DIR / "drug_details.json")
)
INTERACTIONS_CSV_PATH: str = os.getenv(
    "INTERACTIONS_CSV_PATH", str(_DATA_DIR / "interactions.csv")
)
DRUG_NAMES_PATH: str = os.getenv("DRUG_NAMES_PATH", str(_DATA_DIR / "drug_names.txt"))

# --- Remote collaborators ---
# openFDA is free; an API key only raises the rate limit.
OPENFDA_BASE_URL: str = os.getenv("OPENFDA_BASE_URL", "https://api.fda.gov/drug")
OPENFDA_API_KEY: str = os.getenv("OPENFDA_API_KEY", "")

# NLM Clinical Tables RxTerms search, used for search-as-you-type
RXTERMS_BASE_URL: str = os.getenv(
    "RXTERMS_BASE_URL", "https://clinicaltables.nlm.nih.gov/api/rxterms/v3"
)

# Transport timeout for the HTTP collaborators. The resolver's own deadline
# (DETAIL_TIMEOUT_SECONDS) still applies on top of this.
HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10.0"))

# --- Logging ---
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
