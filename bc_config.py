#!/usr/bin/env python3
# bc_config.py — shared configuration for the building control scrapers

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

# ── Project structure ────────────────────────────────────────────────────────────
BASE_DIR: Path = Path(__file__).resolve().parent

# Root folder for generated files (JSON documents, logs)
ARTIFACTS_ROOT: Path = BASE_DIR / "artifacts"
# (Do not create directories here; helpers will create as needed.)

SCRAPER_VERSION: str = "1.0.0"

# ── HTTP client settings ────────────────────────────────────────────────────────
USER_AGENT: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

REQUEST_TIMEOUT: int = 30   # seconds
RETRY_TOTAL: int = 3        # total retry attempts for transient statuses
RETRY_BACKOFF: float = 1.0  # seconds backoff factor (exponential)
RETRY_STATUSES: tuple[int, ...] = (408, 413, 429, 500, 502, 503, 504)


@dataclass(frozen=True)
class FetchConfig:
    """
    Immutable fetch settings handed to a transport / session acquirer.
    Nothing reads these from module globals at request time.
    """
    user_agent: str = USER_AGENT
    timeout: int = REQUEST_TIMEOUT
    retry_total: int = RETRY_TOTAL
    retry_backoff: float = RETRY_BACKOFF
    retry_statuses: tuple[int, ...] = RETRY_STATUSES
    accept_language: str = "en-GB,en;q=0.9"

    @classmethod
    def from_env(cls) -> "FetchConfig":
        """Honors BC_HTTP_UA and BC_HTTP_TIMEOUT when set."""
        ua = (os.getenv("BC_HTTP_UA") or "").strip() or USER_AGENT
        raw_timeout = (os.getenv("BC_HTTP_TIMEOUT") or "").strip()
        try:
            timeout = int(raw_timeout) if raw_timeout else REQUEST_TIMEOUT
        except ValueError:
            timeout = REQUEST_TIMEOUT
        return cls(user_agent=ua, timeout=timeout)


# ── West Northamptonshire (site A, disclaimer-gated HTML) ───────────────────────
WNC_BASE: str = "https://wnc.planning-register.co.uk"
WNC_DISPLAY_PATH: str = "/BuildingControl/Display/{reference}"
WNC_ACCEPT_PATH: str = "/Disclaimer/Accept"
WNC_DEFAULT_REFERENCE: str = "FP/2025/0159"

# Text fragments that only appear on the disclaimer interstitial
WNC_GATE_MARKERS: tuple[str, ...] = ("Disclaimer/Accept", "Terms and Conditions")

# Detail cells carry "Label <br/> <div><span>Value</span></div>"
WNC_DETAIL_CELL_SELECTOR: str = "td.halfwidth, td.fullwidth"

# Application types → controlled vocabulary for the derived info block
APPLICATION_TYPES: dict[str, dict[str, object]] = {
    "Full Plans": {
        "description": "Full plans submission where approval and completion certificates may be available",
        "certificates_available": True,
    },
    "Building Notice": {
        "description": "Notice served stating building work is planned. No approval notice issued.",
        "certificates_available": False,
    },
    "Initial Notice": {
        "description": "Notice served by Private Building Control Body (Approved Inspector)",
        "certificates_available": False,
    },
    "Competent Persons": {
        "description": "Work undertaken by Competent Persons with self-certification",
        "certificates_available": False,
    },
}

# ── Edinburgh Idox portal (site B, browser-rendered tabs) ───────────────────────
EDINBURGH_BASE: str = "https://citydev-portal.edinburgh.gov.uk/idoxpa-web"
EDINBURGH_DETAILS_PATH: str = "/scottishBuildingWarrantDetails.do"
EDINBURGH_DEFAULT_KEYVAL: str = "T1A67ZEWK0T00"

# activeTab values in navigation order
EDINBURGH_TABS: dict[str, str] = {
    "summary": "summary",
    "details": "details",
    "plots": "plots",
    "dates": "dates",
    "design_certificate": "designCertificate",
    "construction_certificate": "constructCertificate",
    "energy_certificate": "energyCertificate",
    "completion_certificate": "completionCertificate",
    "related_cases": "relatedCases",
}

# Polygon layer of the building standards map service
EDINBURGH_FEATURE_SERVER: str = (
    "https://edinburgh.idoxmaps.com/server/rest/services/PALIVE/"
    "LIVEUniformPA_Building_Standards/FeatureServer/2/query"
)

BROWSER_NAV_TIMEOUT_MS: int = REQUEST_TIMEOUT * 1000
BROWSER_SELECTOR_TIMEOUT_MS: int = 10000
