#!/usr/bin/env python3
# bc_getedinburgh.py — City of Edinburgh building warrant scraper (Idox portal)
"""
The Idox portal renders each tab client-side, so tabs are navigated one by
one in a headless browser (Playwright). The browser context carries its own
session; there is no disclaimer gate. Tab order matters: later tabs rely on
the context set up by earlier navigation.

Warrant boundaries come from the council's ArcGIS FeatureServer (plain JSON
over HTTP) and are optional: any failure there leaves geometry = None.
"""

from __future__ import annotations

import json
import logging
from functools import partial
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote, urlencode

from bc_aggregator import SectionSpec, aggregate_sections, build_document, group_sections
from bc_config import (
    ARTIFACTS_ROOT,
    EDINBURGH_BASE,
    EDINBURGH_DEFAULT_KEYVAL,
    EDINBURGH_DETAILS_PATH,
    EDINBURGH_FEATURE_SERVER,
    EDINBURGH_TABS,
    FetchConfig,
)
from bc_errors import SCRAPE_FAILED, ScraperError, TransportError
from bc_extractor import (
    extract_header_pairs,
    extract_links,
    extract_pair_record,
    extract_pair_tables,
    extract_record,
    extract_table_records,
)
from bc_helper import create_output_path, setup_logger, write_json
from bc_schema import attach_verdict, validate_document
from bc_session import Transport
from bc_transport import BrowserTransport, HttpTransport

SITE_ID = "edinburgh"
DEFAULT_IDENTIFIER = EDINBURGH_DEFAULT_KEYVAL
PRIMARY_SECTION = "summary"

# Tabs whose content arrives via XHR after the initial DOM is ready
NETWORK_IDLE_TABS = {"summary", "details"}

CERTIFICATE_GROUP = {
    "design_certificate": "design",
    "construction_certificate": "construction",
    "energy_certificate": "energy",
    "completion_certificate": "completion",
}


def build_tab_url(key_val: str, tab: str = "summary") -> str:
    return f"{EDINBURGH_BASE}{EDINBURGH_DETAILS_PATH}?keyVal={quote(key_val, safe='')}&activeTab={tab}"

# ────────────────────────────────────────────────────────────────────────────────
# Tab extractors
# ────────────────────────────────────────────────────────────────────────────────

def extract_tab_record(src: Any) -> Dict[str, Optional[str]]:
    return extract_record(src, strategies=(extract_header_pairs,))


def extract_dates(src: Any) -> Dict[str, Optional[str]]:
    return extract_record(src, strategies=(extract_header_pairs, extract_pair_record))


def extract_plots(src: Any) -> List[Dict[str, Optional[str]]]:
    """Captioned plot table; failing that, the tab's label/value pairs as one plot."""
    plots = extract_table_records(src, keywords=("plot",))
    if plots:
        return plots
    fallback = extract_pair_record(src)
    return [fallback] if fallback else []


def extract_related(src: Any, base: Optional[str] = None) -> Dict[str, Any]:
    """Property and planning links, resolved against the tab they sit on."""
    base = base or f"{EDINBURGH_BASE}/"
    related = {
        "properties": extract_links(src, ("propertyDetails",), "address", base=base),
        "planning_applications": extract_links(src, ("Planning",), "reference", base=base),
    }
    return related if any(related.values()) else {}


def edinburgh_sections(key_val: str) -> List[SectionSpec]:
    """All tabs, in portal navigation order."""
    tab = EDINBURGH_TABS
    specs = [
        SectionSpec("summary", build_tab_url(key_val, tab["summary"]), extract_tab_record, wait_for="th"),
        SectionSpec("details", build_tab_url(key_val, tab["details"]), extract_tab_record, wait_for="th"),
        SectionSpec("plots", build_tab_url(key_val, tab["plots"]), extract_plots, wait_for="table"),
        SectionSpec("dates", build_tab_url(key_val, tab["dates"]), extract_dates, wait_for="table"),
    ]
    for name in CERTIFICATE_GROUP:
        specs.append(SectionSpec(name, build_tab_url(key_val, tab[name]), extract_pair_tables))
    related_url = build_tab_url(key_val, tab["related_cases"])
    specs.append(SectionSpec("related_items", related_url, partial(extract_related, base=related_url)))
    return specs


def browser_fetcher(transport: Transport):
    def _fetch(spec: SectionSpec) -> str:
        wait_until = "networkidle" if spec.name in NETWORK_IDLE_TABS else "domcontentloaded"
        return transport.fetch(spec.url, wait_until=wait_until, wait_for=spec.wait_for).body
    return _fetch

# ────────────────────────────────────────────────────────────────────────────────
# Geometry (ArcGIS FeatureServer)
# ────────────────────────────────────────────────────────────────────────────────

def build_geometry_url(key_val: str) -> str:
    params = {
        "f": "json",
        "outSR": "4326",
        "spatialRel": "esriSpatialRelIntersects",
        "where": f"ISPAVISIBLE = 1 and KEYVAL IN ('{key_val}')",
        "outFields": "*",
        "returnGeometry": "true",
    }
    return f"{EDINBURGH_FEATURE_SERVER}?{urlencode(params, quote_via=quote)}"


def ring_centroid(ring: Sequence[Sequence[float]]) -> Optional[List[float]]:
    """Vertex mean of a polygon ring (good enough for a map pin)."""
    points = [p for p in ring or [] if len(p) >= 2]
    if not points:
        return None
    return [sum(p[0] for p in points) / len(points), sum(p[1] for p in points) / len(points)]


def parse_geometry(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    features = payload.get("features") or []
    if not features:
        return None
    geometry = features[0].get("geometry") or {}
    rings = geometry.get("rings")
    if not rings:
        return None
    return {
        "type": "Polygon",
        "coordinates": rings,
        "centroid": ring_centroid(rings[0]),
        "spatial_reference": payload.get("spatialReference"),
        "source": "ArcGIS FeatureServer/2",
    }


def fetch_geometry(key_val: str, transport: Transport, logger: logging.Logger) -> Optional[Dict[str, Any]]:
    url = build_geometry_url(key_val)
    try:
        resp = transport.fetch(url)
        return parse_geometry(json.loads(resp.body))
    except (TransportError, ValueError, AttributeError, TypeError) as e:
        logger.debug("Geometry unavailable for %s: %s", key_val, e)
        return None

# ────────────────────────────────────────────────────────────────────────────────
# Scrape
# ────────────────────────────────────────────────────────────────────────────────

def scrape_edinburgh(
    key_val: str,
    transport: Optional[Transport] = None,
    geometry_transport: Optional[Transport] = None,
    config: Optional[FetchConfig] = None,
    logger: Optional[logging.Logger] = None,
    headless: bool = True,
    include_geometry: bool = True,
) -> Dict[str, Any]:
    logger = logger or logging.getLogger(f"bc.{SITE_ID}")
    config = config or FetchConfig.from_env()
    opened: List[Any] = []

    logger.info("Scraping Edinburgh building control: %s", key_val)
    try:
        if transport is None:
            transport = BrowserTransport(config, logger, headless=headless)
            opened.append(transport)

        results, warnings = aggregate_sections(edinburgh_sections(key_val), browser_fetcher(transport), logger)

        geometry = None
        if include_geometry:
            logger.debug("Attempting to fetch geometry")
            if geometry_transport is None:
                geometry_transport = HttpTransport(config, logger)
                opened.append(geometry_transport)
            geometry = fetch_geometry(key_val, geometry_transport, logger)

        grouped = group_sections(results, "certificates", CERTIFICATE_GROUP)
        sections: Dict[str, Any] = {
            "summary": grouped.get("summary"),
            "details": grouped.get("details"),
            "dates": grouped.get("dates"),
            "plots": grouped.get("plots"),
            "certificates": grouped["certificates"],
            "related_items": grouped.get("related_items"),
            "geometry": geometry,
        }
        document = build_document(
            key_val,
            build_tab_url(key_val, EDINBURGH_TABS["summary"]),
            sections,
            warnings,
            {"site": SITE_ID},
        )

        verdict = validate_document(document, primary=PRIMARY_SECTION)
        if not verdict.is_valid:
            logger.warning("Data validation warnings: %s", verdict.errors)
        attach_verdict(document, verdict)

        certs = sections["certificates"]
        logger.info(
            "Extracted: summary=%d details=%d plots=%d design_certs=%d geometry=%s validation=%s",
            len(sections["summary"] or {}),
            len(sections["details"] or {}),
            len(sections["plots"] or []),
            len(certs.get("design") or []),
            "YES" if geometry else "NO",
            "PASSED" if verdict.is_valid else "FAILED",
        )
        return document

    except ScraperError:
        raise
    except Exception as e:
        raise ScraperError(
            f"Scraping failed: {e}",
            SCRAPE_FAILED,
            {"identifier": key_val, "original_error": str(e)},
        ) from e
    finally:
        for t in opened:
            t.close()


# ────────────────────────────────────────────────────────────────────────────────
# Public entrypoint (used by bc_scrape.py)
# ────────────────────────────────────────────────────────────────────────────────

def run_scraper(
    identifier: str = DEFAULT_IDENTIFIER,
    artifacts_root: str | Path = ARTIFACTS_ROOT,
    level: str = "INFO",
    log_path: Optional[str] = None,
    save: bool = True,
    transport: Optional[Transport] = None,
    geometry_transport: Optional[Transport] = None,
) -> Dict[str, Any]:
    logger = setup_logger(f"bc.{SITE_ID}", level, Path(log_path) if log_path else None)
    document = scrape_edinburgh(
        identifier, transport=transport, geometry_transport=geometry_transport, logger=logger
    )

    out_path: Optional[Path] = None
    if save:
        try:
            out_path = write_json(create_output_path(artifacts_root, SITE_ID, identifier), document)
        except OSError as e:
            raise ScraperError(
                f"Could not write document: {e}",
                SCRAPE_FAILED,
                {"identifier": identifier, "artifacts_root": str(artifacts_root), "original_error": str(e)},
            ) from e
        logger.info("Wrote document: %s", out_path)

    return {
        "site": SITE_ID,
        "identifier": identifier,
        "is_valid": document["metadata"]["validation"]["is_valid"],
        "output_path": str(out_path or ""),
        "document": document,
    }


if __name__ == "__main__":
    import sys
    from bc_scrape import run_site_cli
    sys.exit(run_site_cli(SITE_ID))
