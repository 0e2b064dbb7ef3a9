#!/usr/bin/env python3
# bc_getwnc.py — West Northamptonshire building control scraper
"""
One case page per reference, behind a disclaimer that must be accepted once
per cookie session:

  GET  /BuildingControl/Display/FP/2025/0159     → disclaimer (first time)
  POST /Disclaimer/Accept?returnUrl=…            → sets the session cookie
  GET  /BuildingControl/Display/FP/2025/0159     → case page

Every section (main details, plots, site history, documents, contact) is
read from that single page.
"""

from __future__ import annotations

import logging
from functools import partial
from pathlib import Path
from typing import Any, Dict, List, Optional

from bc_aggregator import SectionSpec, aggregate_sections, application_type_info, build_document
from bc_config import ARTIFACTS_ROOT, WNC_BASE, WNC_DEFAULT_REFERENCE, WNC_DISPLAY_PATH, FetchConfig
from bc_errors import SCRAPE_FAILED, ScraperError
from bc_extractor import (
    as_soup,
    extract_contact_info,
    extract_links,
    extract_page_title,
    extract_record,
    extract_table_records,
)
from bc_helper import create_output_path, setup_logger, write_json
from bc_schema import attach_verdict, validate_document
from bc_session import SessionAcquirer, Transport
from bc_transport import HttpTransport

SITE_ID = "wnc"
DEFAULT_IDENTIFIER = WNC_DEFAULT_REFERENCE

PLOT_KEYWORDS = ("Plot Number", "Plot Status")
HISTORY_KEYWORDS = ("Application Number", "Location", "Proposal")
DOCUMENT_HREF_FRAGMENTS = (".pdf", "document", "Document")


def build_target_url(reference: str) -> str:
    return WNC_BASE + WNC_DISPLAY_PATH.format(reference=reference)


def wnc_sections(target_url: str) -> List[SectionSpec]:
    """Sections in document order; all of them live on the target page."""
    return [
        SectionSpec("main_details", target_url, extract_record),
        SectionSpec("plots", target_url, partial(extract_table_records, keywords=PLOT_KEYWORDS)),
        # History tables carry stray single-cell rows; a real record has 2+ fields
        SectionSpec(
            "site_history",
            target_url,
            partial(extract_table_records, keywords=HISTORY_KEYWORDS, min_fields=2, require_all=True),
        ),
        SectionSpec(
            "documents",
            target_url,
            partial(
                extract_links,
                fragments=DOCUMENT_HREF_FRAGMENTS,
                label_key="name",
                base=target_url,
                exclude=("Disclaimer",),
                require_text=True,
            ),
        ),
        SectionSpec("contact_info", target_url, extract_contact_info),
    ]


def scrape_wnc(
    reference: str,
    transport: Optional[Transport] = None,
    config: Optional[FetchConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> Dict[str, Any]:
    """
    Scrape one case. Returns the validated document, or raises ScraperError
    (SessionError for GATE_ACCEPT_FAILED / FETCH_FAILED, SCRAPE_FAILED otherwise).
    """
    logger = logger or logging.getLogger(f"bc.{SITE_ID}")
    own_transport = transport is None
    if transport is None:
        transport = HttpTransport(config or FetchConfig.from_env(), logger)

    target_url = build_target_url(reference)
    logger.info("Scraping WNC building control: %s", reference)

    try:
        logger.debug("Fetching page %s", target_url)
        page = SessionAcquirer(transport, reference, logger).acquire(target_url)
        soup = as_soup(page.body)
        page_title = extract_page_title(soup)
        logger.debug("Page title: %s", page_title)

        pages = {target_url: soup}
        results, warnings = aggregate_sections(wnc_sections(target_url), lambda spec: pages[spec.url], logger)

        main = results.get("main_details") or {}
        sections: Dict[str, Any] = {
            "main_details": results.get("main_details"),
            "application_type_info": application_type_info(main.get("applicationType")),
            "plots": results.get("plots"),
            "site_history": results.get("site_history"),
            "documents": results.get("documents"),
            "contact_info": results.get("contact_info"),
        }
        document = build_document(
            reference,
            target_url,
            sections,
            warnings,
            {"site": SITE_ID, "page_title": page_title},
        )

        verdict = validate_document(document)
        if not verdict.is_valid:
            logger.warning("Data validation warnings: %s", verdict.errors)
        attach_verdict(document, verdict)

        logger.info(
            "Extracted: main_details=%d fields plots=%d history=%d documents=%d validation=%s",
            len(main),
            len(sections["plots"] or []),
            len(sections["site_history"] or []),
            len(sections["documents"] or []),
            "PASSED" if verdict.is_valid else "FAILED",
        )
        return document

    except ScraperError:
        raise
    except Exception as e:
        raise ScraperError(
            f"Scraping failed: {e}",
            SCRAPE_FAILED,
            {"identifier": reference, "original_error": str(e)},
        ) from e
    finally:
        if own_transport:
            transport.close()


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
) -> Dict[str, Any]:
    logger = setup_logger(f"bc.{SITE_ID}", level, Path(log_path) if log_path else None)
    document = scrape_wnc(identifier, transport=transport, logger=logger)

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
