#!/usr/bin/env python3
# bc_aggregator.py — fetch + extract named sections, assemble one document

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from bc_config import APPLICATION_TYPES, SCRAPER_VERSION
from bc_errors import SECTION_EXTRACTION_FAILED
from bc_helper import now_utc_iso

Fetcher = Callable[["SectionSpec"], Any]


@dataclass(frozen=True)
class SectionSpec:
    """
    One logical section: where its content lives and how to read it.
    `extract` takes the fetched page (HTML text or parsed tree) and returns
    a record, a list of records, or None. `wait_for` is a CSS selector a
    browser transport waits on before reading the page.
    """
    name: str
    url: str
    extract: Callable[[Any], Any]
    wait_for: Optional[str] = None


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (dict, list)) and len(value) == 0)


def aggregate_sections(
    specs: Sequence[SectionSpec],
    fetch: Fetcher,
    logger: Optional[logging.Logger] = None,
) -> Tuple[Dict[str, Any], List[Dict[str, str]]]:
    """
    Fetch and extract each section in order. A failing section becomes None
    plus a SECTION_EXTRACTION_FAILED warning; the others carry on.
    Empty extractions are also stored as None.
    """
    logger = logger or logging.getLogger("bc.aggregator")
    results: Dict[str, Any] = {}
    warnings: List[Dict[str, str]] = []

    for spec in specs:
        logger.debug("Section %s → %s", spec.name, spec.url)
        try:
            raw = fetch(spec)
            value = spec.extract(raw)
        except Exception as e:
            logger.warning("Section %s failed: %s", spec.name, e)
            results[spec.name] = None
            warnings.append({
                "section": spec.name,
                "code": SECTION_EXTRACTION_FAILED,
                "message": str(e) or e.__class__.__name__,
            })
            continue

        results[spec.name] = None if _is_empty(value) else value
        size = len(value) if isinstance(value, (dict, list)) else (0 if value is None else 1)
        logger.debug("Section %s: %d item(s)", spec.name, size)

    return results, warnings


def group_sections(results: Dict[str, Any], group: str, members: Mapping[str, str]) -> Dict[str, Any]:
    """
    Move several flat sections under one key, e.g.
      {"design_certificate": [...]} → {"certificates": {"design": [...]}}
    `members` maps section name → key inside the group.
    """
    out = {k: v for k, v in results.items() if k not in members}
    out[group] = {inner: results.get(name) for name, inner in members.items()}
    return out


def application_type_info(application_type: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Resolve a free-text application type ('Full Plans Application') to the
    controlled vocabulary entry, or None.
    """
    if not application_type:
        return None
    needle = application_type.lower()
    for name, info in APPLICATION_TYPES.items():
        if name.lower() in needle:
            return {"type": name, **info}
    return None


def build_document(
    identifier: str,
    source_url: str,
    sections: Dict[str, Any],
    warnings: Iterable[Dict[str, str]] = (),
    extra_metadata: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Assemble a fresh document: metadata first, then sections in the order given.
    """
    metadata: Dict[str, Any] = {
        "identifier": identifier,
        "scraped_at": now_utc_iso(),
        "source_url": source_url,
        "scraper_version": SCRAPER_VERSION,
    }
    if extra_metadata:
        metadata.update(extra_metadata)
    metadata["warnings"] = list(warnings)

    document: Dict[str, Any] = {"metadata": metadata}
    document.update(sections)
    return document
