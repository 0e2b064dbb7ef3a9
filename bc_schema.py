# bc_schema.py
"""
Document shape and the validator that grades a scraped document.

DOCUMENT (scraper output; saved as artifacts/json/<site>-<identifier>.json)
----------------------------------------------------------------------
{
  "metadata": {
    "identifier": "FP/2025/0159",                    # always present, caller supplied
    "scraped_at": "2026-10-18T09:12:44Z",             # ISO-8601 in UTC
    "source_url": "https://…/BuildingControl/Display/FP/2025/0159",
    "scraper_version": "1.0.0",
    "warnings": [ {"section", "code", "message"}, … ],
    "validation": {"is_valid": true, "errors": [], "warnings": []}
  },
  "<section>": { field: value } | [ {field: value}, … ] | null,
  …
}

validate_document() never raises: every rule runs and the defects are
collected in order.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

PRIMARY_SECTION = "main_details"
REFERENCE_FIELD = "referenceNumber"

# WNC references look like FP/2025/0159, BN/2024/1234
REFERENCE_RE = re.compile(r"^[A-Z]{2}/\d{4}/\d+$")


@dataclass
class ValidationVerdict:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {"is_valid": self.is_valid, "errors": list(self.errors), "warnings": list(self.warnings)}


def _is_mapping(value: Any) -> bool:
    return isinstance(value, Mapping)


def validate_document(document: Any, primary: str = PRIMARY_SECTION) -> ValidationVerdict:
    verdict = ValidationVerdict()
    doc = document if _is_mapping(document) else {}

    # 1) identifier
    metadata = doc.get("metadata")
    identifier = metadata.get("identifier") if _is_mapping(metadata) else None
    if identifier is None or (isinstance(identifier, str) and not identifier.strip()):
        verdict.errors.append("Missing identifier in metadata")

    # 2) primary section has content
    main = doc.get(primary)
    if not _is_mapping(main) or len(main) == 0:
        verdict.errors.append(f"No {primary} extracted - page may not have loaded correctly")

    # 3) reference number shape
    if _is_mapping(main) and main.get(REFERENCE_FIELD):
        ref = main.get(REFERENCE_FIELD)
        if not isinstance(ref, str) or not REFERENCE_RE.fullmatch(ref):
            verdict.errors.append(f"{REFERENCE_FIELD} format unexpected: {ref}")

    # Section failures are surfaced, but don't make the document unusable
    if _is_mapping(metadata) and isinstance(metadata.get("warnings"), list):
        for w in metadata["warnings"]:
            if _is_mapping(w):
                verdict.warnings.append(f"{w.get('section')}: {w.get('message')}")

    return verdict


def attach_verdict(document: Dict[str, Any], verdict: ValidationVerdict) -> Dict[str, Any]:
    """Write the verdict into metadata.validation; nothing else is touched."""
    metadata = document.setdefault("metadata", {})
    metadata["validation"] = verdict.to_dict()
    return document
