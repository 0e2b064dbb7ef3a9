#!/usr/bin/env python3
# bc_errors.py — error types shared by the scrapers

from __future__ import annotations

from typing import Any, Dict, Optional

# Error codes
GATE_ACCEPT_FAILED = "GATE_ACCEPT_FAILED"
FETCH_FAILED = "FETCH_FAILED"
SECTION_EXTRACTION_FAILED = "SECTION_EXTRACTION_FAILED"
SCRAPE_FAILED = "SCRAPE_FAILED"


class ScraperError(Exception):
    """
    Base failure for a scrape run. Always carries a code and a details dict
    (identifier, underlying transport/parse message, ...).
    """

    def __init__(self, message: str, code: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details: Dict[str, Any] = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code, "details": self.details}


class SessionError(ScraperError):
    """Session could not be established (GATE_ACCEPT_FAILED | FETCH_FAILED)."""


class TransportError(Exception):
    """Network failure or non-2xx status after the transport's own retries."""

    def __init__(self, message: str, url: str = "", status: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status = status
