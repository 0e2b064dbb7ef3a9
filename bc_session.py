#!/usr/bin/env python3
# bc_session.py — disclaimer-gate session acquisition
"""
Gated sources show a terms/disclaimer interstitial until it is accepted once
per cookie session. Acquisition is a small state machine:

    UNAUTHENTICATED ──fetch──▶ AUTHENTICATED                 (no gate marker)
          │
          └──gate marker──▶ GATE_DETECTED ──accept+refetch──▶ AUTHENTICATED
                               ▲        │
                               └────────┘  marker still present / transport error
                                           (bounded by max_accepts)
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Protocol, Sequence
from urllib.parse import quote, urljoin, urlsplit

from bc_config import WNC_ACCEPT_PATH, WNC_GATE_MARKERS
from bc_errors import FETCH_FAILED, GATE_ACCEPT_FAILED, SessionError, TransportError
from bc_transport import TransportResponse


class Transport(Protocol):
    def fetch(self, url: str, method: str = "GET", body: Optional[str | bytes] = None) -> TransportResponse: ...


class GateState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    GATE_DETECTED = "gate_detected"
    AUTHENTICATED = "authenticated"


def has_gate_marker(body: Optional[str], markers: Sequence[str] = WNC_GATE_MARKERS) -> bool:
    text = body or ""
    return any(m in text for m in markers)


def build_accept_url(target_url: str, accept_path: str = WNC_ACCEPT_PATH) -> str:
    """
    '/Disclaimer/Accept?returnUrl=%2FBuildingControl%2FDisplay%2FFP%2F2025%2F0159'
    on the target's own host. returnUrl is the target's path (+ query).
    """
    parts = urlsplit(target_url)
    return_path = parts.path + (f"?{parts.query}" if parts.query else "")
    accept = urljoin(target_url, accept_path)
    return f"{accept}?returnUrl={quote(return_path, safe='')}"


class SessionAcquirer:
    """
    Establishes access to `target_url` through `transport` (which must keep
    cookies across calls) and returns the target page body.
    """

    def __init__(self, transport: Transport, identifier: str, logger: Optional[logging.Logger] = None,
                 markers: Sequence[str] = WNC_GATE_MARKERS, accept_path: str = WNC_ACCEPT_PATH,
                 max_accepts: int = 2):
        self.transport = transport
        self.identifier = identifier
        self.markers = tuple(markers)
        self.accept_path = accept_path
        self.max_accepts = max_accepts
        self.state = GateState.UNAUTHENTICATED
        self.accept_calls = 0
        self._logger = logger or logging.getLogger("bc.session")

    def _details(self, target_url: str, err: Optional[Exception] = None) -> dict:
        d = {"identifier": self.identifier, "target_url": target_url, "accept_calls": self.accept_calls}
        if err is not None:
            d["original_error"] = str(err)
        return d

    def acquire(self, target_url: str) -> TransportResponse:
        self.state = GateState.UNAUTHENTICATED
        self.accept_calls = 0

        try:
            resp = self.transport.fetch(target_url)
        except TransportError as e:
            raise SessionError(
                f"Failed to fetch page: {e}", FETCH_FAILED, self._details(target_url, e)
            ) from e

        if not has_gate_marker(resp.body, self.markers):
            self._logger.debug("No gate on %s; session already usable", target_url)
            self.state = GateState.AUTHENTICATED
            return resp

        self.state = GateState.GATE_DETECTED
        self._logger.info("Gate page detected for %s; accepting disclaimer", self.identifier)
        accept_url = build_accept_url(target_url, self.accept_path)

        last_code = GATE_ACCEPT_FAILED
        last_error: Optional[Exception] = None
        while self.state is GateState.GATE_DETECTED:
            if self.accept_calls >= self.max_accepts:
                raise SessionError(
                    f"Gate still present after {self.accept_calls} accept attempt(s)",
                    last_code,
                    self._details(target_url, last_error),
                )

            self.accept_calls += 1
            try:
                self.transport.fetch(accept_url, method="POST", body=b"")
            except TransportError as e:
                self._logger.warning("Accept attempt %d failed: %s", self.accept_calls, e)
                last_code, last_error = GATE_ACCEPT_FAILED, e
                continue

            try:
                resp = self.transport.fetch(target_url)
            except TransportError as e:
                self._logger.warning("Re-fetch after accept %d failed: %s", self.accept_calls, e)
                last_code, last_error = FETCH_FAILED, e
                continue

            if has_gate_marker(resp.body, self.markers):
                self._logger.debug("Gate marker still present after accept %d", self.accept_calls)
                last_code, last_error = GATE_ACCEPT_FAILED, None
                continue

            self.state = GateState.AUTHENTICATED

        self._logger.debug("Session authenticated after %d accept call(s)", self.accept_calls)
        return resp
