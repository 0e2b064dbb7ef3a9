#!/usr/bin/env python3
# bc_transport.py — HTTP (requests) and headless-browser (Playwright) transports
"""
Both transports expose the same call:

    fetch(url, method="GET", body=None) -> TransportResponse

and raise TransportError on network failure or a non-2xx status once their
own retry budget is spent. Each instance owns one cookie/session context for
one run; close() it afterwards (both are context managers).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from bc_config import BROWSER_NAV_TIMEOUT_MS, BROWSER_SELECTOR_TIMEOUT_MS, FetchConfig
from bc_errors import TransportError

# Playwright (only needed for browser-driven sources)
try:
    from playwright.sync_api import Error as PlaywrightError
    from playwright.sync_api import sync_playwright
    _PLAYWRIGHT_AVAILABLE = True
except ImportError:
    _PLAYWRIGHT_AVAILABLE = False


@dataclass
class TransportResponse:
    status: int
    body: str
    headers: Dict[str, str] = field(default_factory=dict)
    url: str = ""


def _browser_headers(config: FetchConfig) -> Dict[str, str]:
    return {
        "User-Agent": config.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": config.accept_language,
        "Accept-Encoding": "gzip, deflate, br",
    }

# ────────────────────────────────────────────────────────────────────────────────
# requests-based transport
# ────────────────────────────────────────────────────────────────────────────────

def build_session(config: FetchConfig) -> requests.Session:
    s = requests.Session()
    s.headers.update(_browser_headers(config))
    retry = Retry(
        total=config.retry_total,
        backoff_factor=config.retry_backoff,
        status_forcelist=config.retry_statuses,
        allowed_methods=frozenset(["GET", "HEAD", "POST"]),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=4, pool_maxsize=4)
    s.mount("http://", adapter)
    s.mount("https://", adapter)
    return s


class HttpTransport:
    """Cookie-carrying requests session; redirects are followed."""

    def __init__(self, config: Optional[FetchConfig] = None, logger: Optional[logging.Logger] = None,
                 session: Optional[requests.Session] = None):
        self.config = config or FetchConfig()
        self._logger = logger or logging.getLogger("bc.transport")
        self._session = session or build_session(self.config)

    @property
    def cookies(self):
        return self._session.cookies

    def fetch(self, url: str, method: str = "GET", body: Optional[str | bytes] = None) -> TransportResponse:
        method = method.upper()
        # The disclaimer endpoint insists on a Content-Length, so POSTs always carry a body
        if method == "POST" and body is None:
            body = b""
        try:
            resp = self._session.request(method, url, data=body, timeout=self.config.timeout, allow_redirects=True)
        except requests.RequestException as e:
            self._logger.debug("%s failed %s: %s", method, url, e)
            raise TransportError(f"{method} {url} failed: {e}", url=url) from e

        self._logger.debug("%s %s %s %s", method, url, resp.status_code, len(resp.content or b""))
        if not 200 <= resp.status_code < 300:
            raise TransportError(f"{method} {url} returned HTTP {resp.status_code}", url=url, status=resp.status_code)
        resp.encoding = resp.encoding or "utf-8"
        return TransportResponse(
            status=resp.status_code,
            body=resp.text,
            headers=dict(resp.headers),
            url=resp.url or url,
        )

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

# ────────────────────────────────────────────────────────────────────────────────
# Playwright-based transport
# ────────────────────────────────────────────────────────────────────────────────

class BrowserTransport:
    """
    Chromium page driven through the Playwright sync API. Every fetch is a
    navigation; the browser context keeps cookies between tabs.
    """

    def __init__(self, config: Optional[FetchConfig] = None, logger: Optional[logging.Logger] = None,
                 headless: bool = True):
        if not _PLAYWRIGHT_AVAILABLE:
            raise RuntimeError("Playwright not available (pip install playwright && playwright install chromium)")
        self.config = config or FetchConfig()
        self._logger = logger or logging.getLogger("bc.transport")
        self._pl = sync_playwright().start()
        self._browser = None
        try:
            self._browser = self._pl.chromium.launch(headless=headless, args=["--no-sandbox"])
            headers = _browser_headers(self.config)
            self._context = self._browser.new_context(
                user_agent=headers.pop("User-Agent"),
                locale="en-GB",
                extra_http_headers={"Accept-Language": headers["Accept-Language"]},
            )
            self._page = self._context.new_page()
        except Exception:
            # The driver process is already running; stop it before giving up
            if self._browser is not None:
                try:
                    self._browser.close()
                except PlaywrightError as e:
                    self._logger.debug("PW close error: %r", e)
            self._pl.stop()
            raise

    def fetch(self, url: str, method: str = "GET", body: Optional[str | bytes] = None,
              wait_until: str = "domcontentloaded", wait_for: Optional[str] = None) -> TransportResponse:
        if method.upper() != "GET":
            raise TransportError(f"BrowserTransport only navigates (got {method})", url=url)
        self._logger.debug("PW GET %s (wait_until=%s)", url, wait_until)
        try:
            resp = self._page.goto(url, wait_until=wait_until, timeout=self.config.timeout * 1000 or BROWSER_NAV_TIMEOUT_MS)
        except PlaywrightError as e:
            raise TransportError(f"navigation to {url} failed: {e}", url=url) from e

        status = resp.status if resp else 0
        if wait_for:
            try:
                self._page.wait_for_selector(wait_for, timeout=BROWSER_SELECTOR_TIMEOUT_MS)
            except PlaywrightError:
                # Empty tabs never render the selector; the content is still usable
                self._logger.debug("PW selector %r not found on %s", wait_for, url)

        html = self._page.content()
        if resp is not None and not 200 <= status < 300:
            self._logger.debug("PW non-2xx: status=%s head=%r", status, html[:400])
            raise TransportError(f"GET {url} returned HTTP {status}", url=url, status=status)
        self._logger.debug("PW OK: status=%s len=%d", status, len(html))
        return TransportResponse(
            status=status or 200,
            body=html,
            headers=dict(resp.headers) if resp else {},
            url=self._page.url or url,
        )

    def close(self) -> None:
        for closer in (self._context.close, self._browser.close, self._pl.stop):
            try:
                closer()
            except PlaywrightError as e:
                self._logger.debug("PW close error: %r", e)

    def __enter__(self) -> "BrowserTransport":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
