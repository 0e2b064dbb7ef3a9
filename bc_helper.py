#!/usr/bin/env python3
# bc_helper.py — shared helpers for the building control scrapers

from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

# ── Logging ─────────────────────────────────────────────────────────────────────
def setup_logger(name: str, level: str = "INFO", logfile: Optional[Path | str] = None) -> logging.Logger:
    """
    Create/reuse a logger. Honors:
      - BC_LOG_POLICY=never  → never create a file handler even if `logfile` is provided
      - BC_LOG_LEVEL=<LEVEL> → overrides the `level` argument (e.g., DEBUG, INFO)
    Idempotent: won't add duplicate handlers on repeated calls.
    """
    env_level = (os.getenv("BC_LOG_LEVEL") or "").strip()
    if env_level:
        level = env_level
    log_policy = (os.getenv("BC_LOG_POLICY") or "").strip().lower()

    logger = logging.getLogger(name)

    # Always (re)set level in case an existing logger is reused
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    has_stream = any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in logger.handlers
    )
    if not has_stream:
        fmt = logging.Formatter("%(asctime)s %(levelname)-7s %(message)s")
        sh = logging.StreamHandler()
        sh.setFormatter(fmt)
        logger.addHandler(sh)

    logfile_path = Path(logfile) if logfile else None
    if logfile_path and log_policy != "never":
        has_file = any(
            isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", "") == os.path.abspath(logfile_path)
            for h in logger.handlers
        )
        if not has_file:
            logfile_path.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(str(logfile_path), encoding="utf-8")
            fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)-7s %(message)s"))
            logger.addHandler(fh)

    return logger

# ── Text utils ──────────────────────────────────────────────────────────────────
_WS_RE = re.compile(r"\s+")

def clean_text(raw: Optional[str]) -> str:
    """Collapse every whitespace run (newlines, NBSP included) to one space and trim."""
    return _WS_RE.sub(" ", raw or "").strip()


_IDENT_RE = re.compile(r"^[a-z][a-zA-Z0-9]*$")
_NON_LABEL_RE = re.compile(r"[^a-z0-9\s]")
_SPACE_NEXT_RE = re.compile(r"\s+(.)")

def normalize_label(raw: Optional[str]) -> str:
    """
    Turn a human caption into a camelCase key:
      'Reference Number:' → 'referenceNumber'
      'Case Officer'      → 'caseOfficer'
    A key that is already canonical comes back unchanged, and leading digits
    are dropped so every key starts with a letter. Distinct captions may
    collapse to the same key; callers let the later one win.
    """
    if not raw:
        return ""
    if _IDENT_RE.fullmatch(raw):
        return raw
    s = _NON_LABEL_RE.sub("", raw.lower()).lstrip()
    s = _SPACE_NEXT_RE.sub(lambda m: m.group(1).upper(), s).strip()
    s = s.lstrip("0123456789")
    return s[:1].lower() + s[1:]


def strip_colon(label: Optional[str]) -> str:
    return re.sub(r":\s*$", "", clean_text(label)).strip()


PLACEHOLDER_VALUES = ("", "-")

def is_placeholder(value: Optional[str]) -> bool:
    return clean_text(value) in PLACEHOLDER_VALUES

# ── Time / naming ───────────────────────────────────────────────────────────────
def now_utc_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def safe_filename(identifier: str) -> str:
    """'FP/2025/0159' → 'FP-2025-0159'"""
    return re.sub(r"[^A-Za-z0-9._-]+", "-", identifier or "").strip("-") or "unknown"

# ── URL helpers ─────────────────────────────────────────────────────────────────
def canonicalize_url(href: str, base: Optional[str] = None) -> str:
    """
    Join against base (if provided), strip fragments, and normalize scheme/host.
    """
    url = urljoin(base or "", href or "")
    parts = urlsplit(url)
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path, parts.query, ""))

# ── JSON I/O ────────────────────────────────────────────────────────────────────
def write_json(path: Path | str, obj: Any) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2)
    return p


def create_output_path(artifacts_root: Path | str, site: str, identifier: str) -> Path:
    """
    Returns {artifacts_root}/json/{site}-{identifier}.json
    """
    json_dir = Path(artifacts_root) / "json"
    json_dir.mkdir(parents=True, exist_ok=True)
    return json_dir / f"{site}-{safe_filename(identifier)}.json"
