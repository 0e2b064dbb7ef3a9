#!/usr/bin/env python3
# bc_extractor.py — label/value extraction from irregular HTML tables
"""
Record extraction for council portal pages.

Portal markup is not uniform, even inside one page, so single-record sections
go through an ordered chain of strategies and the first one that produces a
non-empty record wins:

  1) span-in-cell     <td class="halfwidth">Status <br/><div><span>Ongoing</span></div></td>
  2) definition list  <dt>Status:</dt><dd>Ongoing</dd>
  3) header/data pair <tr><th>Status:</th><td>Ongoing</td></tr>

Repeating sections (plots, site history, certificates) are read as ordered
lists of records. Nothing here raises on odd markup: no match → {} or [].
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from bs4 import BeautifulSoup
from bs4.element import Tag

from bc_config import WNC_DETAIL_CELL_SELECTOR
from bc_helper import canonicalize_url, clean_text, is_placeholder, normalize_label, strip_colon

FieldRecord = Dict[str, Optional[str]]
RecordSet = List[FieldRecord]
Markup = Union[str, bytes, Tag, None]
Strategy = Callable[[Tag], FieldRecord]

log = logging.getLogger("bc.extractor")

NO_CERTIFICATE_MARKERS = ("There are no", "No certificates")


def as_soup(src: Markup) -> Tag:
    """Accept raw HTML or an already-parsed tree."""
    if isinstance(src, Tag):
        return src
    return BeautifulSoup(src or "", "html.parser")


def _direct_cells(row: Tag, names: Sequence[str] = ("th", "td")) -> List[Tag]:
    return row.find_all(list(names), recursive=False)


def _own(table: Tag, name: str) -> List[Tag]:
    """Descendants of `table` named `name` that do not belong to a nested table."""
    return [el for el in table.find_all(name) if el.find_parent("table") is table]

# ────────────────────────────────────────────────────────────────────────────────
# Single-record strategies
# ────────────────────────────────────────────────────────────────────────────────

def extract_span_cells(soup: Tag, selector: str = WNC_DETAIL_CELL_SELECTOR) -> FieldRecord:
    """
    Detail cells hold their own caption plus a nested <span> with the value.
    Label = cell text minus the span text; a cell with no caption left is skipped.
    """
    record: FieldRecord = {}
    for cell in soup.select(selector):
        span = cell.find("span")
        if span is None:
            continue
        raw_value = span.get_text()
        label = clean_text(cell.get_text().replace(raw_value, "", 1))
        key = normalize_label(strip_colon(label))
        if not key:
            continue
        record[key] = clean_text(raw_value) or None
    return record


def extract_definition_list(soup: Tag) -> FieldRecord:
    record: FieldRecord = {}
    for dt in soup.find_all("dt"):
        key = normalize_label(strip_colon(dt.get_text()))
        if not key:
            continue
        dd = dt.find_next_sibling(["dt", "dd"])
        value = clean_text(dd.get_text()) if dd is not None and dd.name == "dd" else ""
        record[key] = value or None
    return record


def extract_header_pairs(soup: Tag) -> FieldRecord:
    """
    Rows with exactly one <th> and one <td>. The portals print '-' for
    "nothing recorded"; such fields are left out rather than kept as ''.
    """
    record: FieldRecord = {}
    for row in soup.find_all("tr"):
        ths = _direct_cells(row, ("th",))
        tds = _direct_cells(row, ("td",))
        if len(ths) != 1 or len(tds) != 1:
            continue
        key = normalize_label(strip_colon(ths[0].get_text()))
        value = clean_text(tds[0].get_text())
        if not key or is_placeholder(value):
            continue
        record[key] = value
    return record


DEFAULT_STRATEGIES: tuple[Strategy, ...] = (
    extract_span_cells,
    extract_definition_list,
    extract_header_pairs,
)


def extract_record(src: Markup, strategies: Iterable[Strategy] = DEFAULT_STRATEGIES) -> FieldRecord:
    """Run the strategy chain; first non-empty record wins."""
    soup = as_soup(src)
    for strategy in strategies:
        try:
            record = strategy(soup)
        except Exception as e:
            log.debug("strategy %s failed: %s", getattr(strategy, "__name__", strategy), e)
            continue
        if record:
            log.debug("strategy %s → %d fields", getattr(strategy, "__name__", strategy), len(record))
            return record
    return {}

# ────────────────────────────────────────────────────────────────────────────────
# Repeating tables
# ────────────────────────────────────────────────────────────────────────────────

def _header_row(table: Tag) -> Optional[Tag]:
    """<thead> row if present, else the first row made only of <th> cells."""
    rows = _own(table, "tr")
    for row in rows:
        if row.parent is not None and row.parent.name == "thead" and _direct_cells(row, ("th",)):
            return row
    for row in rows:
        cells = _direct_cells(row)
        if cells and all(c.name == "th" for c in cells):
            return row
    return None


def _table_signals(table: Tag) -> List[str]:
    signals: List[str] = []
    for caption in _own(table, "caption")[:1]:
        signals.append(normalize_label(caption.get_text()).lower())
    for th in _own(table, "th"):
        label = normalize_label(strip_colon(th.get_text())).lower()
        if label:
            signals.append(label)
    return signals


def find_tables(soup: Tag, keywords: Sequence[str], require_all: bool = False) -> List[Tag]:
    """
    Tables whose caption or header labels mention the keywords.
    Keywords are compared against lower-cased normalized labels,
    e.g. 'plot' matches a 'Plot Number' header ('plotnumber').
    """
    wanted = [normalize_label(k).lower() for k in keywords if normalize_label(k)]
    matched: List[Tag] = []
    for table in soup.find_all("table"):
        signals = _table_signals(table)
        hits = [any(k in s for s in signals) for k in wanted]
        if hits and (all(hits) if require_all else any(hits)):
            matched.append(table)
    return matched


def table_records(table: Tag, min_fields: int = 1) -> RecordSet:
    """
    One record per data row, keyed by the header at the same position
    (or column_<index> when there is no header for it). Rows keep source order.
    """
    header_row = _header_row(table)
    headers: List[str] = []
    if header_row is not None:
        headers = [normalize_label(strip_colon(c.get_text())) for c in _direct_cells(header_row)]

    rows: RecordSet = []
    for row in _own(table, "tr"):
        if row is header_row:
            continue
        cells = _direct_cells(row)
        if not any(c.name == "td" for c in cells):
            continue
        record: FieldRecord = {}
        for idx, cell in enumerate(cells):
            value = clean_text(cell.get_text())
            if is_placeholder(value):
                continue
            key = headers[idx] if idx < len(headers) and headers[idx] else f"column_{idx}"
            record[key] = value
        if len(record) >= max(1, min_fields):
            rows.append(record)
    return rows


def extract_table_records(src: Markup, keywords: Sequence[str], min_fields: int = 1,
                          require_all: bool = False) -> RecordSet:
    soup = as_soup(src)
    out: RecordSet = []
    for table in find_tables(soup, keywords, require_all=require_all):
        out.extend(table_records(table, min_fields=min_fields))
    return out


def _pair_rows(table: Tag) -> FieldRecord:
    record: FieldRecord = {}
    for row in _own(table, "tr"):
        cells = _direct_cells(row)
        if len(cells) < 2:
            continue
        key = normalize_label(strip_colon(cells[0].get_text()))
        value = clean_text(cells[-1].get_text())
        if key and not is_placeholder(value):
            record[key] = value
    return record


def extract_pair_tables(src: Markup) -> RecordSet:
    """
    Every table read as one record of first-cell → last-cell pairs.
    Used for certificate tabs; a page that says it has none yields [].
    """
    soup = as_soup(src)
    text = soup.get_text(" ")
    if any(marker in text for marker in NO_CERTIFICATE_MARKERS):
        return []
    out: RecordSet = []
    for table in soup.find_all("table"):
        record = _pair_rows(table)
        if record:
            out.append(record)
    return out


def extract_pair_record(src: Markup) -> FieldRecord:
    """All first-cell → last-cell pairs on the page merged into one record."""
    soup = as_soup(src)
    record: FieldRecord = {}
    for table in soup.find_all("table"):
        record.update(_pair_rows(table))
    return record

# ────────────────────────────────────────────────────────────────────────────────
# Links & page bits
# ────────────────────────────────────────────────────────────────────────────────

def extract_links(src: Markup, fragments: Sequence[str], label_key: str, base: Optional[str] = None,
                  exclude: Sequence[str] = (), require_text: bool = False) -> List[Dict[str, Any]]:
    """
    Anchors whose href contains any of `fragments` → [{label_key: text, "url": absolute}].
    """
    soup = as_soup(src)
    out: List[Dict[str, Any]] = []
    for a in soup.find_all("a", href=True):
        href = (a.get("href") or "").strip()
        if not href or not any(f in href for f in fragments):
            continue
        if any(x in href for x in exclude):
            continue
        text = clean_text(a.get_text())
        if require_text and not text:
            continue
        out.append({label_key: text, "url": canonicalize_url(href, base=base)})
    return out


def extract_contact_info(src: Markup) -> Optional[Dict[str, str]]:
    soup = as_soup(src)
    contacts: Dict[str, str] = {}
    for a in soup.select('a[href^="mailto:"]'):
        email = (a.get("href") or "")[len("mailto:"):].split("?")[0].strip()
        if "@" in email:
            contacts["email"] = email
    return contacts or None


def extract_page_title(src: Markup) -> Optional[str]:
    soup = as_soup(src)
    h1 = soup.find("h1")
    return (clean_text(h1.get_text()) or None) if h1 is not None else None
