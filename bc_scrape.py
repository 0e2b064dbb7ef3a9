#!/usr/bin/env python3
"""
bc_scrape.py — one CLI over every site scraper.

  python bc_scrape.py --site wnc FP/2025/0159 -v
  python bc_scrape.py --site edinburgh T1A67ZEWK0T00 --no-save --print

Exit status: 0 when the scraped document validates, 1 when it does not or
when the scrape fails (error code and details go to stderr as JSON).
"""

from __future__ import annotations

import argparse
import importlib
import json
import sys
from typing import Any, Callable, Dict, List, Optional, Tuple

from bc_config import ARTIFACTS_ROOT
from bc_errors import ScraperError

# -------------------------------------------------------------------
# Scraper registry: site -> (module_name, function_name)
# -------------------------------------------------------------------
SCRAPER_SPECS: Dict[str, Tuple[str, str]] = {
    "wnc": ("bc_getwnc", "run_scraper"),
    "edinburgh": ("bc_getedinburgh", "run_scraper"),
}


def _load_scraper(site: str) -> Tuple[Callable[..., Dict[str, Any]], str]:
    module_name, fn_name = SCRAPER_SPECS[site]
    module = importlib.import_module(module_name)
    return getattr(module, fn_name), getattr(module, "DEFAULT_IDENTIFIER", "")


def _build_parser(site: Optional[str] = None) -> argparse.ArgumentParser:
    title = f"{site} building control scraper" if site else "Building control scraper"
    ap = argparse.ArgumentParser(description=title)
    if site is None:
        ap.add_argument("--site", required=True, choices=sorted(SCRAPER_SPECS), help="Which portal to scrape")
    ap.add_argument("identifier", nargs="?", help="Case reference / keyVal (defaults to the site's sample case)")
    ap.add_argument("-v", "--verbose", action="store_true", help="Print progress lines (DEBUG); quiet (WARNING) otherwise")
    ap.add_argument("--level", default=None, help="Logging level (overrides --verbose)")
    ap.add_argument("--artifacts-root", default=str(ARTIFACTS_ROOT), help="Artifacts root directory")
    ap.add_argument("--log-path", default=None, help="Optional log file")
    ap.add_argument("--no-save", action="store_true", help="Do not write the JSON document")
    ap.add_argument("--print", dest="print_doc", action="store_true", help="Print the scraped document")
    return ap


def run(site: str, args: argparse.Namespace) -> int:
    runner, default_identifier = _load_scraper(site)
    identifier = args.identifier or default_identifier
    level = args.level or ("DEBUG" if args.verbose else "WARNING")

    try:
        meta = runner(
            identifier,
            artifacts_root=args.artifacts_root,
            level=level,
            log_path=args.log_path,
            save=not args.no_save,
        )
    except ScraperError as e:
        print(json.dumps(e.to_dict(), indent=2, ensure_ascii=False), file=sys.stderr)
        return 1

    document = meta.pop("document", None)
    if args.print_doc and document is not None:
        print(json.dumps(document, indent=2, ensure_ascii=False))
    print(json.dumps(meta, indent=2))
    return 0 if meta.get("is_valid") else 1


def run_site_cli(site: str, argv: Optional[List[str]] = None) -> int:
    args = _build_parser(site).parse_args(argv)
    return run(site, args)


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    return run(args.site, args)


if __name__ == "__main__":
    sys.exit(main())
