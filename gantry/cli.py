from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .derive import compute_derived_data
from .snapshot import build_demo_snapshot
from .source import FetchOptions, JsonFileFetcher
from .util.console import die
from .validate import validate_snapshot

LOG_LEVEL_ENV = "GANTRY_LOG_LEVEL"

SECTIONS = {
    "rows": "rows",
    "rollups": "rollups",
    "schedules": "schedules",
    "workload": "workload_by_resource",
    "overlays": "overlays",
    "critical-path": "critical_path",
    "date-range": "date_range",
}

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    if verbose:
        level = logging.DEBUG
    else:
        name = (os.getenv(LOG_LEVEL_ENV, "") or "WARNING").strip().upper()
        level = getattr(logging, name, logging.WARNING)
        if not isinstance(level, int):
            level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _select(derived: Dict[str, Any], section: str) -> Any:
    if section == "all":
        return derived
    return derived.get(SECTIONS[section])


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(
        prog="gantry",
        description="Compute timeline derived data (roll-ups, rows, critical path, ...) from a snapshot JSON.",
    )
    src = ap.add_mutually_exclusive_group(required=True)
    src.add_argument("--in", dest="in_json", default=None, help="Input snapshot JSON path")
    src.add_argument("--demo", action="store_true", help="Use the built-in demo project")
    ap.add_argument("--project", default=None, help="Project id (demo ids are derived from it)")
    ap.add_argument(
        "--section",
        default="all",
        choices=["all"] + list(SECTIONS),
        help="Print only one section of the derived data (default: all)",
    )
    ap.add_argument("--out", default=None, help="Write JSON here instead of stdout")
    ap.add_argument("--no-validate", action="store_true", help="Skip structural snapshot validation")
    ap.add_argument("--verbose", action="store_true", help="Debug logging on stderr")
    ns = ap.parse_args(argv)

    _configure_logging(bool(ns.verbose))

    options = FetchOptions(project_id=ns.project)
    if ns.demo:
        snapshot = build_demo_snapshot(options.project_id)
    else:
        p = Path(ns.in_json)
        if not p.exists():
            return die(f"Missing JSON file: {p}")
        try:
            snapshot = JsonFileFetcher(p).fetch(options)
        except (OSError, ValueError) as e:
            return die(f"Failed to load snapshot JSON: {p} ({e})")

    if not ns.no_validate:
        errs = validate_snapshot(snapshot or {}, label="snapshot")
        if errs:
            die("snapshot failed validation", rc=3)
            for e in errs:
                print(f"  - {e}", file=sys.stderr)
            return 3

    derived = compute_derived_data(snapshot)
    if derived is None:
        return die("no snapshot available")

    out = _select(derived.to_dict(), ns.section)
    text = json.dumps(out, ensure_ascii=False, indent=2, sort_keys=True) + "\n"

    if ns.out:
        out_path = Path(ns.out)
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_text(text, encoding="utf-8", newline="\n")
        except OSError as e:
            return die(f"Failed to write output: {out_path} ({e})")
        logger.info("wrote %s", out_path)
    else:
        sys.stdout.write(text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
