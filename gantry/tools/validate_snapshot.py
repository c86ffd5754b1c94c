#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List

from gantry.snapshot import normalize_snapshot
from gantry.util.console import die
from gantry.validate import validate_snapshot

PROG = "gantry-validate-snapshot"


def main(argv: List[str] | None = None) -> int:
    ap = argparse.ArgumentParser(
        prog=PROG,
        description="Validate a timeline snapshot JSON (camelCase or snake_case keys).",
    )
    ap.add_argument("--in", dest="in_json", required=True, help="Input snapshot JSON path")
    ap.add_argument("--raw", action="store_true", help="Validate as-is, without normalizing key names first")
    ns = ap.parse_args(argv)

    p = Path(ns.in_json)
    if not p.exists():
        return die(f"Missing JSON file: {p}", prog=PROG)
    try:
        raw = json.loads(p.read_text(encoding="utf-8", errors="replace"))
    except (OSError, ValueError) as e:
        return die(f"Failed to load JSON: {p} ({e})", prog=PROG)
    if not isinstance(raw, dict):
        return die(f"snapshot must be a JSON object; got {type(raw).__name__}", prog=PROG)

    snapshot = raw if ns.raw else normalize_snapshot(raw)
    errs = validate_snapshot(snapshot, label=f"json:{p}")
    if errs:
        print(f"[{PROG}] FAIL", file=sys.stderr)
        for e in errs:
            print(f"  - {e}", file=sys.stderr)
        return 3

    print(f"[{PROG}] OK")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
