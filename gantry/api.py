"""gantry.api

Stable *library* entrypoint for gantry.

Policy:
  - Only names listed in __all__ are considered public API.
  - Everything else is internal and may change without notice.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Union

from gantry.derive import (
    build_critical_path,
    build_date_range,
    build_overlay_summaries,
    build_rollups,
    build_rows,
    build_schedules,
    build_workload,
    compute_derived_data,
    item_duration_minutes,
)
from gantry.history import SnapshotStore
from gantry.interactions import TimelineController
from gantry.keyboard import KeyEvent, dispatch_key
from gantry.model import DerivedData, Snapshot, TimelineRow
from gantry.preferences import TimelinePreferences
from gantry.snapping import shift_with_snap, snap_ms
from gantry.snapshot import build_demo_snapshot, empty_snapshot, normalize_snapshot
from gantry.source import DemoFetcher, FetchOptions, JsonFileFetcher, SnapshotFetcher
from gantry.validate import SnapshotValidationError, assert_valid_snapshot, validate_snapshot

JsonPath = Union[str, Path]


def load_snapshot_from_json(path: JsonPath, *, validate: bool = True) -> Snapshot:
    """Load a snapshot JSON file and normalize it to the canonical snake_case shape.

    When `validate` is True, a structurally broken snapshot raises
    SnapshotValidationError.
    """
    p = Path(path)
    raw = json.loads(p.read_text(encoding="utf-8", errors="replace"))
    if not isinstance(raw, dict):
        raise SnapshotValidationError(f"snapshot JSON must be an object/dict; got {type(raw).__name__}")
    snap = normalize_snapshot(raw)
    if validate:
        assert_valid_snapshot(snap)
    return snap


__all__ = [
    "DerivedData",
    "DemoFetcher",
    "FetchOptions",
    "JsonFileFetcher",
    "KeyEvent",
    "Snapshot",
    "SnapshotFetcher",
    "SnapshotStore",
    "SnapshotValidationError",
    "TimelineController",
    "TimelinePreferences",
    "TimelineRow",
    "assert_valid_snapshot",
    "build_critical_path",
    "build_date_range",
    "build_demo_snapshot",
    "build_overlay_summaries",
    "build_rollups",
    "build_rows",
    "build_schedules",
    "build_workload",
    "compute_derived_data",
    "dispatch_key",
    "empty_snapshot",
    "item_duration_minutes",
    "load_snapshot_from_json",
    "normalize_snapshot",
    "shift_with_snap",
    "snap_ms",
    "validate_snapshot",
]
