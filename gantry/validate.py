"""Snapshot validation helpers (library-facing)."""

from __future__ import annotations

from typing import Any, Dict, List

from .model import DEPENDENCY_TYPES, ITEM_KINDS, SNAP_MODES, SNAPSHOT_COLLECTIONS


class SnapshotValidationError(ValueError):
    """Raised when a snapshot fails validation."""


def _require(cond: bool, msg: str, errs: List[str]) -> None:
    if not cond:
        errs.append(msg)


def _check_ids(entries: List[Any], *, label: str, coll: str, errs: List[str]) -> None:
    seen: set[str] = set()
    for i, e in enumerate(entries):
        if not isinstance(e, dict):
            errs.append(f"{label}: {coll}[{i}] must be dict")
            continue
        eid = e.get("id")
        if not (isinstance(eid, str) and eid.strip()):
            errs.append(f"{label}: {coll}[{i}].id must be non-empty string")
            continue
        if eid in seen:
            errs.append(f"{label}: {coll}[{i}].id duplicated: {eid!r}")
        seen.add(eid)


def validate_snapshot(snapshot: Dict[str, Any], *, label: str = "snapshot") -> List[str]:
    if not isinstance(snapshot, dict):
        return [f"{label}: snapshot must be a dict/object"]

    errs: List[str] = []
    for coll in SNAPSHOT_COLLECTIONS:
        val = snapshot.get(coll)
        _require(isinstance(val, list), f"{label}: {coll} must be list", errs)
    if errs:
        return errs

    for coll in ("items", "groups", "milestones", "dependencies"):
        _check_ids(snapshot[coll], label=label, coll=coll, errs=errs)

    for i, it in enumerate(snapshot["items"]):
        if not isinstance(it, dict):
            continue
        kind = it.get("kind")
        _require(kind in ITEM_KINDS, f"{label}: items[{i}].kind must be one of {'|'.join(ITEM_KINDS)}", errs)
        pct = it.get("percent_complete")
        if pct is not None:
            ok = isinstance(pct, (int, float)) and not isinstance(pct, bool) and 0 <= pct <= 1
            _require(ok, f"{label}: items[{i}].percent_complete must be within [0, 1]", errs)
        tags = it.get("tags")
        if tags is not None:
            _require(isinstance(tags, list), f"{label}: items[{i}].tags must be list", errs)

    for i, dep in enumerate(snapshot["dependencies"]):
        if not isinstance(dep, dict):
            continue
        _require(
            dep.get("type") in DEPENDENCY_TYPES,
            f"{label}: dependencies[{i}].type must be one of {'|'.join(DEPENDENCY_TYPES)}",
            errs,
        )
        for k in ("from_id", "to_id"):
            v = dep.get(k)
            _require(isinstance(v, str) and bool(v), f"{label}: dependencies[{i}].{k} must be non-empty string", errs)

    prefs = snapshot.get("preferences")
    if prefs is not None:
        if not isinstance(prefs, dict):
            errs.append(f"{label}: preferences must be dict")
        elif "snap_mode" in prefs:
            _require(
                prefs.get("snap_mode") in SNAP_MODES,
                f"{label}: preferences.snap_mode must be one of {'|'.join(SNAP_MODES)}",
                errs,
            )

    return errs


def assert_valid_snapshot(snapshot: Dict[str, Any]) -> None:
    errs = validate_snapshot(snapshot, label="snapshot")
    if errs:
        raise SnapshotValidationError(errs[0])


__all__ = [
    "SnapshotValidationError",
    "assert_valid_snapshot",
    "validate_snapshot",
]
