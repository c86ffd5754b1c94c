# gantry/snapshot.py
"""Snapshot normalization.

The fetch layer hands over whatever the backend returned: camelCase keys,
missing collections, partial preferences. `normalize_snapshot` turns that
into the snake_case shape the engine reads. It is additive and idempotent.
"""

from __future__ import annotations

import datetime as dt
import re
from typing import Any, Dict, List, Optional

from .model import SNAPSHOT_COLLECTIONS, Snapshot
from .preferences import TimelinePreferences
from .util.timeparse import ms_to_iso
from .util.tz import now_ms, start_of_day_ms

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")

DAY_MS = 24 * 60 * 60 * 1000
HOUR_MS = 60 * 60 * 1000

# Entity keys whose values are free-form and must not be rewritten.
_OPAQUE_KEYS = {"metadata", "custom_fields", "filters"}


def _snake(key: str) -> str:
    return _CAMEL_RE.sub(r"_\1", key).lower()


def _snake_keys(d: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in d.items():
        nk = _snake(k) if isinstance(k, str) else k
        if nk in _OPAQUE_KEYS:
            out[nk] = v
            continue
        if isinstance(v, list) and v and all(isinstance(x, dict) for x in v):
            # e.g. overlay.data, calendar.working_hours
            v = [_snake_keys(x) for x in v]
        elif isinstance(v, list):
            v = list(v)
        out[nk] = v
    return out


def empty_snapshot() -> Snapshot:
    out: Snapshot = {k: [] for k in SNAPSHOT_COLLECTIONS}
    out["preferences"] = TimelinePreferences.defaults().to_dict()
    out["metadata"] = {}
    out["last_updated"] = None
    return out


def normalize_snapshot(raw: Any) -> Snapshot:
    """Return a normalized copy of `raw` (never mutates the input)."""
    if not isinstance(raw, dict):
        raise TypeError(f"snapshot must be dict; got {type(raw).__name__}")

    src = {(_snake(k) if isinstance(k, str) else k): v for k, v in raw.items()}
    out = empty_snapshot()

    for key in SNAPSHOT_COLLECTIONS:
        val = src.get(key)
        if not isinstance(val, list):
            continue
        out[key] = [_snake_keys(e) for e in val if isinstance(e, dict)]

    prefs = TimelinePreferences.from_dict(src.get("preferences"))
    out["preferences"] = prefs.to_dict()

    meta = src.get("metadata")
    out["metadata"] = dict(meta) if isinstance(meta, dict) else {}

    lu = src.get("last_updated")
    out["last_updated"] = lu if isinstance(lu, str) else None

    # Keep unknown top-level keys so round-tripping through the engine is lossless.
    for k, v in src.items():
        if k not in out:
            out[k] = v
    return out


def build_demo_snapshot(
    project_id: Optional[str] = None,
    saved_view_id: Optional[str] = None,
    filters: Optional[Dict[str, Any]] = None,
    *,
    today_ms: Optional[int] = None,
) -> Snapshot:
    """Deterministic demo project: discovery -> build -> launch."""
    today = start_of_day_ms(today_ms if today_ms is not None else now_ms(), dt.timezone.utc)
    base = project_id or "demo-project"

    def day(n: int) -> str:
        return ms_to_iso(today + n * DAY_MS)

    def task(n: int, name: str, s: int, e: int, pct: float, status: str, group: str,
             assignees: List[str], tags: List[str]) -> Dict[str, Any]:
        return {
            "id": f"{base}-task-{n}",
            "name": name,
            "kind": "task",
            "start": day(s),
            "end": day(e),
            "duration_minutes": (e - s) * 24 * 60,
            "percent_complete": pct,
            "status": status,
            "assignee_ids": assignees,
            "group_id": f"{base}-group-{group}",
            "tags": tags,
        }

    items = [
        task(1, "Define scope", -3, 2, 0.8, "in_progress", "discovery", ["user-1"], ["critical"]),
        task(2, "Design review", 2, 6, 0.35, "planned", "discovery", ["user-2"], ["design"]),
        task(3, "Build prototype", 6, 13, 0.1, "not_started", "build", ["user-3"], ["engineering"]),
        task(4, "Launch prep", 13, 18, 0.0, "not_started", "launch", ["user-1", "user-4"], ["go-to-market"]),
    ]
    groups = [
        {"id": f"{base}-group-discovery", "name": "Discovery", "parent_id": None, "order_index": 0},
        {"id": f"{base}-group-build", "name": "Build", "parent_id": None, "order_index": 1},
        {"id": f"{base}-group-launch", "name": "Launch", "parent_id": None, "order_index": 2},
    ]
    milestones = [
        {"id": f"{base}-gate-alpha", "name": "Alpha exit", "type": "gate", "date": day(6),
         "related_item_ids": [f"{base}-task-3"]},
        {"id": f"{base}-release", "name": "Release", "type": "release", "date": day(18),
         "related_item_ids": [f"{base}-task-4"]},
    ]
    dependencies = [
        {"id": f"{base}-dep-{n}", "from_id": f"{base}-task-{n}", "to_id": f"{base}-task-{n + 1}", "type": "FS"}
        for n in (1, 2, 3)
    ]
    baselines = [
        {"id": f"{base}-baseline-1", "item_id": f"{base}-task-3", "start": day(5), "end": day(11),
         "duration_minutes": 6 * 24 * 60, "variance_minutes": 24 * 60},
    ]
    risk_values = [1.5, 2.5, 3.8, 2.0]
    overlays = [
        {"id": f"{base}-risk-overlay", "name": "Risk", "type": "risk",
         "data": [{"item_id": it["id"], "value": v} for it, v in zip(items, risk_values)]},
    ]
    workload = []
    for it in items:
        assignees = it["assignee_ids"]
        for i, person in enumerate(assignees):
            workload.append({
                "item_id": it["id"],
                "person_id": person,
                "allocation_minutes": it["duration_minutes"] / max(1, len(assignees)) * (1 if i == 0 else 0.75),
            })

    now_iso = ms_to_iso(today + 9 * HOUR_MS)
    prefs = TimelinePreferences.defaults()
    prefs.saved_view_id = saved_view_id

    out = empty_snapshot()
    out.update({
        "items": items,
        "groups": groups,
        "milestones": milestones,
        "dependencies": dependencies,
        "baselines": baselines,
        "calendars": [{
            "id": "default-calendar",
            "name": "Default",
            "timezone": "UTC",
            "working_days": [1, 2, 3, 4, 5],
            "working_hours": [{"start": "09:00", "end": "12:00"}, {"start": "13:00", "end": "17:00"}],
        }],
        "overlays": overlays,
        "workload": workload,
        "risk_scores": [{"item_id": it["id"], "score": v} for it, v in zip(items, risk_values)],
        "comments": [{
            "id": f"{base}-comment-1",
            "item_id": f"{base}-task-2",
            "author_id": "user-1",
            "message": "Waiting on design sign-off",
            "created_at": now_iso,
        }],
        "permissions": [
            {"item_id": it["id"], "actor_id": "current-user", "can_edit": True, "can_comment": True,
             "can_link_dependencies": True}
            for it in items
        ],
        "presence": [{"item_id": it["id"], "user_id": "current-user", "updated_at": now_iso} for it in items],
        "preferences": prefs.to_dict(),
        "metadata": {"filters": dict(filters or {}), "project_id": base},
        "last_updated": now_iso,
    })
    return out


__all__ = ["empty_snapshot", "normalize_snapshot", "build_demo_snapshot"]
