# gantry/derive.py
"""Derived-data engine.

`compute_derived_data(snapshot)` is a pure function of the snapshot. It never
raises on malformed entries: unparsable dates count as absent, unknown
parents/groups fall back to the root, and dependency cycles degrade the
critical path to a single item.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from .model import (
    ROOT_ID,
    DateRange,
    DerivedData,
    OverlaySummary,
    RiskSummary,
    Rollup,
    Schedule,
    Snapshot,
    TimelineItem,
    TimelineRow,
    WorkloadBucket,
)
from .util.timeparse import optional_iso, parse_iso_ms

logger = logging.getLogger(__name__)

MIN_MS = 60_000


def _entries(snapshot: Snapshot, key: str) -> List[Dict[str, Any]]:
    val = snapshot.get(key) if isinstance(snapshot, dict) else None
    if not isinstance(val, list):
        return []
    return [e for e in val if isinstance(e, dict)]


def _str_id(v: Any) -> Optional[str]:
    return v if isinstance(v, str) and v else None


def _number(v: Any) -> Optional[float]:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    try:
        if not math.isfinite(v):
            return None
    except OverflowError:  # int beyond float range
        return None
    return v


def item_duration_minutes(item: TimelineItem) -> int:
    """Own duration: explicit duration_minutes, else the start->end span, else 0.

    An explicit duration wins over the span even for dated items, so roll-ups,
    schedules and the critical path all count the same figure per item.
    """
    dur = _number(item.get("duration_minutes"))
    if dur is not None:
        return max(int(dur), 0)
    start_ms = parse_iso_ms(item.get("start"))
    end_ms = parse_iso_ms(item.get("end"))
    if start_ms is not None and end_ms is not None:
        return max((end_ms - start_ms) // MIN_MS, 0)
    return 0


# --- group forest --------------------------------------------------------------


class _Forest:
    """Adjacency for the group forest, built once per recompute."""

    def __init__(self, snapshot: Snapshot) -> None:
        self.warnings: List[str] = []
        self.groups: Dict[str, Dict[str, Any]] = {}
        for g in _entries(snapshot, "groups"):
            gid = _str_id(g.get("id"))
            if gid and gid not in self.groups:
                self.groups[gid] = g

        self.children: Dict[str, List[str]] = {ROOT_ID: []}
        for gid, g in self.groups.items():
            parent = _str_id(g.get("parent_id"))
            if parent is None or parent not in self.groups or parent == gid:
                parent = ROOT_ID
            self.children.setdefault(parent, []).append(gid)

        self.items_by_group: Dict[str, List[TimelineItem]] = {ROOT_ID: []}
        for it in _entries(snapshot, "items"):
            if _str_id(it.get("id")) is None:
                continue
            gid = _str_id(it.get("group_id"))
            key = gid if gid in self.groups else ROOT_ID
            self.items_by_group.setdefault(key, []).append(it)

        self._break_cycles()

    def order_key(self, gid: str) -> float:
        idx = _number(self.groups[gid].get("order_index"))
        return idx if idx is not None else 0

    def sorted_children(self, parent: str) -> List[str]:
        return sorted(self.children.get(parent, []), key=self.order_key)

    def _reachable(self) -> Set[str]:
        seen: Set[str] = set()
        stack = [ROOT_ID]
        while stack:
            cur = stack.pop()
            for child in self.children.get(cur, []):
                if child not in seen:
                    seen.add(child)
                    stack.append(child)
        return seen

    def _break_cycles(self) -> None:
        # Groups unreachable from the root sit on a parent_id cycle.
        reachable = self._reachable()
        for gid in self.groups:
            if gid in reachable:
                continue
            parent = _str_id(self.groups[gid].get("parent_id"))
            msg = f"group cycle detected at {gid!r} (parent_id={parent!r}); treating it as top-level"
            logger.warning(msg)
            self.warnings.append(msg)
            if parent is not None and gid in self.children.get(parent, []):
                self.children[parent].remove(gid)
            self.children[ROOT_ID].append(gid)
            reachable = self._reachable()

    def post_order(self) -> List[str]:
        out: List[str] = []
        visited: Set[str] = set()
        stack: List[Tuple[str, bool]] = [(g, False) for g in reversed(self.children.get(ROOT_ID, []))]
        while stack:
            gid, expanded = stack.pop()
            if expanded:
                out.append(gid)
                continue
            if gid in visited:
                continue
            visited.add(gid)
            stack.append((gid, True))
            for child in reversed(self.children.get(gid, [])):
                if child not in visited:
                    stack.append((child, False))
        return out


# --- rollups -------------------------------------------------------------------


def _build_rollup(
    target_id: str,
    items: Iterable[TimelineItem],
    child_groups: Iterable[str],
    rollups: Dict[str, Rollup],
) -> Rollup:
    starts: List[int] = []
    ends: List[int] = []
    duration = 0
    weighted_total = 0.0
    weighted_weight = 0
    child_ids: Dict[str, None] = {}

    for it in items:
        s = parse_iso_ms(it.get("start"))
        e = parse_iso_ms(it.get("end"))
        if s is not None:
            starts.append(s)
        if e is not None:
            ends.append(e)
        d = item_duration_minutes(it)
        duration += d
        pct = _number(it.get("percent_complete"))
        if pct is not None:
            weighted_total += d * pct
            weighted_weight += d
        child_ids[str(it.get("id"))] = None

    for gid in child_groups:
        child = rollups.get(gid)
        if child is None:
            continue
        s = parse_iso_ms(child.start)
        e = parse_iso_ms(child.end)
        if s is not None:
            starts.append(s)
        if e is not None:
            ends.append(e)
        duration += child.duration_minutes
        if child.percent_complete is not None:
            weighted_total += child.percent_complete * child.duration_minutes
            weighted_weight += child.duration_minutes
        for cid in child.child_item_ids:
            child_ids[cid] = None

    pct_out = weighted_total / weighted_weight if weighted_weight > 0 else None
    return Rollup(
        target_id=target_id,
        start=optional_iso(min(starts)) if starts else None,
        end=optional_iso(max(ends)) if ends else None,
        duration_minutes=int(duration),
        percent_complete=pct_out,
        child_item_ids=tuple(child_ids),
    )


def _rollups_for(forest: _Forest) -> Dict[str, Rollup]:
    rollups: Dict[str, Rollup] = {}
    for gid in forest.post_order():
        rollups[gid] = _build_rollup(
            gid,
            forest.items_by_group.get(gid, []),
            forest.children.get(gid, []),
            rollups,
        )
    rollups[ROOT_ID] = _build_rollup(
        ROOT_ID,
        forest.items_by_group.get(ROOT_ID, []),
        forest.children.get(ROOT_ID, []),
        rollups,
    )
    return rollups


def build_rollups(snapshot: Snapshot) -> Dict[str, Rollup]:
    """Post-order aggregation over the group forest plus a synthetic root."""
    return _rollups_for(_Forest(snapshot))


# --- schedules / workload / overlays -------------------------------------------


def _baseline_duration(baseline: Dict[str, Any]) -> int:
    dur = _number(baseline.get("duration_minutes"))
    if dur is not None:
        return int(dur)
    s = parse_iso_ms(baseline.get("start"))
    e = parse_iso_ms(baseline.get("end"))
    if s is not None and e is not None:
        return max((e - s) // MIN_MS, 0)
    return 0


def build_schedules(snapshot: Snapshot) -> Dict[str, Schedule]:
    baseline_by_item: Dict[str, Dict[str, Any]] = {}
    for b in _entries(snapshot, "baselines"):
        iid = _str_id(b.get("item_id"))
        if iid:
            baseline_by_item[iid] = b

    out: Dict[str, Schedule] = {}
    for it in _entries(snapshot, "items"):
        iid = _str_id(it.get("id"))
        if iid is None:
            continue
        duration = item_duration_minutes(it)
        baseline = baseline_by_item.get(iid)
        variance = duration - _baseline_duration(baseline) if baseline is not None else None
        out[iid] = Schedule(
            item_id=iid,
            start=it.get("start") if isinstance(it.get("start"), str) else None,
            end=it.get("end") if isinstance(it.get("end"), str) else None,
            duration_minutes=duration,
            baseline_start=baseline.get("start") if baseline is not None else None,
            baseline_end=baseline.get("end") if baseline is not None else None,
            variance_minutes=variance,
        )
    return out


def build_workload(snapshot: Snapshot) -> Dict[str, WorkloadBucket]:
    totals: Dict[str, float] = {}
    item_ids: Dict[str, List[str]] = {}
    for m in _entries(snapshot, "workload"):
        key = _str_id(m.get("person_id")) or _str_id(m.get("team_id")) or "unassigned"
        alloc = _number(m.get("allocation_minutes")) or 0
        totals[key] = totals.get(key, 0) + alloc
        item_ids.setdefault(key, []).append(str(m.get("item_id") or ""))
    return {k: WorkloadBucket(allocation_minutes=totals[k], item_ids=tuple(item_ids[k])) for k in totals}


def build_overlay_summaries(snapshot: Snapshot) -> Dict[str, OverlaySummary]:
    out: Dict[str, OverlaySummary] = {}
    for ov in _entries(snapshot, "overlays"):
        oid = _str_id(ov.get("id"))
        data = ov.get("data")
        if oid is None or not isinstance(data, list):
            continue
        values = [v for v in (_number(d.get("value")) for d in data if isinstance(d, dict)) if v is not None]
        if not values:
            continue
        out[oid] = OverlaySummary(
            overlay_id=oid,
            min_value=min(values),
            max_value=max(values),
            average_value=sum(values) / len(values),
        )
    return out


def build_risk_summary(snapshot: Snapshot) -> Optional[RiskSummary]:
    scores = [s for s in (_number(r.get("score")) for r in _entries(snapshot, "risk_scores")) if s is not None]
    if not scores:
        return None
    return RiskSummary(
        count=len(scores),
        min_score=min(scores),
        max_score=max(scores),
        average_score=sum(scores) / len(scores),
    )


# --- rows ----------------------------------------------------------------------


def _item_sort_key(item: TimelineItem) -> Tuple[int, int]:
    s = parse_iso_ms(item.get("start"))
    return (1, 0) if s is None else (0, s)


def _milestone_ref(item: TimelineItem) -> Optional[str]:
    return _str_id(item.get("milestone_id")) or _str_id(item.get("baseline_id"))


def _rows_for(snapshot: Snapshot, forest: _Forest, rollups: Dict[str, Rollup]) -> List[TimelineRow]:
    rows: List[TimelineRow] = []
    milestones = {m["id"]: m for m in _entries(snapshot, "milestones") if _str_id(m.get("id"))}
    visited: Set[str] = set()

    def visit(parent: str, depth: int) -> None:
        for gid in forest.sorted_children(parent):
            if gid in visited:
                continue
            visited.add(gid)
            g = forest.groups[gid]
            rollup = rollups.get(gid)
            color = _str_id(g.get("color"))
            rows.append(TimelineRow(
                id=gid,
                type="group",
                depth=depth,
                label=str(g.get("name") or ""),
                group_id=gid,
                percent_complete=rollup.percent_complete if rollup else None,
                start=rollup.start if rollup else None,
                end=rollup.end if rollup else None,
                is_collapsed=bool(g.get("collapsed", False)),
                has_children=bool(forest.children.get(gid)) or bool(forest.items_by_group.get(gid)),
                badges=(color,) if color else (),
            ))
            visit(gid, depth + 1)

        for it in sorted(forest.items_by_group.get(parent, []), key=_item_sort_key):
            iid = str(it.get("id"))
            is_milestone = it.get("kind") == "milestone"
            tags = it.get("tags")
            rows.append(TimelineRow(
                id=iid,
                type="milestone" if is_milestone else "item",
                depth=depth,
                label=str(it.get("name") or ""),
                item_id=iid,
                percent_complete=_number(it.get("percent_complete")),
                start=it.get("start") if isinstance(it.get("start"), str) else None,
                end=it.get("end") if isinstance(it.get("end"), str) else None,
                badges=tuple(str(t) for t in tags) if isinstance(tags, list) else (),
            ))
            ref = _milestone_ref(it) if is_milestone else None
            ms = milestones.get(ref) if ref else None
            if ms is not None:
                date = ms.get("date") if isinstance(ms.get("date"), str) else None
                rows.append(TimelineRow(
                    id=f"{iid}:{ms['id']}",
                    type="milestone",
                    depth=depth + 1,
                    label=str(ms.get("name") or ""),
                    milestone_id=ms["id"],
                    start=date,
                    end=date,
                ))

    visit(ROOT_ID, 0)
    return rows


def build_rows(snapshot: Snapshot, rollups: Optional[Dict[str, Rollup]] = None) -> List[TimelineRow]:
    """Depth-first, pre-order flattening of groups and items for rendering."""
    forest = _Forest(snapshot)
    if rollups is None:
        rollups = _rollups_for(forest)
    return _rows_for(snapshot, forest, rollups)


# --- critical path -------------------------------------------------------------


def _longest_path(snapshot: Snapshot) -> Tuple[List[str], bool]:
    """Return (path, degraded). `degraded` is True when a cycle was hit."""
    items = [it for it in _entries(snapshot, "items") if _str_id(it.get("id"))]
    order: List[str] = []
    duration: Dict[str, int] = {}
    for it in items:
        iid = it["id"]
        if iid in duration:
            continue
        order.append(iid)
        duration[iid] = item_duration_minutes(it)
    if not order:
        return [], False

    adjacency: Dict[str, List[Tuple[str, float]]] = {iid: [] for iid in order}
    indegree: Dict[str, int] = {iid: 0 for iid in order}
    for dep in _entries(snapshot, "dependencies"):
        src = _str_id(dep.get("from_id"))
        dst = _str_id(dep.get("to_id"))
        if src not in adjacency or dst not in adjacency:
            continue
        lag = _number(dep.get("lead_lag_minutes")) or 0
        adjacency[src].append((dst, lag))
        indegree[dst] += 1

    longest: Dict[str, float] = dict(duration)
    predecessor: Dict[str, Optional[str]] = {iid: None for iid in order}

    queue = deque(iid for iid in order if indegree[iid] == 0)
    processed = 0
    while queue:
        cur = queue.popleft()
        processed += 1
        for dst, lag in adjacency[cur]:
            candidate = longest[cur] + lag + duration[dst]
            if candidate > longest[dst]:
                longest[dst] = candidate
                predecessor[dst] = cur
            indegree[dst] -= 1
            if indegree[dst] == 0:
                queue.append(dst)

    if processed != len(order):
        best = order[0]
        for iid in order[1:]:
            if duration[iid] > duration[best]:
                best = iid
        logger.warning(
            "dependency cycle detected (%d of %d items ordered); critical path degraded to %r",
            processed,
            len(order),
            best,
        )
        return [best], True

    end = order[0]
    for iid in order[1:]:
        if longest[iid] > longest[end]:
            end = iid

    path: List[str] = []
    seen: Set[str] = set()
    cur_id: Optional[str] = end
    while cur_id is not None and cur_id not in seen:
        seen.add(cur_id)
        path.append(cur_id)
        cur_id = predecessor.get(cur_id)
    path.reverse()
    return path, False


def build_critical_path(snapshot: Snapshot) -> List[str]:
    """Longest duration-plus-lag path over the dependency DAG (Kahn order).

    On a cycle the search is abandoned and the single item with the largest
    own duration is returned instead.
    """
    return _longest_path(snapshot)[0]


# --- date range ----------------------------------------------------------------


def build_date_range(snapshot: Snapshot) -> DateRange:
    starts: List[int] = []
    ends: List[int] = []
    for it in _entries(snapshot, "items"):
        s = parse_iso_ms(it.get("start"))
        e = parse_iso_ms(it.get("end"))
        if s is not None:
            starts.append(s)
        if e is not None:
            ends.append(e)
    for ms in _entries(snapshot, "milestones"):
        d = parse_iso_ms(ms.get("date"))
        if d is not None:
            starts.append(d)
            ends.append(d)
    return DateRange(
        start=optional_iso(min(starts)) if starts else None,
        end=optional_iso(max(ends)) if ends else None,
    )


def compute_derived_data(snapshot: Optional[Snapshot]) -> Optional[DerivedData]:
    """Snapshot -> DerivedData. A missing snapshot yields None."""
    if not isinstance(snapshot, dict):
        return None

    forest = _Forest(snapshot)
    rollups = _rollups_for(forest)
    critical_path, degraded = _longest_path(snapshot)

    warnings = list(forest.warnings)
    if degraded:
        warnings.append("dependency cycle: critical path degraded to a single item")

    return DerivedData(
        rollups=rollups,
        schedules=build_schedules(snapshot),
        workload_by_resource=build_workload(snapshot),
        overlays=build_overlay_summaries(snapshot),
        rows=_rows_for(snapshot, forest, rollups),
        critical_path=critical_path,
        date_range=build_date_range(snapshot),
        risk_summary=build_risk_summary(snapshot),
        warnings=tuple(warnings),
    )


__all__ = [
    "item_duration_minutes",
    "build_rollups",
    "build_schedules",
    "build_workload",
    "build_overlay_summaries",
    "build_risk_summary",
    "build_rows",
    "build_critical_path",
    "build_date_range",
    "compute_derived_data",
]
