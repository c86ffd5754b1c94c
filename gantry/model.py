# gantry/model.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

# Snapshot-facing types (lightweight, JSON-shaped)
Snapshot = Dict[str, Any]
TimelineItem = Dict[str, Any]
TimelineGroup = Dict[str, Any]
TimelineDependency = Dict[str, Any]

ROOT_ID = "__root__"

ITEM_KINDS = ("task", "project", "milestone", "group", "subtask", "deliverable")
DEPENDENCY_TYPES = ("FS", "SS", "FF", "SF")
SNAP_MODES = ("none", "day", "week", "month")
SCALES = ("hour", "day", "week", "month", "quarter", "year")
ROW_DENSITIES = ("comfortable", "compact", "condensed")

# Collections every normalized snapshot carries.
SNAPSHOT_COLLECTIONS = (
    "items",
    "groups",
    "milestones",
    "dependencies",
    "baselines",
    "constraints",
    "calendars",
    "overlays",
    "workload",
    "risk_scores",
    "comments",
    "permissions",
    "presence",
)


@dataclass(frozen=True)
class Rollup:
    target_id: str
    start: Optional[str]
    end: Optional[str]
    duration_minutes: int
    percent_complete: Optional[float]
    child_item_ids: Tuple[str, ...]


@dataclass(frozen=True)
class Schedule:
    item_id: str
    start: Optional[str]
    end: Optional[str]
    duration_minutes: Optional[int]
    baseline_start: Optional[str] = None
    baseline_end: Optional[str] = None
    variance_minutes: Optional[int] = None


@dataclass(frozen=True)
class WorkloadBucket:
    allocation_minutes: float
    item_ids: Tuple[str, ...]


@dataclass(frozen=True)
class OverlaySummary:
    overlay_id: str
    min_value: float
    max_value: float
    average_value: float


@dataclass(frozen=True)
class RiskSummary:
    count: int
    min_score: float
    max_score: float
    average_score: float


@dataclass(frozen=True)
class TimelineRow:
    id: str
    type: str  # "group" | "item" | "milestone"
    depth: int
    label: str
    item_id: Optional[str] = None
    group_id: Optional[str] = None
    milestone_id: Optional[str] = None
    percent_complete: Optional[float] = None
    start: Optional[str] = None
    end: Optional[str] = None
    is_collapsed: bool = False
    has_children: bool = False
    badges: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DateRange:
    start: Optional[str]
    end: Optional[str]


@dataclass(frozen=True)
class DerivedData:
    rollups: Dict[str, Rollup]
    schedules: Dict[str, Schedule]
    workload_by_resource: Dict[str, WorkloadBucket]
    overlays: Dict[str, OverlaySummary]
    rows: List[TimelineRow]
    critical_path: List[str]
    date_range: DateRange
    risk_summary: Optional[RiskSummary] = None
    warnings: Tuple[str, ...] = field(default=())

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready view (tuples become lists)."""
        return asdict(self, dict_factory=_json_dict)


def _json_dict(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    return {k: (list(v) if isinstance(v, tuple) else v) for k, v in pairs}


__all__ = [
    "Snapshot",
    "TimelineItem",
    "TimelineGroup",
    "TimelineDependency",
    "ROOT_ID",
    "ITEM_KINDS",
    "DEPENDENCY_TYPES",
    "SNAP_MODES",
    "SCALES",
    "ROW_DENSITIES",
    "SNAPSHOT_COLLECTIONS",
    "Rollup",
    "Schedule",
    "WorkloadBucket",
    "OverlaySummary",
    "RiskSummary",
    "TimelineRow",
    "DateRange",
    "DerivedData",
]
