"""View preferences consulted by the interaction controller.

Only `snap_mode` and `zoom_level` drive engine behavior; everything else is
carried through for the renderer.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Optional

from .model import ROW_DENSITIES, SCALES, SNAP_MODES

ZOOM_MIN = 0.25
ZOOM_MAX = 5.0
ZOOM_STEP = 0.1

SNAP_MODE_ENV = "GANTRY_SNAP_MODE"

# Wire (camelCase) -> attribute names.
_ALIASES = {
    "zoomLevel": "zoom_level",
    "showWeekends": "show_weekends",
    "showBaselines": "show_baselines",
    "showDependencies": "show_dependencies",
    "showOverlays": "show_overlays",
    "showLegend": "show_legend",
    "snapMode": "snap_mode",
    "rowDensity": "row_density",
    "colorBy": "color_by",
    "calendarId": "calendar_id",
    "savedViewId": "saved_view_id",
}


def _default_snap_mode() -> str:
    raw = (os.getenv(SNAP_MODE_ENV, "") or "").strip().lower()
    return raw if raw in SNAP_MODES else "day"


def clamp_zoom(value: float) -> float:
    return round(max(ZOOM_MIN, min(ZOOM_MAX, float(value))), 2)


@dataclass
class TimelinePreferences:
    scale: str = "day"
    zoom_level: float = 1.0
    show_weekends: bool = True
    show_baselines: bool = True
    show_dependencies: bool = True
    show_overlays: bool = False
    show_legend: bool = False
    snap_mode: str = "day"
    row_density: str = "comfortable"
    grouping: str = "none"
    color_by: str = "status"
    swimlanes: bool = False
    calendar_id: Optional[str] = None
    saved_view_id: Optional[str] = None

    @classmethod
    def defaults(cls) -> "TimelinePreferences":
        return cls(snap_mode=_default_snap_mode())

    @classmethod
    def from_dict(cls, raw: Any, *, base: Optional["TimelinePreferences"] = None) -> "TimelinePreferences":
        """Merge a (possibly partial, possibly camelCase) dict over `base`.

        Values of the wrong type or outside their vocabulary are ignored.
        """
        prefs = replace(base) if base is not None else cls.defaults()
        if not isinstance(raw, dict):
            return prefs
        patch: Dict[str, Any] = {}
        for k, v in raw.items():
            patch[_ALIASES.get(k, k)] = v
        return prefs.update(**patch)

    def update(self, **patch: Any) -> "TimelinePreferences":
        """Apply a partial update in place; returns self."""
        known = {f.name for f in fields(self)}
        for name, value in patch.items():
            if name not in known:
                continue
            coerced = _coerce(name, value, getattr(self, name))
            setattr(self, name, coerced)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def zoom_in(self) -> float:
        self.zoom_level = clamp_zoom(self.zoom_level + ZOOM_STEP)
        return self.zoom_level

    def zoom_out(self) -> float:
        self.zoom_level = clamp_zoom(self.zoom_level - ZOOM_STEP)
        return self.zoom_level

    def reset_zoom(self) -> float:
        self.zoom_level = 1.0
        return self.zoom_level


def _coerce(name: str, value: Any, current: Any) -> Any:
    if name == "zoom_level":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return current
        return clamp_zoom(value)
    if name == "snap_mode":
        return value if value in SNAP_MODES else current
    if name == "scale":
        return value if value in SCALES else current
    if name == "row_density":
        return value if value in ROW_DENSITIES else current
    if name in ("calendar_id", "saved_view_id"):
        return value if value is None or isinstance(value, str) else current
    if isinstance(current, bool):
        return value if isinstance(value, bool) else current
    if isinstance(current, str):
        return value if isinstance(value, str) and value else current
    return value


__all__ = [
    "TimelinePreferences",
    "clamp_zoom",
    "ZOOM_MIN",
    "ZOOM_MAX",
    "ZOOM_STEP",
    "SNAP_MODE_ENV",
]
