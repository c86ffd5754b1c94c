# gantry/interactions.py
"""Interaction controller: gestures, selection, clipboard, nudge, undo/redo.

The controller is the only writer of the snapshot store. Every public method
is safe to call in any state: requests that make no sense right now (no
snapshot, empty selection, no gesture of the right kind) are silent no-ops
and return False.

Gesture edits are applied live. The pre-gesture snapshot is recorded in the
history once, when the gesture ends. Cancelling a `create` gesture drops the
provisional item; cancelling a drag/resize keeps whatever was already applied.
Starting a gesture while another is in flight cancels the earlier one first.
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple, Union

from .derive import compute_derived_data
from .history import SnapshotStore
from .model import DEPENDENCY_TYPES, DerivedData, Snapshot, TimelineItem, TimelineRow
from .preferences import TimelinePreferences
from .snapping import (
    DAY_MS,
    delta_days_from_pixels,
    ensure_end_after_start,
    shift_with_snap,
    snap_ms,
)
from .source import FetchOptions, SnapshotFetcher
from .util.timeparse import ms_to_iso, parse_iso_ms
from .util.tz import default_tz_name, now_ms, safe_resolve_tz, start_of_day_ms

logger = logging.getLogger(__name__)

DEFAULT_PX_PER_DAY = 48.0
MIN_MS = 60_000

SELECT_MODES = ("replace", "append", "toggle")


@dataclass(frozen=True)
class DragGesture:
    kind: ClassVar[str] = "drag"
    item_ids: Tuple[str, ...]
    initial: Dict[str, Tuple[int, int]] = field(default_factory=dict)


@dataclass(frozen=True)
class ResizeGesture:
    kind: ClassVar[str] = "resize"
    item_id: str
    edge: str  # "start" | "end"
    initial_start_ms: int
    initial_end_ms: int


@dataclass(frozen=True)
class CreateGesture:
    kind: ClassVar[str] = "create"
    item_id: str
    row_id: str
    anchor_ms: int


@dataclass(frozen=True)
class DependencyGesture:
    kind: ClassVar[str] = "dependency_link"
    from_id: str
    dependency_type: str = "FS"


Gesture = Union[DragGesture, ResizeGesture, CreateGesture, DependencyGesture]


def _default_id_factory(prefix: str) -> str:
    return str(uuid.uuid4())


def _as_ms(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value == value:
        return int(value)
    return parse_iso_ms(value)


class TimelineController:
    def __init__(
        self,
        store: Optional[SnapshotStore] = None,
        *,
        preferences: Optional[TimelinePreferences] = None,
        px_per_day: float = DEFAULT_PX_PER_DAY,
        tz: Optional[str] = None,
        id_factory: Optional[Callable[[str], str]] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self.store = store if store is not None else SnapshotStore()
        snap = self.store.snapshot
        if preferences is None:
            preferences = TimelinePreferences.from_dict(snap.get("preferences") if snap else None)
        self.preferences = preferences
        self.px_per_day = float(px_per_day)
        self.tzinfo = safe_resolve_tz(tz if tz is not None else default_tz_name())
        self._id_factory = id_factory or _default_id_factory
        self._clock = clock or now_ms

        self.gesture: Optional[Gesture] = None
        self._origin: Optional[Snapshot] = None
        self.selection: List[str] = []
        self.clipboard: Optional[List[TimelineItem]] = None

        self._derived_for: Optional[Snapshot] = None
        self._derived: Optional[DerivedData] = None

    # --- state accessors ------------------------------------------------------

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self.store.snapshot

    @property
    def derived(self) -> Optional[DerivedData]:
        snap = self.store.snapshot
        if snap is not self._derived_for:
            self._derived = compute_derived_data(snap)
            self._derived_for = snap
        return self._derived

    @property
    def rows(self) -> List[TimelineRow]:
        d = self.derived
        return d.rows if d is not None else []

    @property
    def can_undo(self) -> bool:
        return self.store.can_undo

    @property
    def can_redo(self) -> bool:
        return self.store.can_redo

    @property
    def snap_mode(self) -> str:
        return self.preferences.snap_mode

    def load(self, snapshot: Optional[Snapshot]) -> None:
        """Adopt a freshly fetched snapshot; history restarts."""
        self.gesture = None
        self._origin = None
        self.store.load(snapshot)
        if snapshot is not None:
            self.preferences = TimelinePreferences.from_dict(snapshot.get("preferences"), base=self.preferences)
            known = {it.get("id") for it in self._items(snapshot)}
            self.selection = [i for i in self.selection if i in known]
        else:
            self.selection = []

    def refresh(self, fetcher: SnapshotFetcher, options: Optional[FetchOptions] = None) -> Optional[Snapshot]:
        snap = fetcher.fetch(options or FetchOptions())
        if snap is not None:
            self.load(snap)
        return snap

    # --- internal helpers -----------------------------------------------------

    @staticmethod
    def _items(snap: Snapshot) -> List[TimelineItem]:
        items = snap.get("items")
        return [it for it in items if isinstance(it, dict)] if isinstance(items, list) else []

    def _stamp(self, snap: Snapshot, **changes: Any) -> Snapshot:
        out = dict(snap)
        out.update(changes)
        out["last_updated"] = ms_to_iso(self._clock())
        return out

    def _rows_by_item(self) -> Dict[str, TimelineRow]:
        return {r.item_id: r for r in self.rows if r.item_id}

    def _retime(self, item: TimelineItem, start_ms: int, end_ms: int) -> TimelineItem:
        if parse_iso_ms(item.get("start")) == start_ms and parse_iso_ms(item.get("end")) == end_ms:
            return item
        out = dict(item)
        out["start"] = ms_to_iso(start_ms)
        out["end"] = ms_to_iso(end_ms)
        out["duration_minutes"] = (end_ms - start_ms) // MIN_MS
        return out

    def _map_items(
        self,
        snap: Snapshot,
        ids: List[str],
        transform: Callable[[TimelineItem], TimelineItem],
    ) -> Snapshot:
        """New snapshot with `transform` applied to `ids`; `snap` itself if nothing changed."""
        id_set = set(ids)
        changed = False
        out_items: List[Any] = []
        for it in snap.get("items") or []:
            if isinstance(it, dict) and it.get("id") in id_set:
                try:
                    nxt = transform(it)
                except (OverflowError, ValueError, OSError) as ex:
                    logger.debug("skipping edit of %r: %s", it.get("id"), ex)
                    nxt = it
                if nxt is not it:
                    changed = True
                out_items.append(nxt)
            else:
                out_items.append(it)
        if not changed:
            return snap
        return self._stamp(snap, items=out_items)

    def _apply_live(self, ids: List[str], transform: Callable[[TimelineItem], TimelineItem]) -> bool:
        snap = self.store.snapshot
        if snap is None or not ids:
            return False
        nxt = self._map_items(snap, ids, transform)
        if nxt is snap:
            return False
        self.store.replace_live(nxt)
        return True

    def _apply_committed(self, ids: List[str], transform: Callable[[TimelineItem], TimelineItem]) -> bool:
        if self.store.snapshot is None or not ids:
            return False
        return self.store.update(lambda prev: self._map_items(prev, ids, transform))

    def _start_gesture(self, gesture: Gesture) -> None:
        if self.gesture is not None:
            logger.debug("implicitly cancelling %s gesture", self.gesture.kind)
            self.cancel_gesture()
        self.gesture = gesture
        self._origin = self.store.snapshot

    def _settle(self) -> None:
        # Committed edits first finish whatever gesture is in flight.
        if self.gesture is not None:
            self.complete_gesture()

    def _delta_days(self, delta_px: float) -> float:
        return delta_days_from_pixels(delta_px, self.px_per_day)

    def _shift(self, ms: int, delta_days: float) -> int:
        return shift_with_snap(ms, delta_days, self.snap_mode, self.tzinfo)

    # --- selection ------------------------------------------------------------

    def select_item(self, item_id: str, mode: str = "replace") -> None:
        if not isinstance(item_id, str) or not item_id or mode not in SELECT_MODES:
            return
        if mode == "replace":
            self.selection = [item_id]
        elif mode == "append":
            if item_id not in self.selection:
                self.selection = self.selection + [item_id]
        elif item_id in self.selection:
            self.selection = [i for i in self.selection if i != item_id]
        else:
            self.selection = self.selection + [item_id]

    def clear_selection(self) -> None:
        self.selection = []

    def select_all(self) -> None:
        snap = self.store.snapshot
        if snap is None:
            return
        self.selection = [str(it["id"]) for it in self._items(snap) if it.get("id")]

    # --- drag -----------------------------------------------------------------

    def begin_drag(self, item_id: str) -> bool:
        if self.store.snapshot is None:
            return False
        ids = list(self.selection) if item_id in self.selection else [item_id]
        rows = self._rows_by_item()
        initial: Dict[str, Tuple[int, int]] = {}
        for iid in ids:
            row = rows.get(iid)
            if row is None:
                continue
            s = parse_iso_ms(row.start)
            e = parse_iso_ms(row.end)
            if s is None or e is None:
                continue
            initial[iid] = (s, e)
        if not initial:
            return False
        self._start_gesture(DragGesture(item_ids=tuple(ids), initial=initial))
        return True

    def update_drag(self, delta_px: float) -> bool:
        g = self.gesture
        if not isinstance(g, DragGesture):
            return False
        delta_days = self._delta_days(delta_px)

        def transform(item: TimelineItem) -> TimelineItem:
            base = g.initial.get(item.get("id"))
            if base is None:
                return item
            start = self._shift(base[0], delta_days)
            end = ensure_end_after_start(start, self._shift(base[1], delta_days))
            return self._retime(item, start, end)

        return self._apply_live(list(g.initial), transform)

    # --- resize ---------------------------------------------------------------

    def begin_resize(self, item_id: str, edge: str) -> bool:
        if self.store.snapshot is None or edge not in ("start", "end"):
            return False
        row = self._rows_by_item().get(item_id)
        if row is None:
            return False
        s = parse_iso_ms(row.start)
        e = parse_iso_ms(row.end)
        if s is None or e is None:
            return False
        self._start_gesture(ResizeGesture(item_id=item_id, edge=edge, initial_start_ms=s, initial_end_ms=e))
        return True

    def update_resize(self, delta_px: float) -> bool:
        g = self.gesture
        if not isinstance(g, ResizeGesture):
            return False
        delta_days = self._delta_days(delta_px)
        start = self._shift(g.initial_start_ms, delta_days) if g.edge == "start" else g.initial_start_ms
        end = self._shift(g.initial_end_ms, delta_days) if g.edge == "end" else g.initial_end_ms
        end = ensure_end_after_start(start, end)
        return self._apply_live([g.item_id], lambda item: self._retime(item, start, end))

    # --- create ---------------------------------------------------------------

    def _group_for_row(self, snap: Snapshot, row_id: str) -> Optional[str]:
        if not isinstance(row_id, str) or row_id.startswith("__"):
            return None
        groups = snap.get("groups") if isinstance(snap.get("groups"), list) else []
        if any(isinstance(g, dict) and g.get("id") == row_id for g in groups):
            return row_id
        for it in self._items(snap):
            if it.get("id") == row_id:
                gid = it.get("group_id")
                return gid if isinstance(gid, str) else None
        return None

    def begin_create(self, row_id: str, anchor: Any) -> Optional[str]:
        """Create a provisional one-day item at `anchor` (epoch ms or ISO); returns its id."""
        snap = self.store.snapshot
        anchor_ms = _as_ms(anchor)
        if snap is None or anchor_ms is None:
            return None
        try:
            start = snap_ms(anchor_ms, self.snap_mode, self.tzinfo)
            end = ensure_end_after_start(start, start + DAY_MS)
            start_iso, end_iso = ms_to_iso(start), ms_to_iso(end)
        except (OverflowError, ValueError, OSError):
            return None

        new_id = self._id_factory("timeline-item")
        self._start_gesture(CreateGesture(item_id=new_id, row_id=str(row_id), anchor_ms=start))
        snap = self.store.snapshot
        new_item: TimelineItem = {
            "id": new_id,
            "name": "New item",
            "kind": "task",
            "group_id": self._group_for_row(snap, row_id),
            "start": start_iso,
            "end": end_iso,
            "duration_minutes": (end - start) // MIN_MS,
            "percent_complete": 0,
            "status": "planned",
        }
        self.store.replace_live(self._stamp(snap, items=self._items(snap) + [new_item]))
        self.selection = [new_id]
        return new_id

    def update_create(self, current: Any) -> bool:
        g = self.gesture
        current_ms = _as_ms(current)
        if not isinstance(g, CreateGesture) or current_ms is None:
            return False
        start = g.anchor_ms

        def transform(item: TimelineItem) -> TimelineItem:
            end = ensure_end_after_start(start, snap_ms(current_ms, self.snap_mode, self.tzinfo))
            return self._retime(item, start, end)

        return self._apply_live([g.item_id], transform)

    # --- gesture lifecycle ----------------------------------------------------

    def complete_gesture(self) -> bool:
        g = self.gesture
        if g is None:
            return False
        origin = self._origin
        self.gesture = None
        self._origin = None
        if isinstance(g, DependencyGesture):
            return False
        if origin is not None and self.store.snapshot is not origin:
            self.store.commit(origin)
            return True
        return False

    def cancel_gesture(self) -> bool:
        g = self.gesture
        if g is None:
            return False
        if isinstance(g, CreateGesture):
            origin = self._origin
            self.gesture = None
            self._origin = None
            if origin is not None:
                # drop the provisional item
                self.store.replace_live(origin)
            self.selection = [i for i in self.selection if i != g.item_id]
            return True
        # drag/resize: already-applied deltas stay
        self.complete_gesture()
        return True

    # --- dependency link ------------------------------------------------------

    def begin_dependency(self, from_id: str, dependency_type: str = "FS") -> bool:
        snap = self.store.snapshot
        if snap is None or dependency_type not in DEPENDENCY_TYPES:
            return False
        if not any(it.get("id") == from_id for it in self._items(snap)):
            return False
        self._start_gesture(DependencyGesture(from_id=from_id, dependency_type=dependency_type))
        return True

    def complete_dependency(self, to_id: str) -> bool:
        g = self.gesture
        if not isinstance(g, DependencyGesture) or self.store.snapshot is None:
            return False
        self.gesture = None
        self._origin = None
        if g.from_id == to_id:
            return False
        if not any(it.get("id") == to_id for it in self._items(self.store.snapshot)):
            return False

        def add(prev: Snapshot) -> Snapshot:
            deps = [d for d in (prev.get("dependencies") or []) if isinstance(d, dict)]
            if any(d.get("from_id") == g.from_id and d.get("to_id") == to_id for d in deps):
                return prev
            dep = {
                "id": self._id_factory("timeline-dependency"),
                "from_id": g.from_id,
                "to_id": to_id,
                "type": g.dependency_type,
            }
            return self._stamp(prev, dependencies=list(prev.get("dependencies") or []) + [dep])

        return self.store.update(add)

    # --- committed edits ------------------------------------------------------

    def delete_selection(self) -> bool:
        if self.store.snapshot is None or not self.selection:
            return False
        self._settle()
        id_set = set(self.selection)

        def delete(prev: Snapshot) -> Snapshot:
            items = [it for it in (prev.get("items") or []) if not (isinstance(it, dict) and it.get("id") in id_set)]
            deps = [
                d for d in (prev.get("dependencies") or [])
                if not (isinstance(d, dict) and (d.get("from_id") in id_set or d.get("to_id") in id_set))
            ]
            if len(items) == len(prev.get("items") or []) and len(deps) == len(prev.get("dependencies") or []):
                return prev
            return self._stamp(prev, items=items, dependencies=deps)

        changed = self.store.update(delete)
        self.clear_selection()
        return changed

    def copy_selection(self) -> bool:
        snap = self.store.snapshot
        if snap is None or not self.selection:
            return False
        id_set = set(self.selection)
        self.clipboard = [copy.deepcopy(it) for it in self._items(snap) if it.get("id") in id_set]
        return bool(self.clipboard)

    def paste_clipboard(self) -> List[str]:
        """Paste copies shifted so the earliest copied start lands on today; returns new ids."""
        if self.store.snapshot is None or not self.clipboard:
            return []
        self._settle()
        starts = [s for s in (parse_iso_ms(it.get("start")) for it in self.clipboard) if s is not None]
        today = start_of_day_ms(self._clock(), self.tzinfo)
        delta_ms = today - min(starts) if starts else DAY_MS

        copies: List[TimelineItem] = []
        try:
            for it in self.clipboard:
                dup = copy.deepcopy(it)
                s = parse_iso_ms(it.get("start"))
                e = parse_iso_ms(it.get("end"))
                if s is not None:
                    dup["start"] = ms_to_iso(s + delta_ms)
                if e is not None:
                    dup["end"] = ms_to_iso(e + delta_ms)
                copies.append(dup)
        except (OverflowError, ValueError, OSError) as ex:
            # One shared offset for every copy: all of them land in range or none is pasted.
            logger.debug("paste skipped, shifted dates out of range: %s", ex)
            return []
        for dup in copies:
            dup["id"] = self._id_factory("timeline-item")

        self.store.update(lambda prev: self._stamp(prev, items=list(prev.get("items") or []) + copies))
        self.selection = [c["id"] for c in copies]
        return list(self.selection)

    def nudge_selection(self, direction: int, magnitude_days: float = 1.0) -> bool:
        if not self.selection or direction not in (1, -1):
            return False
        self._settle()
        delta = direction * magnitude_days

        def transform(item: TimelineItem) -> TimelineItem:
            s = parse_iso_ms(item.get("start"))
            e = parse_iso_ms(item.get("end"))
            if s is None or e is None:
                return item
            start = self._shift(s, delta)
            end = ensure_end_after_start(start, self._shift(e, delta))
            return self._retime(item, start, end)

        return self._apply_committed(list(self.selection), transform)

    def move_selection_by_row(self, direction: int) -> bool:
        if not self.selection or direction not in (1, -1):
            return False
        rows = self.rows
        current = self.selection[-1]
        idx = next((i for i, r in enumerate(rows) if r.item_id == current and r.id == current), -1)
        if idx == -1:
            return False
        i = idx + direction
        while 0 <= i < len(rows):
            row = rows[i]
            if row.type == "item" and row.item_id:
                self.selection = [row.item_id]
                return True
            i += direction
        return False

    # --- history --------------------------------------------------------------

    def undo(self) -> bool:
        self._settle()
        return self.store.undo()

    def redo(self) -> bool:
        self._settle()
        return self.store.redo()

    # --- zoom -----------------------------------------------------------------

    def zoom_in(self) -> float:
        return self.preferences.zoom_in()

    def zoom_out(self) -> float:
        return self.preferences.zoom_out()

    def reset_zoom(self) -> float:
        return self.preferences.reset_zoom()

    # --- keyboard -------------------------------------------------------------

    def handle_key(self, event: Any) -> bool:
        from .keyboard import KeyEvent, dispatch_key

        if isinstance(event, dict):
            event = KeyEvent.from_dict(event)
        if not isinstance(event, KeyEvent):
            return False
        return dispatch_key(self, event)


__all__ = [
    "DragGesture",
    "ResizeGesture",
    "CreateGesture",
    "DependencyGesture",
    "Gesture",
    "TimelineController",
    "DEFAULT_PX_PER_DAY",
]
