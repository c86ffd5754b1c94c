import unittest

from gantry.history import SnapshotStore
from gantry.interactions import CreateGesture, DependencyGesture, DragGesture, ResizeGesture, TimelineController
from gantry.preferences import TimelinePreferences
from gantry.snapshot import empty_snapshot
from gantry.util.timeparse import parse_iso_ms

CLOCK_MS = parse_iso_ms("2024-03-10T15:00:00Z")


def _snapshot():
    snap = empty_snapshot()
    snap["groups"] = [
        {"id": "g1", "name": "One", "order_index": 0},
        {"id": "g2", "name": "Two", "order_index": 1},
    ]
    snap["items"] = [
        {"id": "A", "name": "Alpha", "kind": "task", "group_id": "g1",
         "start": "2024-01-01T00:00:00.000Z", "end": "2024-01-03T00:00:00.000Z",
         "duration_minutes": 2880, "percent_complete": 0.5, "tags": ["x"]},
        {"id": "B", "name": "Beta", "kind": "task", "group_id": "g1",
         "start": "2024-01-03T00:00:00.000Z", "end": "2024-01-08T00:00:00.000Z"},
        {"id": "C", "name": "Gamma", "kind": "task", "group_id": "g2",
         "start": "2024-01-08T00:00:00.000Z", "end": "2024-01-09T00:00:00.000Z"},
        {"id": "U", "name": "Undated", "kind": "task", "group_id": "g2"},
    ]
    snap["dependencies"] = [{"id": "d1", "from_id": "A", "to_id": "B", "type": "FS"}]
    return snap


def _controller(snap=None, snap_mode="day"):
    counter = {"n": 0}

    def next_id(prefix: str) -> str:
        counter["n"] += 1
        return f"{prefix}-{counter['n']}"

    prefs = TimelinePreferences.defaults().update(snap_mode=snap_mode)
    return TimelineController(
        SnapshotStore(snap if snap is not None else _snapshot()),
        preferences=prefs,
        px_per_day=50,
        tz="UTC",
        id_factory=next_id,
        clock=lambda: CLOCK_MS,
    )


def _item(c, iid):
    for it in c.snapshot["items"]:
        if it["id"] == iid:
            return it
    return None


class TestDragContract(unittest.TestCase):
    def test_drag_shifts_by_exact_days(self) -> None:
        c = _controller()
        self.assertTrue(c.begin_drag("A"))
        self.assertIsInstance(c.gesture, DragGesture)
        self.assertTrue(c.update_drag(100))
        a = _item(c, "A")
        self.assertEqual(a["start"], "2024-01-03T00:00:00.000Z")
        self.assertEqual(a["end"], "2024-01-05T00:00:00.000Z")
        self.assertEqual(a["duration_minutes"], 2880)
        self.assertEqual(c.snapshot["last_updated"], "2024-03-10T15:00:00.000Z")

    def test_multi_select_moves_together_from_captured_baseline(self) -> None:
        c = _controller()
        c.select_item("A")
        c.select_item("B", "append")
        self.assertTrue(c.begin_drag("B"))
        c.update_drag(50)
        c.update_drag(100)
        self.assertEqual(_item(c, "A")["start"], "2024-01-03T00:00:00.000Z")
        self.assertEqual(_item(c, "B")["start"], "2024-01-05T00:00:00.000Z")
        self.assertEqual(_item(c, "B")["end"], "2024-01-10T00:00:00.000Z")
        self.assertEqual(_item(c, "C")["start"], "2024-01-08T00:00:00.000Z")

    def test_drag_of_unselected_item_moves_only_it(self) -> None:
        c = _controller()
        c.select_item("B")
        c.begin_drag("A")
        c.update_drag(-50)
        self.assertEqual(_item(c, "A")["start"], "2023-12-31T00:00:00.000Z")
        self.assertEqual(_item(c, "B")["start"], "2024-01-03T00:00:00.000Z")

    def test_zero_delta_is_idempotent(self) -> None:
        original = _snapshot()
        c = _controller(original)
        self.assertTrue(c.begin_drag("A"))
        self.assertFalse(c.update_drag(0))
        self.assertIs(c.snapshot, original)
        self.assertFalse(c.complete_gesture())
        self.assertFalse(c.can_undo)

    def test_zero_delta_with_no_snapping(self) -> None:
        snap = _snapshot()
        snap["items"][0]["start"] = "2024-01-01T07:13:00.000Z"
        c = _controller(snap, snap_mode="none")
        c.begin_drag("A")
        c.update_drag(0)
        self.assertEqual(_item(c, "A")["start"], "2024-01-01T07:13:00.000Z")

    def test_complete_records_one_history_entry(self) -> None:
        original = _snapshot()
        c = _controller(original)
        c.begin_drag("A")
        c.update_drag(50)
        c.update_drag(100)
        c.update_drag(150)
        self.assertFalse(c.can_undo)
        self.assertTrue(c.complete_gesture())
        self.assertIsNone(c.gesture)
        self.assertTrue(c.undo())
        self.assertIs(c.snapshot, original)
        self.assertFalse(c.can_undo)

    def test_cancel_keeps_applied_delta(self) -> None:
        c = _controller()
        c.begin_drag("A")
        c.update_drag(100)
        self.assertTrue(c.cancel_gesture())
        self.assertIsNone(c.gesture)
        self.assertEqual(_item(c, "A")["start"], "2024-01-03T00:00:00.000Z")
        self.assertTrue(c.can_undo)

    def test_undated_item_cannot_be_dragged(self) -> None:
        c = _controller()
        self.assertFalse(c.begin_drag("U"))
        self.assertFalse(c.begin_drag("missing"))
        self.assertIsNone(c.gesture)
        self.assertFalse(c.update_drag(100))


class TestResizeContract(unittest.TestCase):
    def test_resize_start_keeps_end(self) -> None:
        c = _controller()
        self.assertTrue(c.begin_resize("B", "start"))
        self.assertIsInstance(c.gesture, ResizeGesture)
        c.update_resize(-50)
        b = _item(c, "B")
        self.assertEqual(b["start"], "2024-01-02T00:00:00.000Z")
        self.assertEqual(b["end"], "2024-01-08T00:00:00.000Z")
        self.assertEqual(b["duration_minutes"], 6 * 24 * 60)

    def test_resize_end_past_start_clamps_to_one_hour(self) -> None:
        c = _controller()
        c.begin_resize("A", "end")
        c.update_resize(-500)
        a = _item(c, "A")
        self.assertEqual(a["start"], "2024-01-01T00:00:00.000Z")
        self.assertEqual(a["end"], "2024-01-01T01:00:00.000Z")
        self.assertEqual(a["duration_minutes"], 60)

    def test_bad_edge_rejected(self) -> None:
        c = _controller()
        self.assertFalse(c.begin_resize("A", "middle"))
        self.assertIsNone(c.gesture)


class TestCreateContract(unittest.TestCase):
    def test_create_then_cancel_rolls_back(self) -> None:
        original = _snapshot()
        c = _controller(original)
        new_id = c.begin_create("g2", "2024-01-05T13:00:00Z")
        self.assertEqual(new_id, "timeline-item-1")
        self.assertIsInstance(c.gesture, CreateGesture)
        self.assertEqual(c.selection, [new_id])
        it = _item(c, new_id)
        self.assertEqual(it["start"], "2024-01-05T00:00:00.000Z")
        self.assertEqual(it["end"], "2024-01-06T00:00:00.000Z")
        self.assertEqual(it["group_id"], "g2")

        self.assertTrue(c.cancel_gesture())
        self.assertIs(c.snapshot, original)
        self.assertIsNone(_item(c, new_id))
        self.assertEqual(c.selection, [])
        self.assertFalse(c.can_undo)

    def test_create_extend_and_complete(self) -> None:
        c = _controller()
        new_id = c.begin_create("g1", "2024-01-05T13:00:00Z")
        self.assertTrue(c.update_create("2024-01-08T05:00:00Z"))
        self.assertEqual(_item(c, new_id)["end"], "2024-01-08T00:00:00.000Z")
        self.assertTrue(c.complete_gesture())
        self.assertEqual(len(c.snapshot["items"]), 5)
        self.assertTrue(c.undo())
        self.assertEqual(len(c.snapshot["items"]), 4)

    def test_create_end_before_anchor_is_clamped(self) -> None:
        c = _controller()
        new_id = c.begin_create("g1", "2024-01-05T13:00:00Z")
        c.update_create("2024-01-01T00:00:00Z")
        self.assertEqual(_item(c, new_id)["end"], "2024-01-05T01:00:00.000Z")

    def test_create_on_item_row_inherits_group(self) -> None:
        c = _controller()
        new_id = c.begin_create("C", "2024-01-05T00:00:00Z")
        self.assertEqual(_item(c, new_id)["group_id"], "g2")

    def test_create_on_root_row_has_no_group(self) -> None:
        c = _controller()
        new_id = c.begin_create("__root__", "2024-01-05T00:00:00Z")
        self.assertIsNone(_item(c, new_id)["group_id"])

    def test_bad_anchor_is_ignored(self) -> None:
        c = _controller()
        self.assertIsNone(c.begin_create("g1", "yesterday-ish"))
        self.assertIsNone(c.gesture)

    def test_new_gesture_cancels_pending_create(self) -> None:
        original = _snapshot()
        c = _controller(original)
        new_id = c.begin_create("g1", "2024-01-05T13:00:00Z")
        self.assertTrue(c.begin_drag("A"))
        self.assertIsInstance(c.gesture, DragGesture)
        self.assertIsNone(_item(c, new_id))
        self.assertIs(c.snapshot, original)


class TestDependencyLinkContract(unittest.TestCase):
    def test_link_creates_edge(self) -> None:
        c = _controller()
        self.assertTrue(c.begin_dependency("B", "SS"))
        self.assertIsInstance(c.gesture, DependencyGesture)
        self.assertTrue(c.complete_dependency("C"))
        self.assertIsNone(c.gesture)
        dep = c.snapshot["dependencies"][-1]
        self.assertEqual((dep["from_id"], dep["to_id"], dep["type"]), ("B", "C", "SS"))
        self.assertEqual(dep["id"], "timeline-dependency-1")
        self.assertTrue(c.can_undo)

    def test_self_loop_rejected(self) -> None:
        c = _controller()
        c.begin_dependency("A")
        self.assertFalse(c.complete_dependency("A"))
        self.assertIsNone(c.gesture)
        self.assertEqual(len(c.snapshot["dependencies"]), 1)

    def test_duplicate_rejected(self) -> None:
        c = _controller()
        c.begin_dependency("A")
        self.assertFalse(c.complete_dependency("B"))
        self.assertEqual(len(c.snapshot["dependencies"]), 1)
        self.assertFalse(c.can_undo)

    def test_invalid_requests(self) -> None:
        c = _controller()
        self.assertFalse(c.complete_dependency("B"))
        self.assertFalse(c.begin_dependency("nope"))
        self.assertFalse(c.begin_dependency("A", "XX"))
        c.begin_dependency("A")
        self.assertFalse(c.complete_dependency("nope"))

    def test_idle_complete_and_cancel_are_noops(self) -> None:
        c = _controller()
        self.assertFalse(c.complete_gesture())
        self.assertFalse(c.cancel_gesture())


if __name__ == "__main__":
    unittest.main()
