import unittest

from gantry.history import SnapshotStore
from gantry.interactions import TimelineController
from gantry.keyboard import KeyEvent, dispatch_key
from gantry.preferences import TimelinePreferences
from gantry.snapshot import empty_snapshot
from gantry.util.timeparse import parse_iso_ms

CLOCK_MS = parse_iso_ms("2024-03-10T15:00:00Z")


def _controller(snap_mode="day"):
    snap = empty_snapshot()
    snap["items"] = [
        {"id": "A", "kind": "task", "start": "2024-01-01T00:00:00.000Z", "end": "2024-01-03T00:00:00.000Z"},
        {"id": "B", "kind": "task", "start": "2024-01-05T00:00:00.000Z", "end": "2024-01-06T00:00:00.000Z"},
    ]
    snap["dependencies"] = [{"id": "d1", "from_id": "A", "to_id": "B", "type": "FS"}]
    counter = {"n": 0}

    def next_id(prefix: str) -> str:
        counter["n"] += 1
        return f"{prefix}-{counter['n']}"

    return TimelineController(
        SnapshotStore(snap),
        preferences=TimelinePreferences.defaults().update(snap_mode=snap_mode),
        px_per_day=50,
        tz="UTC",
        id_factory=next_id,
        clock=lambda: CLOCK_MS,
    )


def _start(c, iid):
    return next(it["start"] for it in c.snapshot["items"] if it["id"] == iid)


class TestKeyboardContract(unittest.TestCase):
    def test_from_dict_accepts_dom_names(self) -> None:
        ev = KeyEvent.from_dict({"key": "z", "metaKey": True, "shiftKey": True})
        self.assertEqual(ev, KeyEvent("z", shift=True, meta=True))
        self.assertTrue(ev.command)

    def test_arrow_nudges(self) -> None:
        c = _controller()
        c.select_item("A")
        self.assertTrue(c.handle_key({"key": "ArrowRight"}))
        self.assertEqual(_start(c, "A"), "2024-01-02T00:00:00.000Z")
        self.assertTrue(c.handle_key({"key": "ArrowRight", "shiftKey": True}))
        self.assertEqual(_start(c, "A"), "2024-01-09T00:00:00.000Z")
        self.assertTrue(c.handle_key({"key": "ArrowLeft"}))
        self.assertEqual(_start(c, "A"), "2024-01-08T00:00:00.000Z")

    def test_alt_arrow_quarter_day(self) -> None:
        c = _controller(snap_mode="none")
        c.select_item("A")
        dispatch_key(c, KeyEvent("ArrowRight", alt=True))
        self.assertEqual(_start(c, "A"), "2024-01-01T06:00:00.000Z")

    def test_undo_redo_keys(self) -> None:
        c = _controller()
        c.select_item("A")
        c.handle_key(KeyEvent("ArrowRight"))
        self.assertTrue(c.handle_key(KeyEvent("z", ctrl=True)))
        self.assertEqual(_start(c, "A"), "2024-01-01T00:00:00.000Z")
        self.assertTrue(c.handle_key(KeyEvent("Z", ctrl=True, shift=True)))
        self.assertEqual(_start(c, "A"), "2024-01-02T00:00:00.000Z")
        c.handle_key(KeyEvent("z", meta=True))
        self.assertTrue(c.handle_key(KeyEvent("y", ctrl=True)))
        self.assertEqual(_start(c, "A"), "2024-01-02T00:00:00.000Z")

    def test_copy_paste_and_select_all(self) -> None:
        c = _controller()
        self.assertTrue(c.handle_key(KeyEvent("a", ctrl=True)))
        self.assertEqual(c.selection, ["A", "B"])
        c.handle_key(KeyEvent("c", ctrl=True))
        c.handle_key(KeyEvent("v", ctrl=True))
        self.assertEqual(len(c.snapshot["items"]), 4)
        self.assertEqual(c.selection, ["timeline-item-1", "timeline-item-2"])

    def test_delete_and_backspace(self) -> None:
        c = _controller()
        c.select_item("B")
        self.assertTrue(c.handle_key(KeyEvent("Backspace")))
        self.assertEqual([it["id"] for it in c.snapshot["items"]], ["A"])
        self.assertEqual(c.snapshot["dependencies"], [])
        c.select_item("A")
        self.assertTrue(c.handle_key(KeyEvent("Delete")))
        self.assertEqual(c.snapshot["items"], [])

    def test_edit_keys_without_selection_are_not_consumed(self) -> None:
        c = _controller()
        before = c.snapshot
        for key in ("Delete", "Backspace", "ArrowLeft", "ArrowRight"):
            self.assertFalse(c.handle_key(KeyEvent(key)), key)
        self.assertFalse(c.handle_key({"key": "ArrowRight", "shiftKey": True}))
        self.assertIs(c.snapshot, before)
        self.assertFalse(c.can_undo)

    def test_arrow_up_down(self) -> None:
        c = _controller()
        c.select_item("A")
        c.handle_key(KeyEvent("ArrowDown"))
        self.assertEqual(c.selection, ["B"])
        c.handle_key(KeyEvent("ArrowUp"))
        self.assertEqual(c.selection, ["A"])

    def test_zoom_keys(self) -> None:
        c = _controller()
        self.assertTrue(c.handle_key(KeyEvent("+")))
        self.assertEqual(c.preferences.zoom_level, 1.1)
        c.handle_key(KeyEvent("="))
        self.assertEqual(c.preferences.zoom_level, 1.2)
        c.handle_key(KeyEvent("-"))
        self.assertEqual(c.preferences.zoom_level, 1.1)
        self.assertTrue(c.handle_key(KeyEvent("0", ctrl=True)))
        self.assertEqual(c.preferences.zoom_level, 1.0)
        for _ in range(20):
            c.handle_key(KeyEvent("-"))
        self.assertEqual(c.preferences.zoom_level, 0.25)
        self.assertFalse(c.can_undo)

    def test_escape_cancels_and_clears(self) -> None:
        c = _controller()
        new_id = c.begin_create("__root__", "2024-02-01T00:00:00Z")
        self.assertIsNotNone(new_id)
        self.assertTrue(c.handle_key(KeyEvent("Escape")))
        self.assertIsNone(c.gesture)
        self.assertEqual(c.selection, [])
        self.assertEqual(len(c.snapshot["items"]), 2)

    def test_unhandled_keys(self) -> None:
        c = _controller()
        self.assertFalse(c.handle_key(KeyEvent("q")))
        self.assertFalse(c.handle_key(KeyEvent("k", ctrl=True)))
        self.assertFalse(c.handle_key("not an event"))


if __name__ == "__main__":
    unittest.main()
