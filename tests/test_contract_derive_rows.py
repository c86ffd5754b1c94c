import unittest
from pathlib import Path

from gantry.api import build_rows, load_snapshot_from_json
from gantry.snapshot import empty_snapshot

REPO_ROOT = Path(__file__).resolve().parents[1]
FIXTURE = REPO_ROOT / "tests" / "fixtures" / "snapshot_small.json"


class TestRowsContract(unittest.TestCase):
    def test_fixture_row_order_and_depth(self) -> None:
        rows = build_rows(load_snapshot_from_json(FIXTURE))
        got = [(r.id, r.type, r.depth) for r in rows]
        self.assertEqual(
            got,
            [
                ("g-ops", "group", 0),
                ("D", "item", 1),
                ("g-root", "group", 0),
                ("g-sub", "group", 1),
                ("A", "item", 2),
                ("B", "item", 2),
                ("C", "milestone", 1),
                ("C:m-ship", "milestone", 2),
                ("E", "item", 0),
            ],
        )

    def test_group_rows_carry_rollup_fields(self) -> None:
        rows = {r.id: r for r in build_rows(load_snapshot_from_json(FIXTURE))}
        eng = rows["g-root"]
        self.assertEqual(eng.label, "Engineering")
        self.assertEqual(eng.start, "2024-01-01T00:00:00.000Z")
        self.assertEqual(eng.end, "2024-01-09T00:00:00.000Z")
        self.assertTrue(eng.has_children)
        self.assertEqual(eng.badges, ("#3355ff",))
        self.assertTrue(rows["g-ops"].is_collapsed)
        self.assertFalse(eng.is_collapsed)

    def test_milestone_sub_row(self) -> None:
        rows = {r.id: r for r in build_rows(load_snapshot_from_json(FIXTURE))}
        sub = rows["C:m-ship"]
        self.assertEqual(sub.milestone_id, "m-ship")
        self.assertEqual(sub.label, "GA")
        self.assertEqual(sub.start, "2024-01-09T00:00:00.000Z")
        self.assertIsNone(sub.item_id)

    def test_milestone_join_falls_back_to_baseline_id(self) -> None:
        snap = empty_snapshot()
        snap["milestones"] = [{"id": "m1", "name": "Gate", "date": "2024-02-01T00:00:00.000Z"}]
        snap["items"] = [{"id": "x", "kind": "milestone", "baseline_id": "m1"}]
        ids = [r.id for r in build_rows(snap)]
        self.assertEqual(ids, ["x", "x:m1"])

    def test_items_sorted_by_start_undated_last(self) -> None:
        snap = empty_snapshot()
        snap["items"] = [
            {"id": "late", "kind": "task", "start": "2024-03-01T00:00:00Z"},
            {"id": "undated", "kind": "task"},
            {"id": "early", "kind": "task", "start": "2024-01-01T00:00:00Z"},
            {"id": "garbage", "kind": "task", "start": "not a date"},
        ]
        ids = [r.id for r in build_rows(snap)]
        self.assertEqual(ids, ["early", "late", "undated", "garbage"])

    def test_sibling_groups_sorted_by_order_index(self) -> None:
        snap = empty_snapshot()
        snap["groups"] = [
            {"id": "third", "order_index": 3},
            {"id": "first", "order_index": 1},
            {"id": "second", "order_index": 2},
        ]
        ids = [r.id for r in build_rows(snap)]
        self.assertEqual(ids, ["first", "second", "third"])

    def test_item_badges_from_tags(self) -> None:
        rows = {r.id: r for r in build_rows(load_snapshot_from_json(FIXTURE))}
        self.assertEqual(rows["A"].badges, ("docs",))
        self.assertEqual(rows["B"].badges, ())


if __name__ == "__main__":
    unittest.main()
