# gantry/history.py
"""Snapshot store with bounded whole-snapshot undo/redo.

Snapshots are treated as immutable per version: every mutation builds a new
top-level dict (and new lists/dicts only for what changed), so `past` and
`future` share structure with the current snapshot instead of deep-copying it.
"""

from __future__ import annotations

import os
from typing import Callable, List, Optional

from .model import Snapshot

HISTORY_LIMIT_ENV = "GANTRY_HISTORY_LIMIT"
DEFAULT_HISTORY_LIMIT = 100


def _history_limit_from_env() -> int:
    raw = (os.getenv(HISTORY_LIMIT_ENV, "") or "").strip()
    try:
        v = int(raw)
        if v > 0:
            return v
    except ValueError:
        pass
    return DEFAULT_HISTORY_LIMIT


class SnapshotStore:
    def __init__(self, snapshot: Optional[Snapshot] = None, *, limit: Optional[int] = None) -> None:
        self.limit = int(limit) if isinstance(limit, int) and limit > 0 else _history_limit_from_env()
        self._snapshot: Optional[Snapshot] = snapshot
        self._past: List[Snapshot] = []
        self._future: List[Snapshot] = []

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._snapshot

    @property
    def past(self) -> List[Snapshot]:
        return list(self._past)

    @property
    def future(self) -> List[Snapshot]:
        return list(self._future)

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    def load(self, snapshot: Optional[Snapshot]) -> None:
        """Replace the snapshot wholesale (fresh fetch); history starts over."""
        self._snapshot = snapshot
        self._past = []
        self._future = []

    def update(self, fn: Callable[[Snapshot], Snapshot]) -> bool:
        """Apply `fn(prev) -> next` as one committed mutation.

        Returning `prev` itself means "no change" and records nothing.
        """
        prev = self._snapshot
        if prev is None:
            return False
        nxt = fn(prev)
        if nxt is prev or nxt is None:
            return False
        self._snapshot = nxt
        self.commit(prev)
        return True

    def replace_live(self, snapshot: Snapshot) -> None:
        """Swap in an in-flight gesture state without touching history."""
        if self._snapshot is None:
            return
        self._snapshot = snapshot

    def commit(self, origin: Snapshot) -> None:
        """Record `origin` as the pre-mutation snapshot of the current one."""
        self._past.append(origin)
        self._trim()
        self._future = []

    def undo(self) -> bool:
        if self._snapshot is None or not self._past:
            return False
        previous = self._past.pop()
        self._future.insert(0, self._snapshot)
        self._snapshot = previous
        return True

    def redo(self) -> bool:
        if self._snapshot is None or not self._future:
            return False
        nxt = self._future.pop(0)
        self._past.append(self._snapshot)
        self._trim()
        self._snapshot = nxt
        return True

    def _trim(self) -> None:
        if len(self._past) > self.limit:
            del self._past[: len(self._past) - self.limit]


__all__ = ["SnapshotStore", "DEFAULT_HISTORY_LIMIT", "HISTORY_LIMIT_ENV"]
