"""Snapshot sources (the inbound boundary).

The engine never fetches by itself: a caller supplies something that
implements `SnapshotFetcher`. Fetch failures are the source's business and
propagate unchanged.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Union

from .model import Snapshot
from .snapshot import build_demo_snapshot, normalize_snapshot

JsonPath = Union[str, Path]


@dataclass(frozen=True)
class FetchOptions:
    project_id: Optional[str] = None
    saved_view_id: Optional[str] = None
    filters: Dict[str, Any] = field(default_factory=dict)


class SnapshotFetcher(Protocol):
    def fetch(self, options: FetchOptions) -> Optional[Snapshot]:
        """Return a snapshot for `options`, or None when nothing is available yet."""


class JsonFileFetcher:
    """Reads a snapshot JSON document from disk."""

    def __init__(self, path: JsonPath) -> None:
        self.path = Path(path)

    def fetch(self, options: FetchOptions) -> Optional[Snapshot]:
        raw = json.loads(self.path.read_text(encoding="utf-8", errors="replace"))
        if not isinstance(raw, dict):
            raise ValueError(f"snapshot JSON must be an object/dict; got {type(raw).__name__}")
        snap = normalize_snapshot(raw)
        if options.saved_view_id is not None:
            snap["preferences"]["saved_view_id"] = options.saved_view_id
        return snap


class DemoFetcher:
    """Serves the built-in demo project (offline development, smoke runs)."""

    def __init__(self, today_ms: Optional[int] = None) -> None:
        self.today_ms = today_ms

    def fetch(self, options: FetchOptions) -> Optional[Snapshot]:
        return build_demo_snapshot(
            options.project_id,
            options.saved_view_id,
            options.filters,
            today_ms=self.today_ms,
        )


__all__ = ["FetchOptions", "SnapshotFetcher", "JsonFileFetcher", "DemoFetcher"]
