# gantry/keyboard.py
"""Keyboard shortcut table for the timeline controller.

`dispatch_key` returns True when the event was consumed; the host should then
suppress the platform default (scrolling, browser undo, ...).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict

if TYPE_CHECKING:  # pragma: no cover
    from .interactions import TimelineController

NUDGE_DAYS = 1.0
NUDGE_DAYS_SHIFT = 7.0
NUDGE_DAYS_ALT = 0.25


@dataclass(frozen=True)
class KeyEvent:
    key: str
    shift: bool = False
    alt: bool = False
    ctrl: bool = False
    meta: bool = False

    @property
    def command(self) -> bool:
        return self.ctrl or self.meta

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "KeyEvent":
        def flag(*names: str) -> bool:
            return any(bool(raw.get(n)) for n in names)

        return cls(
            key=str(raw.get("key") or ""),
            shift=flag("shift", "shiftKey", "shift_key"),
            alt=flag("alt", "altKey", "alt_key"),
            ctrl=flag("ctrl", "ctrlKey", "ctrl_key"),
            meta=flag("meta", "metaKey", "meta_key"),
        )


def _nudge_magnitude(event: KeyEvent) -> float:
    if event.shift:
        return NUDGE_DAYS_SHIFT
    if event.alt:
        return NUDGE_DAYS_ALT
    return NUDGE_DAYS


def dispatch_key(controller: "TimelineController", event: KeyEvent) -> bool:
    key = event.key
    lower = key.lower()

    if event.command:
        if lower == "c":
            controller.copy_selection()
            return True
        if lower == "v":
            controller.paste_clipboard()
            return True
        if lower == "z":
            if event.shift:
                controller.redo()
            else:
                controller.undo()
            return True
        if lower == "y":
            controller.redo()
            return True
        if lower == "a":
            controller.select_all()
            return True
        if key == "0":
            controller.reset_zoom()
            return True
        return False

    if key in ("Delete", "Backspace"):
        if not controller.selection:
            return False
        controller.delete_selection()
        return True
    if key == "Escape":
        controller.cancel_gesture()
        controller.clear_selection()
        return True
    if key in ("ArrowLeft", "ArrowRight"):
        if not controller.selection:
            return False
        direction = -1 if key == "ArrowLeft" else 1
        controller.nudge_selection(direction, _nudge_magnitude(event))
        return True
    if key in ("ArrowUp", "ArrowDown"):
        controller.move_selection_by_row(-1 if key == "ArrowUp" else 1)
        return True
    if key in ("+", "="):
        controller.zoom_in()
        return True
    if key in ("-", "_"):
        controller.zoom_out()
        return True
    return False


__all__ = ["KeyEvent", "dispatch_key", "NUDGE_DAYS", "NUDGE_DAYS_SHIFT", "NUDGE_DAYS_ALT"]
