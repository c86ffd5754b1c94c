# gantry/snapping.py
from __future__ import annotations

import datetime as dt
import math

from .util.tz import start_of_day_ms, start_of_month_ms, start_of_week_ms

DAY_MS = 24 * 60 * 60 * 1000
MIN_DURATION_MS = 60 * 60 * 1000  # 1 hour floor for any edited span

_UTC = dt.timezone.utc


def snap_ms(ms: int, mode: str, tz: dt.tzinfo = _UTC) -> int:
    """Quantize a timestamp down to the start of its day/week/month."""
    if mode == "day":
        return start_of_day_ms(ms, tz)
    if mode == "week":
        return start_of_week_ms(ms, tz)
    if mode == "month":
        return start_of_month_ms(ms, tz)
    return int(ms)


def add_days_exact(ms: int, delta_days: float) -> int:
    if not math.isfinite(delta_days) or delta_days == 0:
        return int(ms)
    return int(round(ms + delta_days * DAY_MS))


def shift_with_snap(initial_ms: int, delta_days: float, mode: str, tz: dt.tzinfo = _UTC) -> int:
    """Shift by an exact day delta, then snap the shifted result.

    A zero (or non-finite) delta leaves the timestamp untouched.
    """
    if not math.isfinite(delta_days) or delta_days == 0:
        return int(initial_ms)
    candidate = add_days_exact(initial_ms, delta_days)
    if mode == "none":
        return candidate
    return snap_ms(candidate, mode, tz)


def ensure_end_after_start(start_ms: int, end_ms: int) -> int:
    if end_ms <= start_ms:
        return start_ms + MIN_DURATION_MS
    return end_ms


def delta_days_from_pixels(delta_px: float, px_per_day: float) -> float:
    try:
        dp = float(delta_px)
        ppd = float(px_per_day)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(dp) or not math.isfinite(ppd) or ppd == 0:
        return 0.0
    return dp / ppd


__all__ = [
    "DAY_MS",
    "MIN_DURATION_MS",
    "snap_ms",
    "add_days_exact",
    "shift_with_snap",
    "ensure_end_after_start",
    "delta_days_from_pixels",
]
