from __future__ import annotations

import datetime as dt
import re
from typing import Any, Optional

_COMPACT_UTC_RE = re.compile(r"^(\d{8})T(\d{6})Z$")  # e.g. 20240101T083000Z


def parse_iso_ms(value: Any) -> Optional[int]:
    """Parse an ISO-8601 timestamp into UTC epoch ms.

    Anything that is not a parsable timestamp string yields None; callers
    treat that as an absent date. Naive timestamps are taken as UTC.
    """
    if not isinstance(value, str):
        return None
    s = value.strip()
    if not s:
        return None

    m = _COMPACT_UTC_RE.match(s)
    try:
        if m:
            d = dt.datetime.strptime(m.group(1) + m.group(2), "%Y%m%d%H%M%S")
        else:
            d = dt.datetime.fromisoformat(s.replace("Z", "+00:00"))
        if d.tzinfo is None:
            d = d.replace(tzinfo=dt.timezone.utc)
        ms = int(round(d.timestamp() * 1000))
        # Offsets can push a valid local time outside what ms_to_iso can format.
        ms_to_iso(ms)
    except (ValueError, OverflowError):
        return None
    return ms


def ms_to_iso(ms: int) -> str:
    """UTC epoch ms -> 'YYYY-MM-DDTHH:MM:SS.mmmZ'."""
    d = dt.datetime(1970, 1, 1, tzinfo=dt.timezone.utc) + dt.timedelta(milliseconds=int(ms))
    return (
        f"{d.year:04d}-{d.month:02d}-{d.day:02d}T{d.hour:02d}:{d.minute:02d}:{d.second:02d}"
        f".{d.microsecond // 1000:03d}Z"
    )


def optional_iso(ms: Optional[int]) -> Optional[str]:
    return None if ms is None else ms_to_iso(ms)
