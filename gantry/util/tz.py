# gantry/util/tz.py
from __future__ import annotations

import datetime as dt
import os
import re
from typing import Optional

from zoneinfo import ZoneInfo

_OFFSET_RE = re.compile(r"^([+-])(\d{2}):?(\d{2})$")

DEFAULT_TZ_ENV = "GANTRY_TZ"


def normalize_tz_name(name: Optional[str]) -> str:
    """Normalize a timezone identifier.

    Supported forms:
      - None/"" -> "UTC" (timeline snapshots are exchanged in UTC)
      - "local" / "system" -> "local"
      - "UTC" / "Z" / "GMT" -> "UTC"
      - IANA names, e.g. "Europe/Bucharest"
      - Fixed offsets: "+02:00", "+0200", "-05:00"
    """
    if name is None:
        return "UTC"
    s = str(name).strip()
    if not s:
        return "UTC"

    low = s.lower()
    if low in {"local", "system", "native"}:
        return "local"
    if low in {"utc", "z", "gmt", "utc0", "utc+0"}:
        return "UTC"

    return s


def default_tz_name() -> str:
    return normalize_tz_name(os.getenv(DEFAULT_TZ_ENV))


def resolve_tz(name: Optional[str]) -> dt.tzinfo:
    """Resolve a timezone name into a tzinfo.

    Raises ValueError for invalid timezone identifiers.
    """
    tz_name = normalize_tz_name(name)

    if tz_name == "UTC":
        return dt.timezone.utc

    if tz_name == "local":
        tz = dt.datetime.now().astimezone().tzinfo
        return tz or dt.timezone.utc

    m = _OFFSET_RE.match(tz_name)
    if m:
        sign_s, hh_s, mm_s = m.groups()
        hh = int(hh_s)
        mm = int(mm_s)
        if hh > 23 or mm > 59:
            raise ValueError(f"Invalid timezone offset: {tz_name!r}")
        sign = 1 if sign_s == "+" else -1
        return dt.timezone(dt.timedelta(minutes=sign * (hh * 60 + mm)))

    try:
        return ZoneInfo(tz_name)
    except Exception as ex:
        raise ValueError(f"Invalid timezone identifier: {tz_name!r}") from ex


def safe_resolve_tz(name: Optional[str]) -> dt.tzinfo:
    """Like resolve_tz, but falls back to UTC instead of raising."""
    try:
        return resolve_tz(name)
    except ValueError:
        return dt.timezone.utc


def midnight_epoch_ms(d: dt.date, tz: dt.tzinfo) -> int:
    aware = dt.datetime(d.year, d.month, d.day, 0, 0, 0, tzinfo=tz)
    return int(aware.timestamp() * 1000)


def _local_date(ms: int, tz: dt.tzinfo) -> dt.date:
    return dt.datetime.fromtimestamp(int(ms) / 1000.0, tz=tz).date()


def start_of_day_ms(ms: int, tz: dt.tzinfo) -> int:
    return midnight_epoch_ms(_local_date(ms, tz), tz)


def start_of_week_ms(ms: int, tz: dt.tzinfo) -> int:
    # Weeks start on Monday.
    d = _local_date(ms, tz)
    return midnight_epoch_ms(d - dt.timedelta(days=d.weekday()), tz)


def start_of_month_ms(ms: int, tz: dt.tzinfo) -> int:
    d = _local_date(ms, tz)
    return midnight_epoch_ms(d.replace(day=1), tz)


def now_ms() -> int:
    return int(dt.datetime.now(tz=dt.timezone.utc).timestamp() * 1000)
