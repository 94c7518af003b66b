"""UTC date arithmetic, week boundaries and label formatting.

Every stored instant is an aware UTC ``datetime``. Day boundaries, the
Monday-aligned week and the visible-hours baseline are all computed on the
UTC calendar. The display offset is only applied when producing labels.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

DAYS_PER_WEEK = 7
DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards +inf (``Math.round``)."""
    return math.floor(value + 0.5)


def ensure_utc(dt: datetime) -> datetime:
    """Return ``dt`` as an aware UTC datetime. Naive values are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into UTC."""
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(value))


def to_iso(dt: datetime) -> str:
    """Format an instant the way the booking backend stores it."""
    dt = ensure_utc(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def strip_time(dt: datetime) -> datetime:
    """Midnight UTC of the day containing ``dt``."""
    return ensure_utc(dt).replace(hour=0, minute=0, second=0, microsecond=0)


def add_days(dt: datetime, days: int) -> datetime:
    return dt + timedelta(days=days)


def add_minutes(dt: datetime, minutes: float) -> datetime:
    return dt + timedelta(minutes=minutes)


def minutes_between(a: datetime, b: datetime) -> int:
    """Whole minutes from ``b`` to ``a`` (``a - b``), rounded."""
    return round_half_up((a - b).total_seconds() / 60)


def start_of_week(instant: datetime) -> datetime:
    """Monday 00:00 UTC of the week containing ``instant``."""
    day = strip_time(instant)
    return day - timedelta(days=day.weekday())


def day_index(instant: datetime, week_start: datetime) -> int:
    """Calendar-day offset of ``instant`` from ``week_start``.

    Values outside ``0..6`` mean the instant is not in this week. They are
    returned as-is; callers filter them out.
    """
    return (strip_time(instant) - strip_time(week_start)).days


def in_week(instant: datetime, week_start: datetime) -> bool:
    return 0 <= day_index(instant, week_start) < DAYS_PER_WEEK


def day_baseline(day: datetime, start_hour: int) -> datetime:
    """The visible-hours start instant (``start_hour``:00) of ``day``."""
    return strip_time(day).replace(hour=start_hour)


def week_days(week_start: datetime) -> list[datetime]:
    """Midnight UTC of each of the seven days starting at ``week_start``."""
    base = strip_time(week_start)
    return [add_days(base, i) for i in range(DAYS_PER_WEEK)]


# ── Display ──────────────────────────────────────────────────────


def capture_display_offset(configured_minutes: int | None = None) -> timedelta:
    """Fix the display offset for a session.

    Uses the configured offset when given, otherwise the host's local
    offset at the moment of the call. The result is not re-evaluated.
    """
    if configured_minutes is not None:
        return timedelta(minutes=configured_minutes)
    return datetime.now().astimezone().utcoffset() or timedelta(0)


def format_hm(instant: datetime, offset: timedelta) -> str:
    """24h ``HH:MM`` label in display time."""
    local = ensure_utc(instant) + offset
    return f"{local.hour:02d}:{local.minute:02d}"


def day_label(day: datetime, offset: timedelta) -> str:
    """Short day header such as ``Mon 12``."""
    local = ensure_utc(day) + offset
    return f"{DAY_NAMES[local.weekday()]} {local.day}"


def hour_labels(start_hour: int, end_hour: int) -> list[str]:
    """Ruler labels for every hour of the visible band, both ends included."""
    return [f"{h:02d}:00" for h in range(start_hour, end_hour + 1)]
