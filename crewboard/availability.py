"""Free/busy decisions for one staff member over a candidate interval.

All overlap math is half-open: ``[a0, a1)`` and ``[b0, b1)`` overlap iff
``a0 < b1 and b0 < a1``. Touching intervals do not conflict.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Union

from crewboard.errors import InvalidIntervalError
from crewboard.models.booking import Booking
from crewboard.models.time_block import TimeBlock
from crewboard.timeutil import ensure_utc

log = logging.getLogger("crewboard.availability")


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime,
) -> bool:
    return a_start < b_end and b_start < a_end


def find_conflicts(
    staff_id: str,
    start: datetime,
    end: datetime,
    blocking_intervals: Iterable[TimeBlock],
    existing_bookings: Iterable[Booking],
) -> list[Union[TimeBlock, Booking]]:
    """Every blocking time-block and booking of ``staff_id`` overlapping the interval.

    Non-blocking time-blocks and other staff members' entries are ignored.
    The booking being moved must already be excluded by the caller.
    """
    start = ensure_utc(start)
    end = ensure_utc(end)
    if end <= start:
        raise InvalidIntervalError(start, end, "availability interval")

    conflicts: list[Union[TimeBlock, Booking]] = []
    for block in blocking_intervals:
        if block.staff_id != staff_id or not block.is_blocking:
            continue
        if intervals_overlap(start, end, block.start, block.end):
            conflicts.append(block)

    for booking in existing_bookings:
        if booking.staff_id != staff_id:
            continue
        if intervals_overlap(start, end, booking.start, booking.end):
            conflicts.append(booking)

    return conflicts


def is_available(
    staff_id: str,
    start: datetime,
    end: datetime,
    blocking_intervals: Iterable[TimeBlock],
    existing_bookings: Iterable[Booking],
) -> bool:
    """True if ``staff_id`` is free over ``[start, end)``. Pure, no side effects."""
    conflicts = find_conflicts(staff_id, start, end, blocking_intervals, existing_bookings)
    if conflicts:
        log.debug(
            "Staff %s busy %s-%s: %s",
            staff_id, start, end, ", ".join(c.id for c in conflicts),
        )
        return False
    return True


def exclude_booking(bookings: Iterable[Booking], booking_id: str) -> list[Booking]:
    """Drop the booking being moved/edited before checking its own availability."""
    return [b for b in bookings if b.id != booking_id]
