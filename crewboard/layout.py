"""Side-by-side placement of overlapping bookings within one lane.

Greedy single pass in start order. Each booking is narrowed by the number
of already-placed bookings it overlaps::

    k     = overlapping bookings placed before it
    width = 95 / (k + 1)            (percent of lane width)
    left  = 2.5 + k * width

Non-overlapping bookings therefore always render full width (95% with a
2.5% gutter on each side). Earlier placements are never widened or moved
once later bookings are seen, so small edits keep the rest of the lane
stable between renders. This can use more sub-columns than an optimal
packing would.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from crewboard.availability import intervals_overlap
from crewboard.errors import InvalidIntervalError
from crewboard.models.booking import Booking
from crewboard.models.timeline import PositionedEvent
from crewboard.timeutil import minutes_between

log = logging.getLogger("crewboard.layout")

LANE_GUTTER = 2.5
LANE_USABLE = 100.0 - 2 * LANE_GUTTER

MIN_CARD_HEIGHT_PX = 32
MIN_CARD_MINUTES = 15


def _slot(column: int) -> tuple[float, float]:
    width = LANE_USABLE / (column + 1)
    return width, LANE_GUTTER + column * width


def compute_lane_placement(bookings: Iterable[Booking]) -> list[PositionedEvent]:
    """Annotate one lane's bookings with width, left offset and stacking order.

    Output is in processing order (start time, ties in input order). The
    function is deterministic: the same input list always yields the same
    placements.
    """
    ordered = sorted(bookings, key=lambda b: b.start)  # stable
    placed: list[PositionedEvent] = []

    for z, booking in enumerate(ordered, start=1):
        if booking.end <= booking.start:
            raise InvalidIntervalError(booking.start, booking.end, f"booking {booking.id!r}")

        overlapping = [
            p for p in placed
            if intervals_overlap(booking.start, booking.end, p.booking.start, p.booking.end)
        ]
        column = len(overlapping)

        # A shorter neighbour placed earlier can already hold this column
        taken = {p.column for p in overlapping}
        while column in taken:
            column += 1

        width, left = _slot(column)
        placed.append(PositionedEvent(
            booking=booking, width=width, left=left, z_index=z, column=column,
        ))

    if placed:
        log.debug(
            "Placed %d bookings, %d sub-columns max",
            len(placed), max(p.column for p in placed) + 1,
        )
    return placed


@dataclass(frozen=True)
class VerticalExtent:
    """Absolute pixel position of an event card within its day column."""

    top: float
    height: float


def vertical_extent(
    start: datetime, end: datetime, day_start: datetime, px_per_minute: float,
) -> VerticalExtent:
    """Card position relative to the lane's visible-hours baseline.

    Events starting before the baseline are pinned to the top; events after
    the visible band are still positioned (below the band), never dropped.
    """
    top = max(0, minutes_between(start, day_start)) * px_per_minute
    minutes = max(MIN_CARD_MINUTES, minutes_between(end, start))
    height = max(MIN_CARD_HEIGHT_PX, minutes * px_per_minute)
    return VerticalExtent(top=top, height=height)


def column_height(start_hour: int, end_hour: int, px_per_minute: float) -> float:
    """Pixel height of the visible band."""
    return (end_hour - start_hour) * 60 * px_per_minute
