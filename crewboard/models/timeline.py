"""Derived, render-only values. None of these are persisted."""

from __future__ import annotations

from typing import Optional

from pydantic import Field

from .base import UtcDatetime, WireModel
from .booking import Booking, BookingStatus
from .staff import StaffType

LANE_SEPARATOR = "__"


class PositionedEvent(WireModel):
    """A booking with its side-by-side placement inside one lane.

    ``width`` and ``left`` are percentages of the lane width. ``column``
    is the sub-column index the placement was derived from.
    """

    booking: Booking
    width: float
    left: float
    z_index: int
    column: int = 0


class DropTarget(WireModel):
    """The lane a dragged booking was released over."""

    staff_id: str
    day_index: int = Field(ge=0, le=6)

    @property
    def lane_id(self) -> str:
        return lane_id(self.staff_id, self.day_index)


class RescheduleProposal(WireModel):
    """The next state of a dragged booking. The caller commits it."""

    booking_id: str
    staff_id: str
    start: UtcDatetime
    end: UtcDatetime
    status: BookingStatus


class BookingFilter(WireModel):
    """Toolbar filter: status, free text and staff type. Empty = no filter."""

    status: Optional[BookingStatus] = None
    query: str = ""
    staff_type: Optional[StaffType] = None


class WeekView(WireModel):
    """Result of computing one visible week."""

    week_start: UtcDatetime
    visible: list[Booking] = []
    counts: list[int] = Field(default_factory=lambda: [0] * 7)
    jump_to_week: Optional[UtcDatetime] = None
    unplaceable: list[str] = []


def lane_id(staff_id: str, day_index: int) -> str:
    """Lane identifier used by the drag surface: ``<staffId>__<dayIndex>``."""
    return f"{staff_id}{LANE_SEPARATOR}{day_index}"


def parse_lane_id(value: str) -> DropTarget:
    """Parse a lane identifier into a ``DropTarget``.

    Raises ``ValueError`` if the id is malformed or the day is outside 0..6.
    """
    staff_id, sep, day = value.rpartition(LANE_SEPARATOR)
    if not sep or not staff_id or not day.lstrip("-").isdigit():
        raise ValueError(f"Malformed lane id: {value!r}")
    return DropTarget(staff_id=staff_id, day_index=int(day))
