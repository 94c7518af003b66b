"""Booking status rules.

Any status may be set to any other through the store. The only rule the
core applies on its own is the promotion of a HOLD to CONFIRMED when the
booking is rescheduled onto the grid.
"""

from __future__ import annotations

import logging

from crewboard.models.booking import BookingStatus

log = logging.getLogger("crewboard.status")

# Legend order on the timeline toolbar
STATUS_ORDER: list[BookingStatus] = list(BookingStatus)

TERMINAL_STATUSES: frozenset[BookingStatus] = frozenset({
    BookingStatus.DELIVERED,
    BookingStatus.CLOSED,
    BookingStatus.CANCELLED,
    BookingStatus.EXPIRED,
})


def status_after_reschedule(status: BookingStatus) -> BookingStatus:
    """Status a booking takes when it is moved to a new lane or time."""
    match status:
        case BookingStatus.HOLD:
            return BookingStatus.CONFIRMED
        case (
            BookingStatus.INQUIRY
            | BookingStatus.CONFIRMED
            | BookingStatus.SCHEDULED
            | BookingStatus.IN_PROGRESS
            | BookingStatus.EDITING
            | BookingStatus.REVIEW
            | BookingStatus.DELIVERED
            | BookingStatus.CLOSED
            | BookingStatus.CANCELLED
            | BookingStatus.EXPIRED
        ):
            return status
    raise ValueError(f"Unhandled booking status: {status!r}")


def is_terminal(status: BookingStatus) -> bool:
    """True for states a booking normally does not leave (not enforced)."""
    return status in TERMINAL_STATUSES


def parse_status(value: str | BookingStatus) -> BookingStatus:
    """Coerce a wire value into a ``BookingStatus``."""
    if isinstance(value, BookingStatus):
        return value
    try:
        return BookingStatus(value.strip().upper())
    except ValueError:
        allowed = ", ".join(s.value for s in BookingStatus)
        raise ValueError(f"Unknown booking status {value!r}; expected one of: {allowed}") from None
