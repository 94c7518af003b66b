"""Error taxonomy for the timeline core.

Scheduling errors are raised synchronously to the caller. Availability
conflicts are normally a boolean signal (see ``availability.is_available``);
``AvailabilityConflictError`` is only raised by session operations that are
configured to refuse a conflicting placement.
"""

from __future__ import annotations

from datetime import datetime


class CrewboardError(Exception):
    """Base class for every error raised by crewboard."""


class InvalidIntervalError(CrewboardError, ValueError):
    """An interval whose end is not after its start."""

    def __init__(self, start: datetime, end: datetime, what: str = "interval") -> None:
        self.start = start
        self.end = end
        super().__init__(
            f"Invalid {what}: end {end.isoformat()} is not after start {start.isoformat()}"
        )


class UnknownStaffError(CrewboardError, LookupError):
    """A staff id that is not in the current staff list."""

    def __init__(self, staff_id: str) -> None:
        self.staff_id = staff_id
        super().__init__(f"Unknown staff id: {staff_id!r}")


class UnknownBookingError(CrewboardError, LookupError):
    """A booking id that is not in the current snapshot."""

    def __init__(self, booking_id: str) -> None:
        self.booking_id = booking_id
        super().__init__(f"Unknown booking id: {booking_id!r}")


class AvailabilityConflictError(CrewboardError):
    """The proposed interval overlaps a blocking time-block or another booking."""

    def __init__(self, staff_id: str, start: datetime, end: datetime, conflicts: list[str]) -> None:
        self.staff_id = staff_id
        self.start = start
        self.end = end
        self.conflicts = conflicts
        super().__init__(
            f"Staff {staff_id!r} is not available {start.isoformat()} - {end.isoformat()} "
            f"(conflicts: {', '.join(conflicts) or 'none'})"
        )


class StoreError(CrewboardError):
    """The booking store failed or refused a request."""


class BookingLockedError(CrewboardError):
    """The booking is in a terminal status and terminal bookings are protected."""

    def __init__(self, booking_id: str, status: str) -> None:
        self.booking_id = booking_id
        self.status = status
        super().__init__(f"Booking {booking_id!r} is {status} and cannot be moved")


class UnknownSessionError(CrewboardError, LookupError):
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class UnknownTimeBlockError(CrewboardError, LookupError):
    def __init__(self, block_id: str) -> None:
        self.block_id = block_id
        super().__init__(f"Unknown time-block id: {block_id!r}")
