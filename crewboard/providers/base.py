"""Abstract base class for booking stores.

Defines the interface the timeline core consumes from the persistence
backend: reading bookings, staff and time-blocks, and committing the
mutations the core proposes. Any backend (REST API, in-memory, ...)
implements this ABC.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from crewboard.models.booking import Booking, BookingDraft, BookingStatus
from crewboard.models.staff import Staff
from crewboard.models.time_block import TimeBlock, TimeBlockDraft


@dataclass
class BookingQuery:
    """Server-side booking filter (mirrors the backend's query parameters)."""

    status: Optional[BookingStatus] = None
    q: str = ""
    start: Optional[datetime] = None  # bookings starting at or after
    end: Optional[datetime] = None    # bookings ending at or before


class BookingStore(ABC):
    """Abstract persistence backend for the timeline.

    Instants cross this boundary as aware UTC datetimes (ISO-8601 UTC on
    the wire). A mutation has only happened once the returned value says
    so; callers must not update their snapshot before that.
    """

    @abstractmethod
    async def list_bookings(self, query: Optional[BookingQuery] = None) -> list[Booking]:
        """Return bookings matching ``query`` (all bookings when None)."""

    @abstractmethod
    async def list_staff(self) -> list[Staff]:
        """Return the active staff list."""

    @abstractmethod
    async def list_time_blocks(
        self,
        staff_ids: Optional[list[str]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[TimeBlock]:
        """Return time-blocks for ``staff_ids`` touching ``[start, end]``.

        Args:
            staff_ids: Restrict to these staff members (all when None/empty).
            start: Only blocks ending at or after this instant.
            end: Only blocks starting at or before this instant.
        """

    @abstractmethod
    async def update_booking(self, booking_id: str, fields: dict[str, Any]) -> bool:
        """Apply a partial update. Returns True if the store accepted it."""

    @abstractmethod
    async def update_booking_status(self, booking_id: str, status: BookingStatus) -> bool:
        """Set a booking's status. Returns True if the store accepted it."""

    @abstractmethod
    async def create_booking(self, draft: BookingDraft) -> str:
        """Create a booking and return its new id."""

    @abstractmethod
    async def delete_booking(self, booking_id: str) -> bool:
        """Delete a booking. Returns True if it existed and was removed."""

    @abstractmethod
    async def create_time_block(self, draft: TimeBlockDraft) -> str:
        """Block out a staff member's time and return the new block id."""

    @abstractmethod
    async def delete_time_block(self, block_id: str) -> bool:
        """Delete a time-block. Returns True if it existed and was removed."""
