"""In-process booking store, used for demos and tests."""

from __future__ import annotations

import itertools
import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from crewboard.models.booking import Booking, BookingDraft, BookingStatus
from crewboard.models.staff import Staff
from crewboard.models.time_block import TimeBlock, TimeBlockDraft

from .base import BookingQuery, BookingStore

logger = logging.getLogger(__name__)

# Fields a partial update may touch
_UPDATABLE = {
    "title", "client_name", "location", "staff_id", "start", "end", "status",
    "notes", "email", "contact_number", "client_phone", "package_name",
}


class InMemoryBookingStore(BookingStore):
    """BookingStore holding everything in dictionaries."""

    def __init__(
        self,
        staff: Iterable[Staff] = (),
        bookings: Iterable[Booking] = (),
        time_blocks: Iterable[TimeBlock] = (),
    ) -> None:
        self._staff: dict[str, Staff] = {s.id: s for s in staff}
        self._bookings: dict[str, Booking] = {b.id: b for b in bookings}
        self._time_blocks: dict[str, TimeBlock] = {t.id: t for t in time_blocks}
        self._ids = itertools.count(1)
        self._block_ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_bookings(self, query: Optional[BookingQuery] = None) -> list[Booking]:
        result = sorted(self._bookings.values(), key=lambda b: b.start)
        if query is None:
            return result
        if query.status is not None:
            result = [b for b in result if b.status is query.status]
        if query.start is not None:
            result = [b for b in result if b.start >= query.start]
        if query.end is not None:
            result = [b for b in result if b.end <= query.end]
        if query.q:
            needle = query.q.lower()
            result = [
                b for b in result
                if needle in b.client_name.lower() or needle in (b.location or "").lower()
            ]
        return result

    async def list_staff(self) -> list[Staff]:
        return list(self._staff.values())

    async def list_time_blocks(
        self,
        staff_ids: Optional[list[str]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[TimeBlock]:
        result = sorted(self._time_blocks.values(), key=lambda t: t.start)
        if staff_ids:
            wanted = set(staff_ids)
            result = [t for t in result if t.staff_id in wanted]
        if start is not None:
            result = [t for t in result if t.end >= start]
        if end is not None:
            result = [t for t in result if t.start <= end]
        return result

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def update_booking(self, booking_id: str, fields: dict[str, Any]) -> bool:
        current = self._bookings.get(booking_id)
        if current is None:
            logger.warning("Update of unknown booking %s ignored", booking_id)
            return False
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Fields not updatable: {', '.join(sorted(unknown))}")
        # Re-validate so a partial update cannot break the interval invariant
        data = current.model_dump()
        data.update(fields)
        self._bookings[booking_id] = Booking.model_validate(data)
        logger.info("Updated booking %s: %s", booking_id, ", ".join(sorted(fields)))
        return True

    async def update_booking_status(self, booking_id: str, status: BookingStatus) -> bool:
        return await self.update_booking(booking_id, {"status": status})

    async def create_booking(self, draft: BookingDraft) -> str:
        booking_id = f"bkg-{next(self._ids):03d}"
        while booking_id in self._bookings:
            booking_id = f"bkg-{next(self._ids):03d}"
        self._bookings[booking_id] = draft.to_booking(booking_id)
        logger.info("Created booking %s for staff %s", booking_id, draft.staff_id)
        return booking_id

    async def delete_booking(self, booking_id: str) -> bool:
        removed = self._bookings.pop(booking_id, None)
        if removed is not None:
            logger.info("Deleted booking %s", booking_id)
        return removed is not None

    async def create_time_block(self, draft: TimeBlockDraft) -> str:
        block_id = f"tb-{next(self._block_ids):03d}"
        while block_id in self._time_blocks:
            block_id = f"tb-{next(self._block_ids):03d}"
        self._time_blocks[block_id] = draft.to_time_block(block_id)
        logger.info(
            "Created %s time-block %s for staff %s", draft.type.value, block_id, draft.staff_id,
        )
        return block_id

    async def delete_time_block(self, block_id: str) -> bool:
        removed = self._time_blocks.pop(block_id, None)
        if removed is not None:
            logger.info("Deleted time-block %s", block_id)
        return removed is not None
