"""Pydantic models for bookings and booking drafts."""

from __future__ import annotations

from datetime import timedelta
from enum import Enum
from typing import Optional

from pydantic import ConfigDict, model_validator

from crewboard.errors import InvalidIntervalError

from .base import UtcDatetime, WireModel


class BookingStatus(str, Enum):
    """Closed set of booking states. No transition graph is enforced."""

    INQUIRY = "INQUIRY"
    HOLD = "HOLD"
    CONFIRMED = "CONFIRMED"
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    EDITING = "EDITING"
    REVIEW = "REVIEW"
    DELIVERED = "DELIVERED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class Booking(WireModel):
    """A staff assignment over ``[start, end)``.

    Frozen: the core never mutates a booking in place. Updates are
    expressed as proposals and applied with ``model_copy``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    client_name: str
    location: Optional[str] = None
    staff_id: str
    start: UtcDatetime
    end: UtcDatetime
    status: BookingStatus

    # Carried through from the backend record, unused by the scheduling core
    notes: Optional[str] = None
    email: Optional[str] = None
    contact_number: Optional[str] = None
    client_phone: Optional[str] = None
    package_name: Optional[str] = None

    @model_validator(mode="after")
    def _check_interval(self) -> "Booking":
        if self.end <= self.start:
            raise InvalidIntervalError(self.start, self.end, f"booking {self.id!r}")
        return self

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


class BookingDraft(WireModel):
    """Fields collected to create a booking (the store assigns the id)."""

    title: str
    client_name: str
    location: Optional[str] = None
    staff_id: str
    start: UtcDatetime
    end: UtcDatetime
    status: BookingStatus = BookingStatus.CONFIRMED
    add_on_ids: list[str] = []
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _check_interval(self) -> "BookingDraft":
        if self.end <= self.start:
            raise InvalidIntervalError(self.start, self.end, "booking draft")
        return self

    def to_booking(self, booking_id: str) -> Booking:
        """Materialize the draft once the store has assigned an id."""
        return Booking(
            id=booking_id,
            title=self.title,
            client_name=self.client_name,
            location=self.location,
            staff_id=self.staff_id,
            start=self.start,
            end=self.end,
            status=self.status,
            notes=self.notes,
        )
