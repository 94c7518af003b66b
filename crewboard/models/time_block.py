"""Staff-owned time-blocks (busy, buffer, travel, off, available)."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import ConfigDict, model_validator

from crewboard.errors import InvalidIntervalError

from .base import UtcDatetime, WireModel


class TimeBlockType(str, Enum):
    BUSY = "BUSY"
    BUFFER = "BUFFER"
    TRAVEL = "TRAVEL"
    OFF = "OFF"
    AVAILABLE = "AVAILABLE"

    @property
    def is_blocking(self) -> bool:
        """Only blocking kinds take part in availability checks."""
        return self is not TimeBlockType.AVAILABLE


class TimeBlock(WireModel):
    model_config = ConfigDict(frozen=True)

    id: str
    staff_id: str
    start: UtcDatetime
    end: UtcDatetime
    type: TimeBlockType = TimeBlockType.BUSY
    note: Optional[str] = None
    booking_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_interval(self) -> "TimeBlock":
        if self.end <= self.start:
            raise InvalidIntervalError(self.start, self.end, f"time-block {self.id!r}")
        return self

    @property
    def is_blocking(self) -> bool:
        return self.type.is_blocking


class TimeBlockDraft(WireModel):
    """Fields collected to block out a staff member's time (the store assigns the id)."""

    staff_id: str
    start: UtcDatetime
    end: UtcDatetime
    type: TimeBlockType = TimeBlockType.BUSY
    note: Optional[str] = None
    booking_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_interval(self) -> "TimeBlockDraft":
        if self.end <= self.start:
            raise InvalidIntervalError(self.start, self.end, "time-block draft")
        return self

    def to_time_block(self, block_id: str) -> TimeBlock:
        return TimeBlock(id=block_id, **self.model_dump())
