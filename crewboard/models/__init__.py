"""Data models for the timeline core."""

from .booking import Booking, BookingDraft, BookingStatus
from .staff import Staff, StaffType
from .time_block import TimeBlock, TimeBlockDraft, TimeBlockType
from .timeline import (
    BookingFilter,
    DropTarget,
    PositionedEvent,
    RescheduleProposal,
    WeekView,
    lane_id,
    parse_lane_id,
)

__all__ = [
    "Booking",
    "BookingDraft",
    "BookingFilter",
    "BookingStatus",
    "DropTarget",
    "PositionedEvent",
    "RescheduleProposal",
    "Staff",
    "StaffType",
    "TimeBlock",
    "TimeBlockDraft",
    "TimeBlockType",
    "WeekView",
    "lane_id",
    "parse_lane_id",
]
