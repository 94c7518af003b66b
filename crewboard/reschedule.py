"""Translate a drag gesture into a proposed new lane and start time.

The engine only proposes. It does not check availability and does not
commit anything: callers that want to refuse overlapping drops run
``availability.is_available`` themselves (excluding the dragged booking).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from crewboard.models.booking import Booking
from crewboard.models.timeline import DropTarget, RescheduleProposal
from crewboard.status import status_after_reschedule
from crewboard.timeutil import (
    add_days,
    add_minutes,
    day_baseline,
    minutes_between,
    round_half_up,
    start_of_week,
)

log = logging.getLogger("crewboard.reschedule")

DEFAULT_START_HOUR = 7
DEFAULT_SNAP_MINUTES = 30


@dataclass(frozen=True)
class DragGesture:
    """One completed drag: what was dragged, where it landed, how far it moved.

    ``drop_target`` is None when the booking was released outside any lane.
    """

    booking: Booking
    drop_target: Optional[DropTarget]
    delta_pixels: float


def snap_minutes(minutes: float, step: int = DEFAULT_SNAP_MINUTES) -> int:
    """Round ``minutes`` to the nearest multiple of ``step`` (negatives too)."""
    return round_half_up(minutes / step) * step


def pixels_to_minutes(delta_pixels: float, px_per_minute: float) -> int:
    if px_per_minute <= 0:
        raise ValueError(f"px_per_minute must be positive, got {px_per_minute}")
    return round_half_up(delta_pixels / px_per_minute)


def plan_reschedule(
    booking: Booking,
    drop_target: Optional[DropTarget],
    delta_pixels: float,
    px_per_minute: float,
    week_start: datetime,
    *,
    start_hour: int = DEFAULT_START_HOUR,
    snap: int = DEFAULT_SNAP_MINUTES,
) -> Optional[RescheduleProposal]:
    """Propose the booking's next (staff, start, end, status).

    ``booking`` must carry its original start/end (before the drag). The
    duration is preserved exactly. The new start lies on the ``snap`` grid
    measured from the target day's ``start_hour`` baseline and never
    before it. Returns None for an aborted drag (no target).
    """
    if drop_target is None:
        log.debug("Drag of %s aborted outside any lane", booking.id)
        return None

    duration = booking.end - booking.start
    raw_minutes = pixels_to_minutes(delta_pixels, px_per_minute)
    delta_minutes = snap_minutes(raw_minutes, snap)

    target_day = add_days(start_of_week(week_start), drop_target.day_index)
    target_base = day_baseline(target_day, start_hour)

    own_base = day_baseline(booking.start, start_hour)
    original_offset = max(0, minutes_between(booking.start, own_base))

    # Off-grid originals land on the nearest grid line
    new_offset = max(0, snap_minutes(original_offset + delta_minutes, snap))

    new_start = add_minutes(target_base, new_offset)
    proposal = RescheduleProposal(
        booking_id=booking.id,
        staff_id=drop_target.staff_id,
        start=new_start,
        end=new_start + duration,
        status=status_after_reschedule(booking.status),
    )
    log.info(
        "Reschedule %s: %s@%s -> %s@%s (%+d min, status %s)",
        booking.id,
        booking.staff_id, booking.start.isoformat(),
        proposal.staff_id, proposal.start.isoformat(),
        delta_minutes, proposal.status.value,
    )
    return proposal


def plan_gesture(
    gesture: DragGesture,
    px_per_minute: float,
    week_start: datetime,
    *,
    start_hour: int = DEFAULT_START_HOUR,
    snap: int = DEFAULT_SNAP_MINUTES,
) -> Optional[RescheduleProposal]:
    """``plan_reschedule`` over a ``DragGesture``."""
    return plan_reschedule(
        gesture.booking,
        gesture.drop_target,
        gesture.delta_pixels,
        px_per_minute,
        week_start,
        start_hour=start_hour,
        snap=snap,
    )


def apply_proposal(booking: Booking, proposal: RescheduleProposal) -> Booking:
    """The booking as it looks once ``proposal`` has been committed."""
    if proposal.booking_id != booking.id:
        raise ValueError(
            f"Proposal for {proposal.booking_id!r} applied to booking {booking.id!r}"
        )
    return booking.model_copy(update={
        "staff_id": proposal.staff_id,
        "start": proposal.start,
        "end": proposal.end,
        "status": proposal.status,
    })
