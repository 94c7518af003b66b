"""Pure decisions behind the weekly timeline view.

Nothing here renders. Given a snapshot of bookings and staff, these
functions decide which bookings are visible in a week, the per-day badge
counts, the lane grid, and whether a text search should jump to another
week.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from crewboard.layout import compute_lane_placement
from crewboard.models.booking import Booking
from crewboard.models.staff import Staff, StaffType
from crewboard.models.timeline import BookingFilter, PositionedEvent, WeekView
from crewboard.timeutil import DAYS_PER_WEEK, day_index, start_of_week

log = logging.getLogger("crewboard.view")

LaneKey = tuple[str, int]  # (staff_id, day_index)


def _text_matches(booking: Booking, needle: str) -> bool:
    haystacks = (booking.title, booking.client_name, booking.location or "")
    return any(needle in h.lower() for h in haystacks)


def matches_filter(
    booking: Booking,
    booking_filter: BookingFilter,
    staff_by_id: Optional[dict[str, Staff]] = None,
) -> bool:
    """Apply status, free-text and staff-type filters to one booking."""
    if booking_filter.status is not None and booking.status is not booking_filter.status:
        return False

    needle = booking_filter.query.strip().lower()
    if needle and not _text_matches(booking, needle):
        return False

    if booking_filter.staff_type is not None:
        member = (staff_by_id or {}).get(booking.staff_id)
        if member is None or member.staff_type is not booking_filter.staff_type:
            return False

    return True


def compute_visible_week(
    bookings: Iterable[Booking],
    booking_filter: BookingFilter,
    week_start: datetime,
    staff: Optional[Iterable[Staff]] = None,
) -> WeekView:
    """Visible bookings, per-day counts and the optional search jump for a week.

    ``jump_to_week`` is set only when the (non-empty) text query has no
    match in this week but does match elsewhere; it then names the Monday
    of the earliest-starting match.

    With ``staff`` given, bookings naming an unknown staff id stay in
    ``visible`` and are listed in ``unplaceable``, but are left out of
    ``counts`` since no lane draws them. A ``staff_type`` filter needs
    ``staff`` to resolve types and raises ValueError without it.
    """
    if booking_filter.staff_type is not None and staff is None:
        raise ValueError("staff_type filter needs the staff list")
    week_start = start_of_week(week_start)
    staff_by_id = {s.id: s for s in staff} if staff is not None else None

    matches = sorted(
        (b for b in bookings if matches_filter(b, booking_filter, staff_by_id)),
        key=lambda b: b.start,
    )

    visible: list[Booking] = []
    counts = [0] * DAYS_PER_WEEK
    for booking in matches:
        di = day_index(booking.start, week_start)
        if 0 <= di < DAYS_PER_WEEK:
            visible.append(booking)
            if staff_by_id is None or booking.staff_id in staff_by_id:
                counts[di] += 1

    jump_to: Optional[datetime] = None
    if booking_filter.query.strip() and not visible and matches:
        jump_to = start_of_week(matches[0].start)
        log.info(
            "Search %r has no match this week; earliest match %s is in week %s",
            booking_filter.query, matches[0].id, jump_to.date(),
        )

    unplaceable: list[str] = []
    if staff_by_id is not None:
        unplaceable = [b.id for b in visible if b.staff_id not in staff_by_id]

    return WeekView(
        week_start=week_start,
        visible=visible,
        counts=counts,
        jump_to_week=jump_to,
        unplaceable=unplaceable,
    )


def filter_staff(staff: Iterable[Staff], staff_type: Optional[StaffType] = None) -> list[Staff]:
    """Staff rows shown for the staff-type selector (None = all)."""
    if staff_type is None:
        return list(staff)
    return [s for s in staff if s.staff_type is staff_type]


def group_by_lane(
    bookings: Iterable[Booking],
    staff: Iterable[Staff],
    week_start: datetime,
) -> dict[LaneKey, list[Booking]]:
    """Bucket bookings into ``(staff_id, day_index)`` lanes for one week.

    Bookings outside the week are skipped. Bookings naming a staff id
    that is not in ``staff`` cannot be placed and are left out.
    """
    known = {s.id for s in staff}
    lanes: dict[LaneKey, list[Booking]] = {}
    for booking in bookings:
        di = day_index(booking.start, week_start)
        if not 0 <= di < DAYS_PER_WEEK:
            continue
        if booking.staff_id not in known:
            log.warning(
                "Booking %s references unknown staff %s; not placed",
                booking.id, booking.staff_id,
            )
            continue
        lanes.setdefault((booking.staff_id, di), []).append(booking)
    return lanes


def build_lanes(
    bookings: Iterable[Booking],
    staff: Iterable[Staff],
    week_start: datetime,
    staff_type: Optional[StaffType] = None,
) -> dict[LaneKey, list[PositionedEvent]]:
    """Laid-out lanes for every shown staff member and day of the week.

    Every ``(staff, day)`` pair of the shown staff gets an entry, empty
    lanes included, so the grid can be drawn straight from the result.
    """
    week_start = start_of_week(week_start)
    staff = list(staff)
    shown = filter_staff(staff, staff_type)
    grouped = group_by_lane(bookings, staff, week_start)
    return {
        (member.id, di): compute_lane_placement(grouped.get((member.id, di), []))
        for member in shown
        for di in range(DAYS_PER_WEEK)
    }
