"""Per-operator timeline session. Owns the snapshot the pure core works on.

Each operator viewing the timeline gets a TimelineSession that:
  1. Holds the current snapshot of staff, bookings and time-blocks
  2. Tracks the visible week, the toolbar filter and the zoom level
  3. Computes the week view and laid-out lanes from the snapshot
  4. Turns drops into reschedule proposals and commits them via the store
  5. Validates creates/edits (interval, staff, availability) before committing

The snapshot is only changed after the store confirms a mutation.
"""

from __future__ import annotations

import logging
import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

from crewboard.availability import exclude_booking, find_conflicts
from crewboard.config import Settings, settings
from crewboard.errors import (
    AvailabilityConflictError,
    BookingLockedError,
    StoreError,
    UnknownBookingError,
    UnknownStaffError,
    UnknownTimeBlockError,
)
from crewboard.events import EventType, TimelineBroadcaster
from crewboard.layout import column_height, vertical_extent
from crewboard.models.booking import Booking, BookingDraft, BookingStatus
from crewboard.models.staff import Staff
from crewboard.models.time_block import TimeBlock, TimeBlockDraft
from crewboard.models.timeline import (
    BookingFilter,
    DropTarget,
    PositionedEvent,
    RescheduleProposal,
    WeekView,
    lane_id,
    parse_lane_id,
)
from crewboard.providers.base import BookingStore
from crewboard.reschedule import apply_proposal, plan_reschedule
from crewboard.status import is_terminal, parse_status
from crewboard.timeutil import (
    add_days,
    capture_display_offset,
    day_baseline,
    day_label,
    format_hm,
    hour_labels,
    start_of_week,
    to_iso,
    week_days,
)
from crewboard.view import LaneKey, build_lanes, compute_visible_week

log = logging.getLogger("crewboard.session")


# ── Session registry ─────────────────────────────────────────────

_active_sessions: dict[str, "TimelineSession"] = {}


def register_session(session: "TimelineSession") -> str:
    """Register a session and return its unique ID."""
    session_id = secrets.token_urlsafe(18)
    session._session_id = session_id
    session._started_at = time.time()
    _active_sessions[session_id] = session
    log.info("Session registered: %s", session_id)
    return session_id


def unregister_session(session_id: str) -> None:
    """Remove a session from the registry."""
    _active_sessions.pop(session_id, None)
    log.info("Session unregistered: %s", session_id)


def get_active_sessions() -> dict[str, "TimelineSession"]:
    """Return all active sessions."""
    return _active_sessions


def get_session(session_id: str) -> "TimelineSession | None":
    """Look up a session by ID."""
    return _active_sessions.get(session_id)


class TimelineSession:
    """One operator's view of the weekly timeline.

    Typical lifecycle::

        session = TimelineSession(store=InMemoryBookingStore(...))
        await session.load()

        view = session.week_view()           # visible bookings + badge counts
        lanes = session.lanes()              # laid-out (staff, day) lanes

        # Operator drags a card 47px down onto Adi's Wednesday lane
        proposal = await session.drop("bkg-001", "stf-adi__2", 47)
    """

    def __init__(
        self,
        store: BookingStore,
        week_start: Optional[datetime] = None,
        px_per_minute: Optional[float] = None,
        config: Optional[Settings] = None,
    ) -> None:
        self._store = store
        self._settings = config or settings

        # Registry metadata (set by register_session)
        self._session_id: str = ""
        self._started_at: float = 0.0

        # View state
        self._week_start = start_of_week(week_start or datetime.now(tz=timezone.utc))
        self._px_per_minute = self._clamp_zoom(
            px_per_minute if px_per_minute is not None else self._settings.default_px_per_minute
        )
        self._filter = BookingFilter()
        # Captured once; labels never follow later timezone changes
        self._display_offset = capture_display_offset(self._settings.display_utc_offset_minutes)

        # Snapshot
        self._staff: list[Staff] = []
        self._bookings: list[Booking] = []
        self._time_blocks: list[TimeBlock] = []
        self._loaded = False

        self._broadcaster: TimelineBroadcaster | None = None

    # ── Helpers ────────────────────────────────────────────────

    def _clamp_zoom(self, px_per_minute: float) -> float:
        low = self._settings.min_px_per_minute
        high = self._settings.max_px_per_minute
        return min(high, max(low, px_per_minute))

    def _emit_event(self, event_type: EventType, data: dict) -> None:
        """Emit a timeline event if a broadcaster is attached."""
        if self._broadcaster:
            self._broadcaster.emit(event_type, self._week_start, data)

    def _find_booking(self, booking_id: str) -> Booking:
        for booking in self._bookings:
            if booking.id == booking_id:
                return booking
        raise UnknownBookingError(booking_id)

    def _require_staff(self, staff_id: str) -> Staff:
        for member in self._staff:
            if member.id == staff_id:
                return member
        raise UnknownStaffError(staff_id)

    def _replace_booking(self, updated: Booking) -> None:
        self._bookings = [updated if b.id == updated.id else b for b in self._bookings]

    def _check_movable(self, booking: Booking) -> None:
        if self._settings.protect_terminal_bookings and is_terminal(booking.status):
            raise BookingLockedError(booking.id, booking.status.value)

    def _check_availability(
        self,
        staff_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str],
        *,
        hard: bool,
    ) -> None:
        others = self._bookings if exclude_id is None else exclude_booking(self._bookings, exclude_id)
        conflicts = find_conflicts(staff_id, start, end, self._time_blocks, others)
        if not conflicts:
            return
        ids = [c.id for c in conflicts]
        if hard:
            raise AvailabilityConflictError(staff_id, start, end, ids)
        log.warning(
            "Staff %s double-booked %s-%s (overlaps %s); allowed",
            staff_id, start.isoformat(), end.isoformat(), ", ".join(ids),
        )

    # ── Public API: state ─────────────────────────────────────

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def week_start(self) -> datetime:
        return self._week_start

    @property
    def px_per_minute(self) -> float:
        return self._px_per_minute

    @property
    def display_offset(self) -> timedelta:
        return self._display_offset

    @property
    def booking_filter(self) -> BookingFilter:
        return self._filter

    @property
    def staff(self) -> list[Staff]:
        return list(self._staff)

    @property
    def bookings(self) -> list[Booking]:
        return list(self._bookings)

    @property
    def time_blocks(self) -> list[TimeBlock]:
        return list(self._time_blocks)

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def attach_broadcaster(self, broadcaster: TimelineBroadcaster) -> None:
        """Attach a broadcaster for real-time re-render notifications."""
        self._broadcaster = broadcaster

    async def load(self) -> None:
        """Fetch a fresh snapshot from the store."""
        staff = await self._store.list_staff()
        bookings = await self._store.list_bookings()
        blocks = await self._store.list_time_blocks(staff_ids=[s.id for s in staff])
        self._staff, self._bookings, self._time_blocks = staff, bookings, blocks
        self._loaded = True
        log.info(
            "Session %s loaded %d staff, %d bookings, %d time-blocks",
            self._session_id, len(staff), len(bookings), len(blocks),
        )
        self._emit_event(EventType.LOADED, {
            "staff": len(staff), "bookings": len(bookings), "time_blocks": len(blocks),
        })

    # ── Public API: navigation & filters ──────────────────────

    def go_to_week(self, instant: datetime) -> datetime:
        """Show the week containing ``instant``. Returns the new week start."""
        previous = self._week_start
        self._week_start = start_of_week(instant)
        if self._week_start != previous:
            log.info("Week %s -> %s", previous.date(), self._week_start.date())
            self._emit_event(EventType.WEEK_CHANGED, {"from": to_iso(previous)})
        return self._week_start

    def next_week(self) -> datetime:
        return self.go_to_week(add_days(self._week_start, 7))

    def prev_week(self) -> datetime:
        return self.go_to_week(add_days(self._week_start, -7))

    def set_zoom(self, px_per_minute: float) -> float:
        """Set pixels-per-minute, clamped to the configured range."""
        self._px_per_minute = self._clamp_zoom(px_per_minute)
        return self._px_per_minute

    def set_filter(self, booking_filter: BookingFilter) -> WeekView:
        """Apply a toolbar filter and return the resulting week view.

        When the search text changes and has no match in the shown week but
        matches elsewhere, the session jumps once to the week of the
        earliest match. Later navigation is left alone.
        """
        query_changed = booking_filter.query.strip() != self._filter.query.strip()
        self._filter = booking_filter
        self._emit_event(EventType.FILTER_CHANGED, booking_filter.model_dump(mode="json"))

        view = self.week_view()
        if query_changed and view.jump_to_week is not None:
            self.go_to_week(view.jump_to_week)
            view = self.week_view()
        return view

    # ── Public API: derived views ─────────────────────────────

    def week_view(self) -> WeekView:
        return compute_visible_week(self._bookings, self._filter, self._week_start, self._staff)

    def lanes(self) -> dict[LaneKey, list[PositionedEvent]]:
        """Laid-out lanes of the filtered bookings for the shown week."""
        return build_lanes(
            self.week_view().visible, self._staff, self._week_start, self._filter.staff_type,
        )

    def is_available(
        self, staff_id: str, start: datetime, end: datetime, exclude_id: Optional[str] = None,
    ) -> bool:
        """Snapshot availability, for previewing a slot before submitting."""
        others = self._bookings if exclude_id is None else exclude_booking(self._bookings, exclude_id)
        return not find_conflicts(staff_id, start, end, self._time_blocks, others)

    def grid(self) -> dict[str, Any]:
        """Everything a renderer needs to draw the shown week."""
        start_hour = self._settings.visible_start_hour
        end_hour = self._settings.visible_end_hour
        offset = self._display_offset
        view = self.week_view()
        days = week_days(self._week_start)
        lanes = build_lanes(view.visible, self._staff, self._week_start, self._filter.staff_type)

        rows = []
        for (staff_id, di), events in lanes.items():
            baseline = day_baseline(days[di], start_hour)
            cards = []
            for event in events:
                extent = vertical_extent(
                    event.booking.start, event.booking.end, baseline, self._px_per_minute,
                )
                cards.append({
                    **event.model_dump(mode="json", by_alias=True),
                    "top": extent.top,
                    "height": extent.height,
                    "timeLabel": (
                        f"{format_hm(event.booking.start, offset)}-"
                        f"{format_hm(event.booking.end, offset)}"
                    ),
                })
            rows.append({
                "laneId": lane_id(staff_id, di),
                "staffId": staff_id,
                "dayIndex": di,
                "events": cards,
            })

        return {
            "weekStart": to_iso(self._week_start),
            "pxPerMinute": self._px_per_minute,
            "columnHeight": column_height(start_hour, end_hour, self._px_per_minute),
            "hours": hour_labels(start_hour, end_hour),
            "days": [
                {"index": i, "label": day_label(d, offset), "count": view.counts[i]}
                for i, d in enumerate(days)
            ],
            "staff": [s.model_dump(mode="json", by_alias=True) for s in self._staff],
            "lanes": rows,
            "unplaceable": view.unplaceable,
        }

    # ── Public API: mutations ─────────────────────────────────

    async def drop(
        self,
        booking_id: str,
        target: Union[str, DropTarget, None],
        delta_pixels: float,
    ) -> RescheduleProposal | None:
        """Reschedule a dragged booking onto ``target`` and commit it.

        ``target`` is a lane id (``staff__day``), a DropTarget, or None for
        a drag released outside every lane (no-op, returns None).
        """
        booking = self._find_booking(booking_id)
        if target is None:
            log.debug("Drop of %s outside any lane ignored", booking_id)
            return None
        if isinstance(target, str):
            target = parse_lane_id(target)
        self._require_staff(target.staff_id)
        self._check_movable(booking)

        proposal = plan_reschedule(
            booking,
            target,
            delta_pixels,
            self._px_per_minute,
            self._week_start,
            start_hour=self._settings.visible_start_hour,
            snap=self._settings.snap_minutes,
        )
        if proposal is None:
            return None

        self._check_availability(
            proposal.staff_id, proposal.start, proposal.end, booking.id,
            hard=self._settings.block_conflicting_drops,
        )

        accepted = await self._store.update_booking(booking.id, {
            "staff_id": proposal.staff_id,
            "start": proposal.start,
            "end": proposal.end,
            "status": proposal.status,
        })
        if not accepted:
            raise StoreError(f"Store refused reschedule of booking {booking.id!r}")

        self._replace_booking(apply_proposal(booking, proposal))
        self._emit_event(EventType.BOOKING_MOVED, proposal.model_dump(mode="json"))
        return proposal

    async def create_booking(self, draft: BookingDraft) -> Booking:
        """Create a booking after checking staff and availability."""
        self._require_staff(draft.staff_id)
        self._check_availability(draft.staff_id, draft.start, draft.end, None, hard=True)

        booking_id = await self._store.create_booking(draft)
        booking = draft.to_booking(booking_id)
        self._bookings.append(booking)
        log.info("Booking %s created for %s at %s", booking_id, draft.staff_id, draft.start)
        self._emit_event(EventType.BOOKING_CREATED, {"booking_id": booking_id})
        return booking

    async def update_booking(self, booking_id: str, fields: dict[str, Any]) -> Booking:
        """Edit a booking's fields. The edited booking is validated first."""
        booking = self._find_booking(booking_id)
        unknown = set(fields) - set(Booking.model_fields) | ({"id"} & set(fields))
        if unknown:
            raise ValueError(f"Fields not editable: {', '.join(sorted(unknown))}")
        candidate = Booking.model_validate({**booking.model_dump(), **fields})
        fields = {k: getattr(candidate, k) for k in fields}

        moved = (candidate.staff_id, candidate.start, candidate.end) != (
            booking.staff_id, booking.start, booking.end,
        )
        if moved:
            self._require_staff(candidate.staff_id)
            self._check_movable(booking)
            self._check_availability(
                candidate.staff_id, candidate.start, candidate.end, booking.id,
                hard=self._settings.block_conflicting_drops,
            )

        accepted = await self._store.update_booking(booking_id, fields)
        if not accepted:
            raise StoreError(f"Store refused update of booking {booking_id!r}")

        self._replace_booking(candidate)
        self._emit_event(EventType.BOOKING_UPDATED, {"booking_id": booking_id, "fields": sorted(fields)})
        return candidate

    async def update_status(self, booking_id: str, status: Union[str, BookingStatus]) -> Booking:
        """Set a booking's status. Any status may follow any other."""
        booking = self._find_booking(booking_id)
        new_status = parse_status(status)

        accepted = await self._store.update_booking_status(booking_id, new_status)
        if not accepted:
            raise StoreError(f"Store refused status change of booking {booking_id!r}")

        updated = booking.model_copy(update={"status": new_status})
        self._replace_booking(updated)
        self._emit_event(EventType.STATUS_CHANGED, {
            "booking_id": booking_id, "from": booking.status.value, "to": new_status.value,
        })
        return updated

    async def delete_booking(self, booking_id: str) -> bool:
        self._find_booking(booking_id)
        removed = await self._store.delete_booking(booking_id)
        if removed:
            self._bookings = exclude_booking(self._bookings, booking_id)
            self._emit_event(EventType.BOOKING_DELETED, {"booking_id": booking_id})
        return removed

    async def create_time_block(self, draft: TimeBlockDraft) -> TimeBlock:
        """Block out a staff member's time. Availability checks see it at once."""
        self._require_staff(draft.staff_id)
        block_id = await self._store.create_time_block(draft)
        block = draft.to_time_block(block_id)
        self._time_blocks.append(block)
        log.info("Time-block %s (%s) created for %s at %s",
                 block_id, block.type.value, draft.staff_id, draft.start)
        self._emit_event(EventType.TIME_BLOCK_CREATED, {
            "time_block_id": block_id, "staff_id": block.staff_id,
        })
        return block

    async def delete_time_block(self, block_id: str) -> bool:
        if not any(b.id == block_id for b in self._time_blocks):
            raise UnknownTimeBlockError(block_id)
        removed = await self._store.delete_time_block(block_id)
        if removed:
            self._time_blocks = [b for b in self._time_blocks if b.id != block_id]
            self._emit_event(EventType.TIME_BLOCK_DELETED, {"time_block_id": block_id})
        return removed

    def to_dict(self, detail: bool = False) -> dict[str, Any]:
        """Serialize session state for the API.

        With detail=False: summary suitable for listing.
        With detail=True: adds the week view and the event log.
        """
        d: dict[str, Any] = {
            "session_id": self._session_id,
            "started_at": self._started_at,
            "loaded": self._loaded,
            "week_start": to_iso(self._week_start),
            "px_per_minute": self._px_per_minute,
            "filter": self._filter.model_dump(mode="json"),
            "counts": {
                "staff": len(self._staff),
                "bookings": len(self._bookings),
                "time_blocks": len(self._time_blocks),
            },
        }
        if detail:
            d["week"] = self.week_view().model_dump(mode="json", by_alias=True)
            if self._broadcaster:
                d["event_log"] = [e.model_dump(mode="json") for e in self._broadcaster.history]
        return d
