"""Tests for TimelineSession: snapshot, navigation, filters and committed mutations."""

from datetime import datetime, timedelta, timezone

import pytest

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from crewboard.config import Settings
from crewboard.errors import (
    AvailabilityConflictError,
    BookingLockedError,
    StoreError,
    UnknownBookingError,
    UnknownStaffError,
    UnknownTimeBlockError,
)
from crewboard.events import EventType, TimelineBroadcaster
from crewboard.models import (
    Booking,
    BookingDraft,
    BookingFilter,
    BookingStatus,
    DropTarget,
    Staff,
    StaffType,
    TimeBlock,
    TimeBlockDraft,
    TimeBlockType,
)
from crewboard.providers import InMemoryBookingStore
from crewboard.session import (
    TimelineSession,
    get_active_sessions,
    get_session,
    register_session,
    unregister_session,
)

MONDAY = datetime(2024, 4, 1, tzinfo=timezone.utc)


def _at(day, hour, minute=0):
    return MONDAY + timedelta(days=day, hours=hour, minutes=minute)


def _booking(bid, day, hour, staff="stf-rina", status=BookingStatus.CONFIRMED,
             client="Budi", hours=1):
    return Booking(
        id=bid, title=f"Shoot {bid}", client_name=client, location="Studio A",
        staff_id=staff, start=_at(day, hour), end=_at(day, hour + hours), status=status,
    )


class RecordingStore(InMemoryBookingStore):
    """In-memory store that records writes and can be told to refuse them."""

    def __init__(self, *args, refuse=False, **kwargs):
        super().__init__(*args, **kwargs)
        self.refuse = refuse
        self.updates = []

    async def update_booking(self, booking_id, fields):
        self.updates.append((booking_id, dict(fields)))
        if self.refuse:
            return False
        return await super().update_booking(booking_id, fields)


def _store(**kwargs):
    return RecordingStore(
        staff=[
            Staff(id="stf-rina", name="Rina", staff_type=StaffType.PHOTOGRAPHER),
            Staff(id="stf-adi", name="Adi", staff_type=StaffType.PHOTOGRAPHER),
            Staff(id="stf-andi", name="Andi", staff_type=StaffType.EDITOR),
        ],
        bookings=[
            _booking("bkg-001", 0, 9, status=BookingStatus.HOLD),
            _booking("bkg-002", 0, 13, staff="stf-adi"),
            _booking("bkg-003", 2, 10, status=BookingStatus.DELIVERED),
            _booking("bkg-004", 16, 9, client="Siti"),
            _booking("bkg-005", 1, 9, staff="stf-gone"),
        ],
        time_blocks=[
            TimeBlock(id="tb-1", staff_id="stf-adi", start=_at(1, 9), end=_at(1, 11)),
        ],
        **kwargs,
    )


def _config(**overrides):
    values = {"display_utc_offset_minutes": 420}
    values.update(overrides)
    return Settings(**values)


async def _session(store=None, **config):
    session = TimelineSession(
        store=store or _store(), week_start=_at(2, 15), px_per_minute=1.2,
        config=_config(**config),
    )
    await session.load()
    return session


# ── Construction and loading ────────────────────────────────────


class TestSessionInit:
    def test_initial_state(self):
        session = TimelineSession(store=_store(), week_start=_at(3, 8), config=_config())
        assert session.week_start == MONDAY
        assert session.px_per_minute == 1.2
        assert session.display_offset == timedelta(hours=7)
        assert session.is_loaded is False
        assert session.bookings == []

    def test_zoom_clamped(self):
        low = TimelineSession(store=_store(), px_per_minute=0.1, config=_config())
        high = TimelineSession(store=_store(), px_per_minute=9, config=_config())
        assert low.px_per_minute == 0.8
        assert high.px_per_minute == 2.0

    @pytest.mark.asyncio
    async def test_load(self):
        session = await _session()
        assert session.is_loaded
        assert len(session.staff) == 3
        assert len(session.bookings) == 5
        assert [t.id for t in session.time_blocks] == ["tb-1"]


class TestRegistry:
    def test_register_and_lookup(self):
        session = TimelineSession(store=_store(), config=_config())
        sid = register_session(session)
        try:
            assert session.session_id == sid
            assert get_session(sid) is session
            assert sid in get_active_sessions()
        finally:
            unregister_session(sid)
        assert get_session(sid) is None


# ── Navigation, filters and views ───────────────────────────────


class TestNavigation:
    @pytest.mark.asyncio
    async def test_next_and_prev(self):
        session = await _session()
        assert session.next_week() == MONDAY + timedelta(days=7)
        assert session.prev_week() == MONDAY
        assert session.prev_week() == MONDAY - timedelta(days=7)

    @pytest.mark.asyncio
    async def test_go_to_week(self):
        session = await _session()
        assert session.go_to_week(_at(17, 22)) == MONDAY + timedelta(days=14)

    @pytest.mark.asyncio
    async def test_zoom(self):
        session = await _session()
        assert session.set_zoom(1.5) == 1.5
        assert session.set_zoom(5) == 2.0


class TestFilters:
    @pytest.mark.asyncio
    async def test_week_view(self):
        view = (await _session()).week_view()
        assert [b.id for b in view.visible] == ["bkg-001", "bkg-002", "bkg-005", "bkg-003"]
        # bkg-005 names unknown staff: listed, never drawn, not counted
        assert view.counts == [2, 0, 1, 0, 0, 0, 0]
        assert view.unplaceable == ["bkg-005"]

    @pytest.mark.asyncio
    async def test_search_jumps_once(self):
        session = await _session()
        view = session.set_filter(BookingFilter(query="siti"))
        assert session.week_start == MONDAY + timedelta(days=14)
        assert [b.id for b in view.visible] == ["bkg-004"]

        # Navigating away with the same query stays where the operator went
        session.prev_week()
        view = session.set_filter(BookingFilter(query="siti", status=BookingStatus.CONFIRMED))
        assert session.week_start == MONDAY + timedelta(days=7)
        assert view.visible == []

    @pytest.mark.asyncio
    async def test_empty_query_does_not_jump(self):
        session = await _session()
        session.set_filter(BookingFilter(status=BookingStatus.CANCELLED))
        assert session.week_start == MONDAY

    @pytest.mark.asyncio
    async def test_lanes_follow_staff_type(self):
        session = await _session()
        session.set_filter(BookingFilter(staff_type=StaffType.EDITOR))
        lanes = session.lanes()
        assert set(lanes) == {("stf-andi", d) for d in range(7)}

    @pytest.mark.asyncio
    async def test_is_available(self):
        session = await _session()
        assert session.is_available("stf-adi", _at(1, 10), _at(1, 12)) is False
        assert session.is_available("stf-adi", _at(1, 11), _at(1, 12)) is True
        assert session.is_available("stf-rina", _at(0, 9), _at(0, 10)) is False
        assert session.is_available("stf-rina", _at(0, 9), _at(0, 10), exclude_id="bkg-001")


class TestGrid:
    @pytest.mark.asyncio
    async def test_grid_shape(self):
        grid = (await _session()).grid()
        assert grid["weekStart"] == "2024-04-01T00:00:00.000Z"
        assert grid["pxPerMinute"] == 1.2
        assert grid["columnHeight"] == pytest.approx(864)
        assert grid["hours"][0] == "07:00"
        assert grid["days"][0] == {"index": 0, "label": "Mon 1", "count": 2}
        assert len(grid["lanes"]) == 3 * 7
        assert grid["unplaceable"] == ["bkg-005"]

    @pytest.mark.asyncio
    async def test_card_geometry_and_labels(self):
        grid = (await _session()).grid()
        lane = next(row for row in grid["lanes"] if row["laneId"] == "stf-rina__0")
        [card] = lane["events"]
        assert card["booking"]["id"] == "bkg-001"
        assert card["width"] == pytest.approx(95)
        assert card["top"] == pytest.approx(120 * 1.2)
        assert card["height"] == pytest.approx(60 * 1.2)
        # 09:00 UTC shown in UTC+7
        assert card["timeLabel"] == "16:00-17:00"


# ── Mutations ───────────────────────────────────────────────────


class TestDrop:
    @pytest.mark.asyncio
    async def test_drop_commits_and_confirms_hold(self):
        store = _store()
        session = await _session(store)
        proposal = await session.drop("bkg-001", "stf-rina__0", 47)

        assert proposal.start == _at(0, 9, 30)
        assert proposal.end == _at(0, 10, 30)
        assert proposal.status is BookingStatus.CONFIRMED
        assert store.updates == [("bkg-001", {
            "staff_id": "stf-rina",
            "start": _at(0, 9, 30),
            "end": _at(0, 10, 30),
            "status": BookingStatus.CONFIRMED,
        })]
        moved = next(b for b in session.bookings if b.id == "bkg-001")
        assert moved.start == _at(0, 9, 30)
        assert moved.status is BookingStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_drop_on_other_lane(self):
        session = await _session()
        proposal = await session.drop("bkg-001", DropTarget(staff_id="stf-andi", day_index=4), 0)
        assert proposal.staff_id == "stf-andi"
        assert proposal.start == _at(4, 9)

    @pytest.mark.asyncio
    async def test_drop_outside_lanes_is_noop(self):
        store = _store()
        session = await _session(store)
        assert await session.drop("bkg-001", None, 300) is None
        assert store.updates == []

    @pytest.mark.asyncio
    async def test_refused_drop_leaves_snapshot(self):
        store = _store(refuse=True)
        session = await _session(store)
        with pytest.raises(StoreError):
            await session.drop("bkg-001", "stf-rina__0", 47)
        original = next(b for b in session.bookings if b.id == "bkg-001")
        assert original.start == _at(0, 9)
        assert original.status is BookingStatus.HOLD

    @pytest.mark.asyncio
    async def test_unknown_staff_lane(self):
        store = _store()
        session = await _session(store)
        with pytest.raises(UnknownStaffError):
            await session.drop("bkg-001", "stf-ghost__1", 0)
        assert store.updates == []

    @pytest.mark.asyncio
    async def test_malformed_lane(self):
        session = await _session()
        with pytest.raises(ValueError):
            await session.drop("bkg-001", "stf-rina", 0)

    @pytest.mark.asyncio
    async def test_unknown_booking(self):
        session = await _session()
        with pytest.raises(UnknownBookingError):
            await session.drop("bkg-999", "stf-rina__0", 0)

    @pytest.mark.asyncio
    async def test_overlap_allowed_by_default(self):
        store = _store()
        session = await _session(store)
        # onto Adi's busy Tuesday morning
        proposal = await session.drop("bkg-001", "stf-adi__1", 0)
        assert proposal.start == _at(1, 9)
        assert len(store.updates) == 1

    @pytest.mark.asyncio
    async def test_overlap_rejected_when_configured(self):
        store = _store()
        session = await _session(store, block_conflicting_drops=True)
        with pytest.raises(AvailabilityConflictError) as exc_info:
            await session.drop("bkg-001", "stf-adi__1", 0)
        assert exc_info.value.conflicts == ["tb-1"]
        assert store.updates == []

    @pytest.mark.asyncio
    async def test_own_slot_is_not_a_conflict(self):
        session = await _session(block_conflicting_drops=True)
        proposal = await session.drop("bkg-001", "stf-rina__0", 47)
        assert proposal.start == _at(0, 9, 30)

    @pytest.mark.asyncio
    async def test_terminal_booking_moves_by_default(self):
        session = await _session()
        proposal = await session.drop("bkg-003", "stf-rina__3", 0)
        assert proposal.status is BookingStatus.DELIVERED

    @pytest.mark.asyncio
    async def test_terminal_booking_locked_when_configured(self):
        session = await _session(protect_terminal_bookings=True)
        with pytest.raises(BookingLockedError):
            await session.drop("bkg-003", "stf-rina__3", 0)


class TestCreateAndEdit:
    @pytest.mark.asyncio
    async def test_create(self):
        session = await _session()
        booking = await session.create_booking(BookingDraft(
            title="Wisuda", client_name="Dewi", staff_id="stf-rina",
            start=_at(3, 9), end=_at(3, 11),
        ))
        assert booking.id == "bkg-006"
        assert booking in session.bookings

    @pytest.mark.asyncio
    async def test_create_over_time_block_rejected(self):
        session = await _session()
        with pytest.raises(AvailabilityConflictError):
            await session.create_booking(BookingDraft(
                title="Wisuda", client_name="Dewi", staff_id="stf-adi",
                start=_at(1, 10), end=_at(1, 12),
            ))
        assert len(session.bookings) == 5

    @pytest.mark.asyncio
    async def test_create_over_booking_rejected(self):
        session = await _session()
        with pytest.raises(AvailabilityConflictError):
            await session.create_booking(BookingDraft(
                title="Wisuda", client_name="Dewi", staff_id="stf-rina",
                start=_at(0, 9, 30), end=_at(0, 10, 30),
            ))

    @pytest.mark.asyncio
    async def test_create_for_unknown_staff(self):
        session = await _session()
        with pytest.raises(UnknownStaffError):
            await session.create_booking(BookingDraft(
                title="Wisuda", client_name="Dewi", staff_id="stf-ghost",
                start=_at(3, 9), end=_at(3, 11),
            ))

    @pytest.mark.asyncio
    async def test_update_fields(self):
        store = _store()
        session = await _session(store)
        updated = await session.update_booking("bkg-002", {"title": "Maternity", "notes": "outdoor"})
        assert updated.title == "Maternity"
        assert store.updates == [("bkg-002", {"title": "Maternity", "notes": "outdoor"})]

    @pytest.mark.asyncio
    async def test_update_invalid_interval(self):
        store = _store()
        session = await _session(store)
        with pytest.raises(ValueError):
            await session.update_booking("bkg-002", {"end": _at(0, 12)})
        assert store.updates == []

    @pytest.mark.asyncio
    async def test_update_rejects_id(self):
        session = await _session()
        with pytest.raises(ValueError, match="id"):
            await session.update_booking("bkg-002", {"id": "bkg-100"})

    @pytest.mark.asyncio
    async def test_update_status_any_to_any(self):
        session = await _session()
        updated = await session.update_status("bkg-003", "inquiry")
        assert updated.status is BookingStatus.INQUIRY

    @pytest.mark.asyncio
    async def test_delete(self):
        session = await _session()
        assert await session.delete_booking("bkg-002") is True
        assert all(b.id != "bkg-002" for b in session.bookings)


class TestEditAvailability:
    @pytest.mark.asyncio
    async def test_move_over_block_rejected_when_configured(self):
        store = _store()
        session = await _session(store, block_conflicting_drops=True)
        with pytest.raises(AvailabilityConflictError) as exc_info:
            await session.update_booking("bkg-001", {
                "staff_id": "stf-adi", "start": _at(1, 9), "end": _at(1, 10),
            })
        assert exc_info.value.conflicts == ["tb-1"]
        assert store.updates == []
        assert session.bookings[0].staff_id == "stf-rina"

    @pytest.mark.asyncio
    async def test_move_over_block_allowed_by_default(self):
        store = _store()
        session = await _session(store)
        updated = await session.update_booking("bkg-001", {
            "staff_id": "stf-adi", "start": _at(1, 9), "end": _at(1, 10),
        })
        assert updated.staff_id == "stf-adi"
        assert len(store.updates) == 1

    @pytest.mark.asyncio
    async def test_retime_over_off_block_rejected(self):
        store = _store()
        session = await _session(store, block_conflicting_drops=True)
        await session.create_time_block(TimeBlockDraft(
            staff_id="stf-rina", start=_at(0, 12), end=_at(0, 18), type=TimeBlockType.OFF,
        ))
        with pytest.raises(AvailabilityConflictError):
            await session.update_booking("bkg-001", {"start": _at(0, 14), "end": _at(0, 15)})
        assert store.updates == []

    @pytest.mark.asyncio
    async def test_move_within_own_slot(self):
        session = await _session(block_conflicting_drops=True)
        updated = await session.update_booking("bkg-001", {
            "start": _at(0, 9, 30), "end": _at(0, 10, 30),
        })
        assert updated.start == _at(0, 9, 30)

    @pytest.mark.asyncio
    async def test_field_edit_skips_availability(self):
        # bkg-002 is not moved, so the check never runs
        session = await _session(block_conflicting_drops=True)
        updated = await session.update_booking("bkg-002", {"notes": "bring reflector"})
        assert updated.notes == "bring reflector"


class TestTimeBlocks:
    @pytest.mark.asyncio
    async def test_create_blocks_availability(self):
        session = await _session()
        assert session.is_available("stf-rina", _at(3, 9), _at(3, 10)) is True
        block = await session.create_time_block(TimeBlockDraft(
            staff_id="stf-rina", start=_at(3, 8), end=_at(3, 12), note="dentist",
        ))
        assert block.id.startswith("tb-")
        assert block.type is TimeBlockType.BUSY
        assert block in session.time_blocks
        assert session.is_available("stf-rina", _at(3, 9), _at(3, 10)) is False

    @pytest.mark.asyncio
    async def test_available_block_does_not_block(self):
        session = await _session()
        await session.create_time_block(TimeBlockDraft(
            staff_id="stf-rina", start=_at(3, 8), end=_at(3, 12), type=TimeBlockType.AVAILABLE,
        ))
        assert session.is_available("stf-rina", _at(3, 9), _at(3, 10)) is True

    @pytest.mark.asyncio
    async def test_create_for_unknown_staff(self):
        session = await _session()
        with pytest.raises(UnknownStaffError):
            await session.create_time_block(TimeBlockDraft(
                staff_id="stf-ghost", start=_at(3, 8), end=_at(3, 12),
            ))
        assert len(session.time_blocks) == 1

    def test_draft_interval_validated(self):
        with pytest.raises(ValueError):
            TimeBlockDraft(staff_id="stf-rina", start=_at(3, 12), end=_at(3, 12))

    @pytest.mark.asyncio
    async def test_created_block_reaches_store(self):
        store = _store()
        session = await _session(store)
        block = await session.create_time_block(TimeBlockDraft(
            staff_id="stf-andi", start=_at(4, 8), end=_at(4, 12),
        ))
        stored = await store.list_time_blocks(staff_ids=["stf-andi"])
        assert [b.id for b in stored] == [block.id]

    @pytest.mark.asyncio
    async def test_delete_restores_availability(self):
        session = await _session()
        assert await session.delete_time_block("tb-1") is True
        assert session.time_blocks == []
        assert session.is_available("stf-adi", _at(1, 9), _at(1, 10)) is True

    @pytest.mark.asyncio
    async def test_delete_unknown(self):
        session = await _session()
        with pytest.raises(UnknownTimeBlockError):
            await session.delete_time_block("tb-404")


class TestSessionEvents:
    @pytest.mark.asyncio
    async def test_events_emitted(self):
        session = TimelineSession(
            store=_store(), week_start=MONDAY, px_per_minute=1.2, config=_config(),
        )
        broadcaster = TimelineBroadcaster("test-session")
        session.attach_broadcaster(broadcaster)

        await session.load()
        session.next_week()
        session.set_filter(BookingFilter(status=BookingStatus.HOLD))
        await session.drop("bkg-001", "stf-rina__1", 0)

        types = [e.type for e in broadcaster.history]
        assert types == [
            EventType.LOADED, EventType.WEEK_CHANGED,
            EventType.FILTER_CHANGED, EventType.BOOKING_MOVED,
        ]
        moved = broadcaster.history[-1]
        assert moved.data["booking_id"] == "bkg-001"
        assert moved.week_start == MONDAY + timedelta(days=7)

    @pytest.mark.asyncio
    async def test_to_dict(self):
        session = await _session()
        d = session.to_dict(detail=True)
        assert d["loaded"] is True
        assert d["counts"] == {"staff": 3, "bookings": 5, "time_blocks": 1}
        assert d["week"]["counts"] == [2, 0, 1, 0, 0, 0, 0]
