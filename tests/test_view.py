"""Tests for the weekly view: filtering, badge counts, search jump and lanes."""

from datetime import datetime, timedelta, timezone

import pytest

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from crewboard.models import (
    Booking,
    BookingFilter,
    BookingStatus,
    Staff,
    StaffType,
)
from crewboard.view import (
    build_lanes,
    compute_visible_week,
    filter_staff,
    group_by_lane,
    matches_filter,
)

MONDAY = datetime(2024, 4, 1, tzinfo=timezone.utc)

STAFF = [
    Staff(id="stf-rina", name="Rina", staff_type=StaffType.PHOTOGRAPHER),
    Staff(id="stf-adi", name="Adi", staff_type=StaffType.PHOTOGRAPHER),
    Staff(id="stf-andi", name="Andi", staff_type=StaffType.EDITOR),
]


def _at(day, hour, minute=0):
    return MONDAY + timedelta(days=day, hours=hour, minutes=minute)


def _booking(bid, day, hour, staff="stf-rina", status=BookingStatus.CONFIRMED,
             client="Budi", title=None, location=None, hours=1):
    return Booking(
        id=bid, title=title or f"Shoot {bid}", client_name=client, location=location,
        staff_id=staff, start=_at(day, hour), end=_at(day, hour + hours), status=status,
    )


class TestMatchesFilter:
    def test_empty_filter_matches_everything(self):
        assert matches_filter(_booking("b1", 0, 9), BookingFilter())

    def test_status(self):
        booking = _booking("b1", 0, 9, status=BookingStatus.HOLD)
        assert matches_filter(booking, BookingFilter(status=BookingStatus.HOLD))
        assert not matches_filter(booking, BookingFilter(status=BookingStatus.CONFIRMED))

    def test_query_is_case_insensitive_over_title_client_location(self):
        booking = _booking("b1", 0, 9, client="Budi Santoso", title="Prewedding",
                           location="Kebun Raya Bogor")
        assert matches_filter(booking, BookingFilter(query="santoso"))
        assert matches_filter(booking, BookingFilter(query="PREWED"))
        assert matches_filter(booking, BookingFilter(query="bogor"))
        assert not matches_filter(booking, BookingFilter(query="bandung"))

    def test_whitespace_query_is_empty(self):
        assert matches_filter(_booking("b1", 0, 9), BookingFilter(query="   "))

    def test_staff_type(self):
        by_id = {s.id: s for s in STAFF}
        editor_job = _booking("b1", 0, 9, staff="stf-andi")
        assert matches_filter(editor_job, BookingFilter(staff_type=StaffType.EDITOR), by_id)
        assert not matches_filter(editor_job, BookingFilter(staff_type=StaffType.PHOTOGRAPHER), by_id)

    def test_staff_type_with_unknown_staff(self):
        booking = _booking("b1", 0, 9, staff="stf-ghost")
        by_id = {s.id: s for s in STAFF}
        assert not matches_filter(booking, BookingFilter(staff_type=StaffType.EDITOR), by_id)


class TestComputeVisibleWeek:
    def test_counts_and_visible(self):
        bookings = [
            _booking("b1", 0, 9),
            _booking("b2", 0, 13),
            _booking("b3", 3, 10),
            _booking("b4", 6, 20),
            _booking("next", 7, 9),
            _booking("prev", -1, 9),
        ]
        view = compute_visible_week(bookings, BookingFilter(), MONDAY)
        assert [b.id for b in view.visible] == ["b1", "b2", "b3", "b4"]
        assert view.counts == [2, 0, 0, 1, 0, 0, 1]
        assert sum(view.counts) == len(view.visible)
        assert view.jump_to_week is None

    def test_visible_sorted_by_start(self):
        bookings = [_booking("late", 2, 15), _booking("early", 1, 8)]
        view = compute_visible_week(bookings, BookingFilter(), MONDAY)
        assert [b.id for b in view.visible] == ["early", "late"]

    def test_filter_applies_to_counts(self):
        bookings = [
            _booking("b1", 0, 9, status=BookingStatus.HOLD),
            _booking("b2", 0, 13),
        ]
        view = compute_visible_week(bookings, BookingFilter(status=BookingStatus.HOLD), MONDAY)
        assert [b.id for b in view.visible] == ["b1"]
        assert view.counts[0] == 1

    def test_search_jumps_to_earliest_match(self):
        bookings = [
            _booking("b1", 0, 9, client="Budi"),
            _booking("siti-2", 23, 9, client="Siti"),
            _booking("siti-1", 15, 9, client="Siti"),
        ]
        view = compute_visible_week(bookings, BookingFilter(query="siti"), MONDAY)
        assert view.visible == []
        assert view.counts == [0] * 7
        assert view.jump_to_week == MONDAY + timedelta(days=14)

    def test_search_jumps_backwards(self):
        bookings = [_booking("old", -10, 9, client="Siti")]
        view = compute_visible_week(bookings, BookingFilter(query="Siti"), MONDAY)
        assert view.jump_to_week == MONDAY - timedelta(days=14)

    def test_no_jump_when_match_in_current_week(self):
        bookings = [
            _booking("now", 2, 9, client="Siti"),
            _booking("later", 30, 9, client="Siti"),
        ]
        view = compute_visible_week(bookings, BookingFilter(query="siti"), MONDAY)
        assert [b.id for b in view.visible] == ["now"]
        assert view.jump_to_week is None

    def test_no_jump_without_matches(self):
        bookings = [_booking("b1", 20, 9)]
        view = compute_visible_week(bookings, BookingFilter(query="nobody"), MONDAY)
        assert view.jump_to_week is None

    def test_empty_query_never_jumps(self):
        bookings = [_booking("far", 40, 9, status=BookingStatus.HOLD)]
        view = compute_visible_week(bookings, BookingFilter(status=BookingStatus.HOLD), MONDAY)
        assert view.visible == []
        assert view.jump_to_week is None

    def test_week_start_normalized(self):
        view = compute_visible_week([], BookingFilter(), _at(3, 12))
        assert view.week_start == MONDAY

    def test_unplaceable_reported(self):
        bookings = [_booking("b1", 0, 9), _booking("orphan", 1, 9, staff="stf-gone")]
        view = compute_visible_week(bookings, BookingFilter(), MONDAY, STAFF)
        assert view.unplaceable == ["orphan"]
        assert [b.id for b in view.visible] == ["b1", "orphan"]
        # listed for the operator but never drawn in a lane, so not counted
        assert view.counts == [1, 0, 0, 0, 0, 0, 0]

    def test_unknown_staff_counted_without_roster(self):
        bookings = [_booking("orphan", 1, 9, staff="stf-gone")]
        view = compute_visible_week(bookings, BookingFilter(), MONDAY)
        assert view.counts[1] == 1
        assert view.unplaceable == []

    def test_staff_type_filter(self):
        bookings = [_booking("b1", 0, 9), _booking("e1", 0, 10, staff="stf-andi")]
        view = compute_visible_week(
            bookings, BookingFilter(staff_type=StaffType.EDITOR), MONDAY, STAFF,
        )
        assert [b.id for b in view.visible] == ["e1"]
        assert view.counts[0] == 1

    def test_staff_type_filter_needs_roster(self):
        with pytest.raises(ValueError, match="staff"):
            compute_visible_week(
                [_booking("b1", 0, 9)], BookingFilter(staff_type=StaffType.EDITOR), MONDAY,
            )


class TestLanes:
    def test_filter_staff(self):
        assert len(filter_staff(STAFF)) == 3
        assert [s.id for s in filter_staff(STAFF, StaffType.EDITOR)] == ["stf-andi"]

    def test_group_by_lane(self):
        bookings = [
            _booking("b1", 0, 9),
            _booking("b2", 0, 11),
            _booking("b3", 2, 9, staff="stf-adi"),
            _booking("outside", 8, 9),
            _booking("orphan", 1, 9, staff="stf-gone"),
        ]
        lanes = group_by_lane(bookings, STAFF, MONDAY)
        assert {k: [b.id for b in v] for k, v in lanes.items()} == {
            ("stf-rina", 0): ["b1", "b2"],
            ("stf-adi", 2): ["b3"],
        }

    def test_build_lanes_covers_every_staff_day(self):
        lanes = build_lanes([_booking("b1", 0, 9)], STAFF, MONDAY)
        assert len(lanes) == 3 * 7
        assert [e.booking.id for e in lanes[("stf-rina", 0)]] == ["b1"]
        assert lanes[("stf-andi", 6)] == []

    def test_build_lanes_staff_type(self):
        bookings = [_booking("b1", 0, 9), _booking("e1", 0, 9, staff="stf-andi")]
        lanes = build_lanes(bookings, STAFF, MONDAY, StaffType.EDITOR)
        assert set(lanes) == {("stf-andi", d) for d in range(7)}
        assert [e.booking.id for e in lanes[("stf-andi", 0)]] == ["e1"]

    def test_overlaps_laid_out_per_lane(self):
        bookings = [
            _booking("b1", 0, 9, hours=2),
            _booking("b2", 0, 10),
            _booking("other-lane", 0, 9, staff="stf-adi"),
        ]
        lanes = build_lanes(bookings, STAFF, MONDAY)
        widths = {e.booking.id: e.width for e in lanes[("stf-rina", 0)]}
        assert widths["b1"] == pytest.approx(95)
        assert widths["b2"] == pytest.approx(47.5)
        assert lanes[("stf-adi", 0)][0].width == pytest.approx(95)
