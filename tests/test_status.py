"""Tests for booking status rules."""

import pytest

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from crewboard.models import BookingStatus
from crewboard.status import (
    STATUS_ORDER,
    is_terminal,
    parse_status,
    status_after_reschedule,
)


class TestStatusAfterReschedule:
    def test_hold_is_confirmed(self):
        assert status_after_reschedule(BookingStatus.HOLD) is BookingStatus.CONFIRMED

    @pytest.mark.parametrize("status", [s for s in BookingStatus if s is not BookingStatus.HOLD])
    def test_others_unchanged(self, status):
        assert status_after_reschedule(status) is status

    def test_idempotent(self):
        once = status_after_reschedule(BookingStatus.HOLD)
        assert status_after_reschedule(once) is once


class TestStatusHelpers:
    def test_order_covers_every_status(self):
        assert len(STATUS_ORDER) == 11
        assert STATUS_ORDER[0] is BookingStatus.INQUIRY

    def test_terminal(self):
        assert is_terminal(BookingStatus.CANCELLED)
        assert is_terminal(BookingStatus.DELIVERED)
        assert not is_terminal(BookingStatus.HOLD)
        assert not is_terminal(BookingStatus.EDITING)

    def test_parse_is_lenient_about_case(self):
        assert parse_status(" in_progress ") is BookingStatus.IN_PROGRESS
        assert parse_status(BookingStatus.REVIEW) is BookingStatus.REVIEW

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="expected one of"):
            parse_status("PENDING")
