"""Booking store abstractions and implementations."""

from .base import BookingQuery, BookingStore
from .memory import InMemoryBookingStore

__all__ = ["BookingQuery", "BookingStore", "InMemoryBookingStore"]
