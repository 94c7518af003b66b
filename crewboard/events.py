"""Re-render notifications for timeline sessions.

A TimelineSession emits a TimelineEvent whenever its snapshot or view
changes. Each subscriber (one per open event WebSocket) reads from its own
asyncio.Queue.

Events are hints to refetch the grid, not a change log to apply, so a
subscriber that falls behind loses nothing by skipping: its backlog is
collapsed into a single ``resync`` event. Every event carries a
per-session sequence number and the broadcaster keeps a bounded history,
so a client that reconnects with the last sequence it saw gets the events
it missed (or a ``resync`` when they are no longer retained).
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections import deque
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import ConfigDict

from crewboard.models.base import UtcDatetime, WireModel

log = logging.getLogger("crewboard.events")


class EventType(str, Enum):
    LOADED = "loaded"
    WEEK_CHANGED = "week_changed"
    FILTER_CHANGED = "filter_changed"
    BOOKING_MOVED = "booking_moved"
    BOOKING_CREATED = "booking_created"
    BOOKING_UPDATED = "booking_updated"
    STATUS_CHANGED = "status_changed"
    BOOKING_DELETED = "booking_deleted"
    TIME_BLOCK_CREATED = "time_block_created"
    TIME_BLOCK_DELETED = "time_block_deleted"
    # Sent instead of events a subscriber missed; refetch everything
    RESYNC = "resync"


class TimelineEvent(WireModel):
    model_config = ConfigDict(frozen=True)

    seq: int
    type: EventType
    timestamp: float
    session_id: str
    week_start: UtcDatetime
    data: dict[str, Any] = {}


class TimelineBroadcaster:
    """Fans one session's events out to its subscribers.

    Args:
        session_id: Session the events belong to.
        max_queue: Pending events per subscriber before its backlog is
                   collapsed into a ``resync``.
        history: Number of recent events kept for replay and inspection.
    """

    def __init__(self, session_id: str, max_queue: int = 50, history: int = 200) -> None:
        self._session_id = session_id
        self._max_queue = max_queue
        self._seq = itertools.count(1)
        self._last_seq = 0
        self._history: deque[TimelineEvent] = deque(maxlen=history)
        self._subscribers: list[asyncio.Queue[TimelineEvent]] = []

    @property
    def last_seq(self) -> int:
        return self._last_seq

    @property
    def history(self) -> list[TimelineEvent]:
        """Retained events, oldest first."""
        return list(self._history)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def replay(self, since: int) -> Optional[list[TimelineEvent]]:
        """Events after sequence ``since``, or None if some are no longer retained."""
        if since >= self._last_seq or not self._history:
            return []
        oldest = self._history[0].seq
        if since + 1 < oldest:
            return None
        return [e for e in self._history if e.seq > since]

    def subscribe(self, since: Optional[int] = None) -> asyncio.Queue[TimelineEvent]:
        """Open a subscriber queue, optionally primed with missed events."""
        q: asyncio.Queue[TimelineEvent] = asyncio.Queue(maxsize=self._max_queue)
        if since is not None:
            missed = self.replay(since)
            if missed is None or len(missed) > self._max_queue:
                q.put_nowait(self._resync(since, self._history[-1]))
            else:
                for event in missed:
                    q.put_nowait(event)
        self._subscribers.append(q)
        log.info("Session %s: subscriber added (%d open)", self._session_id, len(self._subscribers))
        return q

    def unsubscribe(self, q: asyncio.Queue[TimelineEvent]) -> None:
        if q in self._subscribers:
            self._subscribers.remove(q)
            log.info("Session %s: subscriber removed (%d open)",
                     self._session_id, len(self._subscribers))

    def emit(
        self, event_type: EventType, week_start: datetime, data: Optional[dict] = None,
    ) -> TimelineEvent:
        event = TimelineEvent(
            seq=next(self._seq),
            type=event_type,
            timestamp=time.time(),
            session_id=self._session_id,
            week_start=week_start,
            data=data or {},
        )
        self._last_seq = event.seq
        self._history.append(event)
        for q in self._subscribers:
            self._deliver(q, event)
        return event

    def _deliver(self, q: asyncio.Queue[TimelineEvent], event: TimelineEvent) -> None:
        if not q.full():
            q.put_nowait(event)
            return
        oldest = q.get_nowait()
        since = oldest.data["since"] if oldest.type is EventType.RESYNC else oldest.seq - 1
        while not q.empty():
            q.get_nowait()
        log.debug("Session %s: subscriber fell behind at seq %d, sending resync",
                  self._session_id, since)
        q.put_nowait(self._resync(since, event))

    def _resync(self, since: int, latest: TimelineEvent) -> TimelineEvent:
        # Carries the newest seq so the client can resume from it
        return TimelineEvent(
            seq=latest.seq,
            type=EventType.RESYNC,
            timestamp=time.time(),
            session_id=self._session_id,
            week_start=latest.week_start,
            data={"since": since},
        )


# ── Per-session registry ─────────────────────────────────────────

_broadcasters: dict[str, TimelineBroadcaster] = {}


def get_broadcaster(session_id: str) -> TimelineBroadcaster:
    """The session's broadcaster, created on first use."""
    broadcaster = _broadcasters.get(session_id)
    if broadcaster is None:
        broadcaster = _broadcasters[session_id] = TimelineBroadcaster(session_id)
    return broadcaster


def remove_broadcaster(session_id: str) -> None:
    _broadcasters.pop(session_id, None)
