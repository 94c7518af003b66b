"""FastAPI application: JSON bridge between the timeline core and the UI.

Stateless endpoints (the four pure core functions):

  POST /api/placement        Lay out one lane's bookings side by side
  POST /api/availability     Is a staff member free over an interval?
  POST /api/reschedule       Plan a drag (proposal only, nothing committed)
  POST /api/week             Visible bookings, badge counts, search jump

Session endpoints (a TimelineSession owns the snapshot and commits via the
configured booking store):

  POST   /api/sessions                         Create + load a session
  GET    /api/sessions/{id}/grid               Everything needed to draw the week
  POST   /api/sessions/{id}/week               Navigate (next / prev / date)
  PUT    /api/sessions/{id}/filter             Apply filter (may jump weeks)
  PUT    /api/sessions/{id}/zoom               Set pixels per minute
  POST   /api/sessions/{id}/drop               Commit a drag
  POST   /api/sessions/{id}/bookings           Create a booking
  PATCH  /api/sessions/{id}/bookings/{bid}     Edit a booking
  PUT    /api/sessions/{id}/bookings/{bid}/status
  DELETE /api/sessions/{id}/bookings/{bid}
  POST   /api/sessions/{id}/time-blocks        Block out staff time
  DELETE /api/sessions/{id}/time-blocks/{tid}
  WS     /api/sessions/{id}/events?since=N     Re-render notifications
  GET    /health
"""

from __future__ import annotations

from dotenv import load_dotenv
load_dotenv()

import logging
import time
from typing import Any, Callable, Literal, Optional

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from crewboard.availability import exclude_booking, find_conflicts
from crewboard.config import settings
from crewboard.errors import (
    AvailabilityConflictError,
    BookingLockedError,
    StoreError,
    UnknownBookingError,
    UnknownSessionError,
    UnknownStaffError,
    UnknownTimeBlockError,
)
from crewboard.events import get_broadcaster, remove_broadcaster
from crewboard.layout import compute_lane_placement
from crewboard.models import (
    Booking,
    BookingDraft,
    BookingFilter,
    BookingStatus,
    DropTarget,
    Staff,
    TimeBlock,
    TimeBlockDraft,
    parse_lane_id,
)
from crewboard.models.base import UtcDatetime, WireModel
from crewboard.providers.base import BookingStore
from crewboard.reschedule import plan_reschedule
from crewboard.session import (
    TimelineSession,
    get_active_sessions,
    get_session,
    register_session,
    unregister_session,
)
from crewboard.view import compute_visible_week

log = logging.getLogger("crewboard.app")

_START_TIME = time.time()


# ── Request bodies ────────────────────────────────────────────────


class PlacementRequest(WireModel):
    bookings: list[Booking]


class AvailabilityRequest(WireModel):
    staff_id: str
    start: UtcDatetime
    end: UtcDatetime
    time_blocks: list[TimeBlock] = []
    bookings: list[Booking] = []
    exclude_booking_id: Optional[str] = None


class RescheduleRequest(WireModel):
    booking: Booking
    drop_target: Optional[DropTarget] = None
    lane_id: Optional[str] = None
    delta_pixels: float
    px_per_minute: float
    week_start: UtcDatetime


class WeekRequest(WireModel):
    bookings: list[Booking]
    filter: BookingFilter = BookingFilter()
    week_start: UtcDatetime
    staff: Optional[list[Staff]] = None


class CreateSessionRequest(WireModel):
    week_start: Optional[UtcDatetime] = None
    px_per_minute: Optional[float] = None


class NavigateRequest(WireModel):
    direction: Optional[Literal["next", "prev"]] = None
    date: Optional[UtcDatetime] = None


class ZoomRequest(WireModel):
    px_per_minute: float


class DropRequest(WireModel):
    booking_id: str
    lane_id: Optional[str] = None  # None = released outside every lane
    delta_pixels: float = 0


class BookingPatch(WireModel):
    title: Optional[str] = None
    client_name: Optional[str] = None
    location: Optional[str] = None
    staff_id: Optional[str] = None
    start: Optional[UtcDatetime] = None
    end: Optional[UtcDatetime] = None
    status: Optional[BookingStatus] = None
    notes: Optional[str] = None


class StatusRequest(WireModel):
    status: BookingStatus


def _json(model: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(model.model_dump(mode="json", by_alias=True), status_code=status_code)


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _default_store() -> BookingStore:
    from crewboard.providers.rest import RestBookingStore
    return RestBookingStore()


def create_app(store_factory: Callable[[], BookingStore] | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        store_factory: Builds the booking store for each new session.
                       Defaults to the REST store configured by API_BASE_URL.
    """
    make_store = store_factory or _default_store

    app = FastAPI(
        title="Crewboard Timeline",
        description="Weekly staff timeline: lane layout, availability and drag rescheduling",
        version="0.1.0",
    )

    # ── Error mapping ──────────────────────────────────────────

    @app.exception_handler(UnknownBookingError)
    @app.exception_handler(UnknownSessionError)
    @app.exception_handler(UnknownStaffError)
    @app.exception_handler(UnknownTimeBlockError)
    async def _not_found(request: Request, exc: Exception) -> JSONResponse:
        return _error(str(exc), 404)

    @app.exception_handler(AvailabilityConflictError)
    @app.exception_handler(BookingLockedError)
    async def _conflict(request: Request, exc: Exception) -> JSONResponse:
        return _error(str(exc), 409)

    @app.exception_handler(StoreError)
    async def _store_failed(request: Request, exc: StoreError) -> JSONResponse:
        log.error("Store error on %s %s: %s", request.method, request.url.path, exc)
        return _error(str(exc), 502)

    @app.exception_handler(ValueError)
    async def _invalid(request: Request, exc: ValueError) -> JSONResponse:
        return _error(str(exc), 422)

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({
            "status": "ok",
            "uptime": uptime,
            "sessions": len(get_active_sessions()),
        })

    # ── Pure core endpoints ────────────────────────────────────

    @app.post("/api/placement")
    async def placement(body: PlacementRequest) -> JSONResponse:
        placed = compute_lane_placement(body.bookings)
        return JSONResponse([p.model_dump(mode="json", by_alias=True) for p in placed])

    @app.post("/api/availability")
    async def availability(body: AvailabilityRequest) -> JSONResponse:
        others = body.bookings
        if body.exclude_booking_id:
            others = exclude_booking(others, body.exclude_booking_id)
        conflicts = find_conflicts(body.staff_id, body.start, body.end, body.time_blocks, others)
        return JSONResponse({
            "available": not conflicts,
            "conflicts": [c.id for c in conflicts],
        })

    @app.post("/api/reschedule")
    async def reschedule(body: RescheduleRequest) -> JSONResponse:
        target = body.drop_target
        if target is None and body.lane_id:
            target = parse_lane_id(body.lane_id)
        proposal = plan_reschedule(
            body.booking,
            target,
            body.delta_pixels,
            body.px_per_minute,
            body.week_start,
            start_hour=settings.visible_start_hour,
            snap=settings.snap_minutes,
        )
        if proposal is None:
            return JSONResponse({"proposal": None})
        return JSONResponse({"proposal": proposal.model_dump(mode="json", by_alias=True)})

    @app.post("/api/week")
    async def week(body: WeekRequest) -> JSONResponse:
        return _json(compute_visible_week(body.bookings, body.filter, body.week_start, body.staff))

    # ── Sessions ───────────────────────────────────────────────

    def _session_or_404(session_id: str) -> TimelineSession:
        session = get_session(session_id)
        if session is None:
            raise UnknownSessionError(session_id)
        return session

    @app.post("/api/sessions")
    async def create_session(body: CreateSessionRequest) -> JSONResponse:
        session = TimelineSession(
            store=make_store(),
            week_start=body.week_start,
            px_per_minute=body.px_per_minute,
        )
        sid = register_session(session)
        session.attach_broadcaster(get_broadcaster(sid))
        try:
            await session.load()
        except StoreError:
            remove_broadcaster(sid)
            unregister_session(sid)
            raise
        return JSONResponse(session.to_dict(), status_code=201)

    @app.get("/api/sessions")
    async def list_sessions() -> JSONResponse:
        return JSONResponse([s.to_dict() for s in get_active_sessions().values()])

    @app.get("/api/sessions/{session_id}")
    async def get_session_detail(session_id: str) -> JSONResponse:
        return JSONResponse(_session_or_404(session_id).to_dict(detail=True))

    @app.delete("/api/sessions/{session_id}")
    async def end_session(session_id: str) -> JSONResponse:
        _session_or_404(session_id)
        remove_broadcaster(session_id)
        unregister_session(session_id)
        return JSONResponse({"ended": True})

    @app.post("/api/sessions/{session_id}/reload")
    async def reload_session(session_id: str) -> JSONResponse:
        session = _session_or_404(session_id)
        await session.load()
        return JSONResponse(session.to_dict())

    @app.get("/api/sessions/{session_id}/grid")
    async def session_grid(session_id: str) -> JSONResponse:
        return JSONResponse(_session_or_404(session_id).grid())

    @app.post("/api/sessions/{session_id}/week")
    async def navigate(session_id: str, body: NavigateRequest) -> JSONResponse:
        session = _session_or_404(session_id)
        if body.date is not None:
            session.go_to_week(body.date)
        elif body.direction == "next":
            session.next_week()
        elif body.direction == "prev":
            session.prev_week()
        else:
            raise ValueError("Provide either 'direction' (next/prev) or 'date'")
        return _json(session.week_view())

    @app.put("/api/sessions/{session_id}/filter")
    async def set_filter(session_id: str, body: BookingFilter) -> JSONResponse:
        return _json(_session_or_404(session_id).set_filter(body))

    @app.put("/api/sessions/{session_id}/zoom")
    async def set_zoom(session_id: str, body: ZoomRequest) -> JSONResponse:
        px = _session_or_404(session_id).set_zoom(body.px_per_minute)
        return JSONResponse({"pxPerMinute": px})

    @app.post("/api/sessions/{session_id}/drop")
    async def drop(session_id: str, body: DropRequest) -> JSONResponse:
        session = _session_or_404(session_id)
        proposal = await session.drop(body.booking_id, body.lane_id, body.delta_pixels)
        if proposal is None:
            return JSONResponse({"proposal": None})
        return JSONResponse({"proposal": proposal.model_dump(mode="json", by_alias=True)})

    @app.post("/api/sessions/{session_id}/bookings")
    async def create_booking(session_id: str, body: BookingDraft) -> JSONResponse:
        booking = await _session_or_404(session_id).create_booking(body)
        return _json(booking, status_code=201)

    @app.patch("/api/sessions/{session_id}/bookings/{booking_id}")
    async def edit_booking(session_id: str, booking_id: str, body: BookingPatch) -> JSONResponse:
        fields = body.model_dump(exclude_unset=True)
        booking = await _session_or_404(session_id).update_booking(booking_id, fields)
        return _json(booking)

    @app.put("/api/sessions/{session_id}/bookings/{booking_id}/status")
    async def set_status(session_id: str, booking_id: str, body: StatusRequest) -> JSONResponse:
        booking = await _session_or_404(session_id).update_status(booking_id, body.status)
        return _json(booking)

    @app.delete("/api/sessions/{session_id}/bookings/{booking_id}")
    async def delete_booking(session_id: str, booking_id: str) -> JSONResponse:
        removed = await _session_or_404(session_id).delete_booking(booking_id)
        return JSONResponse({"deleted": removed})

    @app.post("/api/sessions/{session_id}/time-blocks")
    async def create_time_block(session_id: str, body: TimeBlockDraft) -> JSONResponse:
        block = await _session_or_404(session_id).create_time_block(body)
        return _json(block, status_code=201)

    @app.delete("/api/sessions/{session_id}/time-blocks/{block_id}")
    async def delete_time_block(session_id: str, block_id: str) -> JSONResponse:
        removed = await _session_or_404(session_id).delete_time_block(block_id)
        return JSONResponse({"deleted": removed})

    # ── Event stream WebSocket ─────────────────────────────────

    @app.websocket("/api/sessions/{session_id}/events")
    async def event_stream(
        websocket: WebSocket, session_id: str, since: Optional[int] = None,
    ) -> None:
        """Stream snapshot-change events so the UI knows when to re-render."""
        session = get_session(session_id)
        if not session:
            await websocket.close(code=4004, reason="Session not found")
            return

        await websocket.accept()
        broadcaster = get_broadcaster(session_id)
        session.attach_broadcaster(broadcaster)
        queue = broadcaster.subscribe(since)

        try:
            while True:
                event = await queue.get()
                await websocket.send_json(event.model_dump(mode="json", by_alias=True))
        except WebSocketDisconnect:
            log.info("Event stream for %s disconnected", session_id)
        finally:
            broadcaster.unsubscribe(queue)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    for warning in settings.validate_startup():
        log.warning(warning)

    uvicorn.run(
        "crewboard.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
