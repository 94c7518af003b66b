"""REST booking store.

Talks to the booking backend over HTTP (``/bookings``, ``/staff``,
``/time-blocks``) with a bearer token. JSON bodies are camelCase and every
instant is an ISO-8601 UTC timestamp.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Optional

import httpx
from pydantic import TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from crewboard.config import settings
from crewboard.errors import StoreError
from crewboard.models.booking import Booking, BookingDraft, BookingStatus
from crewboard.models.staff import Staff
from crewboard.models.time_block import TimeBlock, TimeBlockDraft
from crewboard.timeutil import to_iso

from .base import BookingQuery, BookingStore

logger = logging.getLogger(__name__)

_bookings_adapter = TypeAdapter(list[Booking])
_staff_adapter = TypeAdapter(list[Staff])
_blocks_adapter = TypeAdapter(list[TimeBlock])


def _wire_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, Enum):
        return value.value
    return value


def to_wire_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """snake_case Python fields to a camelCase JSON body."""
    return {to_camel(k): _wire_value(v) for k, v in fields.items()}


class RestBookingStore(BookingStore):
    """BookingStore backed by the booking backend's REST API."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        token = settings.api_token if token is None else token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            headers=headers,
            timeout=timeout or settings.api_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "RestBookingStore":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, turning transport and HTTP errors into StoreError."""
        try:
            resp = await self._client.request(method, url, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise StoreError(
                f"{method} {url} failed with status {exc.response.status_code}: "
                f"{exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise StoreError(f"{method} {url} failed: {exc}") from exc
        return resp

    @staticmethod
    def _parse(adapter: TypeAdapter, resp: httpx.Response, what: str) -> Any:
        try:
            return adapter.validate_python(resp.json())
        except (ValueError, ValidationError) as exc:
            raise StoreError(f"Backend returned malformed {what}: {exc}") from exc

    @staticmethod
    def _created_id(resp: httpx.Response, what: str) -> str:
        try:
            return str(resp.json()["id"])
        except (ValueError, KeyError, TypeError) as exc:
            raise StoreError(f"Backend did not return a {what} id: {resp.text[:200]}") from exc

    async def _delete(self, url: str) -> bool:
        """DELETE ``url``. A 404 means there was nothing to remove."""
        try:
            resp = await self._client.delete(url)
        except httpx.HTTPError as exc:
            raise StoreError(f"DELETE {url} failed: {exc}") from exc
        if resp.status_code == 404:
            return False
        if resp.is_error:
            raise StoreError(f"DELETE {url} failed with status {resp.status_code}")
        return True

    # ------------------------------------------------------------------
    # BookingStore interface
    # ------------------------------------------------------------------

    async def list_bookings(self, query: Optional[BookingQuery] = None) -> list[Booking]:
        params: dict[str, str] = {}
        if query is not None:
            if query.status is not None:
                params["status"] = query.status.value
            if query.q:
                params["q"] = query.q
            if query.start is not None:
                params["from"] = to_iso(query.start)
            if query.end is not None:
                params["to"] = to_iso(query.end)
        resp = await self._request("GET", "/bookings", params=params)
        return self._parse(_bookings_adapter, resp, "bookings")

    async def list_staff(self) -> list[Staff]:
        resp = await self._request("GET", "/staff")
        return self._parse(_staff_adapter, resp, "staff")

    async def list_time_blocks(
        self,
        staff_ids: Optional[list[str]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[TimeBlock]:
        params: dict[str, str] = {}
        if staff_ids:
            params["staffIds"] = ",".join(staff_ids)
        if start is not None:
            params["from"] = to_iso(start)
        if end is not None:
            params["to"] = to_iso(end)
        resp = await self._request("GET", "/time-blocks", params=params)
        return self._parse(_blocks_adapter, resp, "time-blocks")

    async def update_booking(self, booking_id: str, fields: dict[str, Any]) -> bool:
        await self._request("PATCH", f"/bookings/{booking_id}", json=to_wire_fields(fields))
        logger.info("Patched booking %s: %s", booking_id, ", ".join(sorted(fields)))
        return True

    async def update_booking_status(self, booking_id: str, status: BookingStatus) -> bool:
        return await self.update_booking(booking_id, {"status": status})

    async def create_booking(self, draft: BookingDraft) -> str:
        body = draft.model_dump(mode="json", by_alias=True, exclude_none=True)
        resp = await self._request("POST", "/bookings", json=body)
        booking_id = self._created_id(resp, "booking")
        logger.info("Created booking %s for staff %s", booking_id, draft.staff_id)
        return booking_id

    async def delete_booking(self, booking_id: str) -> bool:
        removed = await self._delete(f"/bookings/{booking_id}")
        if removed:
            logger.info("Deleted booking %s", booking_id)
        return removed

    async def create_time_block(self, draft: TimeBlockDraft) -> str:
        body = draft.model_dump(mode="json", by_alias=True, exclude_none=True)
        resp = await self._request("POST", "/time-blocks", json=body)
        block_id = self._created_id(resp, "time-block")
        logger.info("Created %s time-block %s for staff %s", draft.type.value, block_id, draft.staff_id)
        return block_id

    async def delete_time_block(self, block_id: str) -> bool:
        removed = await self._delete(f"/time-blocks/{block_id}")
        if removed:
            logger.info("Deleted time-block %s", block_id)
        return removed
