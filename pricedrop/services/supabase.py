import logging
from datetime import date, datetime
from typing import Any

import httpx

from pricedrop.exceptions.custom import RateLimitError, RepositoryError
from pricedrop.schemas.booking import Booking

logger = logging.getLogger(__name__)

BOOKINGS_PATH = "/rest/v1/bookings"
UPSERT_KEY = "booking_reference"


def _to_json(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class SupabaseBookingRepository:
    """Booking rows through Supabase's PostgREST interface."""

    def __init__(self, client: httpx.AsyncClient, base_url: str, service_key: str):
        self._client = client
        self._url = f"{base_url.rstrip('/')}{BOOKINGS_PATH}"
        self._headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Content-Type": "application/json",
        }

    def _check(self, resp: httpx.Response) -> None:
        if resp.status_code == 429:
            raise RateLimitError("Supabase")
        if resp.status_code >= 400:
            raise RepositoryError(resp.text, status_code=resp.status_code)

    def _payload(self, booking: Booking) -> dict[str, Any]:
        return booking.model_dump(mode="json", exclude={"id"} if booking.id is None else None)

    async def _select(self, params: dict[str, str]) -> list[Booking]:
        resp = await self._client.get(
            self._url, params={"select": "*", **params}, headers=self._headers
        )
        self._check(resp)
        return [Booking(**row) for row in resp.json()]

    async def get_booking(self, booking_id: str) -> Booking | None:
        rows = await self._select({"id": f"eq.{booking_id}"})
        return rows[0] if rows else None

    async def list_bookings(self, user_id: str | None = None) -> list[Booking]:
        params = {"order": "check_in_date.asc"}
        if user_id:
            params["user_id"] = f"eq.{user_id}"
        return await self._select(params)

    async def list_active_bookings(self, today: date) -> list[Booking]:
        bookings = await self._select({
            "check_out_date": f"gte.{today.isoformat()}",
            "order": "check_in_date.asc",
        })
        logger.info("Found %d active bookings", len(bookings))
        return bookings

    async def insert_booking(self, booking: Booking) -> Booking:
        resp = await self._client.post(
            self._url,
            json=booking.model_dump(mode="json", exclude={"id"}),
            headers={**self._headers, "Prefer": "return=representation"},
        )
        self._check(resp)
        return Booking(**resp.json()[0])

    async def update_booking(self, booking_id: str, fields: dict[str, Any]) -> None:
        resp = await self._client.patch(
            self._url,
            params={"id": f"eq.{booking_id}"},
            json={k: _to_json(v) for k, v in fields.items()},
            headers=self._headers,
        )
        self._check(resp)
        logger.debug("Updated booking %s (%s)", booking_id, ", ".join(fields))

    async def upsert_booking(self, booking: Booking) -> Booking:
        resp = await self._client.post(
            self._url,
            params={"on_conflict": UPSERT_KEY},
            json=self._payload(booking),
            headers={
                **self._headers,
                "Prefer": "resolution=merge-duplicates,return=representation",
            },
        )
        self._check(resp)
        rows = resp.json()
        logger.info("Upserted booking %s", booking.booking_reference)
        return Booking(**rows[0]) if rows else booking
