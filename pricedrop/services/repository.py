"""Booking storage contract and the in-process implementation.

The pipelines only ever select, update single rows, insert and upsert by
``booking_reference``; nothing here deletes.
"""

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Protocol

from pricedrop.schemas.booking import Booking

logger = logging.getLogger(__name__)


def _utc_date(value: datetime) -> date:
    if value.tzinfo is None:
        return value.date()
    return value.astimezone(timezone.utc).date()


def is_refresh_eligible(booking: Booking, today: date) -> bool:
    """Only stays that have not ended yet are worth re-pricing."""
    return _utc_date(booking.check_out_date) >= today


class BookingRepository(Protocol):
    async def get_booking(self, booking_id: str) -> Booking | None: ...

    async def list_bookings(self, user_id: str | None = None) -> list[Booking]: ...

    async def list_active_bookings(self, today: date) -> list[Booking]: ...

    async def insert_booking(self, booking: Booking) -> Booking: ...

    async def update_booking(self, booking_id: str, fields: dict[str, Any]) -> None: ...

    async def upsert_booking(self, booking: Booking) -> Booking: ...


class InMemoryBookingRepository:
    """Dict-backed store for local runs without a database."""

    def __init__(self, bookings: list[Booking] | None = None) -> None:
        self._rows: dict[str, Booking] = {}
        for booking in bookings or []:
            self._store(booking)

    def _store(self, booking: Booking) -> Booking:
        row = booking.model_copy(deep=True)
        if row.id is None:
            row.id = uuid.uuid4().hex[:12]
        self._rows[row.id] = row
        return row.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._rows)

    async def get_booking(self, booking_id: str) -> Booking | None:
        row = self._rows.get(booking_id)
        return row.model_copy(deep=True) if row else None

    async def list_bookings(self, user_id: str | None = None) -> list[Booking]:
        rows = [
            r for r in self._rows.values()
            if user_id is None or r.user_id == user_id
        ]
        rows.sort(key=lambda r: r.check_in_date)
        return [r.model_copy(deep=True) for r in rows]

    async def list_active_bookings(self, today: date) -> list[Booking]:
        return [b for b in await self.list_bookings() if is_refresh_eligible(b, today)]

    async def insert_booking(self, booking: Booking) -> Booking:
        return self._store(booking.model_copy(update={"id": None}))

    async def update_booking(self, booking_id: str, fields: dict[str, Any]) -> None:
        row = self._rows.get(booking_id)
        if row is None:
            logger.warning("Update for unknown booking %s ignored", booking_id)
            return
        self._rows[booking_id] = row.model_copy(update=fields)

    async def upsert_booking(self, booking: Booking) -> Booking:
        for row in self._rows.values():
            if booking.booking_reference and row.booking_reference == booking.booking_reference:
                return self._store(booking.model_copy(update={"id": row.id}))
        return self._store(booking.model_copy(update={"id": None}))
