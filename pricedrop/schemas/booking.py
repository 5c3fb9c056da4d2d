from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, model_validator


class BookingSource(StrEnum):
    manual = "manual"
    gmail = "gmail"


class Booking(BaseModel):
    id: str | None = None
    user_id: str | None = None
    booking_reference: str | None = None
    hotel_name: str
    hotel_url: str | None = None
    room_type: str | None = None
    price_paid: float = 0.0  # committed at booking time
    fetched_price: float | None = None  # latest comparison price
    fetched_price_updated_at: datetime | None = None
    fetch_error: str | None = None
    currency: str | None = None
    check_in_date: datetime
    check_out_date: datetime
    cancellation_date: datetime | None = None
    group_adults: int = 2
    source: BookingSource = BookingSource.manual
    imported_from_gmail: bool = False
    import_timestamp: datetime | None = None
    email_id: str | None = None
    trip_url: str | None = None  # cached lookup URL
    trip_hotel_id: str | None = None  # cached comparison listing id


class BookingCreate(BaseModel):
    user_id: str | None = None
    booking_reference: str | None = None
    hotel_name: str
    hotel_url: str | None = None
    room_type: str | None = None
    price_paid: float
    currency: str | None = None
    check_in_date: datetime
    check_out_date: datetime
    cancellation_date: datetime | None = None
    group_adults: int = 2

    @model_validator(mode="after")
    def _check_date_order(self) -> BookingCreate:
        if self.check_out_date < self.check_in_date:
            raise ValueError("check_out_date must not be before check_in_date")
        if self.cancellation_date and self.cancellation_date > self.check_in_date:
            raise ValueError("cancellation_date must not be after check_in_date")
        return self

    def to_booking(self) -> Booking:
        return Booking(**self.model_dump(), source=BookingSource.manual)


class PriceObservation(BaseModel):
    booking_id: str
    price: float
    currency: str | None = None
    observed_at: datetime


class PriceAlert(BaseModel):
    booking_id: str
    hotel_name: str
    check_in_date: datetime
    check_out_date: datetime
    price_paid: float
    fetched_price: float
    currency: str | None = None
    savings: float
    savings_percentage: float
