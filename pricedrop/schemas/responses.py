from __future__ import annotations

from pydantic import BaseModel

from pricedrop.schemas.booking import Booking, PriceAlert


class PriceResult(BaseModel):
    price: float | None = None
    error: str | None = None
    strategy: str | None = None  # which extraction stage produced the price

    @property
    def ok(self) -> bool:
        return self.price is not None


class RefreshSummary(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0
    failure_reasons: dict[str, int] = {}


class ConnectionCheck(BaseModel):
    url: str
    reachable: bool
    status_code: int | None = None
    error: str | None = None


class UrlIntegrityReport(BaseModel):
    valid: int = 0
    invalid: int = 0
    invalid_urls: list[str] = []


class PriceRefreshResponse(BaseModel):
    success: bool
    message: str
    price: float | None = None
    error: str | None = None
    summary: RefreshSummary | None = None
    failure_reasons: dict[str, int] | None = None
    connection: ConnectionCheck | None = None
    url_integrity: UrlIntegrityReport | None = None


class GmailSyncResponse(BaseModel):
    success: bool
    bookings: list[Booking] = []


class SchedulerResponse(BaseModel):
    success: bool
    message: str
    result: dict | None = None


class AlertsResponse(BaseModel):
    alerts: list[PriceAlert]


class RebookResponse(BaseModel):
    success: bool
    booking: Booking
    savings: float


class FetchResult(BaseModel):
    html: str | None = None
    error: str | None = None
    status_code: int | None = None
