import asyncio
import logging
import random
from collections import Counter
from collections.abc import Awaitable, Callable
from datetime import date, datetime, timezone

from pricedrop.config import RefreshConfig
from pricedrop.exceptions.custom import BookingNotFoundError, InvalidDateError
from pricedrop.mappers.lookup_url import (
    TRIP_BASE_URL,
    build_lookup_url,
    extract_hotel_id,
    resolve_hotel_id,
)
from pricedrop.mappers.price_extractor import extract_price
from pricedrop.schemas.booking import Booking, PriceObservation
from pricedrop.schemas.responses import (
    ConnectionCheck,
    PriceResult,
    RefreshSummary,
    UrlIntegrityReport,
)
from pricedrop.services.page_fetcher import PageFetcher
from pricedrop.services.repository import BookingRepository, is_refresh_eligible

logger = logging.getLogger(__name__)


class PriceRefreshService:
    def __init__(
        self,
        repository: BookingRepository,
        fetcher: PageFetcher,
        config: RefreshConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        self._repository = repository
        self._fetcher = fetcher
        self._config = config
        self._sleep = sleep
        self._rng = rng

    async def lookup_url(self, booking: Booking) -> str:
        """Comparison listing URL for a booking.

        The listing id is derived once and cached so successive prices stay
        comparable; the stay dates and party size always come from the booking.
        """
        hotel_id, degraded = resolve_hotel_id(
            booking.trip_hotel_id, booking.hotel_url, self._config.fallback_hotel_id
        )
        url = build_lookup_url(
            hotel_id,
            booking.check_in_date,
            booking.check_out_date,
            adults=booking.group_adults or self._config.default_adults,
            currency=booking.currency or self._config.default_currency,
        )

        # The fallback listing is not cached so a corrected hotel_url is picked up later.
        if degraded:
            return url
        if url == booking.trip_url and hotel_id == booking.trip_hotel_id:
            return url

        booking.trip_url = url
        booking.trip_hotel_id = hotel_id
        if booking.id:
            await self._repository.update_booking(
                booking.id, {"trip_url": url, "trip_hotel_id": hotel_id}
            )
        return url

    async def fetch_price(self, booking: Booking) -> PriceResult:
        url = await self.lookup_url(booking)
        fetched = await self._fetcher.fetch(url)
        if fetched.error:
            return PriceResult(error=fetched.error)
        return extract_price(fetched.html or "", demo_mode=self._config.demo_mode, rng=self._rng)

    async def refresh_booking(self, booking: Booking) -> PriceResult:
        """Fetch and persist the comparison price; failures clear it."""
        try:
            result = await self.fetch_price(booking)
        except InvalidDateError as exc:
            logger.warning("Booking %s has an invalid date: %s", booking.id, exc.value)
            result = PriceResult(error=exc.message)

        await self._record(booking, result)
        return result

    async def refresh_by_id(self, booking_id: str) -> PriceResult:
        booking = await self._repository.get_booking(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return await self.refresh_booking(booking)

    async def refresh_all(self, today: date | None = None) -> RefreshSummary:
        """Refresh every booking whose stay has not ended, in polite batches."""
        today = today or datetime.now(timezone.utc).date()
        bookings = [
            b for b in await self._repository.list_active_bookings(today)
            if is_refresh_eligible(b, today)
        ]
        if not bookings:
            logger.info("No active bookings to refresh")
            return RefreshSummary()

        size = max(1, self._config.batch_size)
        successful = 0
        reasons: Counter[str] = Counter()

        for start in range(0, len(bookings), size):
            batch = bookings[start:start + size]
            results = await asyncio.gather(*(self._safe_refresh(b) for b in batch))
            for result in results:
                if result.ok:
                    successful += 1
                else:
                    reasons[result.error or "Unknown error"] += 1

            if start + size < len(bookings):
                await self._sleep(self._config.batch_delay)

        summary = RefreshSummary(
            total=len(bookings),
            successful=successful,
            failed=len(bookings) - successful,
            failure_reasons=dict(reasons),
        )
        logger.info(
            "Price refresh done: %d total, %d successful, %d failed",
            summary.total, summary.successful, summary.failed,
        )
        return summary

    async def check_connection(self) -> ConnectionCheck:
        url = f"{TRIP_BASE_URL}/"
        fetched = await self._fetcher.fetch(url)
        return ConnectionCheck(
            url=url,
            reachable=fetched.error is None,
            status_code=fetched.status_code,
            error=fetched.error,
        )

    async def check_url_integrity(self) -> UrlIntegrityReport:
        """Count stored hotel URLs that do / do not yield a listing id."""
        report = UrlIntegrityReport()
        for booking in await self._repository.list_bookings():
            if not booking.hotel_url:
                continue
            if extract_hotel_id(booking.hotel_url):
                report.valid += 1
            else:
                report.invalid += 1
                report.invalid_urls.append(f"Booking {booking.id}: {booking.hotel_url}")
        logger.info("URL integrity: %d valid, %d invalid", report.valid, report.invalid)
        return report

    async def _safe_refresh(self, booking: Booking) -> PriceResult:
        try:
            return await self.refresh_booking(booking)
        except Exception as exc:
            logger.exception("Price refresh failed for booking %s", booking.id)
            return PriceResult(error=f"Unexpected error: {exc.__class__.__name__}")

    async def _record(self, booking: Booking, result: PriceResult) -> None:
        now = datetime.now(timezone.utc)
        if result.price is not None:
            observation = PriceObservation(
                booking_id=booking.id or "",
                price=result.price,
                currency=booking.currency or self._config.default_currency,
                observed_at=now,
            )
            fields = {
                "fetched_price": observation.price,
                "fetched_price_updated_at": observation.observed_at,
                "fetch_error": None,
            }
        else:
            fields = {
                "fetched_price": None,
                "fetched_price_updated_at": now,
                "fetch_error": result.error,
            }

        for key, value in fields.items():
            setattr(booking, key, value)
        if booking.id:
            await self._repository.update_booking(booking.id, fields)
