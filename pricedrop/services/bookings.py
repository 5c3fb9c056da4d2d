import logging

from pricedrop.exceptions.custom import BookingNotFoundError, NoPriceDropError
from pricedrop.mappers.price_alerts import build_price_alerts, has_price_drop
from pricedrop.schemas.booking import Booking, BookingCreate, PriceAlert
from pricedrop.services.repository import BookingRepository

logger = logging.getLogger(__name__)


class BookingService:
    def __init__(self, repository: BookingRepository):
        self._repository = repository

    async def create(self, data: BookingCreate) -> Booking:
        booking = await self._repository.insert_booking(data.to_booking())
        logger.info("Created booking %s for %s", booking.id, booking.hotel_name)
        return booking

    async def price_alerts(self, user_id: str | None = None) -> list[PriceAlert]:
        return build_price_alerts(await self._repository.list_bookings(user_id))

    async def rebook(self, booking_id: str) -> tuple[Booking, float]:
        """Commit to the cheaper comparison price; returns (booking, savings)."""
        booking = await self._repository.get_booking(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        if not has_price_drop(booking):
            raise NoPriceDropError(booking_id)

        savings = round(booking.price_paid - booking.fetched_price, 2)
        booking.price_paid = booking.fetched_price
        await self._repository.update_booking(booking_id, {"price_paid": booking.price_paid})
        logger.info("Rebooked %s, saved %.2f", booking_id, savings)
        return booking, savings
