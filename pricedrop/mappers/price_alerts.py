from pricedrop.schemas.booking import Booking, PriceAlert


def has_price_drop(booking: Booking) -> bool:
    return (
        booking.fetched_price is not None
        and booking.fetched_price > 0
        and booking.fetched_price < booking.price_paid
    )


def build_price_alert(booking: Booking) -> PriceAlert | None:
    """Price-drop alert for a booking, or None when the comparison price is not cheaper."""
    if booking.id is None or not has_price_drop(booking):
        return None
    savings = round(booking.price_paid - booking.fetched_price, 2)
    return PriceAlert(
        booking_id=booking.id,
        hotel_name=booking.hotel_name,
        check_in_date=booking.check_in_date,
        check_out_date=booking.check_out_date,
        price_paid=booking.price_paid,
        fetched_price=booking.fetched_price,
        currency=booking.currency,
        savings=savings,
        savings_percentage=round(savings / booking.price_paid * 100, 1),
    )


def build_price_alerts(bookings: list[Booking]) -> list[PriceAlert]:
    alerts = [alert for b in bookings if (alert := build_price_alert(b)) is not None]
    alerts.sort(key=lambda a: a.savings, reverse=True)
    return alerts
