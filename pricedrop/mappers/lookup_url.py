import logging
import re
from datetime import date, datetime
from urllib.parse import parse_qs, urlencode, urlparse

from pricedrop.exceptions.custom import InvalidDateError

logger = logging.getLogger(__name__)

TRIP_BASE_URL = "https://www.trip.com"
TRIP_DETAIL_URL = f"{TRIP_BASE_URL}/hotels/detail/"

# /hotels/detail/?hotelId=123, .../hotel-detail-123/..., /hotels/paris-hotel-123/
_PATH_ID_RES = (
    re.compile(r"hotel-detail-(\d+)"),
    re.compile(r"/hotels/[^/?#]*?-(\d{3,})(?:/|\.html|$)"),
)


def extract_hotel_id(hotel_url: str | None) -> str | None:
    """Pull a comparison-listing id out of a stored hotel URL."""
    if not hotel_url:
        return None
    url = hotel_url.strip()
    if not url.startswith(("http://", "https://")):
        url = "https://" + url

    parsed = urlparse(url)
    for key in ("hotelId", "hotelid", "hotel_id"):
        values = parse_qs(parsed.query).get(key)
        if values and values[0].isdigit():
            return values[0]

    for pattern in _PATH_ID_RES:
        match = pattern.search(parsed.path)
        if match:
            return match.group(1)

    return None


def format_date(value: date | datetime | str | None) -> str:
    """Format as YYYY-MM-DD, raising InvalidDateError on garbage."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        text = value.strip()
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
        except ValueError:
            pass
    raise InvalidDateError(value)


def build_lookup_url(
    hotel_id: str,
    check_in: date | datetime | str,
    check_out: date | datetime | str,
    adults: int = 2,
    currency: str = "EUR",
) -> str:
    params = {
        "hotelId": hotel_id,
        "checkIn": format_date(check_in),
        "checkOut": format_date(check_out),
        "adult": adults,
        "curr": currency,
    }
    return f"{TRIP_DETAIL_URL}?{urlencode(params)}"


def resolve_hotel_id(
    cached_id: str | None,
    hotel_url: str | None,
    fallback_id: str,
) -> tuple[str, bool]:
    """Return (hotel_id, degraded).

    A cached id always wins so repeated refreshes hit the same listing.
    ``degraded`` is True when the fixed fallback id had to be used.
    """
    if cached_id:
        return cached_id, False
    extracted = extract_hotel_id(hotel_url)
    if extracted:
        return extracted, False
    logger.warning(
        "Could not extract listing id from %r, using fallback id %s",
        hotel_url, fallback_id,
    )
    return fallback_id, True
