"""Turn one booking confirmation email into a Booking record.

Parsing is total: every field degrades on its own to a documented default and
any unexpected failure still yields an ``ERROR-...`` record, so a garbled email
never aborts an import run.

Hotel name precedence: anchor text of a listing link, a name slugified from a
bare listing URL, the hotel-name rule, "<name> is expecting you", and finally
"Unknown Hotel".
"""

import html
import logging
import math
import re
from datetime import datetime, time, timedelta, timezone, tzinfo
from urllib.parse import unquote, urlparse

from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from pricedrop.schemas.booking import Booking, BookingSource
from pricedrop.schemas.extraction import LinkContainsRule, RegexRule

logger = logging.getLogger(__name__)

UNKNOWN_HOTEL = "Unknown Hotel"
ERROR_HOTEL = "Error Processing Booking"
CHECK_IN_HOUR = 15
CHECK_OUT_HOUR = 10
LISTING_SEGMENT = "/hotel/"

# Labels and values are separated by whitespace, colons or markup in HTML mails.
_GAP = r"(?:\s|:|&nbsp;|<[^>]+>)*"
_DATE = (
    r"((?:[A-Za-z]+,?\s+)?"
    r"(?:[A-Za-z]+\s+\d{1,2},?\s+\d{4}|\d{1,2}\s+[A-Za-z]+\s+\d{4}|\d{4}-\d{2}-\d{2}))"
)
_DATE_TIME = (
    r"((?:[A-Za-z]+,?\s+)?"
    r"(?:[A-Za-z]+\s+\d{1,2},?\s+\d{4}|\d{1,2}\s+[A-Za-z]+\s+\d{4}|\d{4}-\d{2}-\d{2})"
    r"(?:,?\s+(?:at\s+)?\d{1,2}:\d{2}(?:\s*[AP]M)?)?)"
)

DEFAULT_RULES: dict[str, RegexRule | LinkContainsRule] = {
    "booking_reference": RegexRule(
        pattern=(
            r"(?:Booking reference|Booking number|Confirmation number|Confirmation)"
            r"(?:\s*(?:no\.?|#))?" + _GAP + r"([A-Z0-9]*\d[A-Z0-9.\-]*[A-Z0-9])"
        )
    ),
    "hotel_name": RegexRule(
        pattern=r"(?:Hotel name:|Your booking (?:is confirmed )?at)\s*(?:<[^>]+>\s*)*([^\n<!]+)"
    ),
    "hotel_url": LinkContainsRule(substring=LISTING_SEGMENT),
    "room_type": RegexRule(pattern=r"(?:Room type|Your room)\s*:?\s*(?:<[^>]+>\s*)*([^\n<]+)"),
    "check_in_date_raw": RegexRule(pattern=r"Check-in" + _GAP + _DATE),
    "check_out_date_raw": RegexRule(pattern=r"Check-out" + _GAP + _DATE),
    "cancellation_date_raw": RegexRule(
        pattern=(
            r"(?:cancel for FREE until|Free cancellation until|"
            r"cancel free of charge until|Cancellation deadline)" + _GAP + _DATE_TIME
        )
    ),
    "price_paid": RegexRule(
        pattern=r"(?:Total price|Total|Price)" + _GAP + r"(?:[€$£]|EUR|USD|GBP)?\s*(\d[\d.,]*\d|\d)"
    ),
}

# Caller rule names that feed a default field.
_FIELD_ALIASES = {"confirmation_number": "booking_reference"}

_NAME_WORD = r"(?:[A-Z0-9][\w'&.\-]*|de|la|le|del|di|da|the|of|and|am|an)"
_EXPECTING_YOU_RE = re.compile(
    rf"([A-Z0-9][\w'&.\-]*(?:\s+{_NAME_WORD}){{0,7}}?)\s+is expecting you"
)
_HTML_TOKENS = ("<html", "<body", "<a ", "<div", "<table", "<br", "</")
_URL_STOP = r"[^\s\"'<>]"
_LOCALE_SUFFIX_RE = re.compile(r"\.[a-z]{2}(?:-[a-z]{2})?$")


def looks_like_html(body: str) -> bool:
    lowered = body.lower()
    return any(token in lowered for token in _HTML_TOKENS)


def unfold_quoted_printable(text: str) -> str:
    """Undo the quoted-printable artifacts that survive in some mail bodies."""
    return text.replace("=\r\n", "").replace("=\n", "").replace("=3D", "=")


def _clean(value: str) -> str:
    return " ".join(html.unescape(value).split()).strip(" -:")


def find_listing_anchor(soup: BeautifulSoup, segment: str) -> tuple[str | None, str | None]:
    """Return (link text, href) of the first anchor pointing at a listing."""
    url: str | None = None
    for anchor in soup.find_all("a", href=True):
        href = unfold_quoted_printable(anchor["href"]).strip()
        if segment not in href:
            continue
        text = _clean(anchor.get_text(" ", strip=True))
        if text:
            return text, href
        url = url or href
    return None, url


def find_listing_url(text: str, segment: str) -> str | None:
    pattern = re.compile(rf"https?://{_URL_STOP}*?{re.escape(segment)}{_URL_STOP}*")
    match = pattern.search(unfold_quoted_printable(text))
    if match:
        return match.group(0).rstrip("\"'>;).,")
    return None


def hotel_name_from_url(url: str) -> str | None:
    """'.../hotel/it/grand-hotel-roma.en-gb.html' -> 'Grand Hotel Roma'."""
    path = unquote(urlparse(unfold_quoted_printable(url)).path)
    segments = [s for s in path.split("/") if s]
    if not segments:
        return None
    slug = segments[-1]
    if slug.endswith(".html"):
        slug = slug[: -len(".html")]
    slug = _LOCALE_SUFFIX_RE.sub("", slug)
    words = [w for w in re.split(r"[-_+\s]+", slug) if w]
    if not words:
        return None
    return " ".join(w.capitalize() for w in words)


def apply_rule(
    rule: RegexRule | LinkContainsRule,
    body: str,
    soup: BeautifulSoup | None,
) -> str | None:
    if isinstance(rule, RegexRule):
        match = rule.compiled.search(body)
        if not match:
            return None
        value = match.group(1) if match.re.groups else match.group(0)
        return _clean(value) or None

    if soup is not None:
        _, href = find_listing_anchor(soup, rule.substring)
        if href:
            return href
    return find_listing_url(body, rule.substring)


def parse_date(raw: str | None, hour: int, tz: tzinfo, now: datetime) -> datetime:
    """Calendar date pinned to ``hour`` in ``tz``; unparseable -> today at ``hour``."""
    if raw:
        try:
            parsed = date_parser.parse(raw, fuzzy=True)
            return datetime.combine(parsed.date(), time(hour), tzinfo=tz)
        except (ValueError, OverflowError):
            logger.debug("Unparseable date %r, falling back to today", raw)
    return datetime.combine(now.astimezone(tz).date(), time(hour), tzinfo=tz)


def parse_deadline(raw: str | None, tz: tzinfo) -> datetime | None:
    if not raw:
        return None
    try:
        parsed = date_parser.parse(raw, fuzzy=True)
    except (ValueError, OverflowError):
        logger.debug("Unparseable cancellation deadline %r", raw)
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=tz)


def parse_paid_price(raw: str | None) -> float:
    """'123,45' -> 123.45, '1,234.50' -> 1234.5, garbage -> 0.0."""
    if not raw:
        return 0.0
    text = raw.strip().replace("\u00a0", "").replace(" ", "")
    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    else:
        text = text.replace(",", ".")
    try:
        value = float(text)
    except ValueError:
        return 0.0
    if not math.isfinite(value) or value < 0:
        return 0.0
    return round(value, 2)


def _effective_rules(
    rules: dict[str, RegexRule | LinkContainsRule] | None,
) -> dict[str, RegexRule | LinkContainsRule]:
    effective = dict(DEFAULT_RULES)
    for field, rule in (rules or {}).items():
        effective[_FIELD_ALIASES.get(field, field)] = rule
    return effective


def _placeholder_reference(prefix: str, message_id: str, now: datetime) -> str:
    # Unique per message so placeholder rows never collide on upsert.
    return f"{prefix}-{message_id}-{int(now.timestamp() * 1000)}"


def _resolve_hotel(
    body: str,
    soup: BeautifulSoup | None,
    rules: dict[str, RegexRule | LinkContainsRule],
) -> tuple[str, str | None]:
    url_rule = rules["hotel_url"]
    segment = url_rule.substring if isinstance(url_rule, LinkContainsRule) else LISTING_SEGMENT

    name: str | None = None
    url: str | None = None
    if soup is not None:
        name, url = find_listing_anchor(soup, segment)

    if isinstance(url_rule, RegexRule):
        url = apply_rule(url_rule, body, soup) or url
    elif not url:
        url = find_listing_url(body, segment)

    if not name and url:
        name = hotel_name_from_url(url)

    if not name:
        name = apply_rule(rules["hotel_name"], body, soup)

    if not name:
        text = soup.get_text(" ", strip=True) if soup is not None else body
        match = _EXPECTING_YOU_RE.search(text)
        if match:
            name = _clean(match.group(1))

    return name or UNKNOWN_HOTEL, url


def _parse(
    body: str,
    message_id: str,
    rules: dict[str, RegexRule | LinkContainsRule] | None,
    user_id: str | None,
    tz: tzinfo,
    currency: str,
    now: datetime,
) -> Booking:
    effective = _effective_rules(rules)
    soup = BeautifulSoup(body, "html.parser") if looks_like_html(body) else None

    hotel_name, hotel_url = _resolve_hotel(body, soup, effective)
    fields = {
        field: apply_rule(effective[field], body, soup)
        for field in (
            "booking_reference",
            "room_type",
            "check_in_date_raw",
            "check_out_date_raw",
            "cancellation_date_raw",
            "price_paid",
        )
    }

    check_in = parse_date(fields["check_in_date_raw"], CHECK_IN_HOUR, tz, now)
    check_out = parse_date(fields["check_out_date_raw"], CHECK_OUT_HOUR, tz, now)
    if check_out <= check_in:
        check_out = datetime.combine(
            check_in.date() + timedelta(days=1), time(CHECK_OUT_HOUR), tzinfo=tz
        )

    reference = fields["booking_reference"] or _placeholder_reference("UNKNOWN", message_id, now)

    cancellation = parse_deadline(fields["cancellation_date_raw"], tz)
    if cancellation is not None and cancellation > check_in:
        logger.debug(
            "Dropping cancellation deadline %s after check-in %s for message %s",
            cancellation, check_in, message_id,
        )
        cancellation = None

    return Booking(
        user_id=user_id,
        booking_reference=reference,
        hotel_name=hotel_name,
        hotel_url=hotel_url,
        room_type=fields["room_type"],
        price_paid=parse_paid_price(fields["price_paid"]),
        currency=currency,
        check_in_date=check_in,
        check_out_date=check_out,
        cancellation_date=cancellation,
        source=BookingSource.gmail,
        imported_from_gmail=True,
        import_timestamp=now,
        email_id=message_id,
    )


def _error_booking(
    message_id: str,
    user_id: str | None,
    tz: tzinfo,
    currency: str,
    now: datetime,
) -> Booking:
    check_in = parse_date(None, CHECK_IN_HOUR, tz, now)
    return Booking(
        user_id=user_id,
        booking_reference=_placeholder_reference("ERROR", message_id, now),
        hotel_name=ERROR_HOTEL,
        price_paid=0.0,
        currency=currency,
        check_in_date=check_in,
        check_out_date=datetime.combine(
            check_in.date() + timedelta(days=1), time(CHECK_OUT_HOUR), tzinfo=tz
        ),
        source=BookingSource.gmail,
        imported_from_gmail=True,
        import_timestamp=now,
        email_id=message_id,
    )


def parse_booking_email(
    body: str,
    message_id: str,
    rules: dict[str, RegexRule | LinkContainsRule] | None = None,
    user_id: str | None = None,
    tz: tzinfo = timezone.utc,
    currency: str = "EUR",
    now: datetime | None = None,
) -> Booking:
    """Extract a Booking from an email body. Never raises."""
    now = now or datetime.now(timezone.utc)
    try:
        return _parse(body, message_id, rules, user_id, tz, currency, now)
    except Exception:
        logger.exception("Failed to parse booking email %s", message_id)
        return _error_booking(message_id, user_id, tz, currency, now)
