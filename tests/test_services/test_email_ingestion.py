import base64
from datetime import datetime, timezone

import httpx
import pytest
import respx
from httpx import Response

from pricedrop.config import IngestionConfig
from pricedrop.exceptions.custom import RateLimitError, ReconnectRequiredError
from pricedrop.schemas.extraction import MatchRule, ParsingRules
from pricedrop.services.email_ingestion import EmailIngestionService, build_search_query
from pricedrop.services.gmail import MESSAGES_URL, GmailService
from pricedrop.services.google_oauth import TOKEN_URL, GoogleOAuthService
from pricedrop.services.repository import InMemoryBookingRepository

NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)

CONFIRMATION_HTML = """
<html><body>
  <a href="https://www.booking.com/hotel/pt/casa-azul.html">Casa Azul</a>
  <p>Booking number: 4021555123</p>
  <p>Check-in: June 14, 2025</p>
  <p>Check-out: June 16, 2025</p>
  <p>Total price: € 310.00</p>
</body></html>
"""


def _b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def _message(message_id: str, subject: str = "Your booking confirmation", html: str = CONFIRMATION_HTML) -> dict:
    return {
        "id": message_id,
        "snippet": "Casa Azul",
        "payload": {
            "mimeType": "text/html",
            "headers": [
                {"name": "From", "value": "Booking.com <noreply@booking.com>"},
                {"name": "Subject", "value": subject},
            ],
            "body": {"data": _b64(html)},
        },
    }


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _service(client, repository, sleep=None, oauth=None, **config) -> EmailIngestionService:
    return EmailIngestionService(
        GmailService(client),
        repository,
        IngestionConfig(**config),
        oauth=oauth,
        sleep=sleep or SleepRecorder(),
    )


def test_build_search_query():
    assert build_search_query(MatchRule()) == "from:booking.com subject:(confirmation)"
    assert build_search_query(MatchRule(sender="expedia.com", subject_contains="itinerary")) == (
        "from:expedia.com subject:(itinerary)"
    )


@respx.mock
@pytest.mark.asyncio
async def test_sync_imports_booking():
    respx.get(MESSAGES_URL).mock(return_value=Response(200, json={"messages": [{"id": "m1"}]}))
    respx.get(f"{MESSAGES_URL}/m1").mock(return_value=Response(200, json=_message("m1")))
    repository = InMemoryBookingRepository()

    async with httpx.AsyncClient() as client:
        bookings = await _service(client, repository).sync("tok", "user-1", now=NOW)

    assert len(bookings) == 1
    booking = bookings[0]
    assert booking.id is not None
    assert booking.hotel_name == "Casa Azul"
    assert booking.booking_reference == "4021555123"
    assert booking.price_paid == 310.0
    assert booking.user_id == "user-1"
    assert booking.email_id == "m1"
    assert len(repository) == 1


@respx.mock
@pytest.mark.asyncio
async def test_reimport_same_reference_keeps_one_row():
    respx.get(MESSAGES_URL).mock(
        return_value=Response(200, json={"messages": [{"id": "m1"}, {"id": "m2"}]})
    )
    respx.get(f"{MESSAGES_URL}/m1").mock(return_value=Response(200, json=_message("m1")))
    respx.get(f"{MESSAGES_URL}/m2").mock(return_value=Response(200, json=_message("m2")))
    repository = InMemoryBookingRepository()

    async with httpx.AsyncClient() as client:
        service = _service(client, repository)
        first = await service.sync("tok", "user-1", now=NOW)
        second = await service.sync("tok", "user-1", now=NOW)

    assert len(repository) == 1
    assert {b.id for b in first + second} == {first[0].id}
    stored = await repository.list_bookings("user-1")
    assert stored[0].email_id == "m2"


@respx.mock
@pytest.mark.asyncio
async def test_skips_subject_mismatch_and_failed_fetch():
    respx.get(MESSAGES_URL).mock(
        return_value=Response(200, json={"messages": [{"id": "m1"}, {"id": "m2"}, {"id": "m3"}]})
    )
    respx.get(f"{MESSAGES_URL}/m1").mock(
        return_value=Response(200, json=_message("m1", subject="Genius rewards for you"))
    )
    respx.get(f"{MESSAGES_URL}/m2").mock(return_value=Response(500, text="backend error"))
    respx.get(f"{MESSAGES_URL}/m3").mock(return_value=Response(200, json=_message("m3")))
    repository = InMemoryBookingRepository()

    async with httpx.AsyncClient() as client:
        bookings = await _service(client, repository).sync("tok", "user-1", now=NOW)

    assert [b.email_id for b in bookings] == ["m3"]


@respx.mock
@pytest.mark.asyncio
async def test_caps_messages_per_run():
    search = respx.get(MESSAGES_URL).mock(
        return_value=Response(200, json={"messages": [{"id": "m1"}, {"id": "m2"}, {"id": "m3"}]})
    )
    respx.get(f"{MESSAGES_URL}/m1").mock(return_value=Response(200, json=_message("m1")))
    respx.get(f"{MESSAGES_URL}/m2").mock(return_value=Response(200, json=_message("m2")))
    repository = InMemoryBookingRepository()

    async with httpx.AsyncClient() as client:
        bookings = await _service(client, repository, max_messages=2).sync("tok", "user-1", now=NOW)

    assert len(bookings) == 2
    assert search.calls.last.request.url.params["maxResults"] == "2"


@respx.mock
@pytest.mark.asyncio
async def test_no_matching_messages():
    respx.get(MESSAGES_URL).mock(return_value=Response(200, json={"resultSizeEstimate": 0}))

    async with httpx.AsyncClient() as client:
        assert await _service(client, InMemoryBookingRepository()).sync("tok", "user-1") == []


@respx.mock
@pytest.mark.asyncio
async def test_persistent_403_requires_reconnect():
    search = respx.get(MESSAGES_URL).mock(return_value=Response(403, text="forbidden"))
    sleep = SleepRecorder()

    async with httpx.AsyncClient() as client:
        with pytest.raises(ReconnectRequiredError):
            await _service(client, InMemoryBookingRepository(), sleep=sleep).sync("tok", "user-1")

    assert sleep.delays == [1, 2, 4]
    assert search.call_count == 4


@respx.mock
@pytest.mark.asyncio
async def test_expired_token_is_refreshed():
    def search(request):
        if request.headers["Authorization"] == "Bearer expired":
            return Response(401, text="unauthorized")
        return Response(200, json={"messages": [{"id": "m1"}]})

    respx.get(MESSAGES_URL).mock(side_effect=search)
    respx.get(f"{MESSAGES_URL}/m1").mock(return_value=Response(200, json=_message("m1")))
    token_route = respx.post(TOKEN_URL).mock(
        return_value=Response(200, json={"access_token": "fresh"})
    )
    sleep = SleepRecorder()

    async with httpx.AsyncClient() as client:
        oauth = GoogleOAuthService(client, "cid", "secret")
        service = _service(client, InMemoryBookingRepository(), sleep=sleep, oauth=oauth)
        bookings = await service.sync("expired", "user-1", refresh_token="refresh-1", now=NOW)

    assert len(bookings) == 1
    assert token_route.call_count == 1
    assert sleep.delays == [1]


@respx.mock
@pytest.mark.asyncio
async def test_caller_rules_override_defaults():
    html = "<html><body><p>Ref PIN-7788</p><p>Hotel name: Villa Sol</p></body></html>"
    respx.get(MESSAGES_URL).mock(return_value=Response(200, json={"messages": [{"id": "m1"}]}))
    respx.get(f"{MESSAGES_URL}/m1").mock(
        return_value=Response(200, json=_message("m1", subject="Reservation confirmed", html=html))
    )
    rules = ParsingRules.model_validate({
        "match": {"from": "booking.com", "subjectContains": "reservation"},
        "extract": {"confirmation_number": r"regex:PIN-(\d+)"},
    })

    async with httpx.AsyncClient() as client:
        bookings = await _service(client, InMemoryBookingRepository()).sync(
            "tok", "user-1", rules=rules, now=NOW
        )

    assert bookings[0].booking_reference == "7788"
    assert bookings[0].hotel_name == "Villa Sol"


@respx.mock
@pytest.mark.asyncio
async def test_rate_limited_message_is_skipped():
    other_html = CONFIRMATION_HTML.replace("4021555123", "5550001112")
    respx.get(MESSAGES_URL).mock(
        return_value=Response(200, json={"messages": [{"id": "m1"}, {"id": "m2"}, {"id": "m3"}]})
    )
    respx.get(f"{MESSAGES_URL}/m1").mock(return_value=Response(200, json=_message("m1")))
    respx.get(f"{MESSAGES_URL}/m2").mock(return_value=Response(429, text="quota exceeded"))
    respx.get(f"{MESSAGES_URL}/m3").mock(
        return_value=Response(200, json=_message("m3", html=other_html))
    )
    repository = InMemoryBookingRepository()

    async with httpx.AsyncClient() as client:
        bookings = await _service(client, repository).sync("tok", "user-1", now=NOW)

    assert [b.email_id for b in bookings] == ["m1", "m3"]
    assert len(repository) == 2


@respx.mock
@pytest.mark.asyncio
async def test_rate_limited_search_aborts_run():
    respx.get(MESSAGES_URL).mock(return_value=Response(429, text="quota exceeded"))

    async with httpx.AsyncClient() as client:
        with pytest.raises(RateLimitError):
            await _service(client, InMemoryBookingRepository()).sync("tok", "user-1")


@respx.mock
@pytest.mark.asyncio
async def test_messages_without_reference_do_not_collide():
    no_reference = CONFIRMATION_HTML.replace("<p>Booking number: 4021555123</p>", "")
    respx.get(MESSAGES_URL).mock(
        return_value=Response(200, json={"messages": [{"id": "m1"}, {"id": "m2"}]})
    )
    respx.get(f"{MESSAGES_URL}/m1").mock(return_value=Response(200, json=_message("m1", html=no_reference)))
    respx.get(f"{MESSAGES_URL}/m2").mock(return_value=Response(200, json=_message("m2", html=no_reference)))
    repository = InMemoryBookingRepository()

    async with httpx.AsyncClient() as client:
        bookings = await _service(client, repository).sync("tok", "user-1", now=NOW)

    assert len(repository) == 2
    assert all(b.booking_reference.startswith("UNKNOWN-") for b in bookings)
