from datetime import datetime, timedelta, timezone

import httpx
import pytest
from httpx import ASGITransport

from pricedrop.schemas.booking import Booking


@pytest.fixture
def mock_env(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "")
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "test-client-id")
    monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "test-client-secret")
    monkeypatch.setenv("PRICE_BATCH_DELAY", "0")
    monkeypatch.setenv("PRICE_REFRESH_URL", "https://prices.test/fetch-hotel-prices")
    monkeypatch.setenv("SCHEDULER_TOKEN", "sched-token")


@pytest.fixture
async def client(mock_env):
    from pricedrop.main import app, lifespan

    async with lifespan(app):
        async with httpx.AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as c:
            yield c


@pytest.fixture
def repository(client):
    """The in-memory booking store wired into the running app."""
    from pricedrop.main import app

    return app.state.booking_repository


@pytest.fixture
def make_booking():
    def _make(**overrides) -> Booking:
        start = datetime.now(timezone.utc).replace(hour=15, minute=0, second=0, microsecond=0)
        data = {
            "hotel_name": "Hotel Test",
            "hotel_url": "https://www.trip.com/hotels/detail/?hotelId=12345",
            "price_paid": 200.0,
            "currency": "EUR",
            "check_in_date": start + timedelta(days=10),
            "check_out_date": start + timedelta(days=12, hours=-5),
        }
        data.update(overrides)
        return Booking(**data)

    return _make
