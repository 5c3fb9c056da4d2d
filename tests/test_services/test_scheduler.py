import json

import httpx
import pytest
import respx
from httpx import Response

from pricedrop.exceptions.custom import SchedulerError
from pricedrop.services.scheduler import SCHEDULED_HEADER, SchedulerService

REFRESH_URL = "https://prices.test/fetch-hotel-prices"


@respx.mock
@pytest.mark.asyncio
async def test_trigger_requests_full_refresh():
    route = respx.post(REFRESH_URL).mock(
        return_value=Response(200, json={"success": True, "message": "Processed 3 bookings, 3 successful"})
    )

    async with httpx.AsyncClient() as client:
        result = await SchedulerService(client, REFRESH_URL, token="secret").trigger()

    assert result["success"] is True
    request = route.calls.last.request
    assert json.loads(request.content) == {"processAll": True}
    assert request.headers[SCHEDULED_HEADER] == "true"
    assert request.headers["Authorization"] == "Bearer secret"


@respx.mock
@pytest.mark.asyncio
async def test_trigger_without_token():
    route = respx.post(REFRESH_URL).mock(return_value=Response(200, json={"success": True}))

    async with httpx.AsyncClient() as client:
        await SchedulerService(client, REFRESH_URL).trigger()

    assert "Authorization" not in route.calls.last.request.headers


@respx.mock
@pytest.mark.asyncio
async def test_trigger_refresh_failure():
    respx.post(REFRESH_URL).mock(return_value=Response(500, json={"success": False}))

    async with httpx.AsyncClient() as client:
        with pytest.raises(SchedulerError) as exc_info:
            await SchedulerService(client, REFRESH_URL).trigger()

    assert exc_info.value.status_code == 500


@respx.mock
@pytest.mark.asyncio
async def test_trigger_network_error():
    respx.post(REFRESH_URL).mock(side_effect=httpx.ConnectError("refused"))

    async with httpx.AsyncClient() as client:
        with pytest.raises(SchedulerError, match="ConnectError"):
            await SchedulerService(client, REFRESH_URL).trigger()
