import pytest

from pricedrop.exceptions.custom import GmailAuthError, ReconnectRequiredError
from pricedrop.services.retry import TokenState, call_with_auth_retry


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.mark.asyncio
async def test_persistent_403_exhausts_retries():
    calls = []

    async def operation(token):
        calls.append(token)
        raise GmailAuthError("forbidden", status_code=403)

    sleep = SleepRecorder()
    with pytest.raises(ReconnectRequiredError) as exc_info:
        await call_with_auth_retry(operation, TokenState("tok"), sleep=sleep)

    assert sleep.delays == [1, 2, 4]
    assert len(calls) == 4
    assert isinstance(exc_info.value.__cause__, GmailAuthError)


@pytest.mark.asyncio
async def test_refreshes_token_between_attempts():
    seen = []

    async def operation(token):
        seen.append(token)
        if token == "expired":
            raise GmailAuthError("unauthorized", status_code=401)
        return "ok"

    async def refresh():
        return "fresh"

    sleep = SleepRecorder()
    tokens = TokenState("expired", refresh=refresh)
    result = await call_with_auth_retry(operation, tokens, sleep=sleep)

    assert result == "ok"
    assert seen == ["expired", "fresh"]
    assert tokens.access_token == "fresh"
    assert sleep.delays == [1]


@pytest.mark.asyncio
async def test_success_does_not_sleep():
    async def operation(token):
        return token.upper()

    sleep = SleepRecorder()
    assert await call_with_auth_retry(operation, TokenState("abc"), sleep=sleep) == "ABC"
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_zero_retries_fails_immediately():
    async def operation(token):
        raise GmailAuthError("forbidden", status_code=403)

    sleep = SleepRecorder()
    with pytest.raises(ReconnectRequiredError):
        await call_with_auth_retry(operation, TokenState("tok"), max_retries=0, sleep=sleep)
    assert sleep.delays == []
