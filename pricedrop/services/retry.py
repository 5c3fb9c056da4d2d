import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from pricedrop.exceptions.custom import GmailAuthError, ReconnectRequiredError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TokenRefresher = Callable[[], Awaitable[str]]
Sleep = Callable[[float], Awaitable[None]]

MAX_AUTH_RETRIES = 3


@dataclass
class TokenState:
    """The access token in use for one sync run; replaced when refreshed."""

    access_token: str
    refresh: TokenRefresher | None = None


async def call_with_auth_retry(
    operation: Callable[[str], Awaitable[T]],
    tokens: TokenState,
    max_retries: int = MAX_AUTH_RETRIES,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Run ``operation(access_token)``, retrying auth failures with backoff.

    Waits 2**attempt seconds (1, 2, 4, ...) before each retry and refreshes the
    token first when a refresher is available. Once ``max_retries`` retries are
    spent the user has to reconnect the account.
    """
    attempt = 0
    while True:
        try:
            return await operation(tokens.access_token)
        except GmailAuthError as exc:
            if attempt >= max_retries:
                logger.error("Gmail auth still failing after %d retries", attempt)
                raise ReconnectRequiredError() from exc
            delay = 2 ** attempt
            attempt += 1
            logger.warning(
                "Gmail auth error (%s), retry %d/%d in %ds",
                exc.status_code, attempt, max_retries, delay,
            )
            await sleep(delay)
            if tokens.refresh is not None:
                tokens.access_token = await tokens.refresh()
