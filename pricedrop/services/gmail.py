import logging

import httpx

from pricedrop.exceptions.custom import GmailAuthError, GmailError, RateLimitError
from pricedrop.schemas.gmail import GmailMessage, GmailMessageRef

logger = logging.getLogger(__name__)

GMAIL_API_URL = "https://gmail.googleapis.com/gmail/v1/users/me"
MESSAGES_URL = f"{GMAIL_API_URL}/messages"

_TIMEOUT = 8.0


class GmailService:
    def __init__(self, client: httpx.AsyncClient, timeout: float = _TIMEOUT):
        self._client = client
        self._timeout = timeout

    async def _get(self, url: str, access_token: str, params: dict | None = None) -> dict:
        try:
            resp = await self._client.get(
                url,
                params=params,
                timeout=self._timeout,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.HTTPError as exc:
            raise GmailError(f"Network error: {exc.__class__.__name__}") from exc

        if resp.status_code in (401, 403):
            raise GmailAuthError(
                f"Gmail rejected the access token ({resp.status_code})",
                status_code=resp.status_code,
            )
        if resp.status_code == 429:
            raise RateLimitError("Gmail")
        if resp.status_code >= 400:
            raise GmailError(resp.text, status_code=resp.status_code)

        return resp.json()

    async def search_messages(
        self, access_token: str, query: str, max_results: int = 20
    ) -> list[GmailMessageRef]:
        data = await self._get(
            MESSAGES_URL, access_token, params={"q": query, "maxResults": max_results}
        )
        refs = [GmailMessageRef(**m) for m in data.get("messages", [])]
        logger.info("Gmail search %r returned %d messages", query, len(refs))
        return refs

    async def get_message(self, access_token: str, message_id: str) -> GmailMessage:
        data = await self._get(
            f"{MESSAGES_URL}/{message_id}", access_token, params={"format": "full"}
        )
        return GmailMessage(**data)
