import logging

import httpx

from pricedrop.exceptions.custom import GmailError, RateLimitError, ReconnectRequiredError

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"

_TIMEOUT = 8.0


class GoogleOAuthService:
    def __init__(self, client: httpx.AsyncClient, client_id: str, client_secret: str):
        self._client = client
        self._client_id = client_id
        self._client_secret = client_secret

    async def refresh_access_token(self, refresh_token: str) -> str:
        """Exchange a refresh token for a fresh Gmail access token."""
        try:
            resp = await self._client.post(
                TOKEN_URL,
                timeout=_TIMEOUT,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                },
            )
        except httpx.HTTPError as exc:
            raise GmailError(f"Network error: {exc.__class__.__name__}") from exc

        # invalid_grant: the user revoked access or the refresh token expired
        if resp.status_code in (400, 401):
            logger.warning("Google rejected the refresh token: %s", resp.text)
            raise ReconnectRequiredError()
        if resp.status_code == 429:
            raise RateLimitError("Google OAuth")
        if resp.status_code >= 400:
            raise GmailError(resp.text, status_code=resp.status_code)

        token = resp.json().get("access_token")
        if not token:
            raise ReconnectRequiredError()
        logger.info("Refreshed Gmail access token")
        return token
