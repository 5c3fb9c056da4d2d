import logging

import httpx

from pricedrop.schemas.responses import FetchResult

logger = logging.getLogger(__name__)

_TIMEOUT = 8.0
_MAX_BODY = 5 * 1024 * 1024  # 5 MB
# Listing sites serve bot-detection pages to default client signatures.
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


class PageFetcher:
    def __init__(self, client: httpx.AsyncClient, timeout: float = _TIMEOUT):
        self._client = client
        self._timeout = timeout

    async def fetch(self, url: str) -> FetchResult:
        """GET a listing page. Never raises; failures come back in ``error``."""
        try:
            async with self._client.stream(
                "GET",
                url,
                follow_redirects=True,
                timeout=self._timeout,
                headers=BROWSER_HEADERS,
            ) as resp:
                if not resp.is_success:
                    logger.warning("HTTP %d fetching %s", resp.status_code, url)
                    return FetchResult(
                        error=f"HTTP error {resp.status_code}", status_code=resp.status_code
                    )

                body = bytearray()
                async for chunk in resp.aiter_bytes():
                    body.extend(chunk)
                    if len(body) > _MAX_BODY:
                        logger.warning("Listing page from %s exceeds %d bytes", url, _MAX_BODY)
                        return FetchResult(error="Response too large", status_code=resp.status_code)
                encoding = resp.encoding or "utf-8"
        except httpx.HTTPError as exc:
            logger.warning("Network error fetching %s: %s", url, exc)
            return FetchResult(error=f"Network error: {exc.__class__.__name__}")

        html = bytes(body).decode(encoding, errors="replace")
        if not html.strip():
            logger.warning("Empty body from %s", url)
            return FetchResult(error="Empty response body", status_code=resp.status_code)

        return FetchResult(html=html, status_code=resp.status_code)
