import logging

import httpx

from pricedrop.exceptions.custom import SchedulerError

logger = logging.getLogger(__name__)

SCHEDULED_HEADER = "x-scheduled-function"
# A full refresh sleeps between batches, so allow it minutes rather than seconds.
_TIMEOUT = 300.0


class SchedulerService:
    def __init__(self, client: httpx.AsyncClient, refresh_url: str, token: str = ""):
        self._client = client
        self._refresh_url = refresh_url
        self._token = token

    async def trigger(self) -> dict:
        """Ask the price refresh endpoint to process every active booking."""
        headers = {"Content-Type": "application/json", SCHEDULED_HEADER: "true"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        logger.info("Scheduler triggered, calling %s", self._refresh_url)
        try:
            resp = await self._client.post(
                self._refresh_url,
                json={"processAll": True},
                headers=headers,
                timeout=_TIMEOUT,
            )
        except httpx.HTTPError as exc:
            raise SchedulerError(f"Failed to call price refresh: {exc.__class__.__name__}") from exc

        if resp.status_code >= 400:
            raise SchedulerError(
                f"Failed to call price refresh: {resp.status_code}",
                status_code=resp.status_code,
            )

        result = resp.json()
        logger.info("Price refresh result: %s", result.get("message"))
        return result
