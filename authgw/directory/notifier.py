"""Fire-and-forget logout notification to the frontend."""

import asyncio
import logging

import httpx

logger = logging.getLogger(__name__)

NOTIFY_TIMEOUT_SECONDS = 5.0
LOGOUT_PATH = "/logout"


class FrontendNotifier:
    """Tells the frontend to drop a user's session cookie.

    Notifications run as background tasks; their outcome is only logged.
    """

    def __init__(
        self,
        frontend_url: str,
        http_client: httpx.AsyncClient,
        *,
        timeout_seconds: float = NOTIFY_TIMEOUT_SECONDS,
    ) -> None:
        self._url = f"{frontend_url.rstrip('/')}{LOGOUT_PATH}"
        self._http = http_client
        self._timeout = timeout_seconds
        self._tasks: set[asyncio.Task[None]] = set()

    def notify_logout(self, user_id: str) -> asyncio.Task[None]:
        """Schedule the notification and return immediately."""
        task = asyncio.create_task(self._send(user_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _send(self, user_id: str) -> None:
        try:
            response = await self._http.post(
                self._url,
                json={"user_id": user_id, "source": "coordinator"},
                timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning(
                "Frontend logout notification failed: %s",
                exc,
                extra={"user_id": user_id},
            )
            return
        logger.info("Frontend logout notification sent", extra={"user_id": user_id})

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def aclose(self) -> None:
        """Wait for outstanding notifications; each is bounded by its timeout."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
