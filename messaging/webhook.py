"""Outbound webhook for inbound messages.

Best effort: one POST per message, never retried, failures only logged.
"""

import asyncio
from typing import Any, Optional

import httpx
from loguru import logger


class WebhookNotifier:
    """Fire-and-forget JSON POSTs to a configured URL."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._tasks: set[asyncio.Task] = set()

    def notify(self, event: str, data: dict[str, Any]) -> asyncio.Task:
        """Schedule a POST of ``{"event": event, "data": data}`` and return at once."""
        task = asyncio.create_task(self.post(event, data))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def post(self, event: str, data: dict[str, Any]) -> bool:
        """POST one payload. Returns True on a 2xx response, never raises."""
        try:
            response = await self._client.post(
                self.url, json={"event": event, "data": data}
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"Failed webhook: {type(e).__name__}: {e}")
            return False
        if response.is_error:
            logger.warning(f"Failed webhook: HTTP {response.status_code} from {self.url}")
            return False
        return True

    async def drain(self) -> None:
        """Wait for in-flight POSTs."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        await self._client.aclose()
