"""Server-Sent Events framing for the broadcast bus."""

import asyncio
from collections.abc import AsyncIterator
import json
from typing import Any

from loguru import logger

from messaging.bus import EventBus

SSE_HEADERS = {
    "X-Accel-Buffering": "no",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def format_sse(data: dict[str, Any]) -> str:
    """Format one event as an SSE ``data:`` frame."""
    return f"data: {json.dumps(data, default=str)}\n\n"


async def event_stream(
    bus: EventBus, retry_ms: int = 10000, keepalive: float = 15.0
) -> AsyncIterator[str]:
    """
    Yield SSE frames for every event published after the stream starts.

    A comment line is sent after ``keepalive`` seconds of silence so proxies
    keep the connection open. The subscription is dropped when the consumer
    goes away (generator closed or cancelled).
    """
    subscription = bus.subscribe()
    logger.info(f"SSE observer {subscription.id} connected")
    try:
        yield f"retry: {retry_ms}\n\n"
        while True:
            try:
                event = await asyncio.wait_for(subscription.get(), timeout=keepalive)
            except TimeoutError:
                yield ": keep-alive\n\n"
                continue
            except StopAsyncIteration:
                return
            yield format_sse(event.to_dict())
    finally:
        subscription.close()
        logger.info(f"SSE observer {subscription.id} disconnected")
