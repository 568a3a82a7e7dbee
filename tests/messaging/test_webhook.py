"""Tests for the best-effort message webhook."""

import json
from unittest.mock import patch

import httpx
import pytest

from messaging.webhook import WebhookNotifier


def _notifier(handler) -> WebhookNotifier:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WebhookNotifier("https://hooks.example.com/wa", client=client)


@pytest.mark.asyncio
async def test_post_sends_event_envelope():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200)

    notifier = _notifier(handler)
    assert await notifier.post("message", {"id": "ABC"}) is True
    assert seen == [{"event": "message", "data": {"id": "ABC"}}]
    await notifier.aclose()


@pytest.mark.asyncio
async def test_http_error_status_is_logged_not_raised():
    notifier = _notifier(lambda request: httpx.Response(500))
    assert await notifier.post("message", {}) is False
    await notifier.aclose()


@pytest.mark.asyncio
async def test_network_failure_is_contained():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    notifier = _notifier(handler)
    assert await notifier.post("message", {}) is False
    await notifier.aclose()


@pytest.mark.asyncio
async def test_notify_is_fire_and_forget():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(204)

    notifier = _notifier(handler)
    task = notifier.notify("message", {"id": "1"})
    assert not task.done()
    await notifier.drain()
    assert calls == ["/wa"]
    await notifier.aclose()


@pytest.mark.asyncio
async def test_malformed_url_is_contained():
    notifier = WebhookNotifier("http://exa mple.com:notaport/hook")
    with patch("messaging.webhook.logger") as mock_logger:
        assert await notifier.post("message", {"id": "1"}) is False
        mock_logger.warning.assert_called_once()
    await notifier.aclose()


@pytest.mark.asyncio
async def test_notify_with_malformed_url_does_not_raise():
    notifier = WebhookNotifier("http://exa mple.com:notaport/hook")
    task = notifier.notify("message", {"id": "1"})
    await notifier.drain()
    assert task.result() is False
    await notifier.aclose()
