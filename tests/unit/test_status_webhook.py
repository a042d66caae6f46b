"""Unit tests for the status-change webhook client"""

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from lease_engine.infrastructure.clients.status_webhook import StatusWebhookClient

URL = "http://hooks.test/status"
PAYLOAD = {"event": "STATUS_CHANGED", "application_id": "a1", "from": "submitted", "to": "approved_high"}


def _response(status_code: int) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request("POST", URL))


def _client() -> StatusWebhookClient:
    client = StatusWebhookClient(webhook_url=URL)
    client.backoff_base = 0
    client.max_retries = 3
    return client


def test_disabled_without_url():
    client = StatusWebhookClient(webhook_url=None)
    client.webhook_url = None

    with patch.object(httpx.AsyncClient, "post", new_callable=AsyncMock) as mock_post:
        asyncio.run(client.send_status_event(PAYLOAD))

    assert not client.enabled
    mock_post.assert_not_called()


def test_retries_server_errors_then_succeeds():
    with patch.object(httpx.AsyncClient, "post", new_callable=AsyncMock) as mock_post:
        mock_post.side_effect = [_response(503), httpx.ConnectError("refused"), _response(200)]
        asyncio.run(_client().send_status_event(PAYLOAD))

    assert mock_post.await_count == 3
    assert mock_post.call_args.kwargs["json"] == PAYLOAD


def test_client_errors_are_not_retried():
    with patch.object(httpx.AsyncClient, "post", new_callable=AsyncMock) as mock_post:
        mock_post.return_value = _response(400)
        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(_client().send_status_event(PAYLOAD))

    assert mock_post.await_count == 1


def test_gives_up_after_max_retries():
    with patch.object(httpx.AsyncClient, "post", new_callable=AsyncMock) as mock_post:
        mock_post.return_value = _response(500)
        with pytest.raises(httpx.HTTPError):
            asyncio.run(_client().send_status_event(PAYLOAD))

    assert mock_post.await_count == 3
