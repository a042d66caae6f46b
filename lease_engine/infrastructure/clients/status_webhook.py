"""Status-change webhook client with exponential backoff retry logic"""

import asyncio
import logging
from typing import Any, Dict

import httpx

from lease_engine.config import settings
from lease_engine.infrastructure.observability.metrics import (
    status_webhook_failure_counter,
    status_webhook_latency_histogram,
)

logger = logging.getLogger("lease_engine.status_webhook")


class StatusWebhookClient:
    """Notifies a downstream service when an application changes status"""

    def __init__(self, webhook_url: str | None = None):
        self.webhook_url = webhook_url or settings.status_webhook_url
        self.timeout = settings.http_timeout_seconds
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def send_status_event(self, payload: Dict[str, Any]) -> None:
        """
        Post a status-change event with retry logic.

        Retry strategy:
        - Exponential backoff: base, 2*base, 4*base, ...
        - Retries on 5xx responses and network failures; 4xx fails immediately
        - Does nothing when no webhook URL is configured

        Args:
            payload: Event data, e.g. {"event": "STATUS_CHANGED", "application_id": ..., "to": ...}
        """
        if not self.enabled:
            return

        attempt = 0
        async with httpx.AsyncClient() as client:
            while attempt < self.max_retries:
                try:
                    with status_webhook_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=payload, timeout=self.timeout)
                        response.raise_for_status()
                        return

                except httpx.HTTPStatusError as e:
                    status_webhook_failure_counter.inc()
                    if e.response.status_code < 500:
                        raise
                    attempt += 1

                except httpx.RequestError:
                    status_webhook_failure_counter.inc()
                    attempt += 1

                if attempt >= self.max_retries:
                    logger.error(
                        "Status webhook delivery failed",
                        extra={"application_id": payload.get("application_id"), "attempts": attempt},
                    )
                    raise httpx.HTTPError(f"Status webhook failed after {attempt} attempts")

                backoff = self.backoff_base * (2 ** (attempt - 1))
                await asyncio.sleep(backoff)
