"""Reminder dispatch webhook client with exponential backoff retry logic"""

import httpx
import asyncio
from typing import Optional
from installment_engine.config import settings
from installment_engine.infrastructure.observability.metrics import reminder_failure_counter


class ReminderDispatcher:
    """Hands reminders to the notification service; delivery itself happens there"""

    def __init__(
        self,
        webhook_url: str | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url or settings.notification_webhook_url
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base
        self.transport = transport

    async def dispatch(self, recipient: str, channel: str, message: str) -> bool:
        """
        Send one reminder to the notification webhook.

        Retry strategy:
        - Exponential backoff: base, 2*base, 4*base ... (base^attempt)
        - Retries on 5xx errors and network failures

        Returns:
            True once the webhook accepted the reminder, False after all retries failed
        """
        payload = {"recipient": recipient, "channel": channel, "message": message}
        attempt = 0
        async with httpx.AsyncClient(transport=self.transport) as client:
            while attempt < self.max_retries:
                try:
                    response = await client.post(
                        self.webhook_url,
                        json=payload,
                        timeout=settings.http_timeout_seconds,
                    )
                    response.raise_for_status()
                    return True

                except (httpx.HTTPStatusError, httpx.RequestError):
                    attempt += 1
                    reminder_failure_counter.inc()

                    if attempt >= self.max_retries:
                        return False

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)
        return False
