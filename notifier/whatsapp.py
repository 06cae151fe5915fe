"""
WhatsApp Cloud API notifier.

Sends reminder texts through the Graph API `/{phone_number_id}/messages`
endpoint. Each call is bounded by the client timeout; a timeout surfaces as
NotifierError just like a rejected request.
"""

import logging
from typing import Optional

import httpx

from models.reminder import ReminderMessage
from notifier.base import Notifier, render_reminder_text
from utils.exceptions import NotifierError

logger = logging.getLogger(__name__)


class WhatsAppNotifier(Notifier):
    """Notifier backed by the WhatsApp Cloud API."""

    name = "whatsapp"

    def __init__(
        self,
        api_url: str,
        phone_number_id: str,
        access_token: str,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint = f"{api_url.rstrip('/')}/{phone_number_id}/messages"
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
            },
        )

    async def send(self, phone: str, message: ReminderMessage) -> str:
        payload = {
            "messaging_product": "whatsapp",
            # The API expects the number without the leading '+'
            "to": phone.lstrip("+"),
            "type": "text",
            "text": {"preview_url": False, "body": render_reminder_text(message)},
        }

        try:
            response = await self.client.post(self.endpoint, json=payload)
        except httpx.TimeoutException as e:
            raise NotifierError(f"WhatsApp API timeout sending to {phone}") from e
        except httpx.HTTPError as e:
            raise NotifierError(f"WhatsApp API request failed: {e}") from e

        if response.status_code >= 400:
            raise NotifierError(
                f"WhatsApp API error {response.status_code}: {response.text[:200]}"
            )

        try:
            message_id = response.json()["messages"][0]["id"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise NotifierError(f"Unexpected WhatsApp API response: {response.text[:200]}") from e

        logger.info(f"WhatsApp reminder {message_id} accepted for {phone}")
        return message_id

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
