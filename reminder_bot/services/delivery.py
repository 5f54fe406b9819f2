"""Channel delivery adapters and the registry that selects between them.

A recipient address carries its channel as a tag before the first colon
(``telegram:42``, ``whatsapp:+15550001111``, ``log:dev``).  The registry
maps each tag to one adapter; it is built once at startup, and adding a
channel means registering one more adapter.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Protocol

import httpx
import telegram
from telegram.error import NetworkError, TelegramError
from telegram.request import HTTPXRequest

from reminder_bot.domain.errors import DeliveryFailure, UnknownChannel
from reminder_bot.domain.models import channel_of

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class DeliveryAdapter(Protocol):
    """Sends one message to one address; raises DeliveryFailure on failure."""

    channel: str

    async def send(self, recipient: str, message: str) -> None: ...


def address_part(recipient: str) -> str:
    """Strip the channel tag from *recipient*."""
    _, sep, rest = recipient.partition(":")
    return rest.strip() if sep else recipient.strip()


def build_telegram_bot(token: str, timeout_seconds: float) -> telegram.Bot:
    request = HTTPXRequest(connect_timeout=timeout_seconds, read_timeout=timeout_seconds)
    return telegram.Bot(token, request=request)


class TelegramAdapter:
    """Delivers through ``telegram.Bot.send_message``."""

    channel = "telegram"

    def __init__(self, bot: telegram.Bot) -> None:
        self._bot = bot

    async def send(self, recipient: str, message: str) -> None:
        chat_id = address_part(recipient)
        if not chat_id:
            raise DeliveryFailure(f"empty telegram chat id in {recipient!r}")
        try:
            await self._bot.send_message(chat_id=chat_id, text=message)
        except NetworkError as exc:
            raise DeliveryFailure(f"telegram network error: {exc}") from exc
        except TelegramError as exc:
            raise DeliveryFailure(f"telegram refused message: {exc}") from exc


class WhatsAppAdapter:
    """Delivers WhatsApp messages through the Twilio Messages REST API."""

    channel = "whatsapp"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        client: httpx.AsyncClient,
        *,
        api_base: str = TWILIO_API_BASE,
    ) -> None:
        self._url = f"{api_base}/Accounts/{account_sid}/Messages.json"
        self._auth = (account_sid, auth_token)
        self._from = _whatsapp_address(from_number)
        self._client = client

    async def send(self, recipient: str, message: str) -> None:
        data = {"From": self._from, "To": _whatsapp_address(recipient), "Body": message}
        try:
            response = await self._client.post(self._url, data=data, auth=self._auth)
        except httpx.HTTPError as exc:
            raise DeliveryFailure(f"twilio request failed: {exc}") from exc

        if response.status_code >= 300:
            raise DeliveryFailure(
                f"twilio returned HTTP {response.status_code}: {response.text[:200]}"
            )


def _whatsapp_address(number: str) -> str:
    return f"whatsapp:{address_part(number)}"


class LogAdapter:
    """Writes reminders to the log instead of a chat network."""

    channel = "log"

    def __init__(self, history: int = 100) -> None:
        # Bounded: only the most recent deliveries are kept.
        self.sent: deque[tuple[str, str]] = deque(maxlen=history)

    async def send(self, recipient: str, message: str) -> None:
        logger.info("Delivering to %s: %s", recipient, message)
        self.sent.append((recipient, message))


class AdapterRegistry:
    """Lookup table from channel tag to delivery adapter."""

    def __init__(self, adapters: list[DeliveryAdapter] | None = None) -> None:
        self._adapters: dict[str, DeliveryAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: DeliveryAdapter) -> None:
        channel = adapter.channel.lower()
        if channel in self._adapters:
            raise ValueError(f"channel {channel!r} already has an adapter")
        self._adapters[channel] = adapter

    def channels(self) -> list[str]:
        return sorted(self._adapters)

    def for_recipient(self, recipient: str) -> DeliveryAdapter:
        channel = channel_of(recipient)
        adapter = self._adapters.get(channel)
        if adapter is None:
            raise UnknownChannel(channel)
        return adapter
