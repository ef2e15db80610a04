"""Outbound message delivery.

WhatsApp recipients (phone numbers) are sent through the Twilio REST API.
Web chat identities ("web:<email>") have no push channel; their messages are
written to the message log, which the chat page reads.  Every delivered chunk
is logged as an outbound message.
"""

import asyncio
import logging

import httpx

from cookin.config import get_twilio_config
from cookin.core import messages, users

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 1600
TWILIO_API = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"
WEB_PREFIX = "web:"


def split_message(text: str, limit: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split text into chunks of at most limit characters.

    Prefers paragraph breaks, then line breaks, as long as the chunk stays at
    least half the limit; otherwise cuts hard at the limit.
    """
    if len(text) <= limit:
        return [text]

    chunks = []
    remaining = text
    while len(remaining) > limit:
        split_at = remaining.rfind("\n\n", 0, limit)
        if split_at < limit // 2:
            split_at = remaining.rfind("\n", 0, limit)
        if split_at < limit // 2:
            split_at = limit
        chunks.append(remaining[:split_at].rstrip())
        remaining = remaining[split_at:].lstrip()
    if remaining:
        chunks.append(remaining)
    return chunks


def is_web_identity(recipient: str) -> bool:
    return recipient.startswith(WEB_PREFIX)


class Sender:
    """Delivers text to a user over WhatsApp or the web chat log."""

    def __init__(self, client: httpx.AsyncClient = None):
        self._client = client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=15)
        return self._client

    async def _send_whatsapp(self, to: str, body: str) -> bool:
        config = get_twilio_config()
        if not config.configured:
            logger.warning("Twilio is not configured, dropping message to %s", to)
            return False
        try:
            response = await self._http().post(
                TWILIO_API.format(sid=config.account_sid),
                auth=(config.account_sid, config.auth_token),
                data={"From": config.whatsapp_number, "To": f"whatsapp:{to}", "Body": body},
            )
        except httpx.HTTPError as e:
            logger.error("Twilio send to %s failed: %s", to, e)
            return False
        if response.status_code >= 400:
            logger.error("Twilio send error %s: %s", response.status_code, response.text)
            return False
        return True

    async def send_text(self, recipient: str, text: str, throttle: bool = False) -> bool:
        """Deliver text, chunked. With throttle, respect the user's daily message limit."""
        if throttle:
            user = await asyncio.to_thread(users.get, recipient)
            if user is not None and not await asyncio.to_thread(messages.can_send, recipient, user.max_messages_per_day):
                logger.info("Message throttled for %s", recipient)
                return False

        for chunk in split_message(text):
            if not is_web_identity(recipient) and not await self._send_whatsapp(recipient, chunk):
                return False
            await asyncio.to_thread(messages.log_message, recipient, messages.OUTBOUND, chunk)
        return True
