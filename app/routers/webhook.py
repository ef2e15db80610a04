"""Twilio WhatsApp webhook.

Twilio gets an empty TwiML response straight away; the turn runs as a
background task and its replies go out through the REST sender.
"""

import logging
from collections import OrderedDict

from fastapi import APIRouter, BackgroundTasks, Form, Request
from fastapi.responses import Response

from app.delivery import converse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhook"])

EMPTY_TWIML = "<Response></Response>"
WHATSAPP_PREFIX = "whatsapp:"


class RecentIds:
    """Bounded set of recently seen message ids, oldest evicted first."""

    def __init__(self, maxlen: int = 1000):
        self.maxlen = maxlen
        self._ids = OrderedDict()

    def seen(self, message_id: str) -> bool:
        """Record message_id; True if it was already recorded."""
        if message_id in self._ids:
            return True
        self._ids[message_id] = None
        if len(self._ids) > self.maxlen:
            self._ids.popitem(last=False)
        return False


processed = RecentIds()


async def _process(sender: str, text: str, request: Request) -> None:
    try:
        await converse(sender, text, request.app.state.sender, request.app.state.scheduler)
    except Exception:
        logger.exception("Error handling message from %s", sender)


@router.post("/webhook")
async def receive_whatsapp(
    request: Request,
    background_tasks: BackgroundTasks,
    From: str = Form(""),
    Body: str = Form(""),
    MessageSid: str = Form(""),
):
    sender = From.removeprefix(WHATSAPP_PREFIX).strip()
    text = Body.strip()
    if not (sender and text and MessageSid):
        return Response(content=EMPTY_TWIML, media_type="text/xml")
    if processed.seen(MessageSid):
        logger.info("Ignoring duplicate message %s", MessageSid)
    else:
        background_tasks.add_task(_process, sender, text, request)
    return Response(content=EMPTY_TWIML, media_type="text/xml")
