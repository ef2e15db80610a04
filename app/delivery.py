"""Run a conversation turn for a transport and deliver every reply it produces."""

import logging

from cookin.conversation.handler import handle_inbound, run_follow_up

logger = logging.getLogger(__name__)


async def converse(user_id: str, text: str, sender, scheduler=None) -> list[str]:
    """Handle one inbound message, then the meal-plan follow-up if the turn asked for one.

    Replies are sent through sender (web identities are just logged) and also returned.
    """
    result = await handle_inbound(user_id, text, scheduler=scheduler)
    replies = [result.reply]
    if not await sender.send_text(user_id, result.reply):
        logger.error("Failed to deliver reply to %s", user_id)
    if not result.ok:
        return replies

    follow_up = await run_follow_up(user_id, scheduler=scheduler)
    if follow_up is not None:
        replies.append(follow_up.reply)
        if not await sender.send_text(user_id, follow_up.reply):
            logger.error("Failed to deliver meal plan to %s", user_id)
    return replies
