"""Per-turn dispatch boundary for inbound messages.

handle_inbound() routes a message to the flow for the user's current state
and returns a TurnResult.  The flow's recorded transition is committed only
when the flow returns normally; any failure yields the fixed apology and
leaves the stored state and context exactly as they were.  Loading the user,
logging the message and committing the transition run in worker threads so the
event loop is not held by sqlite.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from cookin.conversation import cook_feedback, grocery_confirm, idle, inventory_confirm, meal_plan, onboarding
from cookin.conversation.states import ConversationState as S
from cookin.conversation.states import is_onboarding, parse_state
from cookin.conversation.turn import Turn
from cookin.core import messages, users
from cookin.llm.gateway import LLMGateway, LLMProviderError, get_gateway

logger = logging.getLogger(__name__)

APOLOGY = "Sorry, I had a hiccup processing that. Could you try again?"
EMPTY_REPLY_FALLBACK = "Sorry, I didn't catch that. Could you say it another way?"

FAILURE_PROVIDER = "provider"
FAILURE_INTERNAL = "internal"

OPERATIONAL_HANDLERS = {
    S.AWAITING_INVENTORY_CONFIRM: inventory_confirm.handle,
    S.AWAITING_MEAL_PLAN_APPROVAL: meal_plan.handle,
    S.AWAITING_COOK_FEEDBACK: cook_feedback.handle,
    S.AWAITING_GROCERY_CONFIRM: grocery_confirm.handle,
    S.IDLE: idle.handle,
}


@dataclass
class TurnResult:
    reply: str
    state: str
    context: dict = field(default_factory=dict)
    failure: Optional[str] = None  # FAILURE_PROVIDER, FAILURE_INTERNAL or None

    @property
    def ok(self) -> bool:
        return self.failure is None


def route(state_value: str):
    """Return the flow handler for a stored state. Unrecognized states go to idle."""
    state = parse_state(state_value)
    if state is None:
        return idle.handle
    if is_onboarding(state):
        return onboarding.handle
    return OPERATIONAL_HANDLERS.get(state, idle.handle)


async def commit(turn: Turn) -> TurnResult:
    """Persist the turn's recorded transition (if any) and return the resulting state."""
    previous = turn.user.conversation_state
    if turn.transition is not None:
        await asyncio.to_thread(users.set_conversation_state, turn.user.id, turn.transition.state, turn.transition.context)
        if is_onboarding(previous) and not is_onboarding(turn.transition.state) and turn.scheduler is not None:
            turn.scheduler.schedule_user(await asyncio.to_thread(users.get, turn.user.id))
        return TurnResult(reply="", state=turn.transition.state, context=turn.transition.context)
    return TurnResult(reply="", state=previous, context=turn.user.state_context)


async def run_turn(turn: Turn, flow, text: str) -> TurnResult:
    """Run one flow call inside the failure boundary."""
    try:
        reply = await flow(turn, text)
    except LLMProviderError:
        logger.exception("LLM provider failure for %s in state %s", turn.user.id, turn.user.conversation_state)
        return TurnResult(APOLOGY, turn.user.conversation_state, turn.user.state_context, FAILURE_PROVIDER)
    except Exception:
        logger.exception("Error processing message from %s in state %s", turn.user.id, turn.user.conversation_state)
        return TurnResult(APOLOGY, turn.user.conversation_state, turn.user.state_context, FAILURE_INTERNAL)

    result = await commit(turn)
    result.reply = reply if reply and reply.strip() else EMPTY_REPLY_FALLBACK
    return result


def _gateway_or_none(gateway: Optional[LLMGateway]) -> Optional[LLMGateway]:
    if gateway is not None:
        return gateway
    try:
        return get_gateway()
    except LLMProviderError:
        logger.exception("LLM gateway is not configured")
        return None


async def handle_inbound(user_id: str, text: str, gateway: LLMGateway = None, scheduler=None) -> TurnResult:
    """Process one inbound message and return the reply for the transport to deliver."""
    user = await asyncio.to_thread(users.get_or_create, user_id)
    await asyncio.to_thread(messages.log_message, user_id, messages.INBOUND, text)

    gateway = _gateway_or_none(gateway)
    if gateway is None:
        return TurnResult(APOLOGY, user.conversation_state, user.state_context, FAILURE_PROVIDER)

    turn = Turn(user=user, gateway=gateway, scheduler=scheduler)
    return await run_turn(turn, route(user.conversation_state), text)


async def _follow_up_flow(turn: Turn, text: str) -> str:
    reply = await meal_plan.generate_meal_plan(turn)
    if turn.transition is None:
        turn.move_to(S.IDLE)
    return reply


async def run_follow_up(user_id: str, gateway: LLMGateway = None, scheduler=None) -> Optional[TurnResult]:
    """Generate the meal plan a previous turn asked for via trigger_meal_plan.

    Returns None when there is nothing to do.
    """
    user = await asyncio.to_thread(users.get, user_id)
    if user is None or user.conversation_state != S.IDLE.value or not user.state_context.get("trigger_meal_plan"):
        return None

    gateway = _gateway_or_none(gateway)
    if gateway is None:
        return TurnResult(APOLOGY, user.conversation_state, user.state_context, FAILURE_PROVIDER)

    turn = Turn(user=user, gateway=gateway, scheduler=scheduler)
    return await run_turn(turn, _follow_up_flow, "")
