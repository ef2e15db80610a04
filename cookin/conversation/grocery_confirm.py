"""Grocery check-in: add what the user bought to inventory, close the list if complete."""

from cookin.conversation.states import ConversationState as S
from cookin.conversation.turn import Turn
from cookin.core import inventory, meal_plan


async def _grocery_confirm(turn: Turn, parsed) -> None:
    bought = [i for i in parsed.data.get("bought_items") or [] if isinstance(i, dict)]
    if bought:
        inventory.add_items(turn.user.id, bought)

    plan_id = turn.user.state_context.get("plan_id")
    if plan_id and parsed.data.get("got_everything"):
        grocery_list = meal_plan.get_grocery_list(plan_id)
        if grocery_list:
            meal_plan.fulfill_grocery_list(grocery_list.id)


INTENT_HANDLERS = {
    "grocery_confirm": _grocery_confirm,
}


async def handle(turn: Turn, text: str) -> str:
    parsed = await turn.classify(text, S.AWAITING_GROCERY_CONFIRM)
    handler = INTENT_HANDLERS.get(parsed.intent)
    if handler is not None:
        await handler(turn, parsed)
    turn.move_to(S.IDLE)
    return parsed.reply or "Got it! Your inventory is updated. Happy cooking!"
