"""Scheduled job bodies.

Each job re-reads the user and does nothing unless the user is in the state
the job expects, so a timer never interrupts a conversation in progress.
Messages go out throttled; state only advances once the prompt was delivered.
"""

import asyncio
import logging
from datetime import datetime, timezone

from cookin.conversation import handler
from cookin.conversation.meal_plan import generate_meal_plan
from cookin.conversation.states import ConversationState as S
from cookin.conversation.turn import Turn
from cookin.core import inventory, meal_plan, users

logger = logging.getLogger(__name__)


def format_relative_date(value: str, now: datetime = None) -> str:
    now = now or datetime.now(timezone.utc)
    try:
        then = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return "a while ago"
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)
    days = (now - then).days
    if days <= 0:
        return "today"
    if days == 1:
        return "yesterday"
    return f"{days} days ago"


def format_checklist(items, now: datetime = None) -> str:
    lines = []
    for i, item in enumerate(items, start=1):
        line = f"{i}. {item.name}"
        if item.quantity:
            line += f" ({item.quantity})"
        if item.is_staple:
            line += " [staple]"
        else:
            line += f" - added {format_relative_date(item.last_updated, now)}"
        lines.append(line)
    return "\n".join(lines)


def format_cook_reminder(meal) -> str:
    ingredients = "\n".join(
        "- " + " ".join(str(part) for part in (i.get("qty"), i.get("unit"), i.get("name")) if part)
        for i in meal.ingredients
    )
    minutes = f" ({meal.cook_time_min} min)" if meal.cook_time_min else ""
    return (
        f"Time to cook! Tonight: {meal.recipe_name}{minutes}\n\n"
        f"Ingredients:\n{ingredients or '- (none listed)'}\n\n"
        f"Steps:\n{meal.steps or 'Recipe steps not available.'}\n\n"
        'Need to adjust anything? Or reply "skip" to skip tonight.'
    )


async def _idle_user(user_id: str, job: str):
    user = await asyncio.to_thread(users.get, user_id)
    if user is None:
        logger.info("Skipping %s for %s: unknown user", job, user_id)
        return None
    if user.conversation_state != S.IDLE.value:
        logger.info("Skipping %s for %s: state is %s", job, user_id, user.conversation_state)
        return None
    return user


async def trigger_meal_plan(user, sender, gateway, scheduler=None) -> None:
    turn = Turn(user=user, gateway=gateway, scheduler=scheduler)
    reply = await generate_meal_plan(turn)
    await handler.commit(turn)
    await sender.send_text(user.id, reply, throttle=True)


async def trigger_inventory_confirmation(user_id: str, sender, gateway_factory, scheduler=None) -> None:
    """Send the kitchen checklist, or plan straight away when inventory is empty."""
    user = await _idle_user(user_id, "inventory confirmation")
    if user is None:
        return

    items = await asyncio.to_thread(inventory.get_all, user_id)
    if not items:
        await trigger_meal_plan(user, sender, gateway_factory(), scheduler)
        return

    message = (
        "Before I plan this week, let me check what you have.\n\n"
        f"Here's what I think is in your kitchen:\n{format_checklist(items)}\n\n"
        'Reply with the numbers you still have, e.g. "1,2,3,5"\n'
        'Or reply "all" / "none"'
    )
    if await sender.send_text(user_id, message, throttle=True):
        await asyncio.to_thread(users.set_conversation_state, user_id, S.AWAITING_INVENTORY_CONFIRM, {
            "inventory_checklist": [i.id for i in items],
        })


async def trigger_cook_reminder(user_id: str, day: str, sender) -> None:
    user = await _idle_user(user_id, "cook reminder")
    if user is None:
        return

    meal = await asyncio.to_thread(meal_plan.get_meal_for_day, user_id, day)
    if meal is None:
        logger.info("No pending meal for %s on %s", user_id, day)
        return

    if await sender.send_text(user_id, format_cook_reminder(meal), throttle=True):
        await asyncio.to_thread(users.set_conversation_state, user_id, S.AWAITING_COOK_FEEDBACK, {"planned_meal_id": meal.id})


async def trigger_post_cook_checkin(user_id: str, sender) -> None:
    """Re-ask for feedback, only while the user still owes it."""
    user = await asyncio.to_thread(users.get, user_id)
    if user is None or user.conversation_state != S.AWAITING_COOK_FEEDBACK.value:
        logger.info("Skipping post-cook check-in for %s", user_id)
        return

    meal_id = user.state_context.get("planned_meal_id")
    meal = await asyncio.to_thread(meal_plan.get_planned_meal, meal_id) if meal_id else None
    if meal is None:
        return

    await sender.send_text(
        user_id,
        f"How did the {meal.recipe_name} turn out? Rate 1-5 or tell me what you'd change!",
        throttle=True,
    )


async def trigger_grocery_checkin(user_id: str, sender) -> None:
    user = await _idle_user(user_id, "grocery check-in")
    if user is None:
        return

    plan = await asyncio.to_thread(meal_plan.get_current_plan, user_id)
    if plan is None or plan.status != "confirmed":
        return
    grocery_list = await asyncio.to_thread(meal_plan.get_grocery_list, plan.id)
    if grocery_list is None or grocery_list.fulfilled:
        return

    message = (
        "Did you get everything on the grocery list? "
        "Tell me what you picked up (or anything you couldn't find) and I'll update your kitchen."
    )
    if await sender.send_text(user_id, message, throttle=True):
        await asyncio.to_thread(users.set_conversation_state, user_id, S.AWAITING_GROCERY_CONFIRM, {"plan_id": plan.id})
