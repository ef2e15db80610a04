"""Meal plan generation and the plan approval negotiation.

generate_meal_plan() asks the LLM for a full week, stores it as a new draft
plan and moves the user to AWAITING_MEAL_PLAN_APPROVAL.  While in that state,
handle() applies accept / swap / reject / skip intents to the draft.
"""

import logging
from typing import Optional

from cookin.conversation.parser import parse_response
from cookin.conversation.prompts import build_grocery_list_prompt, build_meal_plan_prompt
from cookin.conversation.states import ConversationState as S
from cookin.conversation.turn import Turn
from cookin.core import meal_plan
from cookin.core.users import normalize_weekday
from cookin.db.models import MEAL_TYPES, WEEKDAYS, MealPlan, PlannedMeal
from cookin.llm.gateway import ChatMessage

logger = logging.getLogger(__name__)

_MEAL_TYPE_LABELS = {"breakfast": "Breakfast", "lunch": "Lunch", "dinner": "Dinner"}


def _clean_meal(raw) -> Optional[dict]:
    """Normalize one LLM meal dict, or return None if it's unusable."""
    if not isinstance(raw, dict):
        return None
    name = str(raw.get("recipe_name") or raw.get("name") or "").strip()
    day = normalize_weekday(str(raw.get("day") or ""))
    if not name:
        return None
    meal_type = str(raw.get("meal_type") or "dinner").strip().lower()
    if meal_type not in MEAL_TYPES:
        meal_type = "dinner"
    try:
        cook_time = int(raw["cook_time_min"]) if raw.get("cook_time_min") is not None else None
    except (TypeError, ValueError):
        cook_time = None
    ingredients = raw.get("ingredients")
    if not isinstance(ingredients, list):
        ingredients = []
    return {
        "day": day,
        "meal_type": meal_type,
        "recipe_name": name,
        "steps": raw.get("recipe_steps") or raw.get("steps"),
        "ingredients": [i for i in ingredients if isinstance(i, dict)],
        "cook_time_min": cook_time,
    }


def pending_plan_summary(plan: MealPlan) -> dict:
    return {
        "meals": [
            {
                "day": m.day,
                "meal_type": m.meal_type,
                "recipe_name": m.recipe_name,
                "cook_time_min": m.cook_time_min,
            }
            for m in plan.meals
        ]
    }


def format_plan_text(plan: MealPlan) -> str:
    """Render a plan grouped by weekday, meals in breakfast/lunch/dinner order."""
    lines = []
    for day in WEEKDAYS:
        day_meals = [m for m in plan.meals if m.day == day]
        if not day_meals:
            continue
        lines.append(day)
        for m in day_meals:
            label = _MEAL_TYPE_LABELS.get(m.meal_type, m.meal_type.capitalize())
            time = f" ({m.cook_time_min} min)" if m.cook_time_min else ""
            skipped = " [skipped]" if m.status == "skipped" else ""
            lines.append(f"  {label}: {m.recipe_name}{time}{skipped}")
        lines.append("")
    return "\n".join(lines).strip()


async def generate_meal_plan(turn: Turn) -> str:
    """Generate a fresh weekly plan for turn.user and move them to plan approval.

    If the LLM returns no usable meals nothing is stored and the state is left alone.
    """
    user = turn.user
    response = await turn.gateway.chat([
        ChatMessage(role="system", content=build_meal_plan_prompt(user)),
        ChatMessage(role="user", content="Generate my meal plan for this week."),
    ])
    parsed = parse_response(response.content)
    meals = [m for m in (_clean_meal(raw) for raw in parsed.data.get("meals") or []) if m and m["day"]]
    if not meals:
        logger.warning("Meal plan generation for %s returned no meals", user.id)
        if parsed.intent == "unknown":
            return "I had trouble generating a meal plan. Could you try asking again?"
        return parsed.reply

    plan_id = meal_plan.create_plan(user.id)
    for meal in meals:
        meal_plan.add_meal(plan_id, **meal)
    plan = meal_plan.get_plan(plan_id)
    logger.info("Created meal plan %s for %s with %d meals", plan_id, user.id, len(meals))

    turn.move_to(S.AWAITING_MEAL_PLAN_APPROVAL, {
        "plan_id": plan_id,
        "pending_plan": pending_plan_summary(plan),
    })
    if parsed.reply.lstrip().startswith("{"):
        return f"Here's your plan for this week:\n\n{format_plan_text(plan)}\n\nWant to swap anything?"
    return parsed.reply


async def generate_grocery_list(turn: Turn, plan: MealPlan) -> str:
    """Build and store the grocery list for the plan's pending meals. Returns the list message."""
    pending = [m for m in plan.meals if m.status == "pending"]
    response = await turn.gateway.chat([
        ChatMessage(role="system", content=build_grocery_list_prompt(turn.user, pending)),
        ChatMessage(role="user", content="Generate my grocery list."),
    ])
    parsed = parse_response(response.content)
    items = [i for i in parsed.data.get("items") or [] if isinstance(i, dict) and i.get("name")]
    meal_plan.create_grocery_list(plan.id, items)
    if parsed.intent == "unknown" and not items:
        return parsed.reply or "Could not generate grocery list."
    return parsed.reply


def _requested_swaps(data: dict) -> list[tuple[str, str]]:
    """Return (day, meal_type or None) pairs from either the swaps list or the day/days keys."""
    raw = data.get("swaps")
    if not isinstance(raw, list):
        days = data.get("days")
        if not isinstance(days, list):
            days = [data["day"]] if data.get("day") else []
        raw = [{"day": d, "meal_type": data.get("meal_type")} for d in days]

    swaps = []
    for entry in raw:
        if isinstance(entry, str):
            entry = {"day": entry}
        if not isinstance(entry, dict):
            continue
        day = normalize_weekday(str(entry.get("day") or ""))
        if not day:
            continue
        meal_type = str(entry.get("meal_type") or "").strip().lower() or None
        if meal_type not in MEAL_TYPES:
            meal_type = None
        if (day, meal_type) not in swaps:
            swaps.append((day, meal_type))
    return swaps


async def _pick_replacements(turn: Turn, plan: MealPlan, day: str, meal_type: Optional[str], reason: str,
                             taken: set) -> list[tuple[PlannedMeal, dict]]:
    """Ask the LLM for replacements of one slot. Returns (old meal, new meal) pairs.

    Nothing is written here.  Meals without a usable candidate are left out of
    the result and stay in the plan.  LLMProviderError propagates so the turn
    fails as a whole.
    """
    slot = [m for m in plan.meals if m.day == day and (meal_type is None or m.meal_type == meal_type)]
    if not slot:
        logger.info("Nothing planned for %s %s, no swap", day, meal_type or "")
        return []

    types = [t for t in MEAL_TYPES if any(m.meal_type == t for m in slot)]
    request = f"Generate replacement meals for {day}: {', '.join(types)}."
    if reason:
        request += f" Preference: {reason}."
    if taken:
        request += f" Must be different from: {', '.join(sorted(taken))}"

    response = await turn.gateway.chat([
        ChatMessage(role="system", content=build_meal_plan_prompt(turn.user)),
        ChatMessage(role="user", content=request),
    ])

    candidates = [m for m in (_clean_meal(raw) for raw in parse_response(response.content).data.get("meals") or []) if m]
    picks = []
    for old in slot:
        match = None
        for c in candidates:
            if c["recipe_name"].lower() in taken:
                continue
            if c["meal_type"] == old.meal_type or len(slot) == 1:
                match = c
                break
        if match is None:
            logger.warning("No usable replacement for %s %s, keeping %s", day, old.meal_type, old.recipe_name)
            continue
        candidates.remove(match)
        taken.add(match["recipe_name"].lower())
        picks.append((old, match))
    return picks


async def _accept(turn: Turn, parsed, plan_id: int) -> str:
    meal_plan.confirm_plan(plan_id)
    plan = meal_plan.get_plan(plan_id)
    grocery_reply = await generate_grocery_list(turn, plan)
    turn.move_to(S.IDLE)
    return f"{parsed.reply}\n\n{grocery_reply}"


async def _swap(turn: Turn, parsed, plan_id: int) -> str:
    swaps = _requested_swaps(parsed.data)
    if not swaps:
        return parsed.reply or "Which day's meal do you want to swap?"

    reason = str(parsed.data.get("reason") or "")
    plan = meal_plan.get_plan(plan_id)
    taken = {m.recipe_name.lower() for m in plan.meals}
    picks = []
    for day, meal_type in swaps:
        picks += await _pick_replacements(turn, plan, day, meal_type, reason, taken)

    replaced = set()
    for old, new in picks:
        if old.id in replaced:
            continue
        replaced.add(old.id)
        meal_plan.remove_meal(old.id)
        meal_plan.add_meal(
            plan_id,
            day=old.day,
            meal_type=old.meal_type,
            recipe_name=new["recipe_name"],
            steps=new["steps"],
            ingredients=new["ingredients"],
            cook_time_min=new["cook_time_min"],
        )

    plan = meal_plan.get_plan(plan_id)
    turn.move_to(S.AWAITING_MEAL_PLAN_APPROVAL, {
        "plan_id": plan_id,
        "pending_plan": pending_plan_summary(plan),
    })
    if not picks:
        return f"I couldn't find a good replacement, so the plan is unchanged:\n\n{format_plan_text(plan)}\n\nWant to try a different swap?"
    return f"Here's the updated plan:\n\n{format_plan_text(plan)}\n\nWant to swap anything else, or does this look good?"


async def _reject(turn: Turn, parsed, plan_id: int) -> str:
    meal_plan.clear_meals(plan_id)
    return await generate_meal_plan(turn)


async def _skip_day(turn: Turn, parsed, plan_id: int) -> str:
    day = normalize_weekday(str(parsed.data.get("day") or ""))
    if day:
        plan = meal_plan.get_plan(plan_id)
        for m in plan.meals:
            if m.day == day:
                meal_plan.update_meal_status(m.id, "skipped")
    return parsed.reply or f"Skipping {day or 'that day'} this week."


INTENT_HANDLERS = {
    "accept_plan": _accept,
    "swap_meal": _swap,
    "reject_plan": _reject,
    "skip_day": _skip_day,
}


async def handle(turn: Turn, text: str) -> str:
    plan_id = turn.user.state_context.get("plan_id")
    current = meal_plan.get_current_plan(turn.user.id)
    if not plan_id or current is None or current.id != plan_id:
        turn.move_to(S.IDLE)
        return "That meal plan has expired. Just ask whenever you'd like a new one!"

    parsed = await turn.classify(text, S.AWAITING_MEAL_PLAN_APPROVAL)
    handler = INTENT_HANDLERS.get(parsed.intent)
    if handler is None:
        return parsed.reply
    return await handler(turn, parsed, plan_id)
