"""Post-cook feedback: rate the planned meal, optionally keep it as a saved recipe."""

import logging

from cookin.conversation.states import ConversationState as S
from cookin.conversation.turn import Turn
from cookin.core import meal_plan, recipes

logger = logging.getLogger(__name__)

SAVE_MIN_RATING = 3


def _rating(value):
    try:
        rating = int(round(float(value)))
    except (TypeError, ValueError):
        return None
    return rating if 1 <= rating <= 5 else None


def _save_or_update(user_id: str, meal, rating: int, notes: str) -> None:
    existing = recipes.find_by_name(user_id, meal.recipe_name)
    if existing:
        recipes.update_rating(existing.id, rating, notes)
        recipes.increment_times_cooked(existing.id)
        return
    modified = None
    if notes:
        modified = f"{meal.steps or ''}\n\nUser modifications: {notes}"
    recipe_id = recipes.save(
        user_id,
        meal.recipe_name,
        original_steps=meal.steps or "",
        ingredients=meal.ingredients,
        modified_steps=modified,
        cook_time_min=meal.cook_time_min,
        rating=rating,
        notes=notes,
    )
    recipes.increment_times_cooked(recipe_id)
    logger.info("Saved recipe %r for %s", meal.recipe_name, user_id)


async def _skipped(turn: Turn, parsed, meal) -> str:
    if meal:
        meal_plan.update_meal_status(meal.id, "skipped")
    if parsed.intent != "cook_skipped":
        return "No worries, there's always next time!"
    return parsed.reply


async def _feedback(turn: Turn, parsed, meal) -> str:
    rating = _rating(parsed.data.get("rating"))
    notes = parsed.data.get("notes") or None
    if notes is not None:
        notes = str(notes)
    if meal:
        meal_plan.update_meal_status(meal.id, "cooked", rating)
        if notes:
            meal_plan.update_meal_comment(meal.id, notes)
        if parsed.data.get("want_to_save") and rating is not None and rating >= SAVE_MIN_RATING:
            _save_or_update(turn.user.id, meal, rating, notes)
    return parsed.reply or "Thanks for the feedback!"


INTENT_HANDLERS = {
    "cook_feedback": _feedback,
    "cook_skipped": _skipped,
}


async def handle(turn: Turn, text: str) -> str:
    meal_id = turn.user.state_context.get("planned_meal_id")
    meal = meal_plan.get_planned_meal(meal_id) if meal_id else None

    parsed = await turn.classify(text, S.AWAITING_COOK_FEEDBACK)
    if parsed.intent == "unknown" and text.strip().lower() in ("skip", "skipped", "skip tonight"):
        handler = _skipped
    else:
        handler = INTENT_HANDLERS.get(parsed.intent, _feedback)
    reply = await handler(turn, parsed, meal)
    turn.move_to(S.IDLE)
    return reply
