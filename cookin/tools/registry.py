"""Tool catalogue for idle conversation.

build_tools(turn) returns every tool with a handler bound to the turn's user.
Handlers return JSON strings; expected failures (not found, invalid value,
limits) are reported as {"success": false, "error": ...} payloads.
"""

import json
import logging
from dataclasses import dataclass

from cookin.conversation import meal_plan as meal_plan_flow
from cookin.conversation.turn import Turn
from cookin.core import inventory, meal_plan, recipes, users
from cookin.core.recipes import DuplicateRecipeError
from cookin.core.users import InvalidFieldError
from cookin.llm.gateway import ToolSpec
from cookin.tools.executor import ToolHandler

logger = logging.getLogger(__name__)

MAX_PLANS_PER_DAY = 3

_INGREDIENTS_SCHEMA = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "name": {"type": "string"},
            "qty": {"type": "string"},
            "unit": {"type": "string"},
        },
        "required": ["name"],
    },
}


@dataclass
class Tool:
    spec: ToolSpec
    handler: ToolHandler


def _ok(**payload) -> str:
    return json.dumps({"success": True, **payload})


def _fail(error: str, **payload) -> str:
    return json.dumps({"success": False, "error": error, **payload})


def _recipe_summary(r) -> dict:
    return {
        "id": r.id,
        "name": r.name,
        "cuisine": r.cuisine,
        "cook_time_min": r.cook_time_min,
        "rating": r.rating,
        "times_cooked": r.times_cooked,
        "is_favorite": r.is_favorite,
    }


def build_tools(turn: Turn) -> list[Tool]:
    user_id = turn.user.id

    async def get_saved_recipes(args: dict) -> str:
        saved = recipes.get_all(user_id)
        if args.get("filter"):
            f = str(args["filter"]).lower()
            saved = [r for r in saved if f in (r.cuisine or "").lower() or f in r.name.lower()]
        if args.get("favorites_only"):
            saved = [r for r in saved if r.is_favorite]
        return json.dumps({"count": len(saved), "recipes": [_recipe_summary(r) for r in saved[:20]]})

    async def find_recipe(args: dict) -> str:
        r = recipes.find_by_name(user_id, str(args.get("recipe_name") or ""))
        if not r:
            return json.dumps({"found": False})
        return json.dumps({
            "found": True,
            "recipe": {
                **_recipe_summary(r),
                "steps": r.modified_steps or r.original_steps,
                "ingredients": r.ingredients,
                "notes": r.notes,
                "last_cooked": r.last_cooked,
            },
        })

    async def save_recipe(args: dict) -> str:
        try:
            recipe_id = recipes.save(
                user_id,
                str(args.get("recipe_name") or ""),
                original_steps=args.get("recipe_steps"),
                ingredients=args.get("ingredients") or [],
                cook_time_min=args.get("cook_time_min"),
                cuisine=args.get("cuisine"),
            )
        except DuplicateRecipeError:
            existing = recipes.find_by_name(user_id, str(args.get("recipe_name")))
            return _fail("Recipe already exists", existing_id=existing.id if existing else None)
        except ValueError as e:
            return _fail(str(e))
        return _ok(id=recipe_id)

    async def rate_recipe(args: dict) -> str:
        r = recipes.find_by_name(user_id, str(args.get("recipe_name") or ""))
        if not r:
            return _fail("Recipe not found")
        try:
            rating = int(args.get("rating"))
            recipes.update_rating(r.id, rating, args.get("notes"))
        except (TypeError, ValueError) as e:
            return _fail(f"Invalid rating: {e}")
        return _ok(recipe=r.name, rating=rating)

    async def modify_recipe(args: dict) -> str:
        r = recipes.find_by_name(user_id, str(args.get("recipe_name") or ""))
        if not r:
            return _fail("Recipe not found")
        modification = str(args.get("modification") or "").strip()
        if not modification:
            return _fail("No modification provided")
        base = r.modified_steps or r.original_steps or ""
        recipes.update_modifications(r.id, f"{base}\n\nUser modifications: {modification}".strip())
        return _ok(recipe=r.name)

    async def get_current_meal_plan(args: dict) -> str:
        plan = meal_plan.get_current_plan(user_id)
        if not plan:
            return json.dumps({"has_plan": False})
        return json.dumps({
            "has_plan": True,
            "week_start": plan.week_start,
            "status": plan.status,
            "meals": [
                {
                    "day": m.day,
                    "meal_type": m.meal_type,
                    "recipe_name": m.recipe_name,
                    "cook_time_min": m.cook_time_min,
                    "status": m.status,
                    "rating": m.rating,
                }
                for m in plan.meals
            ],
        })

    def _update(args: dict, allowed: tuple) -> str:
        fields = {k: args[k] for k in allowed if args.get(k) not in (None, "", [])}
        if not fields:
            return _fail("No fields provided")
        try:
            updated = users.update_user(user_id, fields)
        except InvalidFieldError as e:
            return _fail(str(e))
        turn.user = updated
        if turn.scheduler is not None and any(k in users.SCHEDULE_FIELDS for k in fields):
            turn.scheduler.schedule_user(updated)
        return _ok(updated=sorted(fields))

    async def update_preferences(args: dict) -> str:
        return _update(args, ("name", "cuisine_preferences", "dietary_restrictions", "household_size", "skill_level"))

    async def update_schedule(args: dict) -> str:
        return _update(args, ("cook_days", "grocery_day", "grocery_time", "cook_reminder_time", "timezone"))

    async def update_message_frequency(args: dict) -> str:
        return _update(args, ("max_messages_per_day",))

    async def get_inventory(args: dict) -> str:
        items = inventory.get_all(user_id)
        return json.dumps({
            "count": len(items),
            "items": [
                {"name": i.name, "quantity": i.quantity, "category": i.category, "is_staple": i.is_staple}
                for i in items
            ],
        })

    async def update_inventory(args: dict) -> str:
        add = [i for i in args.get("add") or [] if isinstance(i, dict)]
        remove = [str(n) for n in args.get("remove") or [] if str(n).strip()]
        if not add and not remove:
            return _fail("Nothing to add or remove")
        added = inventory.add_items(user_id, add)
        for name in remove:
            inventory.remove_item(user_id, name)
        return _ok(added=added, removed=len(remove))

    async def log_meal(args: dict) -> str:
        name = str(args.get("recipe_name") or "").strip()
        if not name:
            return _fail("recipe_name is required")
        r = recipes.find_by_name(user_id, name)
        if r:
            recipes.increment_times_cooked(r.id)
        return _ok(logged=name, saved_recipe=bool(r))

    async def generate_meal_plan(args: dict) -> str:
        if meal_plan.count_plans_created_today(user_id) >= MAX_PLANS_PER_DAY:
            return _fail(f"Daily limit reached ({MAX_PLANS_PER_DAY} meal plans per day). Try again tomorrow.")
        if not turn.user.cook_days:
            return _fail("No cook days set. Ask the user to set their cook days first.")
        reply = await meal_plan_flow.generate_meal_plan(turn)
        return _ok(reply=reply)

    empty = {"type": "object", "properties": {}, "required": []}
    return [
        Tool(ToolSpec("get_saved_recipes", "Get the user's saved recipes, optionally filtered by cuisine/name or favorites", {
            "type": "object",
            "properties": {
                "filter": {"type": "string", "description": "Optional cuisine or name filter"},
                "favorites_only": {"type": "boolean", "description": "Only return favorites"},
            },
            "required": [],
        }), get_saved_recipes),
        Tool(ToolSpec("find_recipe", "Find a specific saved recipe by name", {
            "type": "object",
            "properties": {"recipe_name": {"type": "string", "description": "Name of the recipe to find"}},
            "required": ["recipe_name"],
        }), find_recipe),
        Tool(ToolSpec("save_recipe", "Save a new recipe to the user's recipe collection", {
            "type": "object",
            "properties": {
                "recipe_name": {"type": "string"},
                "recipe_steps": {"type": "string", "description": "Step-by-step cooking instructions"},
                "ingredients": _INGREDIENTS_SCHEMA,
                "cook_time_min": {"type": "number"},
                "cuisine": {"type": "string"},
            },
            "required": ["recipe_name", "recipe_steps", "ingredients"],
        }), save_recipe),
        Tool(ToolSpec("rate_recipe", "Rate a saved recipe (1-5 stars) and optionally add notes", {
            "type": "object",
            "properties": {
                "recipe_name": {"type": "string", "description": "Name of the recipe to rate"},
                "rating": {"type": "number", "description": "Rating from 1 to 5"},
                "notes": {"type": "string", "description": "Optional notes about the recipe"},
            },
            "required": ["recipe_name", "rating"],
        }), rate_recipe),
        Tool(ToolSpec("modify_recipe", "Record a modification to a saved recipe", {
            "type": "object",
            "properties": {
                "recipe_name": {"type": "string"},
                "modification": {"type": "string", "description": "The modification to record"},
            },
            "required": ["recipe_name", "modification"],
        }), modify_recipe),
        Tool(ToolSpec("get_current_meal_plan", "Get the user's current weekly meal plan with all planned meals", empty),
             get_current_meal_plan),
        Tool(ToolSpec("update_preferences", "Update the user's name, cuisines, dietary restrictions, household size or skill level", {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "cuisine_preferences": {"type": "array", "items": {"type": "string"}},
                "dietary_restrictions": {"type": "array", "items": {"type": "string"}},
                "household_size": {"type": "number", "description": "Number of people cooking for"},
                "skill_level": {"type": "string", "enum": ["beginner", "intermediate", "advanced"]},
            },
            "required": [],
        }), update_preferences),
        Tool(ToolSpec("update_schedule", "Update the cooking schedule: cook days, grocery day/time, reminder time or timezone", {
            "type": "object",
            "properties": {
                "cook_days": {"type": "array", "items": {"type": "string"}, "description": 'e.g. ["Monday", "Wednesday"]'},
                "grocery_day": {"type": "string"},
                "grocery_time": {"type": "string", "description": "HH:MM"},
                "cook_reminder_time": {"type": "string", "description": "HH:MM"},
                "timezone": {"type": "string", "description": "IANA timezone, e.g. America/New_York"},
            },
            "required": [],
        }), update_schedule),
        Tool(ToolSpec("update_message_frequency", "Change how many messages per day the assistant may send", {
            "type": "object",
            "properties": {"max_messages_per_day": {"type": "number"}},
            "required": ["max_messages_per_day"],
        }), update_message_frequency),
        Tool(ToolSpec("get_inventory", "List what the user currently has in their kitchen", empty), get_inventory),
        Tool(ToolSpec("update_inventory", "Add items the user bought and remove items they ran out of", {
            "type": "object",
            "properties": {
                "add": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "name": {"type": "string"},
                            "quantity": {"type": "string"},
                            "category": {"type": "string"},
                        },
                        "required": ["name"],
                    },
                },
                "remove": {"type": "array", "items": {"type": "string"}},
            },
            "required": [],
        }), update_inventory),
        Tool(ToolSpec("log_meal", "Log that the user cooked a meal (not from the plan)", {
            "type": "object",
            "properties": {"recipe_name": {"type": "string"}},
            "required": ["recipe_name"],
        }), log_meal),
        Tool(ToolSpec(
            "generate_meal_plan",
            "Generate a new weekly meal plan based on the user's preferences. Limited to 3 per day. "
            "Use this when the user asks for a new meal plan, fresh plan, or wants to replan their week.",
            empty,
        ), generate_meal_plan),
    ]


def get_tools_for_turn(turn: Turn) -> tuple[list[ToolSpec], dict[str, ToolHandler]]:
    tools = build_tools(turn)
    return [t.spec for t in tools], {t.spec.name: t.handler for t in tools}
