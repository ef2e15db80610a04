"""System prompt construction for every conversation state.

STATE_INTENTS is the contract between these prompts and the flow handlers:
every intent listed for a state is described in that state's instructions,
and the flow handling the state dispatches on exactly those intents.
Idle conversation is tool-driven, so it has no intents and gets the data
model description instead of the JSON response directive.
"""

import json
from datetime import date

from cookin.conversation.states import ConversationState as S
from cookin.core import inventory, meal_plan, recipes
from cookin.db.models import User
from cookin.tools.schema_context import DB_SCHEMA_CONTEXT

SECTION_SEPARATOR = "\n\n---\n\n"

PERSONA = """You are Cookin, a friendly and practical cooking assistant on WhatsApp. You help the user build a consistent cooking habit through meal planning, grocery lists, and cooking reminders.

Your personality:
- Warm but concise (WhatsApp messages should be short, no walls of text)
- Practical, not preachy
- Encouraging without being cheesy
- You use simple language, not chef jargon"""

RESPONSE_FORMAT = """IMPORTANT: You MUST respond with ONLY a valid JSON object (no markdown, no code fences, no extra text). The JSON must have this structure:
{
  "intent": "<string: the classified intent>",
  "reply": "<string: your WhatsApp message to the user>",
  "data": { <optional structured data depending on intent> }
}"""

STATE_INTENTS = {
    S.ONBOARDING_CUISINE: ("onboarding_response",),
    S.ONBOARDING_DIETARY: ("onboarding_response",),
    S.ONBOARDING_HOUSEHOLD: ("onboarding_response",),
    S.ONBOARDING_SKILL: ("onboarding_response",),
    S.ONBOARDING_COOK_DAYS: ("onboarding_response",),
    S.ONBOARDING_GROCERY_DAY: ("onboarding_response",),
    S.ONBOARDING_REMINDER_TIME: ("onboarding_response",),
    S.ONBOARDING_INVENTORY: ("onboarding_response",),
    S.ONBOARDING_MAX_MESSAGES: ("onboarding_response",),
    S.ONBOARDING_CONFIRM: ("confirm_profile", "correct_profile"),
    S.AWAITING_INVENTORY_CONFIRM: ("inventory_confirm",),
    S.AWAITING_MEAL_PLAN_APPROVAL: ("accept_plan", "swap_meal", "reject_plan", "skip_day"),
    S.AWAITING_COOK_FEEDBACK: ("cook_feedback", "cook_skipped"),
    S.AWAITING_GROCERY_CONFIRM: ("grocery_confirm",),
    S.IDLE: (),
}

# States whose handler runs the tool loop instead of parsing a JSON envelope.
TOOL_STATES = {S.IDLE}

_ONBOARDING_INSTRUCTIONS = {
    S.ONBOARDING_CUISINE: """The user is answering: "What cuisines do you enjoy?"
Parse their response into a list of cuisines.
Intent: "onboarding_response"
Data: { "cuisines": ["Indian", "Italian"] }""",
    S.ONBOARDING_DIETARY: """The user is answering: "Any dietary restrictions or allergies?"
Parse their response into a list of restrictions, or an empty list if none.
Intent: "onboarding_response"
Data: { "dietary_restrictions": ["vegetarian"] }""",
    S.ONBOARDING_HOUSEHOLD: """The user is answering: "How many people are you cooking for?"
Parse their response into a number.
Intent: "onboarding_response"
Data: { "household_size": 2 }""",
    S.ONBOARDING_SKILL: """The user is answering: "How would you rate your cooking skills?"
Classify as one of: beginner, intermediate, advanced.
Intent: "onboarding_response"
Data: { "skill_level": "intermediate" }""",
    S.ONBOARDING_COOK_DAYS: """The user is answering: "Which days of the week do you want to cook?"
Parse into a list of full day names (Monday, Tuesday, etc.).
Intent: "onboarding_response"
Data: { "cook_days": ["Monday", "Wednesday", "Friday"] }""",
    S.ONBOARDING_GROCERY_DAY: """The user is answering: "Which day do you usually go grocery shopping, and around what time?"
Parse into a single full day name and, if given, a 24h HH:MM time.
Intent: "onboarding_response"
Data: { "grocery_day": "Saturday", "grocery_time": "10:00" }""",
    S.ONBOARDING_REMINDER_TIME: """The user is answering: "What time should I remind you to start cooking?"
Parse into 24h format HH:MM. Also try to infer their timezone (IANA name) from any context clues, otherwise default to "America/Los_Angeles".
Intent: "onboarding_response"
Data: { "cook_reminder_time": "17:30", "timezone": "America/Los_Angeles" }""",
    S.ONBOARDING_INVENTORY: """The user is listing staples they have at home.
Parse into a list of items with an optional category. If they have nothing to add, return an empty list.
Intent: "onboarding_response"
Data: { "items": [{ "name": "rice", "category": "pantry" }, { "name": "olive oil", "category": "pantry" }] }""",
    S.ONBOARDING_MAX_MESSAGES: """The user is answering: "How many messages from me per day is okay?"
Parse into a number (default 3 if unclear).
Intent: "onboarding_response"
Data: { "max_messages_per_day": 3 }""",
}


def _confirm_instructions(context: dict) -> str:
    return """The user was just shown their profile summary and asked to confirm.
Determine if they're confirming (yes/looks good/correct) or want to change something.
If confirming: intent "confirm_profile", reply with a welcome message.
If changing: intent "correct_profile", data = { "field": "<field name>", "value": <new value> }.
Valid field names: name, cuisine_preferences, dietary_restrictions, household_size, skill_level, cook_days, grocery_day, grocery_time, cook_reminder_time, timezone, max_messages_per_day.
List fields take a JSON list, numbers a JSON number, times "HH:MM"."""


def _inventory_confirm_instructions(user: User, context: dict) -> str:
    checklist_ids = context.get("inventory_checklist") or []
    by_id = {item.id: item for item in inventory.get_all(user.id)}
    lines = []
    for i, item_id in enumerate(checklist_ids):
        item = by_id.get(item_id)
        lines.append(f"{i + 1}. {item.name if item else '(removed item)'}")
    checklist = "\n".join(lines) or "(empty)"
    return f"""The user was sent a numbered inventory checklist and asked to reply with the numbers of items they still have.
The checklist was:
{checklist}

Parse their response. They might say:
- A list of numbers: "1,2,3,5" or "1 2 3 5"
- "all": they have everything
- "none": they have nothing
- Natural language: "I have everything except the spinach"

Intent: "inventory_confirm"
Data: {{ "keep_indices": [0, 1, 2, 4] }} (zero-based indices of items to KEEP)
If "all": keep_indices should include all indices.
If "none": keep_indices should be an empty list."""


def _meal_plan_approval_instructions(context: dict) -> str:
    pending = context.get("pending_plan") or {}
    return f"""The user was sent a proposed meal plan and asked if they want to swap anything.
Pending plan: {json.dumps(pending)}

Possible intents:
- "accept_plan": they approve (e.g. "looks good", "yes", "perfect")
- "swap_meal": they want to replace one or more meals.
  Data: {{ "swaps": [{{ "day": "Monday", "meal_type": "dinner" }}], "reason": "something quicker" }}
  Leave out meal_type to replace every meal on that day.
- "reject_plan": they want entirely new options (e.g. "give me new options", "try again")
- "skip_day": they want to skip a day this week. Data: {{ "day": "Friday" }}"""


def _cook_feedback_instructions(context: dict) -> str:
    meal = None
    if context.get("planned_meal_id"):
        meal = meal_plan.get_planned_meal(context["planned_meal_id"])
    meal_name = meal.recipe_name if meal else "tonight's meal"
    return f"""The user was reminded to cook {meal_name} and asked how it went.
Parse their response for a rating (1-5) and any notes/modifications.

Intent: "cook_feedback"
Data: {{
  "rating": 4,
  "notes": "Used yogurt instead of cream",
  "want_to_save": true
}}
want_to_save: infer from their enthusiasm (true if rating >= 4 or they say "save this").

If they didn't cook or want to skip tonight: intent "cook_skipped", no data needed."""


_GROCERY_CONFIRM_INSTRUCTIONS = """The user was asked if they got everything on the grocery list.
Parse what they bought.

Intent: "grocery_confirm"
Data: {
  "got_everything": true,
  "bought_items": [{ "name": "chicken", "quantity": "500g" }],
  "missing_items": ["cream"]
}"""

_IDLE_INSTRUCTIONS = """The user is sending a free-form message. Help them with whatever they need.

Use the tools you were given to look up or change their data: recipes, the current meal plan, inventory, preferences, schedule and message frequency. Call a tool instead of guessing whenever the answer depends on their data, and only claim a change was made after the tool reports success.
For a new or fresh weekly plan use generate_meal_plan and pass its reply on to the user.
For general cooking questions or greetings, just answer.

Reply in plain text suitable for WhatsApp (no JSON)."""


def state_instructions(user: User, state: S, context: dict) -> str:
    """Return the task instructions for state. Unknown states fall back to idle."""
    if state in _ONBOARDING_INSTRUCTIONS:
        return _ONBOARDING_INSTRUCTIONS[state]
    if state == S.ONBOARDING_CONFIRM:
        return _confirm_instructions(context)
    if state == S.AWAITING_INVENTORY_CONFIRM:
        return _inventory_confirm_instructions(user, context)
    if state == S.AWAITING_MEAL_PLAN_APPROVAL:
        return _meal_plan_approval_instructions(context)
    if state == S.AWAITING_COOK_FEEDBACK:
        return _cook_feedback_instructions(context)
    if state == S.AWAITING_GROCERY_CONFIRM:
        return _GROCERY_CONFIRM_INSTRUCTIONS
    return _IDLE_INSTRUCTIONS


def profile_section(user: User) -> str:
    return f"""## User Profile
Name: {user.name or 'Unknown'}
Cuisines: {', '.join(user.cuisine_preferences) or 'Not set'}
Dietary restrictions: {', '.join(user.dietary_restrictions) or 'None'}
Household size: {user.household_size}
Skill level: {user.skill_level}
Cook days: {', '.join(user.cook_days) or 'Not set'}
Grocery day: {user.grocery_day or 'Not set'} at {user.grocery_time}
Cook reminder time: {user.cook_reminder_time}
Timezone: {user.timezone}
Max messages per day: {user.max_messages_per_day}"""


def inventory_section(user: User) -> str:
    items = inventory.get_all(user.id)
    if not items:
        return ""
    lines = []
    for item in items:
        line = f"- {item.name}"
        if item.quantity:
            line += f" ({item.quantity})"
        if item.is_staple:
            line += " [staple]"
        lines.append(line)
    return "## Current Kitchen Inventory\n" + "\n".join(lines)


def plan_section(user: User, today: date = None) -> str:
    plan = meal_plan.get_current_plan(user.id, today)
    if not plan or not plan.meals:
        return ""
    lines = []
    for m in plan.meals:
        line = f"- {m.day} {m.meal_type}: {m.recipe_name}"
        if m.cook_time_min:
            line += f" ({m.cook_time_min} min)"
        line += f" - {m.status}"
        if m.rating:
            line += f", rated {m.rating}/5"
        lines.append(line)
    return f"## This Week's Meal Plan ({plan.status})\n" + "\n".join(lines)


def recipes_section(user: User, limit: int = 10) -> str:
    saved = recipes.get_all(user.id)
    if not saved:
        return ""
    lines = [
        f"- {r.name} ({r.cuisine or 'unknown'}, {r.cook_time_min or '?'} min, "
        f"rating: {r.rating or 'unrated'}, cooked {r.times_cooked}x)"
        for r in saved[:limit]
    ]
    return f"## Saved Recipes ({len(saved)} total)\n" + "\n".join(lines)


_INVENTORY_STATES = {S.IDLE, S.AWAITING_MEAL_PLAN_APPROVAL}
_PLAN_STATES = {S.IDLE, S.AWAITING_COOK_FEEDBACK}
_RECIPE_STATES = {S.IDLE, S.AWAITING_MEAL_PLAN_APPROVAL}


def build_system_prompt(user: User, state: S, context: dict = None, today: date = None) -> str:
    """Compose persona, task instructions, profile and state-gated context sections."""
    context = context or {}
    parts = [PERSONA, "## Current Task\n" + state_instructions(user, state, context)]

    if state != S.NEW:
        parts.append(profile_section(user))
    if state in _INVENTORY_STATES:
        parts.append(inventory_section(user))
    if state in _PLAN_STATES:
        parts.append(plan_section(user, today))
    if state in _RECIPE_STATES:
        parts.append(recipes_section(user))

    if state in TOOL_STATES:
        parts.append(DB_SCHEMA_CONTEXT)
    else:
        parts.append(RESPONSE_FORMAT)

    return SECTION_SEPARATOR.join(p for p in parts if p)


def build_meal_plan_prompt(user: User) -> str:
    """Prompt for generating (or partly regenerating) a weekly plan."""
    parts = [PERSONA]
    parts.append(f"""## Task: Generate a Weekly Meal Plan

Generate breakfast, lunch and dinner for each of the following cook days: {', '.join(user.cook_days) or 'any three days'}

Requirements:
- Cuisine preferences: {', '.join(user.cuisine_preferences) or 'any'}
- Dietary restrictions: {', '.join(user.dietary_restrictions) or 'none'}
- Household size: {user.household_size} servings
- Skill level: {user.skill_level}
- No repeats within the week
- Include variety across cuisines
- Each meal should be achievable for a {user.skill_level} cook""")

    items = inventory.get_all(user.id)
    if items:
        listed = ", ".join(f"{i.name} ({i.quantity})" if i.quantity else i.name for i in items)
        parts.append(
            f"## Available Ingredients\n{listed}\n\n"
            "Try to incorporate these ingredients where possible to minimize grocery shopping."
        )

    favorites = [r for r in recipes.get_all(user.id) if (r.rating or 0) >= 4]
    if favorites:
        lines = [
            f"- {r.name} ({r.cuisine or 'unknown'}, {r.cook_time_min or '?'} min, rated {r.rating}/5, "
            f"last cooked: {r.last_cooked or 'never'})"
            for r in favorites
        ]
        parts.append("## User's Favorite Recipes (consider re-suggesting 1-2 of these)\n" + "\n".join(lines))

    parts.append("""## Response Format
Respond with ONLY a valid JSON object:
{
  "intent": "meal_plan",
  "reply": "<formatted meal plan message to send to the user>",
  "data": {
    "meals": [
      {
        "day": "Monday",
        "meal_type": "dinner",
        "recipe_name": "Chicken tikka masala",
        "recipe_steps": "1. Marinate chicken...\\n2. Sear chicken...\\n3. Add sauce...\\n4. Serve over rice",
        "ingredients": [
          { "name": "chicken thigh", "qty": "500", "unit": "g" },
          { "name": "tikka paste", "qty": "2", "unit": "tbsp" }
        ],
        "cook_time_min": 45
      }
    ]
  }
}

The "reply" should be a short WhatsApp message listing the plan by day and ending with "Want to swap anything?".""")

    return SECTION_SEPARATOR.join(parts)


def build_grocery_list_prompt(user: User, meals: list) -> str:
    """Prompt for turning pending planned meals into a grocery list, minus current inventory."""
    meal_lines = []
    for m in meals:
        ingredients = ", ".join(
            " ".join(str(p) for p in (i.get("qty"), i.get("unit"), i.get("name")) if p)
            for i in m.ingredients
        )
        meal_lines.append(f"- {m.recipe_name}: {ingredients}")
    items = inventory.get_all(user.id)
    inventory_lines = "\n".join(
        f"- {i.name}" + (f" ({i.quantity})" if i.quantity else "") for i in items
    ) or "Empty"

    return f"""{PERSONA}

## Task: Generate a Grocery List

Based on the following meals and current inventory, generate a grocery list of items the user needs to buy for {user.household_size} people.

### Planned Meals
{chr(10).join(meal_lines) or 'None'}

### Current Inventory
{inventory_lines}

### Instructions
- Subtract what the user already has from what they need
- Group items by store section: Produce, Protein, Dairy, Pantry, Spices, Other
- Combine duplicate ingredients across meals (add quantities)

Respond with ONLY a valid JSON object:
{{
  "intent": "grocery_list",
  "reply": "<formatted grocery list message for WhatsApp, grouped by section>",
  "data": {{
    "items": [
      {{ "name": "chicken thigh", "qty": "500", "unit": "g", "section": "Protein" }}
    ]
  }}
}}"""
