"""Onboarding: the linear profile-collection chain ending in a confirm step.

Each step parses the answer with the LLM, stores it, and moves to the single
next state in ONBOARDING_NEXT.  If the LLM gives back nothing usable for a
step, a sensible default is stored so the chain always moves forward.  At
ONBOARDING_CONFIRM the user either affirms (onboarding ends, the first plan is
generated, scheduler jobs are registered) or corrects one field and sees the
summary again.  Affirmations match whole words only, so "y" or "good" inside a
longer word ("yesterday", "goodness") is not taken as a yes.
"""

import logging
import re

from cookin.conversation import meal_plan as meal_plan_flow
from cookin.conversation.states import ONBOARDING_NEXT
from cookin.conversation.states import ConversationState as S
from cookin.conversation.turn import Turn
from cookin.core import inventory, users
from cookin.core.users import InvalidFieldError
from cookin.llm.gateway import LLMProviderError

logger = logging.getLogger(__name__)

AFFIRMATIONS = ("yes", "yeah", "yep", "y", "looks good", "correct", "confirm", "perfect", "lgtm", "good")

CORRECTABLE_FIELDS = frozenset({
    "name", "cuisine_preferences", "dietary_restrictions", "household_size", "skill_level",
    "cook_days", "grocery_day", "grocery_time", "cook_reminder_time", "timezone", "max_messages_per_day",
})

WELCOME = """Hey there! Welcome to Cookin' 🍳

I'll help you build a cooking habit with personalized meal plans.

Let's set you up! What cuisines do you enjoy? (e.g., Indian, Italian, Mexican, Japanese - list as many as you like)"""

QUESTIONS = {
    S.ONBOARDING_DIETARY: 'Any dietary restrictions or allergies? (e.g., vegetarian, no shellfish, lactose intolerant - or just say "none")',
    S.ONBOARDING_HOUSEHOLD: "How many people are you usually cooking for?",
    S.ONBOARDING_SKILL: """How would you rate your cooking skills?
- Beginner (just starting out)
- Intermediate (comfortable with most recipes)
- Advanced (bring on the challenges)""",
    S.ONBOARDING_COOK_DAYS: "Which days of the week do you want to cook? (e.g., Mon, Wed, Fri, Sun)",
    S.ONBOARDING_GROCERY_DAY: "Which day do you usually go grocery shopping, and around what time? I'll check your kitchen and send a list that morning.",
    S.ONBOARDING_REMINDER_TIME: "What time should I remind you to start cooking? (e.g., 5:30pm, and tell me your city or timezone if you're not on Pacific time)",
    S.ONBOARDING_INVENTORY: 'What staples do you always keep at home? (e.g., rice, olive oil, eggs, garlic - or say "skip")',
    S.ONBOARDING_MAX_MESSAGES: "Last one: how many messages from me per day is okay?",
}

SETUP_FAILED = """You're all set! I had trouble generating a meal plan right now, but you can ask me anytime to create one.

You can also:
- Change your preferences
- Ask for recipe ideas"""


def is_affirmation(text: str) -> bool:
    """True if text contains one of AFFIRMATIONS as a whole word or phrase."""
    lower = text.lower().strip()
    return any(re.search(rf"\b{re.escape(word)}\b", lower) for word in AFFIRMATIONS)


def profile_summary(user) -> str:
    return f"""Name: {user.name or '-'}
Cuisines: {', '.join(user.cuisine_preferences) or 'Any'}
Restrictions: {', '.join(user.dietary_restrictions) or 'None'}
Household: {user.household_size}
Skill: {user.skill_level}
Cook days: {', '.join(user.cook_days) or 'None'}
Groceries: {user.grocery_day or 'Not set'} at {user.grocery_time}
Cook reminder: {user.cook_reminder_time} ({user.timezone})
Messages per day: {user.max_messages_per_day}"""


def _apply(turn: Turn, fields: dict) -> None:
    """Apply each field on its own so one bad value doesn't drop the rest."""
    for key, value in fields.items():
        try:
            users.update_user(turn.user.id, {key: value})
        except InvalidFieldError as e:
            logger.warning("Ignoring onboarding value for %s: %s", key, e)
    turn.user = users.get(turn.user.id)


def _advance(turn: Turn, state: S, reply: str) -> str:
    nxt = ONBOARDING_NEXT[state]
    turn.move_to(nxt)
    if nxt == S.ONBOARDING_CONFIRM:
        return f"{reply}\n\nHere's your profile:\n\n{profile_summary(turn.user)}\n\nDoes everything look right? (say \"yes\" to confirm, or tell me what to change)"
    return f"{reply}\n\n{QUESTIONS[nxt]}"


async def _cuisine(turn: Turn, text: str) -> str:
    data = (await turn.classify(text, S.ONBOARDING_CUISINE)).data
    cuisines = data.get("cuisines") if isinstance(data.get("cuisines"), list) else None
    cuisines = cuisines or [text.strip()]
    _apply(turn, {"cuisine_preferences": cuisines})
    return _advance(turn, S.ONBOARDING_CUISINE, f"Great taste! {', '.join(turn.user.cuisine_preferences)} it is.")


async def _dietary(turn: Turn, text: str) -> str:
    data = (await turn.classify(text, S.ONBOARDING_DIETARY)).data
    restrictions = data.get("dietary_restrictions")
    if not isinstance(restrictions, list):
        restrictions = []
    _apply(turn, {"dietary_restrictions": restrictions})
    if turn.user.dietary_restrictions:
        note = f"Noted: {', '.join(turn.user.dietary_restrictions)}."
    else:
        note = "No restrictions - that makes things easy!"
    return _advance(turn, S.ONBOARDING_DIETARY, note)


async def _household(turn: Turn, text: str) -> str:
    data = (await turn.classify(text, S.ONBOARDING_HOUSEHOLD)).data
    _apply(turn, {"household_size": data.get("household_size") or 1})
    return _advance(turn, S.ONBOARDING_HOUSEHOLD, f"Cooking for {turn.user.household_size}. Got it!")


async def _skill(turn: Turn, text: str) -> str:
    data = (await turn.classify(text, S.ONBOARDING_SKILL)).data
    _apply(turn, {"skill_level": data.get("skill_level") or "beginner"})
    skill = turn.user.skill_level
    return _advance(turn, S.ONBOARDING_SKILL, f"{skill.capitalize()} - I'll tailor the recipes accordingly.")


async def _cook_days(turn: Turn, text: str) -> str:
    data = (await turn.classify(text, S.ONBOARDING_COOK_DAYS)).data
    days = data.get("cook_days")
    if isinstance(days, list) and days:
        _apply(turn, {"cook_days": days})
    days_text = ", ".join(turn.user.cook_days) or "no fixed days for now"
    return _advance(turn, S.ONBOARDING_COOK_DAYS, f"You'll cook on {days_text}. Nice!")


async def _grocery_day(turn: Turn, text: str) -> str:
    data = (await turn.classify(text, S.ONBOARDING_GROCERY_DAY)).data
    fields = {}
    if data.get("grocery_day"):
        fields["grocery_day"] = data["grocery_day"]
    if data.get("grocery_time"):
        fields["grocery_time"] = data["grocery_time"]
    _apply(turn, fields)
    if turn.user.grocery_day:
        reply = f"Groceries on {turn.user.grocery_day} around {turn.user.grocery_time}."
    else:
        reply = "No worries, we can set a grocery day later."
    return _advance(turn, S.ONBOARDING_GROCERY_DAY, reply)


async def _reminder_time(turn: Turn, text: str) -> str:
    data = (await turn.classify(text, S.ONBOARDING_REMINDER_TIME)).data
    fields = {}
    if data.get("cook_reminder_time"):
        fields["cook_reminder_time"] = data["cook_reminder_time"]
    if data.get("timezone"):
        fields["timezone"] = data["timezone"]
    _apply(turn, fields)
    return _advance(
        turn,
        S.ONBOARDING_REMINDER_TIME,
        f"I'll nudge you at {turn.user.cook_reminder_time} ({turn.user.timezone}) on cook days.",
    )


async def _inventory(turn: Turn, text: str) -> str:
    data = (await turn.classify(text, S.ONBOARDING_INVENTORY)).data
    items = data.get("items")
    if not isinstance(items, list):
        items = []
    staples = [dict(i, is_staple=True) for i in items if isinstance(i, dict)]
    added = inventory.add_items(turn.user.id, staples)
    reply = f"Added {added} staples to your kitchen." if added else "Okay, starting with an empty kitchen."
    return _advance(turn, S.ONBOARDING_INVENTORY, reply)


async def _max_messages(turn: Turn, text: str) -> str:
    data = (await turn.classify(text, S.ONBOARDING_MAX_MESSAGES)).data
    _apply(turn, {"max_messages_per_day": data.get("max_messages_per_day") or 3})
    return _advance(turn, S.ONBOARDING_MAX_MESSAGES, f"Up to {turn.user.max_messages_per_day} messages a day.")


async def _finish(turn: Turn) -> str:
    """Leave onboarding and generate the first plan. Scheduling happens when the turn commits."""
    turn.move_to(S.IDLE)
    try:
        plan_reply = await meal_plan_flow.generate_meal_plan(turn)
    except LLMProviderError:
        logger.exception("Failed to generate initial meal plan for %s", turn.user.id)
        turn.move_to(S.IDLE)
        return SETUP_FAILED
    return f"You're all set! Let me put together your first meal plan...\n\n{plan_reply}"


async def _confirm(turn: Turn, text: str) -> str:
    if is_affirmation(text):
        return await _finish(turn)

    parsed = await turn.classify(text, S.ONBOARDING_CONFIRM)
    if parsed.intent == "confirm_profile":
        return await _finish(turn)
    field = parsed.data.get("field")
    value = parsed.data.get("value")
    if parsed.intent == "correct_profile" and field in CORRECTABLE_FIELDS and value is not None:
        try:
            turn.user = users.update_user(turn.user.id, {field: value})
        except InvalidFieldError as e:
            logger.info("Rejected profile correction %s=%r: %s", field, value, e)
            return f"Hmm, that doesn't look right for {field.replace('_', ' ')}. Could you say it another way?"
        turn.move_to(S.ONBOARDING_CONFIRM)
        return f"Updated! Here's your revised profile:\n\n{profile_summary(turn.user)}\n\nDoes everything look right now?"

    return 'I\'m not sure what you\'d like to change. Could you be more specific? (e.g., "change cook days to Mon and Thu" or "make it vegetarian")'


STEP_HANDLERS = {
    S.ONBOARDING_CUISINE: _cuisine,
    S.ONBOARDING_DIETARY: _dietary,
    S.ONBOARDING_HOUSEHOLD: _household,
    S.ONBOARDING_SKILL: _skill,
    S.ONBOARDING_COOK_DAYS: _cook_days,
    S.ONBOARDING_GROCERY_DAY: _grocery_day,
    S.ONBOARDING_REMINDER_TIME: _reminder_time,
    S.ONBOARDING_INVENTORY: _inventory,
    S.ONBOARDING_MAX_MESSAGES: _max_messages,
    S.ONBOARDING_CONFIRM: _confirm,
}


async def handle(turn: Turn, text: str) -> str:
    state = S(turn.user.conversation_state)
    if state == S.NEW:
        turn.move_to(S.ONBOARDING_CUISINE)
        return WELCOME
    return await STEP_HANDLERS[state](turn, text)
