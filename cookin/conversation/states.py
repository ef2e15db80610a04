"""Conversation states and the onboarding chain."""

from enum import Enum
from typing import Optional


class ConversationState(str, Enum):
    NEW = "new"
    ONBOARDING_CUISINE = "onboarding_cuisine"
    ONBOARDING_DIETARY = "onboarding_dietary"
    ONBOARDING_HOUSEHOLD = "onboarding_household"
    ONBOARDING_SKILL = "onboarding_skill"
    ONBOARDING_COOK_DAYS = "onboarding_cook_days"
    ONBOARDING_GROCERY_DAY = "onboarding_grocery_day"
    ONBOARDING_REMINDER_TIME = "onboarding_reminder_time"
    ONBOARDING_INVENTORY = "onboarding_inventory"
    ONBOARDING_MAX_MESSAGES = "onboarding_max_messages"
    ONBOARDING_CONFIRM = "onboarding_confirm"
    IDLE = "idle"
    AWAITING_INVENTORY_CONFIRM = "awaiting_inventory_confirm"
    AWAITING_MEAL_PLAN_APPROVAL = "awaiting_meal_plan_approval"
    AWAITING_COOK_FEEDBACK = "awaiting_cook_feedback"
    AWAITING_GROCERY_CONFIRM = "awaiting_grocery_confirm"


S = ConversationState

# Each onboarding state has exactly one successor. CONFIRM is handled separately.
ONBOARDING_NEXT = {
    S.NEW: S.ONBOARDING_CUISINE,
    S.ONBOARDING_CUISINE: S.ONBOARDING_DIETARY,
    S.ONBOARDING_DIETARY: S.ONBOARDING_HOUSEHOLD,
    S.ONBOARDING_HOUSEHOLD: S.ONBOARDING_SKILL,
    S.ONBOARDING_SKILL: S.ONBOARDING_COOK_DAYS,
    S.ONBOARDING_COOK_DAYS: S.ONBOARDING_GROCERY_DAY,
    S.ONBOARDING_GROCERY_DAY: S.ONBOARDING_REMINDER_TIME,
    S.ONBOARDING_REMINDER_TIME: S.ONBOARDING_INVENTORY,
    S.ONBOARDING_INVENTORY: S.ONBOARDING_MAX_MESSAGES,
    S.ONBOARDING_MAX_MESSAGES: S.ONBOARDING_CONFIRM,
}


def parse_state(value) -> Optional[ConversationState]:
    """Return the enum member for a stored state string, or None if unrecognized."""
    try:
        return ConversationState(value)
    except ValueError:
        return None


def is_onboarding(state) -> bool:
    value = getattr(state, "value", state)
    return value == S.NEW.value or str(value).startswith("onboarding_")
