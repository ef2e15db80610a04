"""Dataclass models for all database entities.

Each class maps 1:1 to a database table. JSON columns (lists of strings,
ingredient lists, state context) are decoded by the core/ modules when loading
rows. These are plain data containers with no business logic.
"""

from dataclasses import dataclass, field
from typing import Optional

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
MEAL_TYPES = ["breakfast", "lunch", "dinner"]
SKILL_LEVELS = ["beginner", "intermediate", "advanced"]


@dataclass
class User:
    """A person talking to the assistant, keyed by phone number or web id.

    conversation_state holds a ConversationState value; state_context is the
    scratch data belonging to that state and is replaced on every transition.
    """

    id: str
    name: Optional[str] = None
    cuisine_preferences: list = field(default_factory=list)
    dietary_restrictions: list = field(default_factory=list)
    household_size: int = 1
    skill_level: str = "beginner"
    cook_days: list = field(default_factory=list)  # full weekday names
    grocery_day: Optional[str] = None
    grocery_time: str = "10:00"
    cook_reminder_time: str = "17:30"
    timezone: str = "America/Los_Angeles"
    max_messages_per_day: int = 5
    conversation_state: str = "new"
    state_context: dict = field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class InventoryItem:
    """Something the user has in the kitchen. Names are stored lowercased."""

    id: Optional[int]
    user_id: str
    name: str
    category: Optional[str] = None
    quantity: Optional[str] = None
    is_staple: bool = False
    last_updated: Optional[str] = None


@dataclass
class PlannedMeal:
    """One meal in a weekly plan: a day + meal type with its recipe.

    ingredients is a list of {"name", "qty", "unit"} dicts.
    """

    id: Optional[int]
    meal_plan_id: Optional[int]
    day: str
    meal_type: str = "dinner"
    recipe_name: str = ""
    steps: Optional[str] = None
    ingredients: list = field(default_factory=list)
    cook_time_min: Optional[int] = None
    status: str = "pending"  # pending, cooked, skipped
    rating: Optional[int] = None
    comment: Optional[str] = None
    is_favorite: bool = False


@dataclass
class MealPlan:
    """A week of planned meals. Status is draft, confirmed or completed."""

    id: Optional[int]
    user_id: str
    week_start: str  # ISO YYYY-MM-DD, always a Monday
    status: str = "draft"
    created_at: Optional[str] = None
    meals: list = field(default_factory=list)  # list[PlannedMeal]


@dataclass
class GroceryList:
    """Shopping list generated for a plan. items are {"name", "qty", "unit", "section"} dicts."""

    id: Optional[int]
    meal_plan_id: int
    items: list = field(default_factory=list)
    sent_at: Optional[str] = None
    fulfilled: bool = False


@dataclass
class SavedRecipe:
    """A recipe the user kept, with their rating and cooking history."""

    id: Optional[int]
    user_id: str
    name: str
    original_steps: Optional[str] = None
    modified_steps: Optional[str] = None
    ingredients: list = field(default_factory=list)
    cook_time_min: Optional[int] = None
    cuisine: Optional[str] = None
    rating: Optional[int] = None
    notes: Optional[str] = None
    times_cooked: int = 0
    last_cooked: Optional[str] = None
    is_favorite: bool = False
    created_at: Optional[str] = None
