import pytest

from cookin.core import users
from cookin.core.users import InvalidFieldError, normalize_time, normalize_weekday


def test_get_or_create_starts_new():
    user = users.get_or_create("+15551112222")
    assert user.conversation_state == "new"
    assert user.state_context == {}
    assert users.get_or_create("+15551112222").created_at == user.created_at


@pytest.mark.parametrize("value,expected", [
    ("mon", "Monday"),
    ("Tuesdays", "Tuesday"),
    ("THURS", "Thursday"),
    ("sunday.", "Sunday"),
    ("someday", None),
])
def test_normalize_weekday(value, expected):
    assert normalize_weekday(value) == expected


@pytest.mark.parametrize("value,expected", [
    ("5:30pm", "17:30"),
    ("17:30", "17:30"),
    ("9 am", "09:00"),
    ("12am", "00:00"),
    ("12:15 p.m.", "12:15"),
    ("25:00", None),
    ("13pm", None),
    ("teatime", None),
])
def test_normalize_time(value, expected):
    assert normalize_time(value) == expected


def test_update_user_normalizes_values():
    users.get_or_create("+15551112222")
    user = users.update_user("+15551112222", {
        "cook_days": "fri, mon, Monday",
        "grocery_time": "8:15am",
        "household_size": "3",
        "skill_level": "Advanced",
        "timezone": "Europe/London",
    })
    assert user.cook_days == ["Monday", "Friday"]
    assert user.grocery_time == "08:15"
    assert user.household_size == 3
    assert user.skill_level == "advanced"
    assert user.timezone == "Europe/London"


@pytest.mark.parametrize("fields", [
    {"favourite_colour": "blue"},
    {"household_size": 0},
    {"skill_level": "chef"},
    {"cook_days": ["Mon", "Caturday"]},
    {"timezone": "Mars/Olympus_Mons"},
    {"max_messages_per_day": "many"},
    {"name": "  "},
])
def test_update_user_rejects_invalid_fields(fields):
    users.get_or_create("+15551112222")
    with pytest.raises(InvalidFieldError):
        users.update_user("+15551112222", fields)


def test_invalid_field_leaves_row_untouched():
    users.get_or_create("+15551112222")
    with pytest.raises(InvalidFieldError):
        users.update_user("+15551112222", {"household_size": 4, "skill_level": "chef"})
    assert users.get("+15551112222").household_size == 1


def test_set_conversation_state_replaces_context():
    users.get_or_create("+15551112222")
    users.set_conversation_state("+15551112222", "awaiting_cook_feedback", {"planned_meal_id": 3})
    users.set_conversation_state("+15551112222", "idle")
    user = users.get("+15551112222")
    assert user.conversation_state == "idle"
    assert user.state_context == {}


def test_get_onboarded(make_user):
    make_user("+1", state="idle")
    make_user("+2", state="awaiting_meal_plan_approval")
    make_user("+3", state="onboarding_confirm")
    users.get_or_create("+4")
    assert [u.id for u in users.get_onboarded()] == ["+1", "+2"]
