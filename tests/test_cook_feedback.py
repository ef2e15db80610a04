import pytest

from conftest import reply
from cookin.conversation.handler import handle_inbound
from cookin.conversation.states import ConversationState as S
from cookin.core import meal_plan, recipes, users

PHONE = "+15550005555"


def _feedback_user(make_user, recipe_name="Chana Masala"):
    make_user(PHONE)
    plan_id = meal_plan.create_plan(PHONE)
    meal_id = meal_plan.add_meal(
        plan_id, "Monday", recipe_name, steps="1. Simmer", cook_time_min=35,
        ingredients=[{"name": "chickpeas", "qty": "2", "unit": "cans"}],
    )
    users.set_conversation_state(PHONE, S.AWAITING_COOK_FEEDBACK, {"planned_meal_id": meal_id})
    return meal_id


@pytest.mark.asyncio
async def test_skip_marks_meal_skipped(gateway, make_user):
    meal_id = _feedback_user(make_user)
    gateway.queue("not json")

    result = await handle_inbound(PHONE, "skip", gateway)

    assert meal_plan.get_planned_meal(meal_id).status == "skipped"
    assert result.state == S.IDLE.value
    assert result.context == {}
    assert result.reply == "No worries, there's always next time!"


@pytest.mark.asyncio
async def test_cook_skipped_intent_uses_llm_reply(gateway, make_user):
    meal_id = _feedback_user(make_user)
    gateway.queue(reply("cook_skipped", "Maybe tomorrow!"))

    result = await handle_inbound(PHONE, "ordered pizza instead", gateway)

    assert meal_plan.get_planned_meal(meal_id).status == "skipped"
    assert result.reply == "Maybe tomorrow!"


@pytest.mark.asyncio
async def test_feedback_rates_meal_and_saves_recipe(gateway, make_user):
    meal_id = _feedback_user(make_user)
    gateway.queue(reply("cook_feedback", "Glad you liked it!", rating=5, notes="added spinach", want_to_save=True))

    result = await handle_inbound(PHONE, "5 stars, added spinach, save it", gateway)

    meal = meal_plan.get_planned_meal(meal_id)
    assert (meal.status, meal.rating, meal.comment) == ("cooked", 5, "added spinach")
    saved = recipes.find_by_name(PHONE, "chana masala")
    assert saved.rating == 5
    assert saved.times_cooked == 1
    assert saved.modified_steps == "1. Simmer\n\nUser modifications: added spinach"
    assert saved.ingredients == [{"name": "chickpeas", "qty": "2", "unit": "cans"}]
    assert result.state == S.IDLE.value


@pytest.mark.asyncio
async def test_feedback_merges_into_existing_recipe(gateway, make_user):
    _feedback_user(make_user)
    existing_id = recipes.save(PHONE, "CHANA MASALA", rating=3)
    gateway.queue(reply("cook_feedback", rating=4, want_to_save=True))

    await handle_inbound(PHONE, "better this time, 4", gateway)

    all_saved = recipes.get_all(PHONE)
    assert len(all_saved) == 1
    assert all_saved[0].id == existing_id
    assert all_saved[0].rating == 4
    assert all_saved[0].times_cooked == 1


@pytest.mark.asyncio
async def test_low_rating_is_not_saved(gateway, make_user):
    meal_id = _feedback_user(make_user)
    gateway.queue(reply("cook_feedback", rating=2, want_to_save=True))

    await handle_inbound(PHONE, "meh, 2", gateway)

    assert meal_plan.get_planned_meal(meal_id).rating == 2
    assert recipes.get_all(PHONE) == []


@pytest.mark.asyncio
async def test_out_of_range_rating_is_dropped(gateway, make_user):
    meal_id = _feedback_user(make_user)
    gateway.queue(reply("cook_feedback", rating=11))

    result = await handle_inbound(PHONE, "11/10", gateway)

    meal = meal_plan.get_planned_meal(meal_id)
    assert (meal.status, meal.rating) == ("cooked", None)
    assert result.ok


@pytest.mark.asyncio
async def test_missing_meal_still_returns_to_idle(gateway, make_user):
    make_user(PHONE, state=S.AWAITING_COOK_FEEDBACK.value, context={"planned_meal_id": 9999})
    gateway.queue(reply("cook_feedback", "Thanks!", rating=4))

    result = await handle_inbound(PHONE, "it was good", gateway)

    assert result.state == S.IDLE.value
    assert result.reply == "Thanks!"
