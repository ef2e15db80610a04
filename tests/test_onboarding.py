import pytest

from conftest import reply
from cookin.conversation.handler import handle_inbound
from cookin.conversation.onboarding import WELCOME, is_affirmation
from cookin.conversation.states import ConversationState as S
from cookin.core import inventory, users
from cookin.llm.gateway import LLMProviderError

PHONE = "+15550002222"

PLAN = reply("meal_plan", "Here's your week! Want to swap anything?", meals=[
    {"day": "Monday", "meal_type": "dinner", "recipe_name": "Pad Thai", "cook_time_min": 30},
    {"day": "Wednesday", "meal_type": "dinner", "recipe_name": "Lasagna", "cook_time_min": 60},
])


@pytest.mark.asyncio
async def test_first_message_starts_onboarding(gateway):
    result = await handle_inbound(PHONE, "hi", gateway)
    assert result.ok
    assert result.state == S.ONBOARDING_CUISINE.value
    assert result.reply == WELCOME
    assert "cuisines" in result.reply
    assert gateway.calls == []
    assert users.get(PHONE).conversation_state == S.ONBOARDING_CUISINE.value


@pytest.mark.asyncio
async def test_full_onboarding_chain(gateway, scheduler):
    await handle_inbound(PHONE, "hi", gateway)
    answers = [
        ("Indian and Italian", reply("onboarding_response", cuisines=["Indian", "Italian"]), S.ONBOARDING_DIETARY),
        ("vegetarian", reply("onboarding_response", dietary_restrictions=["vegetarian"]), S.ONBOARDING_HOUSEHOLD),
        ("two of us", reply("onboarding_response", household_size=2), S.ONBOARDING_SKILL),
        ("decent", reply("onboarding_response", skill_level="intermediate"), S.ONBOARDING_COOK_DAYS),
        ("mon wed fri", reply("onboarding_response", cook_days=["Mon", "Wed", "Fri"]), S.ONBOARDING_GROCERY_DAY),
        ("saturday at 9am", reply("onboarding_response", grocery_day="Saturday", grocery_time="9am"),
         S.ONBOARDING_REMINDER_TIME),
        ("5:30pm, I'm in New York",
         reply("onboarding_response", cook_reminder_time="17:30", timezone="America/New_York"),
         S.ONBOARDING_INVENTORY),
        ("rice and olive oil", reply("onboarding_response", items=[{"name": "Rice"}, {"name": "Olive oil"}]),
         S.ONBOARDING_MAX_MESSAGES),
        ("4 is fine", reply("onboarding_response", max_messages_per_day=4), S.ONBOARDING_CONFIRM),
    ]
    for text, response, expected in answers:
        gateway.queue(response)
        result = await handle_inbound(PHONE, text, gateway, scheduler)
        assert result.state == expected.value, text

    assert "Does everything look right?" in result.reply
    user = users.get(PHONE)
    assert user.cuisine_preferences == ["Indian", "Italian"]
    assert user.dietary_restrictions == ["vegetarian"]
    assert user.household_size == 2
    assert user.cook_days == ["Monday", "Wednesday", "Friday"]
    assert user.grocery_day == "Saturday"
    assert user.grocery_time == "09:00"
    assert user.timezone == "America/New_York"
    assert user.max_messages_per_day == 4
    assert all(i.is_staple for i in inventory.get_all(PHONE))
    assert {i.name for i in inventory.get_all(PHONE)} == {"rice", "olive oil"}

    gateway.queue(PLAN)
    result = await handle_inbound(PHONE, "yes looks good", gateway, scheduler)
    assert result.ok
    assert result.state == S.AWAITING_MEAL_PLAN_APPROVAL.value
    assert result.reply.startswith("You're all set!")
    assert "plan_id" in result.context
    assert scheduler.scheduled == [PHONE]


@pytest.mark.asyncio
async def test_unusable_answer_falls_back_to_default(gateway, make_user):
    make_user(PHONE, state=S.ONBOARDING_HOUSEHOLD.value, household_size=3)
    gateway.queue("I dunno, it varies")
    result = await handle_inbound(PHONE, "it varies", gateway)
    assert result.state == S.ONBOARDING_SKILL.value
    assert users.get(PHONE).household_size == 1


@pytest.mark.asyncio
async def test_confirm_correction_loops(gateway, make_user, scheduler):
    make_user(PHONE, state=S.ONBOARDING_CONFIRM.value)
    gateway.queue(reply("correct_profile", field="cook_days", value=["Tuesday", "Thursday"]))
    result = await handle_inbound(PHONE, "actually tue and thu", gateway, scheduler)
    assert result.state == S.ONBOARDING_CONFIRM.value
    assert "Updated!" in result.reply
    assert "Tuesday, Thursday" in result.reply
    assert users.get(PHONE).cook_days == ["Tuesday", "Thursday"]
    assert scheduler.scheduled == []


@pytest.mark.asyncio
async def test_confirm_rejects_invalid_correction(gateway, make_user):
    make_user(PHONE, state=S.ONBOARDING_CONFIRM.value)
    gateway.queue(reply("correct_profile", field="household_size", value="lots"))
    result = await handle_inbound(PHONE, "we are lots", gateway)
    assert result.state == S.ONBOARDING_CONFIRM.value
    assert "Could you say it another way?" in result.reply
    assert users.get(PHONE).household_size == 2


@pytest.mark.asyncio
async def test_confirm_unclear_asks_for_clarification(gateway, make_user):
    make_user(PHONE, state=S.ONBOARDING_CONFIRM.value)
    gateway.queue(reply("correct_profile", field="favourite_colour", value="blue"))
    result = await handle_inbound(PHONE, "hmm", gateway)
    assert result.state == S.ONBOARDING_CONFIRM.value
    assert "more specific" in result.reply


@pytest.mark.asyncio
async def test_confirm_plan_failure_still_finishes(gateway, make_user, scheduler):
    make_user(PHONE, state=S.ONBOARDING_CONFIRM.value)
    gateway.queue(LLMProviderError("down"))
    result = await handle_inbound(PHONE, "yes", gateway, scheduler)
    assert result.ok
    assert result.state == S.IDLE.value
    assert "trouble generating a meal plan" in result.reply
    assert scheduler.scheduled == [PHONE]


def test_affirmations_match_whole_words():
    assert is_affirmation("Yes!")
    assert is_affirmation("looks good to me")
    assert is_affirmation("LGTM")
    assert not is_affirmation("maybe")
    assert not is_affirmation("yesterday I meant Tuesday")
    assert not is_affirmation("oh my goodness, change the days")
