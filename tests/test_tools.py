import json

import pytest

from conftest import reply
from cookin.conversation.handler import handle_inbound
from cookin.conversation.states import ConversationState as S
from cookin.conversation.turn import Turn
from cookin.core import inventory, meal_plan, recipes, users
from cookin.llm.gateway import ChatResponse, ToolCall
from cookin.tools.registry import MAX_PLANS_PER_DAY, get_tools_for_turn

PHONE = "+15550008888"

EXPECTED_TOOLS = {
    "get_saved_recipes", "find_recipe", "save_recipe", "rate_recipe", "modify_recipe",
    "get_current_meal_plan", "update_preferences", "update_schedule", "update_message_frequency",
    "get_inventory", "update_inventory", "log_meal", "generate_meal_plan",
}


@pytest.fixture
def tools(make_user, gateway, scheduler):
    turn = Turn(user=make_user(PHONE), gateway=gateway, scheduler=scheduler)
    specs, handlers = get_tools_for_turn(turn)

    async def call(name, **args):
        return json.loads(await handlers[name](args))

    call.turn = turn
    call.specs = specs
    return call


def test_catalogue(tools):
    assert {s.name for s in tools.specs} == EXPECTED_TOOLS
    for spec in tools.specs:
        assert spec.parameters["type"] == "object"


@pytest.mark.asyncio
async def test_save_find_and_rate_recipe(tools):
    saved = await tools("save_recipe", recipe_name="Miso Soup", recipe_steps="1. Boil", ingredients=[{"name": "miso"}])
    assert saved["success"]

    duplicate = await tools("save_recipe", recipe_name="miso soup", recipe_steps="x", ingredients=[])
    assert duplicate == {"success": False, "error": "Recipe already exists", "existing_id": saved["id"]}

    found = await tools("find_recipe", recipe_name="MISO SOUP")
    assert found["found"] and found["recipe"]["steps"] == "1. Boil"

    assert (await tools("rate_recipe", recipe_name="Miso Soup", rating=4))["success"]
    assert recipes.get(saved["id"]).rating == 4

    bad = await tools("rate_recipe", recipe_name="Miso Soup", rating=9)
    assert not bad["success"]
    assert not (await tools("rate_recipe", recipe_name="Nope", rating=3))["success"]


@pytest.mark.asyncio
async def test_modify_recipe_appends_modification(tools):
    recipe_id = recipes.save(PHONE, "Omelette", original_steps="1. Whisk eggs")
    result = await tools("modify_recipe", recipe_name="omelette", modification="add chives")
    assert result["success"]
    assert recipes.get(recipe_id).modified_steps == "1. Whisk eggs\n\nUser modifications: add chives"


@pytest.mark.asyncio
async def test_saved_recipes_filters(tools):
    recipes.save(PHONE, "Pho", cuisine="Vietnamese")
    fav_id = recipes.save(PHONE, "Carbonara", cuisine="Italian")
    recipes.toggle_favorite(fav_id)

    assert (await tools("get_saved_recipes"))["count"] == 2
    assert [r["name"] for r in (await tools("get_saved_recipes", filter="viet"))["recipes"]] == ["Pho"]
    assert [r["name"] for r in (await tools("get_saved_recipes", favorites_only=True))["recipes"]] == ["Carbonara"]


@pytest.mark.asyncio
async def test_current_meal_plan(tools):
    assert await tools("get_current_meal_plan") == {"has_plan": False}
    plan_id = meal_plan.create_plan(PHONE)
    meal_plan.add_meal(plan_id, "Friday", "Fish Tacos", cook_time_min=25)
    result = await tools("get_current_meal_plan")
    assert result["has_plan"]
    assert result["meals"][0]["recipe_name"] == "Fish Tacos"


@pytest.mark.asyncio
async def test_update_schedule_reschedules(tools, scheduler):
    result = await tools("update_schedule", cook_days=["Tue", "Thu"], cook_reminder_time="6pm")
    assert result == {"success": True, "updated": ["cook_days", "cook_reminder_time"]}
    user = users.get(PHONE)
    assert user.cook_days == ["Tuesday", "Thursday"]
    assert user.cook_reminder_time == "18:00"
    assert scheduler.scheduled == [PHONE]


@pytest.mark.asyncio
async def test_update_preferences_rejects_bad_values(tools, scheduler):
    result = await tools("update_preferences", skill_level="wizard")
    assert not result["success"]
    assert users.get(PHONE).skill_level == "intermediate"
    assert (await tools("update_preferences"))["error"] == "No fields provided"
    assert (await tools("update_preferences", household_size=4))["success"]
    assert scheduler.scheduled == []


@pytest.mark.asyncio
async def test_update_message_frequency(tools):
    assert (await tools("update_message_frequency", max_messages_per_day=2))["success"]
    assert users.get(PHONE).max_messages_per_day == 2


@pytest.mark.asyncio
async def test_inventory_tools(tools):
    inventory.add_item(PHONE, "flour")
    result = await tools("update_inventory", add=[{"name": "Eggs", "quantity": "12"}], remove=["flour"])
    assert result == {"success": True, "added": 1, "removed": 1}
    listed = await tools("get_inventory")
    assert listed["items"] == [{"name": "eggs", "quantity": "12", "category": None, "is_staple": False}]
    assert not (await tools("update_inventory"))["success"]


@pytest.mark.asyncio
async def test_log_meal_counts_saved_recipe(tools):
    recipe_id = recipes.save(PHONE, "Risotto")
    assert (await tools("log_meal", recipe_name="risotto"))["saved_recipe"]
    assert recipes.get(recipe_id).times_cooked == 1
    assert not (await tools("log_meal", recipe_name="Takeout"))["saved_recipe"]


@pytest.mark.asyncio
async def test_generate_meal_plan_tool_moves_to_approval(tools, gateway):
    gateway.queue(reply("meal_plan", "New plan!", meals=[{"day": "Monday", "recipe_name": "Dal"}]))
    result = await tools("generate_meal_plan")
    assert result == {"success": True, "reply": "New plan!"}
    assert tools.turn.transition.state == S.AWAITING_MEAL_PLAN_APPROVAL.value


@pytest.mark.asyncio
async def test_generate_meal_plan_daily_limit(tools, gateway):
    for _ in range(MAX_PLANS_PER_DAY):
        meal_plan.create_plan(PHONE)
    result = await tools("generate_meal_plan")
    assert not result["success"]
    assert "Daily limit" in result["error"]
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_generate_meal_plan_needs_cook_days(make_user, gateway):
    make_user(PHONE)
    users.update_user(PHONE, {"cook_days": []})
    turn = Turn(user=users.get(PHONE), gateway=gateway)
    _, handlers = get_tools_for_turn(turn)
    result = json.loads(await handlers["generate_meal_plan"]({}))
    assert "No cook days" in result["error"]


@pytest.mark.asyncio
async def test_idle_turn_runs_tool_loop(gateway, make_user):
    make_user(PHONE)
    gateway.queue(
        ChatResponse(content="", tool_calls=[ToolCall(id="t1", name="get_inventory", arguments={})]),
        ChatResponse(content="Your kitchen is empty!"),
    )

    result = await handle_inbound(PHONE, "what do I have?", gateway)

    assert result.reply == "Your kitchen is empty!"
    assert result.state == S.IDLE.value
    first = gateway.calls[0]
    assert first["messages"][0].role == "system"
    assert first["messages"][-1].content == "what do I have?"
    assert {t.name for t in first["tools"]} == EXPECTED_TOOLS
    tool_message = gateway.calls[1]["messages"][-1]
    assert tool_message.role == "tool" and json.loads(tool_message.content)["count"] == 0


@pytest.mark.asyncio
async def test_idle_history_excludes_current_message(gateway, make_user):
    from cookin.core import messages

    make_user(PHONE)
    messages.log_message(PHONE, messages.INBOUND, "earlier question")
    messages.log_message(PHONE, messages.OUTBOUND, "earlier answer")
    gateway.queue(ChatResponse(content="Sure"))

    await handle_inbound(PHONE, "new question", gateway)

    sent = gateway.calls[0]["messages"]
    assert [(m.role, m.content) for m in sent[1:]] == [
        ("user", "earlier question"),
        ("assistant", "earlier answer"),
        ("user", "new question"),
    ]
