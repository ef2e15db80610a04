import pytest

from conftest import reply
from cookin.conversation.handler import handle_inbound
from cookin.conversation.states import ConversationState as S
from cookin.core import inventory, meal_plan, users

PHONE = "+15550006666"


def _grocery_user(make_user):
    make_user(PHONE)
    plan_id = meal_plan.create_plan(PHONE)
    meal_plan.confirm_plan(plan_id)
    meal_plan.create_grocery_list(plan_id, [{"name": "chicken"}, {"name": "cream"}])
    users.set_conversation_state(PHONE, S.AWAITING_GROCERY_CONFIRM, {"plan_id": plan_id})
    return plan_id


@pytest.mark.asyncio
async def test_got_everything_fulfills_list(gateway, make_user):
    plan_id = _grocery_user(make_user)
    gateway.queue(reply(
        "grocery_confirm", "Nice haul!",
        got_everything=True,
        bought_items=[{"name": "Chicken", "quantity": "500g"}, {"name": "Cream"}],
    ))

    result = await handle_inbound(PHONE, "got it all", gateway)

    assert result.state == S.IDLE.value
    assert result.reply == "Nice haul!"
    assert meal_plan.get_grocery_list(plan_id).fulfilled
    assert {i.name: i.quantity for i in inventory.get_all(PHONE)} == {"chicken": "500g", "cream": None}


@pytest.mark.asyncio
async def test_partial_shop_keeps_list_open(gateway, make_user):
    plan_id = _grocery_user(make_user)
    gateway.queue(reply("grocery_confirm", got_everything=False, bought_items=[{"name": "chicken"}], missing_items=["cream"]))

    await handle_inbound(PHONE, "couldn't find cream", gateway)

    assert not meal_plan.get_grocery_list(plan_id).fulfilled
    assert [i.name for i in inventory.get_all(PHONE)] == ["chicken"]


@pytest.mark.asyncio
async def test_unparseable_reply_returns_to_idle(gateway, make_user):
    _grocery_user(make_user)
    gateway.queue("")

    result = await handle_inbound(PHONE, "yep", gateway)

    assert result.state == S.IDLE.value
    assert result.reply == "Got it! Your inventory is updated. Happy cooking!"
