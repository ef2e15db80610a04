import pytest

from conftest import reply
from cookin.conversation import handler, idle, onboarding
from cookin.conversation.handler import APOLOGY, EMPTY_REPLY_FALLBACK, handle_inbound, route, run_follow_up
from cookin.conversation.states import ConversationState as S
from cookin.core import meal_plan, messages, users
from cookin.llm.gateway import LLMProviderError

PHONE = "+15550007777"


@pytest.mark.asyncio
async def test_provider_failure_apologizes_and_keeps_state(gateway, make_user):
    context = {"inventory_checklist": [1, 2]}
    make_user(PHONE, state=S.AWAITING_INVENTORY_CONFIRM.value, context=context)
    gateway.queue(LLMProviderError("upstream 529"))

    result = await handle_inbound(PHONE, "1,2", gateway)

    assert result.reply == APOLOGY
    assert result.failure == handler.FAILURE_PROVIDER
    assert not result.ok
    user = users.get(PHONE)
    assert user.conversation_state == S.AWAITING_INVENTORY_CONFIRM.value
    assert user.state_context == context


@pytest.mark.asyncio
async def test_internal_failure_discards_recorded_transition(gateway, make_user, monkeypatch):
    make_user(PHONE, state=S.AWAITING_COOK_FEEDBACK.value, context={"planned_meal_id": 1})

    async def broken(turn, text):
        turn.move_to(S.IDLE)
        raise RuntimeError("boom")

    monkeypatch.setitem(handler.OPERATIONAL_HANDLERS, S.AWAITING_COOK_FEEDBACK, broken)

    result = await handle_inbound(PHONE, "it was great", gateway)

    assert result.reply == APOLOGY
    assert result.failure == handler.FAILURE_INTERNAL
    assert "boom" not in result.reply
    assert users.get(PHONE).conversation_state == S.AWAITING_COOK_FEEDBACK.value


@pytest.mark.asyncio
async def test_retry_after_failure_runs_same_handler(gateway, make_user):
    make_user(PHONE, state=S.ONBOARDING_HOUSEHOLD.value)
    gateway.queue(LLMProviderError("down"), reply("onboarding_response", household_size=4))

    first = await handle_inbound(PHONE, "four", gateway)
    second = await handle_inbound(PHONE, "four", gateway)

    assert first.reply == APOLOGY
    assert second.state == S.ONBOARDING_SKILL.value
    assert users.get(PHONE).household_size == 4


@pytest.mark.asyncio
async def test_missing_gateway_config_is_a_provider_failure(make_user, monkeypatch):
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    make_user(PHONE)

    result = await handle_inbound(PHONE, "hello")

    assert result.failure == handler.FAILURE_PROVIDER
    assert result.reply == APOLOGY


@pytest.mark.asyncio
async def test_inbound_message_is_logged(gateway):
    await handle_inbound(PHONE, "hi", gateway)
    assert messages.get_recent(PHONE) == [{"role": "user", "content": "hi"}]


@pytest.mark.asyncio
async def test_empty_reply_gets_fallback_text(gateway, make_user):
    make_user(PHONE, state=S.AWAITING_MEAL_PLAN_APPROVAL.value)
    plan_id = meal_plan.create_plan(PHONE)
    users.set_conversation_state(PHONE, S.AWAITING_MEAL_PLAN_APPROVAL, {"plan_id": plan_id})
    gateway.queue("   ")

    result = await handle_inbound(PHONE, "hmm", gateway)

    assert result.reply == EMPTY_REPLY_FALLBACK


def test_route_by_state():
    assert route("new") is onboarding.handle
    assert route("onboarding_skill") is onboarding.handle
    assert route("idle") is idle.handle
    assert route("awaiting_something_removed") is idle.handle


@pytest.mark.asyncio
async def test_follow_up_generates_plan_once(gateway, make_user):
    make_user(PHONE, context={"trigger_meal_plan": True})
    gateway.queue(reply("meal_plan", "Plan ready!", meals=[{"day": "Monday", "recipe_name": "Curry"}]))

    result = await run_follow_up(PHONE, gateway)

    assert result.reply == "Plan ready!"
    assert result.state == S.AWAITING_MEAL_PLAN_APPROVAL.value
    assert await run_follow_up(PHONE, gateway) is None


@pytest.mark.asyncio
async def test_follow_up_without_meals_clears_trigger(gateway, make_user):
    make_user(PHONE, context={"trigger_meal_plan": True})
    gateway.queue("nope")

    result = await run_follow_up(PHONE, gateway)

    assert result.state == S.IDLE.value
    assert users.get(PHONE).state_context == {}


@pytest.mark.asyncio
async def test_follow_up_noop_without_trigger(gateway, make_user):
    make_user(PHONE)
    assert await run_follow_up(PHONE, gateway) is None
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_turn_persistence_runs_off_the_event_loop(gateway, monkeypatch):
    import threading

    loop_thread = threading.get_ident()
    seen = {}

    def recording(name, fn):
        def wrapper(*args, **kwargs):
            seen[name] = threading.get_ident()
            return fn(*args, **kwargs)
        return wrapper

    monkeypatch.setattr(users, "get_or_create", recording("get_or_create", users.get_or_create))
    monkeypatch.setattr(messages, "log_message", recording("log_message", messages.log_message))
    monkeypatch.setattr(users, "set_conversation_state", recording("set_state", users.set_conversation_state))

    result = await handle_inbound(PHONE, "hi", gateway)

    assert result.state == S.ONBOARDING_CUISINE.value
    assert set(seen) == {"get_or_create", "log_message", "set_state"}
    assert loop_thread not in seen.values()
