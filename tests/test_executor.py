import json

import pytest

from conftest import FakeGateway
from cookin.llm.gateway import ChatMessage, ChatResponse, ToolCall, ToolSpec
from cookin.tools.executor import execute_tool, execute_with_tools

SPEC = ToolSpec("echo", "Echo the arguments", {"type": "object", "properties": {}, "required": []})


async def echo(args):
    return json.dumps({"echo": args})


def _call(name="echo", call_id="c1", **args):
    return ChatResponse(content="", tool_calls=[ToolCall(id=call_id, name=name, arguments=args)])


@pytest.mark.asyncio
async def test_plain_answer_returns_immediately():
    gateway = FakeGateway(ChatResponse(content="Hello!"))
    text = await execute_with_tools(gateway, [ChatMessage(role="user", content="hi")], [SPEC], {"echo": echo})
    assert text == "Hello!"
    assert len(gateway.calls) == 1
    assert gateway.calls[0]["tools"] == [SPEC]


@pytest.mark.asyncio
async def test_tool_results_are_fed_back_in_order():
    gateway = FakeGateway(
        ChatResponse(content="", tool_calls=[
            ToolCall(id="a", name="echo", arguments={"n": 1}),
            ToolCall(id="b", name="echo", arguments={"n": 2}),
        ]),
        ChatResponse(content="Done"),
    )

    text = await execute_with_tools(gateway, [ChatMessage(role="user", content="go")], [SPEC], {"echo": echo})

    assert text == "Done"
    second = gateway.calls[1]["messages"]
    assert second[1].role == "assistant"
    assert [t.id for t in second[1].tool_calls] == ["a", "b"]
    assert [(m.role, m.tool_call_id) for m in second[2:]] == [("tool", "a"), ("tool", "b")]
    assert json.loads(second[2].content) == {"echo": {"n": 1}}


@pytest.mark.asyncio
async def test_unknown_tool_becomes_error_payload():
    result = await execute_tool(ToolCall(id="x", name="launch_rockets", arguments={}), {"echo": echo})
    assert json.loads(result) == {"error": "Unknown tool: launch_rockets"}


@pytest.mark.asyncio
async def test_handler_exception_becomes_error_payload():
    async def broken(args):
        raise KeyError("recipe_name")

    result = await execute_tool(ToolCall(id="x", name="broken", arguments={}), {"broken": broken})
    assert json.loads(result)["error"].startswith("Tool execution failed:")


@pytest.mark.asyncio
async def test_round_bound_forces_final_answer_without_tools():
    gateway = FakeGateway(*[_call(call_id=str(i)) for i in range(3)], ChatResponse(content="Giving up on tools"))

    text = await execute_with_tools(
        gateway, [ChatMessage(role="user", content="loop")], [SPEC], {"echo": echo}, max_rounds=3,
    )

    assert text == "Giving up on tools"
    assert len(gateway.calls) == 4
    assert gateway.calls[-1]["tools"] is None
