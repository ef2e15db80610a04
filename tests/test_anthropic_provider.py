from types import SimpleNamespace

import pytest

from cookin.config import LLMConfig
from cookin.llm.anthropic_provider import AnthropicGateway
from cookin.llm.gateway import ChatMessage, ToolCall, ToolSpec

TOOL = ToolSpec("get_inventory", "List the kitchen inventory", {"type": "object", "properties": {}})

TRANSCRIPT = [
    ChatMessage(role="system", content="You are Cookin."),
    ChatMessage(role="user", content="what do I have?"),
    ChatMessage(role="assistant", content="", tool_calls=[ToolCall(id="t1", name="get_inventory", arguments={})]),
    ChatMessage(role="tool", content='{"count": 0}', tool_call_id="t1"),
]


class RecordingMessages:
    def __init__(self):
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(content=[SimpleNamespace(type="text", text="Your kitchen is empty.")])


@pytest.fixture
def provider():
    gateway = AnthropicGateway(LLMConfig(provider="anthropic", model="test-model", api_key="sk-test"))
    gateway.client = SimpleNamespace(messages=RecordingMessages())
    return gateway


def _block_types(wire):
    return [b["type"] for m in wire if isinstance(m["content"], list) for b in m["content"]]


@pytest.mark.asyncio
async def test_tool_round_sends_tool_blocks(provider):
    await provider.chat(TRANSCRIPT, tools=[TOOL])

    sent = provider.client.messages.calls[0]
    assert sent["system"] == "You are Cookin."
    assert sent["tools"][0]["name"] == "get_inventory"
    assert _block_types(sent["messages"]) == ["tool_use", "tool_result"]


@pytest.mark.asyncio
async def test_call_without_tools_flattens_tool_history(provider):
    response = await provider.chat(TRANSCRIPT)

    sent = provider.client.messages.calls[0]
    assert "tools" not in sent
    assert _block_types(sent["messages"]) == []
    assert [m["role"] for m in sent["messages"]] == ["user", "assistant", "user"]
    assert "get_inventory" in sent["messages"][1]["content"]
    assert '{"count": 0}' in sent["messages"][2]["content"]
    assert response.content == "Your kitchen is empty."
    assert response.tool_calls == []
