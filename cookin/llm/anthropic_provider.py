"""Anthropic Messages API provider."""

import json

import anthropic

from cookin.config import LLMConfig
from cookin.llm.gateway import ChatMessage, ChatResponse, LLMGateway, LLMProviderError, ToolCall, ToolSpec

MAX_TOKENS = 4096


def _append(wire: list[dict], role: str, content) -> None:
    """Add a turn, folding plain text into a preceding text turn of the same role."""
    if wire and wire[-1]["role"] == role and isinstance(content, str) and isinstance(wire[-1]["content"], str):
        wire[-1]["content"] = f"{wire[-1]['content']}\n\n{content}"
    else:
        wire.append({"role": role, "content": content})


def _to_wire(messages: list[ChatMessage], with_tools: bool = True) -> tuple[str, list[dict]]:
    """Split out the system prompt and convert the rest to Anthropic content blocks.

    Consecutive tool results are merged into one user turn, as the API requires.
    Without tools, tool_use and tool_result blocks are rejected by the API, so
    earlier tool calls and their results are rendered as plain text instead.
    """
    system_parts = []
    wire: list[dict] = []
    for m in messages:
        if m.role == "system":
            system_parts.append(m.content)
        elif m.role == "tool" and not with_tools:
            _append(wire, "user", f"[Tool result {m.tool_call_id}]\n{m.content}")
        elif m.role == "tool":
            block = {"type": "tool_result", "tool_use_id": m.tool_call_id, "content": m.content}
            if wire and wire[-1]["role"] == "user" and isinstance(wire[-1]["content"], list) \
                    and all(b.get("type") == "tool_result" for b in wire[-1]["content"]):
                wire[-1]["content"].append(block)
            else:
                wire.append({"role": "user", "content": [block]})
        elif m.role == "assistant" and m.tool_calls and not with_tools:
            lines = [m.content] if m.content else []
            for tc in m.tool_calls:
                lines.append(f"[Called {tc.name} ({tc.id}) with {json.dumps(tc.arguments)}]")
            _append(wire, "assistant", "\n".join(lines))
        elif m.role == "assistant" and m.tool_calls:
            blocks = []
            if m.content:
                blocks.append({"type": "text", "text": m.content})
            for tc in m.tool_calls:
                blocks.append({"type": "tool_use", "id": tc.id, "name": tc.name, "input": tc.arguments})
            wire.append({"role": "assistant", "content": blocks})
        else:
            _append(wire, m.role, m.content)
    return "\n\n".join(system_parts), wire


class AnthropicGateway(LLMGateway):
    def __init__(self, config: LLMConfig):
        self.model = config.model
        kwargs = {"api_key": config.api_key}
        if config.base_url:
            kwargs["base_url"] = config.base_url
        self.client = anthropic.AsyncAnthropic(**kwargs)

    async def chat(self, messages: list[ChatMessage], tools: list[ToolSpec] = None) -> ChatResponse:
        system, wire = _to_wire(messages, with_tools=bool(tools))
        kwargs = {"model": self.model, "max_tokens": MAX_TOKENS, "messages": wire}
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = [
                {"name": t.name, "description": t.description, "input_schema": t.parameters}
                for t in tools
            ]
        try:
            response = await self.client.messages.create(**kwargs)
        except anthropic.APIError as e:
            raise LLMProviderError(f"Anthropic API error: {e}") from e

        text = "".join(b.text for b in response.content if b.type == "text")
        calls = [
            ToolCall(id=b.id, name=b.name, arguments=dict(b.input or {}))
            for b in response.content
            if b.type == "tool_use"
        ]
        return ChatResponse(content=text, tool_calls=calls)
