"""OpenAI Chat Completions provider, also used for OpenAI-compatible endpoints."""

import json
import logging

import openai
from openai import AsyncOpenAI

from cookin.config import LLMConfig
from cookin.llm.gateway import ChatMessage, ChatResponse, LLMGateway, LLMProviderError, ToolCall, ToolSpec

logger = logging.getLogger(__name__)


def _to_wire(messages: list[ChatMessage]) -> list[dict]:
    wire = []
    for m in messages:
        if m.role == "tool":
            wire.append({"role": "tool", "tool_call_id": m.tool_call_id, "content": m.content})
        elif m.role == "assistant" and m.tool_calls:
            wire.append({
                "role": "assistant",
                "content": m.content or None,
                "tool_calls": [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
                    }
                    for tc in m.tool_calls
                ],
            })
        else:
            wire.append({"role": m.role, "content": m.content})
    return wire


def _parse_arguments(raw: str) -> dict:
    try:
        args = json.loads(raw or "{}")
    except json.JSONDecodeError:
        logger.warning("Tool call arguments are not valid JSON: %r", raw)
        return {}
    return args if isinstance(args, dict) else {}


class OpenAIGateway(LLMGateway):
    def __init__(self, config: LLMConfig):
        self.model = config.model
        self.client = AsyncOpenAI(api_key=config.api_key, base_url=config.base_url)

    async def chat(self, messages: list[ChatMessage], tools: list[ToolSpec] = None) -> ChatResponse:
        kwargs = {"model": self.model, "messages": _to_wire(messages), "temperature": 0.7}
        if tools:
            kwargs["tools"] = [
                {
                    "type": "function",
                    "function": {"name": t.name, "description": t.description, "parameters": t.parameters},
                }
                for t in tools
            ]
        try:
            response = await self.client.chat.completions.create(**kwargs)
        except openai.OpenAIError as e:
            raise LLMProviderError(f"OpenAI API error: {e}") from e

        if not response.choices:
            raise LLMProviderError("OpenAI API returned no choices")
        message = response.choices[0].message
        calls = [
            ToolCall(id=tc.id, name=tc.function.name, arguments=_parse_arguments(tc.function.arguments))
            for tc in (message.tool_calls or [])
        ]
        return ChatResponse(content=message.content or "", tool_calls=calls)
