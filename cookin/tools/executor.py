"""Bounded tool-calling loop against the LLM gateway.

Tool calls in a round run one after another, in the order the model asked
for them.  Unknown tools and handler failures are reported back to the model
as JSON error strings instead of being raised.
"""

import json
import logging
from typing import Awaitable, Callable

from cookin.llm.gateway import ChatMessage, LLMGateway, ToolCall, ToolSpec

logger = logging.getLogger(__name__)

MAX_ROUNDS = 10

ToolHandler = Callable[[dict], Awaitable[str]]


async def execute_tool(call: ToolCall, handlers: dict[str, ToolHandler]) -> str:
    handler = handlers.get(call.name)
    if handler is None:
        logger.error("Unknown tool: %s", call.name)
        return json.dumps({"error": f"Unknown tool: {call.name}"})
    try:
        return await handler(call.arguments or {})
    except Exception as e:
        logger.exception("Error executing tool %s", call.name)
        return json.dumps({"error": f"Tool execution failed: {e}"})


async def execute_with_tools(
    gateway: LLMGateway,
    messages: list[ChatMessage],
    tools: list[ToolSpec],
    handlers: dict[str, ToolHandler],
    max_rounds: int = MAX_ROUNDS,
) -> str:
    """Run the model until it answers without tool calls, at most max_rounds times.

    When the bound is hit, one last call is made with no tools offered so the
    model has to produce a text reply.
    """
    conversation = list(messages)

    for _ in range(max_rounds):
        response = await gateway.chat(conversation, tools=tools)
        if not response.tool_calls:
            return response.content

        conversation.append(ChatMessage(role="assistant", content=response.content or "", tool_calls=response.tool_calls))
        for call in response.tool_calls:
            result = await execute_tool(call, handlers)
            conversation.append(ChatMessage(role="tool", content=result, tool_call_id=call.id))

    logger.warning("Tool execution hit max rounds (%d), forcing final response", max_rounds)
    final = await gateway.chat(conversation)
    return final.content
