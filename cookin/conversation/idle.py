"""Free-form conversation outside any scripted question, driven by the tool loop."""

from cookin.conversation.prompts import build_system_prompt
from cookin.conversation.states import ConversationState as S
from cookin.conversation.turn import Turn
from cookin.core import messages
from cookin.llm.gateway import ChatMessage
from cookin.tools.executor import execute_with_tools
from cookin.tools.registry import get_tools_for_turn

HISTORY_LIMIT = 10


async def handle(turn: Turn, text: str) -> str:
    system_prompt = build_system_prompt(turn.user, S.IDLE, turn.user.state_context)
    # skip=1 drops the inbound message of this turn, which is appended below.
    history = messages.get_recent(turn.user.id, HISTORY_LIMIT, skip=1)
    transcript = [ChatMessage(role="system", content=system_prompt)]
    transcript += [ChatMessage(role=m["role"], content=m["content"]) for m in history]
    transcript.append(ChatMessage(role="user", content=text))

    tools, handlers = get_tools_for_turn(turn)
    return await execute_with_tools(turn.gateway, transcript, tools, handlers)
