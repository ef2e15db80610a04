"""Per-turn context handed to every flow handler.

Handlers never write conversation state directly.  They call move_to(), which
only records the transition; the dispatcher commits it after the handler
returns successfully, so a failed turn leaves the stored state untouched.
"""

from dataclasses import dataclass, field
from typing import Optional

from cookin.conversation.parser import ParsedResponse, parse_response
from cookin.conversation.prompts import build_system_prompt
from cookin.conversation.states import ConversationState
from cookin.db.models import User
from cookin.llm.gateway import ChatMessage, LLMGateway


@dataclass
class Transition:
    state: str
    context: dict = field(default_factory=dict)


@dataclass
class Turn:
    user: User
    gateway: LLMGateway
    scheduler: object = None  # SchedulerRegistry, when running inside the app
    transition: Optional[Transition] = None

    @property
    def state(self) -> str:
        """The state this turn will end in, counting any pending transition."""
        if self.transition is not None:
            return self.transition.state
        return self.user.conversation_state

    @property
    def context(self) -> dict:
        if self.transition is not None:
            return self.transition.context
        return self.user.state_context

    def move_to(self, state, context: dict = None) -> None:
        """Record the state the user should end this turn in. Context is replaced, never merged."""
        self.transition = Transition(state=getattr(state, "value", state), context=dict(context or {}))

    async def classify(self, text: str, state: ConversationState = None) -> ParsedResponse:
        """Send the state's system prompt plus text to the LLM and parse the reply envelope."""
        state = state or ConversationState(self.user.conversation_state)
        system_prompt = build_system_prompt(self.user, state, self.user.state_context)
        response = await self.gateway.chat([
            ChatMessage(role="system", content=system_prompt),
            ChatMessage(role="user", content=text),
        ])
        return parse_response(response.content)
