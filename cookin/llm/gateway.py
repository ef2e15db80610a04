"""Provider-neutral LLM chat interface.

The conversation core and the tool executor only ever see the dataclasses in
this module.  Each provider class translates them to and from its own SDK's
wire format and raises LLMProviderError when the upstream call fails.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from cookin.config import LLMConfig, get_llm_config

logger = logging.getLogger(__name__)


class LLMProviderError(RuntimeError):
    """The upstream LLM call did not succeed."""


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: dict = field(default_factory=dict)


@dataclass
class ChatMessage:
    """One transcript entry. role is system, user, assistant or tool.

    Assistant messages may carry tool_calls; tool messages carry the
    tool_call_id they answer.
    """

    role: str
    content: str = ""
    tool_calls: list = field(default_factory=list)  # list[ToolCall]
    tool_call_id: Optional[str] = None


@dataclass
class ToolSpec:
    name: str
    description: str
    parameters: dict  # JSON schema


@dataclass
class ChatResponse:
    content: str
    tool_calls: list = field(default_factory=list)  # list[ToolCall]


class LLMGateway:
    """Base class for providers."""

    async def chat(self, messages: list[ChatMessage], tools: list[ToolSpec] = None) -> ChatResponse:
        raise NotImplementedError


def create_gateway(config: LLMConfig) -> LLMGateway:
    if not config.api_key:
        raise LLMProviderError("LLM API key not set. Add it on the Settings page or set LLM_API_KEY.")
    if config.provider == "anthropic":
        from cookin.llm.anthropic_provider import AnthropicGateway
        return AnthropicGateway(config)
    if config.provider in ("openai", "openai-compatible"):
        from cookin.llm.openai_provider import OpenAIGateway
        return OpenAIGateway(config)
    raise LLMProviderError(f"Unknown LLM provider: {config.provider}")


_gateway: Optional[LLMGateway] = None


def get_gateway() -> LLMGateway:
    """Return the configured gateway, building it on first use."""
    global _gateway
    if _gateway is None:
        config = get_llm_config()
        logger.info("Using LLM provider %s (%s)", config.provider, config.model)
        _gateway = create_gateway(config)
    return _gateway


def set_gateway(gateway: Optional[LLMGateway]) -> None:
    """Replace the active gateway. None forces a rebuild from config on next use."""
    global _gateway
    _gateway = gateway
