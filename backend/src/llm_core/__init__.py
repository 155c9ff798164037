"""LLM endpoint models, errors and providers used by the session orchestrator."""

from .config import DEFAULT_LLM_CORE_CONFIG, PROVIDER_ALIASES, LLMCoreConfig
from .core import resolve_provider
from .errors import AssistantError, ContextOverflowError, ProtocolError, TransportError
from .models import (
    ChatTurn,
    ContentBlock,
    LLMRequest,
    LLMResponse,
    StopReason,
    Tool,
    ToolInvocation,
    Usage,
)
from .providers import LLMProvider

__all__ = [
    "AssistantError",
    "ChatTurn",
    "ContentBlock",
    "ContextOverflowError",
    "DEFAULT_LLM_CORE_CONFIG",
    "LLMCoreConfig",
    "LLMProvider",
    "LLMRequest",
    "PROVIDER_ALIASES",
    "LLMResponse",
    "ProtocolError",
    "StopReason",
    "Tool",
    "ToolInvocation",
    "TransportError",
    "Usage",
    "resolve_provider",
]
