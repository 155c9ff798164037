"""Abstract LLM provider interface for the session orchestrator."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..models import LLMRequest, LLMResponse


class LLMProvider(ABC):
    """
    Abstract LLM provider. Implement this to plug in any backend (Anthropic, OpenAI, etc.).

    The orchestrator only depends on this interface. Implementations must either
    return a fully parsed LLMResponse or raise TransportError / ContextOverflowError;
    vendor exceptions never leak out of ``complete``.
    """

    #: Whether the backend needs an API key (local backends such as Ollama do not).
    requires_credentials: bool = True

    api_key: str = ""

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)

    @abstractmethod
    async def complete(self, request: LLMRequest) -> LLMResponse:
        """Non-streaming exchange: send the request, return the parsed response."""
        ...
