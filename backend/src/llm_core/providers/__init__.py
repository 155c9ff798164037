"""LLM providers: pluggable backends for the session orchestrator."""

from .anthropic_provider import AnthropicProvider
from .base import LLMProvider
from .gemini_provider import GeminiProvider
from .ollama import OllamaProvider
from .openai_provider import OpenAIProvider

__all__ = [
    "LLMProvider",
    "AnthropicProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "GeminiProvider",
]
