from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass
class LLMCoreConfig:
    """Defaults used when a model string is resolved to an endpoint."""

    model: str = "anthropic:claude-3-5-haiku-20241022"
    ollama_base_url: str | None = field(default_factory=lambda: os.getenv("OLLAMA_HOST"))


# Prefix before ':' in a model string -> provider key. Anything else is served by Ollama.
PROVIDER_ALIASES: dict[str, str] = {
    "anthropic": "anthropic",
    "claude": "anthropic",
    "openai": "openai",
    "gemini": "gemini",
    "google": "gemini",
    "ollama": "ollama",
}

DEFAULT_LLM_CORE_CONFIG = LLMCoreConfig()
