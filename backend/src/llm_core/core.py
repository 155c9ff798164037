from __future__ import annotations

from typing import Tuple

from .config import DEFAULT_LLM_CORE_CONFIG, PROVIDER_ALIASES, LLMCoreConfig
from .providers import (
    AnthropicProvider,
    GeminiProvider,
    LLMProvider,
    OllamaProvider,
    OpenAIProvider,
)

_provider_cache: dict[tuple[str, str], LLMProvider] = {}


def resolve_provider(
    model: str | None = None,
    api_key: str | None = None,
    config: LLMCoreConfig | None = None,
) -> Tuple[LLMProvider, str]:
    """
    Resolve provider and underlying model name from a model string.

    Expected formats:
    - "provider:model_name" (e.g. "anthropic:claude-3-5-haiku-20241022", "openai:gpt-4o-mini")
    - "model_name" (no colon) → treated as an Ollama model.
    """
    cfg = config or DEFAULT_LLM_CORE_CONFIG
    effective_model = model or cfg.model
    if ":" in effective_model:
        prefix, raw_model = effective_model.split(":", 1)
        provider_name = PROVIDER_ALIASES.get(prefix.strip().lower())
        if provider_name is None:
            # Unknown prefix is an Ollama tag such as "llama3.2:1b".
            provider_name, model_name = "ollama", effective_model.strip()
        else:
            model_name = raw_model.strip()
    else:
        provider_name = "ollama"
        model_name = effective_model.strip()

    key = (provider_name, api_key or "")
    if key not in _provider_cache:
        if provider_name == "anthropic":
            _provider_cache[key] = AnthropicProvider(api_key=api_key)
        elif provider_name == "openai":
            _provider_cache[key] = OpenAIProvider(api_key=api_key)
        elif provider_name == "gemini":
            _provider_cache[key] = GeminiProvider(api_key=api_key)
        else:
            _provider_cache[key] = OllamaProvider(default_model=model_name, base_url=cfg.ollama_base_url)

    return _provider_cache[key], model_name
