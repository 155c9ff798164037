"""Anthropic LLM provider implementation for the orchestrator.

Anthropic specifics handled here:
- The system prompt is a separate ``system`` parameter, not a message.
- Strict user/assistant alternation; consecutive same-role turns are merged
  and the dialogue must open with a user turn.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import anthropic
from dotenv import load_dotenv

from ..errors import ContextOverflowError, TransportError
from ..models import ChatTurn, ContentBlock, LLMRequest, LLMResponse, Usage
from .base import LLMProvider

load_dotenv()

logger = logging.getLogger(__name__)

_OVERFLOW_MARKERS = ("prompt is too long", "context window", "context length", "too many tokens")


def _to_anthropic_messages(turns: list[ChatTurn]) -> list[dict[str, Any]]:
    """Convert dialogue turns into Anthropic messages, merging same-role runs."""
    merged: list[dict[str, Any]] = []
    for turn in turns:
        if not turn.content:
            continue
        if not merged and turn.role != "user":
            # Compaction can leave assistant turns ahead of the first user turn.
            continue
        if merged and merged[-1]["role"] == turn.role:
            merged[-1]["content"] = f"{merged[-1]['content']}\n\n{turn.content}"
        else:
            merged.append({"role": turn.role, "content": turn.content})
    return merged


def _parse_response(raw: Any) -> LLMResponse:
    """Parse an Anthropic Messages response into a provider-agnostic LLMResponse."""
    blocks: list[ContentBlock] = []
    for block in raw.content or []:
        if block.type == "text":
            blocks.append(ContentBlock(type="text", text=block.text))
        elif block.type == "tool_use":
            blocks.append(
                ContentBlock(type="tool_use", id=block.id, name=block.name, input=block.input)
            )
        else:
            logger.debug("Skipping %s block in Anthropic response", block.type)

    usage = Usage()
    if getattr(raw, "usage", None):
        usage = Usage(
            input_tokens=getattr(raw.usage, "input_tokens", 0) or 0,
            output_tokens=getattr(raw.usage, "output_tokens", 0) or 0,
        )

    return LLMResponse(
        id=raw.id or "",
        role=raw.role or "assistant",
        model=raw.model or "",
        content=blocks,
        stop_reason=raw.stop_reason,
        usage=usage,
    )


def is_context_overflow(exc: anthropic.APIStatusError) -> bool:
    """Whether a status error is Anthropic's 'history too large' signal."""
    if exc.status_code == 413:
        return True
    if exc.status_code != 400:
        return False
    text = str(exc).lower()
    return any(marker in text for marker in _OVERFLOW_MARKERS)


class AnthropicProvider(LLMProvider):
    """Anthropic-backed LLM provider using the Messages API."""

    def __init__(
        self,
        default_model: str = "claude-3-5-haiku-20241022",
        api_key: str | None = None,
        base_url: str | None = None,
    ) -> None:
        self.default_model = default_model
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY") or ""
        self.base_url = base_url or os.getenv("ANTHROPIC_BASE_URL")
        self._client: anthropic.AsyncAnthropic | None = None

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            kwargs: dict[str, Any] = {"api_key": self.api_key}
            if self.base_url:
                kwargs["base_url"] = self.base_url
            self._client = anthropic.AsyncAnthropic(**kwargs)
        return self._client

    async def complete(self, request: LLMRequest) -> LLMResponse:
        client = self._get_client()
        params: dict[str, Any] = {
            "model": request.model or self.default_model,
            "max_tokens": request.max_tokens,
            "messages": _to_anthropic_messages(request.dialogue),
        }
        if request.system:
            params["system"] = request.system
        if request.tools:
            params["tools"] = [t.to_anthropic() for t in request.tools]

        try:
            raw = await client.messages.create(**params)
        except anthropic.APIStatusError as exc:
            if is_context_overflow(exc):
                raise ContextOverflowError(str(exc), provider="anthropic") from exc
            raise TransportError(str(exc), provider="anthropic", status=exc.status_code) from exc
        except anthropic.APIError as exc:
            # Connection failures and client-side timeouts.
            raise TransportError(str(exc), provider="anthropic") from exc

        return _parse_response(raw)
