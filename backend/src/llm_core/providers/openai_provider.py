"""OpenAI LLM provider implementation for the orchestrator."""

from __future__ import annotations

import json
import os
from typing import Any

from dotenv import load_dotenv
from openai import APIError, APIStatusError, AsyncOpenAI, BadRequestError

from ..errors import ContextOverflowError, TransportError
from ..models import ContentBlock, LLMRequest, LLMResponse, StopReason, Usage
from .base import LLMProvider

load_dotenv()

# OpenAI finish_reason -> termination signal understood by the dispatcher.
_FINISH_REASONS = {
    "stop": StopReason.END_TURN.value,
    "tool_calls": StopReason.TOOL_USE.value,
    "function_call": StopReason.TOOL_USE.value,
    "length": StopReason.MAX_TOKENS.value,
}


def map_finish_reason(finish_reason: str | None) -> str | None:
    """Translate a finish_reason; unknown values pass through so the dispatcher can reject them."""
    if finish_reason is None:
        return None
    return _FINISH_REASONS.get(finish_reason, finish_reason)


def _parse_arguments(raw_args: Any) -> Any:
    if isinstance(raw_args, str):
        try:
            return json.loads(raw_args) if raw_args else {}
        except ValueError:
            # Malformed arguments are reported per invocation by the invoker.
            return raw_args
    return raw_args if raw_args is not None else {}


def _parse_response(resp: Any) -> LLMResponse:
    usage = Usage()
    if getattr(resp, "usage", None):
        usage = Usage(
            input_tokens=getattr(resp.usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(resp.usage, "completion_tokens", 0) or 0,
        )
    if not resp.choices:
        return LLMResponse(id=resp.id or "", model=resp.model or "", usage=usage)

    choice = resp.choices[0]
    message = choice.message
    blocks: list[ContentBlock] = []
    content = message.content or ""
    if isinstance(content, list):
        # Multi-part content; join text fragments
        content = "".join(
            part.get("text", "") if isinstance(part, dict) else str(part) for part in content
        )
    if content:
        blocks.append(ContentBlock(type="text", text=content))
    for tc in getattr(message, "tool_calls", None) or []:
        fn = getattr(tc, "function", None)
        blocks.append(
            ContentBlock(
                type="tool_use",
                id=getattr(tc, "id", "") or "",
                name=getattr(fn, "name", "") if fn is not None else "",
                input=_parse_arguments(getattr(fn, "arguments", None) if fn is not None else None),
            )
        )

    return LLMResponse(
        id=resp.id or "",
        role=getattr(message, "role", None) or "assistant",
        model=resp.model or "",
        content=blocks,
        stop_reason=map_finish_reason(choice.finish_reason),
        usage=usage,
    )


class OpenAIProvider(LLMProvider):
    """OpenAI-backed LLM provider using the Chat Completions API."""

    def __init__(
        self,
        default_model: str = "gpt-4.1-nano",
        api_key: str | None = None,
        base_url: str | None = None,
    ) -> None:
        self.default_model = default_model
        self.api_key = api_key or os.getenv("OPENAI_API_KEY") or ""
        self.base_url = base_url or os.getenv("OPENAI_BASE_URL")
        self._client: AsyncOpenAI | None = None

    def _get_client(self) -> AsyncOpenAI:
        if not self._client:
            kwargs: dict[str, Any] = {"api_key": self.api_key}
            if self.base_url:
                kwargs["base_url"] = self.base_url
            self._client = AsyncOpenAI(**kwargs)
        return self._client

    async def complete(self, request: LLMRequest) -> LLMResponse:
        client = self._get_client()
        params: dict[str, Any] = {
            "model": request.model or self.default_model,
            "max_tokens": request.max_tokens,
            "messages": [{"role": t.role, "content": t.content} for t in request.messages],
        }
        if request.tools:
            params["tools"] = [t.to_tool_schema() for t in request.tools]

        try:
            resp = await client.chat.completions.create(**params)
        except BadRequestError as exc:
            if exc.code == "context_length_exceeded":
                raise ContextOverflowError(str(exc), provider="openai") from exc
            raise TransportError(str(exc), provider="openai", status=exc.status_code) from exc
        except APIStatusError as exc:
            raise TransportError(str(exc), provider="openai", status=exc.status_code) from exc
        except APIError as exc:
            raise TransportError(str(exc), provider="openai") from exc

        return _parse_response(resp)
