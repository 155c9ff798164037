"""Ollama LLM provider implementation."""

from __future__ import annotations

import json
import uuid
from typing import Any

import httpx
from ollama import AsyncClient, ResponseError

from ..errors import ContextOverflowError, TransportError
from ..models import ContentBlock, LLMRequest, LLMResponse, StopReason, Usage
from .base import LLMProvider


def _tool_arguments(args: Any) -> Any:
    if isinstance(args, str):
        try:
            return json.loads(args)
        except ValueError:
            return args
    return dict(args) if args is not None else {}


def _parse_response(resp: Any, model_name: str) -> LLMResponse:
    msg = getattr(resp, "message", None)
    blocks: list[ContentBlock] = []
    content = (getattr(msg, "content", None) or "") if msg is not None else ""
    if content:
        blocks.append(ContentBlock(type="text", text=content))
    for tc in (getattr(msg, "tool_calls", None) or []) if msg is not None else []:
        fn = getattr(tc, "function", None)
        if fn is None:
            continue
        blocks.append(
            ContentBlock(
                type="tool_use",
                # Ollama does not assign invocation ids.
                id=str(uuid.uuid4()),
                name=getattr(fn, "name", "") or "",
                input=_tool_arguments(getattr(fn, "arguments", None)),
            )
        )

    done_reason = getattr(resp, "done_reason", None)
    has_tools = any(b.type == "tool_use" for b in blocks)
    if done_reason == "stop":
        stop_reason: str | None = (StopReason.TOOL_USE if has_tools else StopReason.END_TURN).value
    elif done_reason == "length":
        stop_reason = StopReason.MAX_TOKENS.value
    else:
        stop_reason = done_reason

    return LLMResponse(
        model=getattr(resp, "model", None) or model_name,
        content=blocks,
        stop_reason=stop_reason,
        usage=Usage(
            input_tokens=getattr(resp, "prompt_eval_count", 0) or 0,
            output_tokens=getattr(resp, "eval_count", 0) or 0,
        ),
    )


class OllamaProvider(LLMProvider):
    """Ollama-backed LLM provider."""

    requires_credentials = False

    def __init__(self, default_model: str = "llama3.2", base_url: str | None = None):
        self.default_model = default_model
        self.base_url = base_url or "http://localhost:11434"

    async def complete(self, request: LLMRequest) -> LLMResponse:
        client = AsyncClient(host=self.base_url)
        model_name = request.model or self.default_model
        tools = [t.to_tool_schema() for t in request.tools] or None
        try:
            resp = await client.chat(
                model=model_name,
                messages=[{"role": t.role, "content": t.content} for t in request.messages],
                tools=tools,
                options={"num_predict": request.max_tokens},
                stream=False,
            )
        except ResponseError as exc:
            text = str(exc.error).lower()
            if "context" in text and ("exceed" in text or "too long" in text):
                raise ContextOverflowError(str(exc.error), provider="ollama") from exc
            raise TransportError(str(exc.error), provider="ollama", status=exc.status_code) from exc
        except (ConnectionError, httpx.HTTPError) as exc:
            raise TransportError(str(exc), provider="ollama") from exc
        finally:
            await client.close()
        return _parse_response(resp, model_name)
