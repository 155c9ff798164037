"""Google Gemini LLM provider implementation for the orchestrator."""

from __future__ import annotations

import os
import uuid
from typing import Any

import httpx
from dotenv import load_dotenv
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from ..errors import ContextOverflowError, TransportError
from ..models import ChatTurn, ContentBlock, LLMRequest, LLMResponse, StopReason, Tool, Usage
from .base import LLMProvider

load_dotenv()


def _to_gemini_contents(turns: list[ChatTurn]) -> list[genai_types.Content]:
    """Convert dialogue turns into Gemini contents."""
    contents: list[genai_types.Content] = []
    for t in turns:
        if not t.content:
            continue
        role = "model" if t.role == "assistant" else "user"
        # Construct Part directly to avoid signature issues with from_text()
        contents.append(genai_types.Content(role=role, parts=[genai_types.Part(text=t.content)]))
    return contents


def _to_gemini_tools(tools: list[Tool]) -> list[genai_types.Tool] | None:
    """Convert tool descriptors into Gemini Tool declarations."""
    if not tools:
        return None
    declarations = [
        genai_types.FunctionDeclaration(
            name=t.name,
            description=t.description,
            parameters=t.input_schema,
        )
        for t in tools
    ]
    return [genai_types.Tool(function_declarations=declarations)]


def _parse_response(resp: Any, model_name: str) -> LLMResponse:
    blocks: list[ContentBlock] = []
    finish_reason: str | None = None
    candidates = getattr(resp, "candidates", None) or []
    if candidates:
        cand = candidates[0]
        raw_reason = getattr(cand, "finish_reason", None)
        if raw_reason is not None:
            finish_reason = getattr(raw_reason, "name", None) or str(raw_reason)
        content = getattr(cand, "content", None)
        for part in (getattr(content, "parts", None) or []) if content else []:
            text = getattr(part, "text", None)
            if text:
                blocks.append(ContentBlock(type="text", text=text))
            fc = getattr(part, "function_call", None)
            if fc:
                blocks.append(
                    ContentBlock(
                        type="tool_use",
                        id=getattr(fc, "id", None) or f"call_{fc.name}_{uuid.uuid4().hex[:8]}",
                        name=fc.name,
                        input=dict(fc.args) if fc.args else {},
                    )
                )

    has_tools = any(b.type == "tool_use" for b in blocks)
    if finish_reason == "STOP":
        stop_reason: str | None = (StopReason.TOOL_USE if has_tools else StopReason.END_TURN).value
    elif finish_reason == "MAX_TOKENS":
        stop_reason = StopReason.MAX_TOKENS.value
    else:
        stop_reason = finish_reason.lower() if finish_reason else None

    usage = Usage()
    meta = getattr(resp, "usage_metadata", None)
    if meta is not None:
        usage = Usage(
            input_tokens=getattr(meta, "prompt_token_count", 0) or 0,
            output_tokens=getattr(meta, "candidates_token_count", 0) or 0,
        )
    return LLMResponse(
        id=getattr(resp, "response_id", None) or "",
        model=getattr(resp, "model_version", None) or model_name,
        content=blocks,
        stop_reason=stop_reason,
        usage=usage,
    )


class GeminiProvider(LLMProvider):
    """Gemini provider using the google-genai SDK."""

    def __init__(
        self,
        default_model: str = "gemini-2.5-flash",
        api_key: str | None = None,
    ) -> None:
        self.default_model = default_model
        self.api_key = api_key or os.getenv("GOOGLE_API_KEY") or os.getenv(
            "GEMINI_API_KEY",
            "",
        )
        self._client: genai.Client | None = None

    def _get_client(self) -> genai.Client:
        if not self._client:
            self._client = genai.Client(
                api_key=self.api_key,
                http_options={"api_version": "v1beta"},
            )
        return self._client

    async def complete(self, request: LLMRequest) -> LLMResponse:
        client = self._get_client()
        model_name = request.model or self.default_model
        config_args: dict[str, Any] = {"max_output_tokens": request.max_tokens}
        gemini_tools = _to_gemini_tools(request.tools)
        if gemini_tools:
            config_args["tools"] = gemini_tools
            # The dispatcher runs tools itself.
            config_args["automatic_function_calling"] = genai_types.AutomaticFunctionCallingConfig(
                disable=True
            )
        if request.system:
            config_args["system_instruction"] = request.system

        try:
            resp = await client.aio.models.generate_content(
                model=model_name,
                contents=_to_gemini_contents(request.dialogue),
                config=genai_types.GenerateContentConfig(**config_args),
            )
        except genai_errors.APIError as exc:
            message = str(exc).lower()
            if exc.code == 400 and "token" in message and "exceed" in message:
                raise ContextOverflowError(str(exc), provider="gemini") from exc
            raise TransportError(str(exc), provider="gemini", status=exc.code) from exc
        except httpx.HTTPError as exc:
            raise TransportError(str(exc), provider="gemini") from exc
        return _parse_response(resp, model_name)
