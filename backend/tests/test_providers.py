"""Unit tests for endpoint adapters: response parsing, stop reasons and error mapping (no network)."""
from __future__ import annotations

import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import openai
from ollama import ResponseError

from src.llm_core import resolve_provider
from src.llm_core.errors import ContextOverflowError, TransportError
from src.llm_core.models import ChatTurn, LLMRequest, Tool
from src.llm_core.providers import (
    AnthropicProvider,
    GeminiProvider,
    OllamaProvider,
    OpenAIProvider,
)
from src.llm_core.providers import gemini_provider, ollama, openai_provider
from src.llm_core.providers.anthropic_provider import _to_anthropic_messages

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
OPENAI_URL = "https://api.openai.com/v1/chat/completions"


def _request(*turns: tuple[str, str]) -> LLMRequest:
    return LLMRequest(
        model="test-model",
        max_tokens=256,
        tools=[Tool(name="roll_dice", description="Roll dice")],
        messages=[ChatTurn(role=r, content=c) for r, c in turns],
    )


def _status_error(cls, status: int, message: str, url: str, body=None):
    response = httpx.Response(status, request=httpx.Request("POST", url))
    return cls(message, response=response, body=body)


class TestAnthropicProvider(unittest.IsolatedAsyncioTestCase):
    def _provider(self, create: AsyncMock) -> AnthropicProvider:
        provider = AnthropicProvider(api_key="sk-ant-test")
        provider._client = MagicMock()
        provider._client.messages.create = create
        return provider

    def test_messages_merge_same_role_and_open_with_user(self) -> None:
        turns = [
            ChatTurn(role="assistant", content="left over after compaction"),
            ChatTurn(role="user", content="roll 1d20"),
            ChatTurn(role="assistant", content="Tool 'roll_dice' result: 14"),
            ChatTurn(role="assistant", content="Tool 'lookup_npc' result: Mira"),
        ]
        self.assertEqual(
            _to_anthropic_messages(turns),
            [
                {"role": "user", "content": "roll 1d20"},
                {
                    "role": "assistant",
                    "content": "Tool 'roll_dice' result: 14\n\nTool 'lookup_npc' result: Mira",
                },
            ],
        )

    async def test_tool_use_response_parsed(self) -> None:
        raw = SimpleNamespace(
            id="msg_1",
            role="assistant",
            model="claude-3-5-haiku-20241022",
            stop_reason="tool_use",
            content=[
                SimpleNamespace(type="text", text="Rolling."),
                SimpleNamespace(type="tool_use", id="toolu_1", name="roll_dice", input={"expr": "1d20"}),
            ],
            usage=SimpleNamespace(input_tokens=12, output_tokens=7),
        )
        create = AsyncMock(return_value=raw)
        provider = self._provider(create)

        response = await provider.complete(_request(("system", "persona"), ("user", "roll 1d20")))

        self.assertEqual(response.stop_reason, "tool_use")
        self.assertEqual(response.text, "Rolling.")
        [call] = response.tool_invocations()
        self.assertEqual((call.id, call.name, call.arguments), ("toolu_1", "roll_dice", {"expr": "1d20"}))
        self.assertEqual(response.usage.output_tokens, 7)
        kwargs = create.await_args.kwargs
        self.assertEqual(kwargs["system"], "persona")
        self.assertEqual(kwargs["messages"], [{"role": "user", "content": "roll 1d20"}])
        self.assertEqual(kwargs["tools"][0]["name"], "roll_dice")

    async def test_prompt_too_long_is_context_overflow(self) -> None:
        error = _status_error(
            anthropic.BadRequestError, 400, "prompt is too long: 210000 tokens > 200000 maximum", ANTHROPIC_URL
        )
        provider = self._provider(AsyncMock(side_effect=error))
        with self.assertRaises(ContextOverflowError):
            await provider.complete(_request(("user", "hi")))

    async def test_other_status_is_transport_error(self) -> None:
        error = _status_error(anthropic.InternalServerError, 500, "overloaded", ANTHROPIC_URL)
        provider = self._provider(AsyncMock(side_effect=error))
        with self.assertRaises(TransportError) as ctx:
            await provider.complete(_request(("user", "hi")))
        self.assertNotIsInstance(ctx.exception, ContextOverflowError)
        self.assertEqual(ctx.exception.extra["status"], 500)

    async def test_connection_error_is_transport_error(self) -> None:
        error = anthropic.APIConnectionError(request=httpx.Request("POST", ANTHROPIC_URL))
        provider = self._provider(AsyncMock(side_effect=error))
        with self.assertRaises(TransportError):
            await provider.complete(_request(("user", "hi")))


class TestOpenAIProvider(unittest.IsolatedAsyncioTestCase):
    def test_finish_reason_mapping(self) -> None:
        self.assertEqual(openai_provider.map_finish_reason("stop"), "end_turn")
        self.assertEqual(openai_provider.map_finish_reason("tool_calls"), "tool_use")
        self.assertEqual(openai_provider.map_finish_reason("length"), "max_tokens")
        self.assertEqual(openai_provider.map_finish_reason("content_filter"), "content_filter")
        self.assertIsNone(openai_provider.map_finish_reason(None))

    def test_tool_calls_parsed(self) -> None:
        resp = SimpleNamespace(
            id="chatcmpl-1",
            model="gpt-4o-mini",
            usage=SimpleNamespace(prompt_tokens=3, completion_tokens=4),
            choices=[
                SimpleNamespace(
                    finish_reason="tool_calls",
                    message=SimpleNamespace(
                        role="assistant",
                        content=None,
                        tool_calls=[
                            SimpleNamespace(
                                id="call_1",
                                function=SimpleNamespace(name="roll_dice", arguments='{"expr": "2d6"}'),
                            )
                        ],
                    ),
                )
            ],
        )
        response = openai_provider._parse_response(resp)
        self.assertEqual(response.stop_reason, "tool_use")
        self.assertEqual(response.tool_invocations()[0].arguments, {"expr": "2d6"})

    async def test_context_length_exceeded(self) -> None:
        error = _status_error(
            openai.BadRequestError,
            400,
            "maximum context length exceeded",
            OPENAI_URL,
            body={"code": "context_length_exceeded", "message": "maximum context length exceeded"},
        )
        provider = OpenAIProvider(api_key="sk-test")
        provider._client = MagicMock()
        provider._client.chat.completions.create = AsyncMock(side_effect=error)
        with self.assertRaises(ContextOverflowError):
            await provider.complete(_request(("user", "hi")))

    async def test_connection_error_is_transport_error(self) -> None:
        error = openai.APIConnectionError(request=httpx.Request("POST", OPENAI_URL))
        provider = OpenAIProvider(api_key="sk-test")
        provider._client = MagicMock()
        provider._client.chat.completions.create = AsyncMock(side_effect=error)
        with self.assertRaises(TransportError) as ctx:
            await provider.complete(_request(("user", "hi")))
        self.assertNotIsInstance(ctx.exception, ContextOverflowError)


class TestOllamaProvider(unittest.IsolatedAsyncioTestCase):
    def test_stop_with_tool_calls_is_tool_use(self) -> None:
        resp = SimpleNamespace(
            model="llama3.2",
            done_reason="stop",
            prompt_eval_count=5,
            eval_count=2,
            message=SimpleNamespace(
                content="",
                tool_calls=[SimpleNamespace(function=SimpleNamespace(name="roll_dice", arguments={"expr": "1d6"}))],
            ),
        )
        response = ollama._parse_response(resp, "llama3.2")
        self.assertEqual(response.stop_reason, "tool_use")
        self.assertEqual(response.tool_invocations()[0].arguments, {"expr": "1d6"})

    def test_length_is_max_tokens(self) -> None:
        resp = SimpleNamespace(
            model="llama3.2", done_reason="length", message=SimpleNamespace(content="The", tool_calls=None)
        )
        self.assertEqual(ollama._parse_response(resp, "llama3.2").stop_reason, "max_tokens")

    async def test_context_error_is_overflow(self) -> None:
        client = MagicMock()
        client.chat = AsyncMock(side_effect=ResponseError("input exceeds context length", 400))
        client.close = AsyncMock()
        with patch.object(ollama, "AsyncClient", return_value=client):
            with self.assertRaises(ContextOverflowError):
                await OllamaProvider().complete(_request(("user", "hi")))
        client.close.assert_awaited_once()

    def test_no_credentials_needed(self) -> None:
        self.assertFalse(OllamaProvider.requires_credentials)


class TestGeminiProvider(unittest.IsolatedAsyncioTestCase):
    def _provider(self, generate: AsyncMock) -> GeminiProvider:
        provider = GeminiProvider(api_key="g-test")
        provider._client = MagicMock()
        provider._client.aio.models.generate_content = generate
        return provider

    async def test_connection_error_is_transport_error(self) -> None:
        provider = self._provider(AsyncMock(side_effect=httpx.ConnectError("refused")))
        with self.assertRaises(TransportError) as ctx:
            await provider.complete(_request(("user", "hi")))
        self.assertIn("refused", str(ctx.exception))

    async def test_read_timeout_is_transport_error(self) -> None:
        provider = self._provider(AsyncMock(side_effect=httpx.ReadTimeout("timed out")))
        with self.assertRaises(TransportError):
            await provider.complete(_request(("user", "hi")))

    def test_stop_and_max_tokens(self) -> None:
        def resp(reason: str, parts):
            return SimpleNamespace(
                candidates=[
                    SimpleNamespace(finish_reason=SimpleNamespace(name=reason), content=SimpleNamespace(parts=parts))
                ],
                usage_metadata=None,
            )

        text = SimpleNamespace(text="You rolled a 14.", function_call=None)
        call = SimpleNamespace(
            text=None, function_call=SimpleNamespace(id="fc1", name="roll_dice", args={"expr": "1d20"})
        )
        self.assertEqual(gemini_provider._parse_response(resp("STOP", [text]), "g").stop_reason, "end_turn")
        self.assertEqual(gemini_provider._parse_response(resp("STOP", [call]), "g").stop_reason, "tool_use")
        self.assertEqual(gemini_provider._parse_response(resp("MAX_TOKENS", [text]), "g").stop_reason, "max_tokens")


class TestResolveProvider(unittest.TestCase):
    def test_prefixes(self) -> None:
        provider, model = resolve_provider("anthropic:claude-3-5-haiku-20241022", api_key="k1")
        self.assertIsInstance(provider, AnthropicProvider)
        self.assertEqual(model, "claude-3-5-haiku-20241022")
        self.assertIsInstance(resolve_provider("openai:gpt-4o-mini", api_key="k2")[0], OpenAIProvider)
        self.assertIsInstance(resolve_provider("gemini:gemini-2.5-flash", api_key="k3")[0], GeminiProvider)

    def test_bare_name_is_ollama(self) -> None:
        provider, model = resolve_provider("llama3.2")
        self.assertIsInstance(provider, OllamaProvider)
        self.assertEqual(model, "llama3.2")

    def test_unknown_prefix_is_ollama_tag(self) -> None:
        provider, model = resolve_provider("llama3.2:1b")
        self.assertIsInstance(provider, OllamaProvider)
        self.assertEqual(model, "llama3.2:1b")
        self.assertEqual(resolve_provider("ollama:mistral")[1], "mistral")

    def test_cached_per_key(self) -> None:
        a, _ = resolve_provider("anthropic:m", api_key="same")
        b, _ = resolve_provider("anthropic:other", api_key="same")
        self.assertIs(a, b)


if __name__ == "__main__":
    unittest.main()
