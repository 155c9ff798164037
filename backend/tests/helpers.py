"""Fakes shared by the orchestrator tests: a scripted endpoint and in-memory tool providers."""
from __future__ import annotations

from collections import deque
from typing import Any, Awaitable, Callable

from src.llm_core.models import ContentBlock, LLMRequest, LLMResponse, Tool
from src.llm_core.providers import LLMProvider
from src.session_orchestrator.compaction import CompactionPolicy
from src.session_orchestrator.conversation import Conversation
from src.session_orchestrator.dispatcher import Dispatcher
from src.session_orchestrator.errors import ToolError
from src.session_orchestrator.events import EventChannel
from src.session_orchestrator.invoker import ToolInvoker
from src.session_orchestrator.registry import ToolRegistry
from src.session_orchestrator.tools import ToolProvider

SYSTEM_PROMPT = "You are a dungeon master's assistant."


def text_response(text: str, stop_reason: str | None = "end_turn") -> LLMResponse:
    blocks = [ContentBlock(type="text", text=text)] if text else []
    return LLMResponse(id="msg_text", model="test-model", content=blocks, stop_reason=stop_reason)


def tool_use_response(*calls: tuple[str, str, Any], text: str = "") -> LLMResponse:
    """``calls`` are (invocation id, tool name, input) triples."""
    blocks = [ContentBlock(type="text", text=text)] if text else []
    blocks += [ContentBlock(type="tool_use", id=i, name=n, input=inp) for i, n, inp in calls]
    return LLMResponse(id="msg_tool", model="test-model", content=blocks, stop_reason="tool_use")


class ScriptedProvider(LLMProvider):
    """Replays scripted steps: an LLMResponse, an exception to raise, or an async callable."""

    requires_credentials = False

    def __init__(self, *steps: Any) -> None:
        self.steps = deque(steps)
        self.requests: list[LLMRequest] = []

    async def complete(self, request: LLMRequest) -> LLMResponse:
        self.requests.append(request)
        if not self.steps:
            raise AssertionError("ScriptedProvider ran out of responses")
        step = self.steps.popleft()
        if isinstance(step, BaseException):
            raise step
        if callable(step):
            return await step(request)
        return step


class CredentialedProvider(ScriptedProvider):
    requires_credentials = True

    def __init__(self, api_key: str = "", *steps: Any) -> None:
        super().__init__(*steps)
        self.api_key = api_key


Handler = Callable[[dict[str, Any]], Awaitable[list[str]]]


class FakeToolProvider(ToolProvider):
    """Tools backed by async handlers; records every call."""

    def __init__(self, handlers: dict[str, Handler]) -> None:
        self.handlers = handlers
        self.calls: list[tuple[str, Any]] = []

    def list_tools(self) -> list[Tool]:
        return [Tool(name=name, description=f"{name} tool") for name in self.handlers]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> list[str]:
        self.calls.append((name, arguments))
        return await self.handlers[name](arguments)


def returning(*fragments: str) -> Handler:
    async def handler(arguments: dict[str, Any]) -> list[str]:
        return list(fragments)

    return handler


def failing(reason: str) -> Handler:
    async def handler(arguments: dict[str, Any]) -> list[str]:
        raise ToolError(reason)

    return handler


def make_dispatcher(
    provider: LLMProvider,
    providers: list[ToolProvider] | None = None,
    *,
    max_attempts: int = 3,
    tool_timeout: float | None = 1.0,
    request_timeout: float | None = 1.0,
    event_capacity: int = 64,
) -> Dispatcher:
    conversation = Conversation()
    conversation.system(SYSTEM_PROMPT)
    registry = ToolRegistry.build(providers or [FakeToolProvider({"roll_dice": returning("14")})])
    return Dispatcher(
        provider=provider,
        conversation=conversation,
        registry=registry,
        events=EventChannel(event_capacity),
        compaction=CompactionPolicy(max_attempts=max_attempts, retry_delay=0),
        invoker=ToolInvoker(registry, timeout=tool_timeout),
        model="test-model",
        max_tokens=1024,
        request_timeout=request_timeout,
    )
