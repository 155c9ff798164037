"""Request/response state machine between the conversation, the endpoint and the tools."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum

from src.llm_core.models import LLMRequest, LLMResponse, StopReason
from src.llm_core.providers import LLMProvider

from .compaction import CompactionPolicy
from .config import DEFAULT_MAX_TOKENS, DEFAULT_REQUEST_TIMEOUT, DEFAULT_TOOL_TIMEOUT
from .conversation import Conversation
from .errors import ContextOverflowError, ProtocolError, TransportError
from .events import (
    AssistantErrorEvent,
    AssistantResponse,
    AssistantThinking,
    AssistantThinkingDone,
    Event,
    EventChannel,
)
from .invoker import ToolInvoker
from .models import ToolResult
from .registry import ToolRegistry

logger = logging.getLogger(__name__)

TRANSPORT_FAILURE_TEXT = "failed to send AI request"

FALLBACK_TEXT = {
    StopReason.MAX_TOKENS.value: "[Response cut short: the token limit was reached.]",
    StopReason.STOP_SEQUENCE.value: "[Response cut short: a stop sequence was reached.]",
}


class DispatcherState(str, Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    TOOL_USE = "tool_use"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class TurnOutcome:
    """How a turn ended. ``text`` is the emitted response or error text."""

    status: str
    text: str
    stop_reason: str | None = None
    requests: int = 0
    tool_results: list[ToolResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == DispatcherState.COMPLETED.value


class Dispatcher:
    """Drives one conversation's turns against the endpoint.

    Requests go through a FIFO queue drained one at a time, so at most one
    request is ever in flight. A follow-up (after tool results or compaction)
    is enqueued only once the previous exchange is fully handled.
    """

    def __init__(
        self,
        provider: LLMProvider,
        conversation: Conversation,
        registry: ToolRegistry,
        events: EventChannel,
        compaction: CompactionPolicy | None = None,
        invoker: ToolInvoker | None = None,
        model: str = "",
        max_tokens: int = DEFAULT_MAX_TOKENS,
        request_timeout: float | None = DEFAULT_REQUEST_TIMEOUT,
    ):
        self.provider = provider
        self.conversation = conversation
        self.registry = registry
        self.events = events
        self.compaction = compaction or CompactionPolicy()
        self.invoker = invoker or ToolInvoker(registry, timeout=DEFAULT_TOOL_TIMEOUT)
        self.model = model
        self.max_tokens = max_tokens
        self.request_timeout = request_timeout
        self.state = DispatcherState.IDLE
        self._queue: deque[LLMRequest] = deque()

    # -- helpers ------------------------------------------------------------

    def _transition(self, state: DispatcherState) -> None:
        if state is not self.state:
            logger.debug("Dispatcher %s -> %s", self.state.value, state.value)
            self.state = state

    def _emit(self, event: Event) -> None:
        # SessionClosed propagates to the caller of run_turn.
        self.events.send(event)

    def build_request(self) -> LLMRequest:
        """Snapshot of the full history plus the advertised tools."""
        return LLMRequest(
            model=self.model,
            max_tokens=self.max_tokens,
            tools=list(self.registry.tools),
            messages=self.conversation.to_chat_turns(),
        )

    async def _send(self, request: LLMRequest) -> LLMResponse:
        logger.debug(
            "Sending request: %d message(s), %d tool(s), max_tokens=%d",
            len(request.messages),
            len(request.tools),
            request.max_tokens,
        )
        call = self.provider.complete(request)
        if self.request_timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self.request_timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(f"request timed out after {self.request_timeout:.1f}s") from e

    def _fail(self, reason: str, outcome: TurnOutcome) -> TurnOutcome:
        self._transition(DispatcherState.FAILED)
        logger.error("Turn failed: %s", reason)
        outcome.status = DispatcherState.FAILED.value
        outcome.text = reason
        self._emit(AssistantErrorEvent(reason))
        return outcome

    def _complete(self, text: str, outcome: TurnOutcome) -> TurnOutcome:
        self._transition(DispatcherState.COMPLETED)
        outcome.status = DispatcherState.COMPLETED.value
        outcome.text = text
        self._emit(AssistantResponse(text))
        return outcome

    # -- turn ---------------------------------------------------------------

    async def run_turn(self, text: str) -> TurnOutcome:
        """Run one logical turn: the user message through to its terminal response."""
        if self.state is not DispatcherState.IDLE:
            raise RuntimeError(f"dispatcher is busy ({self.state.value})")

        self.conversation.user(text)
        retry = self.compaction.new_retry_state()
        outcome = TurnOutcome(status=DispatcherState.FAILED.value, text="")
        self._queue.append(self.build_request())
        try:
            while self._queue:
                request = self._queue.popleft()
                self._transition(DispatcherState.AWAITING_RESPONSE)
                outcome.requests += 1
                try:
                    response = await self._send(request)
                except ContextOverflowError as e:
                    logger.warning("Context overflow reported by endpoint: %s", e)
                    decision = self.compaction.compact(self.conversation, retry)
                    if not decision.retry:
                        return self._fail(decision.reason or str(e), outcome)
                    await self.compaction.wait()
                    self._queue.append(self.build_request())
                    continue
                except TransportError as e:
                    logger.error("Failed to send AI request: %s", e)
                    return self._fail(f"{TRANSPORT_FAILURE_TEXT}: {e}", outcome)

                try:
                    terminal = await self._handle_response(response, outcome)
                except ProtocolError as e:
                    return self._fail(str(e), outcome)
                if terminal:
                    return outcome
                self._queue.append(self.build_request())
            return outcome
        finally:
            self._queue.clear()
            self._transition(DispatcherState.IDLE)

    async def _handle_response(self, response: LLMResponse, outcome: TurnOutcome) -> bool:
        """Apply a fully parsed response. Returns True when the turn is over."""
        stop_reason = response.stop_reason
        outcome.stop_reason = stop_reason
        logger.debug(
            "Response %s: stop_reason=%s usage=%s/%s",
            response.id,
            stop_reason,
            response.usage.input_tokens,
            response.usage.output_tokens,
        )

        if stop_reason == StopReason.END_TURN.value:
            if response.text:
                self.conversation.assistant(response.text)
            self._complete(response.text, outcome)
            return True

        if stop_reason == StopReason.TOOL_USE.value:
            invocations = response.tool_invocations()
            if not invocations:
                raise ProtocolError("Stop reason is tool_use but the response has no tool-use blocks")
            self._transition(DispatcherState.TOOL_USE)
            self._emit(AssistantThinking(response.text, tuple(invocations)))
            results = await self.invoker.invoke(invocations)
            self._emit(AssistantThinkingDone(tuple(results)))
            for result in results:
                self.conversation.assistant(result.to_text())
            outcome.tool_results.extend(results)
            self._transition(DispatcherState.AWAITING_RESPONSE)
            return False

        if stop_reason in FALLBACK_TEXT:
            logger.warning("Response ended early: %s", stop_reason)
            visible = response.text
            if visible:
                self.conversation.assistant(visible)
            fallback = FALLBACK_TEXT[stop_reason]
            self._complete(f"{visible}\n\n{fallback}" if visible else fallback, outcome)
            return True

        if stop_reason is None:
            raise ProtocolError("Response has no stop reason")
        raise ProtocolError(f"Unrecognized stop reason: {stop_reason!r}")

    def fail_turn(self, reason: str) -> TurnOutcome:
        """End an aborted turn (e.g. cancelled) with a single error event."""
        self._queue.clear()
        try:
            return self._fail(reason, TurnOutcome(status=DispatcherState.FAILED.value, text=reason))
        finally:
            self._transition(DispatcherState.IDLE)
