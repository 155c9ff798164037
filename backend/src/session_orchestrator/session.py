"""Session construction and the orchestration task that owns a conversation."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from src.llm_core import resolve_provider
from src.llm_core.providers import LLMProvider

from .compaction import CompactionPolicy
from .config import SessionConfig
from .conversation import Conversation
from .dispatcher import Dispatcher, DispatcherState, TurnOutcome
from .errors import ConfigurationError, SessionClosed
from .events import EventChannel
from .invoker import ToolInvoker
from .registry import ToolRegistry
from .system_prompt_loader import get_default_system_prompt
from .tools import ToolProvider

logger = logging.getLogger(__name__)

CANCELLED_TEXT = "Request cancelled"


class Session:
    """One conversation with the endpoint.

    All mutation of the conversation happens inside ``Dispatcher.run_turn``;
    the lock guarantees turns never overlap, so requests are strictly sequential.
    """

    def __init__(self, dispatcher: Dispatcher):
        self.dispatcher = dispatcher
        self._lock = asyncio.Lock()
        self._turn_task: Optional[asyncio.Task[TurnOutcome]] = None
        self._cancel_requested = False
        self._inbox: Optional[asyncio.Queue[Optional[str]]] = None
        self._worker: Optional[asyncio.Task[None]] = None
        self._closed = False

    @property
    def conversation(self) -> Conversation:
        return self.dispatcher.conversation

    @property
    def events(self) -> EventChannel:
        return self.dispatcher.events

    @property
    def state(self) -> DispatcherState:
        return self.dispatcher.state

    @property
    def closed(self) -> bool:
        return self._closed

    async def submit(self, text: str) -> TurnOutcome:
        """Run one turn and wait for its outcome. Concurrent calls queue up on the lock."""
        if self._closed:
            raise SessionClosed("session is closed")
        return await self._run(text)

    async def _run(self, text: str) -> TurnOutcome:
        async with self._lock:
            self._cancel_requested = False
            self._turn_task = asyncio.create_task(self.dispatcher.run_turn(text))
            try:
                return await self._turn_task
            except asyncio.CancelledError:
                if not self._cancel_requested:
                    raise
                logger.info("Turn cancelled by user")
                return self.dispatcher.fail_turn(CANCELLED_TEXT)
            finally:
                self._turn_task = None
                self._cancel_requested = False

    def cancel(self) -> bool:
        """Abort the in-flight request and any outstanding tool calls.

        Returns False when no turn is running.
        """
        task = self._turn_task
        if task is None or task.done():
            return False
        self._cancel_requested = True
        task.cancel()
        return True

    async def reset(self) -> None:
        """Forget the dialogue; the system prompt stays pinned."""
        async with self._lock:
            self.conversation.clear(keep_pinned=True)
            logger.info("Conversation reset (%d message(s) kept)", len(self.conversation))

    # -- background worker ---------------------------------------------------

    def start(self) -> None:
        """Start the orchestration task that drains pushed messages in order."""
        if self._closed:
            raise SessionClosed("session is closed")
        if self._worker is None:
            self._inbox = asyncio.Queue()
            self._worker = asyncio.create_task(self._run_worker())

    def push(self, text: str) -> None:
        if self._closed:
            raise SessionClosed("session is closed")
        self.start()
        assert self._inbox is not None
        self._inbox.put_nowait(text)

    async def _run_worker(self) -> None:
        assert self._inbox is not None
        while True:
            text = await self._inbox.get()
            if text is None:
                break
            try:
                await self._run(text)
            except SessionClosed as e:
                logger.error("Stopping session worker: %s", e)
                break
            except Exception:
                logger.exception("Unexpected failure while running a turn")

    async def close(self) -> None:
        """Finish queued turns, stop the worker and close the event channel."""
        if self._closed:
            return
        self._closed = True
        if self._worker is not None and self._inbox is not None:
            self._inbox.put_nowait(None)
            await self._worker
            self._worker = None
        self.events.close()


class SessionBuilder:
    """Collects session inputs and validates them eagerly in ``build()``."""

    def __init__(self) -> None:
        self._config = SessionConfig()
        self._provider: LLMProvider | None = None
        self._toolkits: list[ToolProvider] = []
        self._events: EventChannel | None = None
        self._system_prompt: str | None = None

    def with_config(self, config: SessionConfig) -> SessionBuilder:
        self._config = config
        return self

    def with_api_key(self, api_key: str) -> SessionBuilder:
        self._config = self._config.model_copy(update={"api_key": api_key})
        return self

    def with_model(self, model: str) -> SessionBuilder:
        self._config = self._config.model_copy(update={"model": model})
        return self

    def with_max_tokens(self, max_tokens: int) -> SessionBuilder:
        self._config = self._config.model_copy(update={"max_tokens": max_tokens})
        return self

    def with_provider(self, provider: LLMProvider) -> SessionBuilder:
        """Use an explicit endpoint instead of resolving one from the model string."""
        self._provider = provider
        return self

    def with_toolkit(self, toolkit: ToolProvider) -> SessionBuilder:
        self._toolkits.append(toolkit)
        return self

    def with_event_channel(self, events: EventChannel) -> SessionBuilder:
        self._events = events
        return self

    def with_system_prompt(self, prompt: str) -> SessionBuilder:
        self._system_prompt = prompt
        return self

    def build(self) -> Session:
        cfg = self._config
        if cfg.max_tokens <= 0:
            raise ConfigurationError(f"max_tokens must be positive, got {cfg.max_tokens}")

        if self._provider is not None:
            provider = self._provider
            model_name = cfg.model.split(":", 1)[-1]
        else:
            provider, model_name = resolve_provider(cfg.model, cfg.api_key)
        if provider.requires_credentials and not provider.has_credentials:
            raise ConfigurationError(
                f"Missing API key for {type(provider).__name__}", model=cfg.model
            )

        registry = ToolRegistry.build(self._toolkits)

        conversation = Conversation()
        prompt = self._system_prompt
        if prompt is None:
            prompt = get_default_system_prompt(cfg.system_prompt_path)
        if prompt:
            conversation.system(prompt)

        dispatcher = Dispatcher(
            provider=provider,
            conversation=conversation,
            registry=registry,
            events=self._events or EventChannel(cfg.event_capacity),
            compaction=CompactionPolicy(
                max_attempts=cfg.max_compaction_attempts,
                retry_delay=cfg.compaction_retry_delay,
            ),
            invoker=ToolInvoker(registry, timeout=cfg.tool_timeout),
            model=model_name,
            max_tokens=cfg.max_tokens,
            request_timeout=cfg.request_timeout,
        )
        logger.info(
            "Session ready: model=%s tools=%d max_tokens=%d",
            cfg.model,
            len(registry),
            cfg.max_tokens,
        )
        return Session(dispatcher)
