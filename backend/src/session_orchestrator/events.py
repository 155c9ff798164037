"""Events emitted to the presentation layer and the channel that carries them."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Union

from .config import DEFAULT_EVENT_CAPACITY
from .errors import SessionClosed
from .models import ToolInvocation, ToolResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssistantResponse:
    text: str

    kind = "response"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "text": self.text}


@dataclass(frozen=True)
class AssistantThinking:
    """The assistant paused its reply to run tools."""

    text: str
    tool_calls: tuple[ToolInvocation, ...] = field(default_factory=tuple)

    kind = "thinking"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "text": self.text,
            "tool_calls": [
                {"id": c.id, "name": c.name, "arguments": c.arguments} for c in self.tool_calls
            ],
        }


@dataclass(frozen=True)
class AssistantThinkingDone:
    results: tuple[ToolResult, ...] = field(default_factory=tuple)

    kind = "thinking_done"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "results": [
                {
                    "invocation_id": r.invocation_id,
                    "name": r.name,
                    "is_error": r.is_error,
                    "content": r.content,
                }
                for r in self.results
            ],
        }


@dataclass(frozen=True)
class AssistantErrorEvent:
    text: str

    kind = "error"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "text": self.text}


Event = Union[AssistantResponse, AssistantThinking, AssistantThinkingDone, AssistantErrorEvent]

_CLOSED = object()


class EventChannel:
    """Single-consumer channel from the orchestration task to presentation.

    ``send`` never blocks: a full or closed channel raises SessionClosed so the
    dispatcher can report the failure to its caller instead of stalling.
    """

    def __init__(self, capacity: int = DEFAULT_EVENT_CAPACITY):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._pending = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return self._pending

    def send(self, event: Event) -> None:
        if self._closed:
            raise SessionClosed("event channel is closed")
        if self._pending >= self.capacity:
            raise SessionClosed(f"event channel is full ({self.capacity} undelivered events)")
        self._pending += 1
        self._queue.put_nowait(event)
        logger.debug("Event sent: %s", event.kind)

    async def receive(self) -> Event | None:
        """Next event, or None once the channel is closed and drained."""
        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the marker for any later receive() call.
            self._queue.put_nowait(_CLOSED)
            return None
        self._pending -= 1
        return item

    def drain(self) -> list[Event]:
        """All events available right now, without waiting."""
        events: list[Event] = []
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            if item is _CLOSED:
                self._queue.put_nowait(_CLOSED)
                break
            self._pending -= 1
            events.append(item)
        return events

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> Event:
        event = await self.receive()
        if event is None:
            raise StopAsyncIteration
        return event
