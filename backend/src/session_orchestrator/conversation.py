"""Append-only conversation history (the message store)."""

from __future__ import annotations

import time
from collections.abc import Iterable, Iterator
from datetime import datetime, timezone

from src.llm_core.models import ChatTurn

from .models import (
    AssistantMessage,
    ErrorMessage,
    Message,
    MessageId,
    SystemMessage,
    ThinkingDoneMessage,
    ThinkingMessage,
    ToolInvocation,
    ToolResult,
    UserMessage,
)


class Conversation:
    """
    Ordered sequence of messages created in sequential order.

    Messages are immutable; the history only grows by ``append`` and shrinks by
    ``remove`` (compaction) or ``clear`` (reset). Message ids are strictly
    increasing in creation order. Owned by a single orchestration task, so no
    locking is done here.
    """

    def __init__(self) -> None:
        self.started_at = datetime.now(timezone.utc)
        self._start_ns = time.monotonic_ns()
        self._last_offset = -1
        self._messages: list[Message] = []

    # -- identity ---------------------------------------------------------

    def next_message_id(self) -> MessageId:
        offset = time.monotonic_ns() - self._start_ns
        if offset <= self._last_offset:
            offset = self._last_offset + 1
        self._last_offset = offset
        return MessageId(self.started_at, offset)

    # -- writes -----------------------------------------------------------

    def append(self, message: Message) -> Message:
        if self._messages and message.id <= self._messages[-1].id:
            raise ValueError(f"message id {message.id} is not newer than the last message")
        self._messages.append(message)
        return message

    def user(self, content: str, tool_calls: Iterable[ToolInvocation] = ()) -> UserMessage:
        return self.append(
            UserMessage(id=self.next_message_id(), content=content, tool_calls=tuple(tool_calls))
        )

    def assistant(self, content: str) -> AssistantMessage:
        return self.append(AssistantMessage(id=self.next_message_id(), content=content))

    def system(self, content: str) -> SystemMessage:
        return self.append(SystemMessage(id=self.next_message_id(), content=content))

    def thinking(self, content: str, tool_calls: Iterable[ToolInvocation]) -> ThinkingMessage:
        return self.append(
            ThinkingMessage(id=self.next_message_id(), content=content, tool_calls=tuple(tool_calls))
        )

    def thinking_done(self, results: Iterable[ToolResult]) -> ThinkingDoneMessage:
        return self.append(ThinkingDoneMessage(id=self.next_message_id(), results=tuple(results)))

    def error(self, content: str) -> ErrorMessage:
        return self.append(ErrorMessage(id=self.next_message_id(), content=content))

    def remove(self, index: int) -> Message:
        """Remove and return the message at ``index``. Used by compaction only."""
        return self._messages.pop(index)

    def clear(self, keep_pinned: bool = True) -> None:
        """Drop the history; the leading system prompt survives unless ``keep_pinned`` is False."""
        if keep_pinned and self._messages and isinstance(self._messages[0], SystemMessage):
            self._messages = self._messages[:1]
        else:
            self._messages = []

    # -- reads ------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._messages)

    def __getitem__(self, index: int) -> Message:
        return self._messages[index]

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def __reversed__(self) -> Iterator[Message]:
        return reversed(tuple(self._messages))

    def most_recent_first(self) -> Iterator[Message]:
        """Read-only traversal for presentation, newest message first."""
        return reversed(self)

    def latest_user_index(self) -> int | None:
        for index in range(len(self._messages) - 1, -1, -1):
            if isinstance(self._messages[index], UserMessage):
                return index
        return None

    def pinned_indices(self) -> set[int]:
        """The persona prompt at index 0 and the newest user message never get compacted."""
        pinned: set[int] = set()
        if self._messages and isinstance(self._messages[0], SystemMessage):
            pinned.add(0)
        latest = self.latest_user_index()
        if latest is not None:
            pinned.add(latest)
        return pinned

    def removable_indices(self) -> list[int]:
        """Indices compaction may remove, oldest first."""
        pinned = self.pinned_indices()
        return [i for i in range(len(self._messages)) if i not in pinned]

    def to_chat_turns(self) -> list[ChatTurn]:
        """Serialize the history for an endpoint request."""
        turns: list[ChatTurn] = []
        for m in self._messages:
            if isinstance(m, SystemMessage):
                turns.append(ChatTurn(role="system", content=m.content))
            elif isinstance(m, UserMessage):
                turns.append(ChatTurn(role="user", content=m.content))
            elif isinstance(m, (AssistantMessage, ThinkingMessage)):
                if m.content:
                    turns.append(ChatTurn(role="assistant", content=m.content))
            # ThinkingDone and Error entries are presentation-only.
        return turns
