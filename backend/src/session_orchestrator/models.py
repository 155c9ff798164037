"""Data models for messages, tool results, and tools."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from src.llm_core.models import Tool, ToolInvocation


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


@dataclass(frozen=True, order=True)
class MessageId:
    """Unique identifier for a message in a conversation.

    ``conversation`` is the wall-clock time the conversation started and
    ``offset_ns`` the monotonic offset since then at which the message was created.
    """

    conversation: datetime
    offset_ns: int

    @property
    def timestamp(self) -> datetime:
        return self.conversation + timedelta(microseconds=self.offset_ns / 1000)

    def __str__(self) -> str:
        return self.timestamp.isoformat()


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool invocation, correlated by invocation id.

    Exactly one of ``fragments`` / ``error`` is set.
    """

    invocation_id: str
    name: str
    fragments: tuple[str, ...] | None = None
    error: str | None = None

    @classmethod
    def success(cls, invocation: ToolInvocation, fragments: list[str]) -> ToolResult:
        return cls(invocation_id=invocation.id, name=invocation.name, fragments=tuple(fragments))

    @classmethod
    def failure(cls, invocation: ToolInvocation, reason: str) -> ToolResult:
        return cls(invocation_id=invocation.id, name=invocation.name, error=reason)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def content(self) -> str:
        if self.error is not None:
            return f"Error executing tool: {self.error}"
        return "\n".join(self.fragments or ())

    def to_text(self) -> str:
        """Conversation text for this result."""
        return f"Tool '{self.name}' result: {self.content}"


@dataclass
class ToolOutput:
    """Result of a single BaseTool execution."""

    success: bool
    content: str | list[str] | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class _MessageBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: MessageId

    @property
    def text(self) -> str:
        return getattr(self, "content", "")

    def __str__(self) -> str:
        return f"{self.role} {self.id}: {self.text}"  # type: ignore[attr-defined]


class UserMessage(_MessageBase):
    role: Literal["user"] = "user"
    content: str
    tool_calls: tuple[ToolInvocation, ...] = ()


class AssistantMessage(_MessageBase):
    role: Literal["assistant"] = "assistant"
    content: str


class ThinkingMessage(_MessageBase):
    """The assistant paused to run tools."""

    role: Literal["thinking"] = "thinking"
    content: str = ""
    tool_calls: tuple[ToolInvocation, ...] = ()


class ThinkingDoneMessage(_MessageBase):
    role: Literal["thinking_done"] = "thinking_done"
    results: tuple[ToolResult, ...] = ()

    @property
    def text(self) -> str:
        return "; ".join(r.content for r in self.results)

    def __str__(self) -> str:
        return f"thinking done {self.id}"


class SystemMessage(_MessageBase):
    role: Literal["system"] = "system"
    content: str


class ErrorMessage(_MessageBase):
    role: Literal["error"] = "error"
    content: str


Message = Annotated[
    Union[
        UserMessage,
        AssistantMessage,
        ThinkingMessage,
        ThinkingDoneMessage,
        SystemMessage,
        ErrorMessage,
    ],
    Field(discriminator="role"),
]


__all__ = [
    "AssistantMessage",
    "ErrorMessage",
    "Message",
    "MessageId",
    "SystemMessage",
    "ThinkingDoneMessage",
    "ThinkingMessage",
    "Tool",
    "ToolInvocation",
    "ToolOutput",
    "ToolResult",
    "UserMessage",
]
