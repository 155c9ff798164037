"""Wire models exchanged with LLM endpoints: tools, requests and responses."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class StopReason(str, Enum):
    """Why the endpoint stopped generating for a turn."""

    END_TURN = "end_turn"
    TOOL_USE = "tool_use"
    STOP_SEQUENCE = "stop_sequence"
    MAX_TOKENS = "max_tokens"


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class Tool(BaseModel):
    """Static descriptor advertised to the endpoint."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []}
    )

    def to_anthropic(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }

    def to_tool_schema(self) -> dict[str, Any]:
        """Standard function-calling schema (OpenAI-style)."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }


class ToolInvocation(BaseModel):
    """A request, embedded in a response, to run a named tool."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    arguments: Any = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class ChatTurn(BaseModel):
    """One message of the history as sent on the wire."""

    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str = ""


class LLMRequest(BaseModel):
    """Everything the endpoint needs for one exchange."""

    model: str
    max_tokens: int
    tools: list[Tool] = Field(default_factory=list)
    messages: list[ChatTurn] = Field(default_factory=list)

    @property
    def system(self) -> str:
        return "\n\n".join(t.content for t in self.messages if t.role == "system" and t.content)

    @property
    def dialogue(self) -> list[ChatTurn]:
        """Non-system turns, in order."""
        return [t for t in self.messages if t.role != "system"]


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ContentBlock(BaseModel):
    """A text or tool-use block of a response."""

    type: Literal["text", "tool_use"]
    text: str = ""
    id: str | None = None
    name: str | None = None
    input: Any = None


class Usage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0


class LLMResponse(BaseModel):
    """Provider-agnostic response. Adapters translate vendor payloads into this."""

    id: str = ""
    role: str = "assistant"
    model: str = ""
    content: list[ContentBlock] = Field(default_factory=list)
    stop_reason: str | None = None
    usage: Usage = Field(default_factory=Usage)

    @property
    def text(self) -> str:
        """Visible text of the response."""
        return "\n".join(b.text for b in self.content if b.type == "text" and b.text)

    def tool_invocations(self) -> list[ToolInvocation]:
        return [
            ToolInvocation(id=b.id or "", name=b.name or "", arguments=b.input)
            for b in self.content
            if b.type == "tool_use"
        ]


__all__ = [
    "StopReason",
    "Tool",
    "ToolInvocation",
    "ChatTurn",
    "LLMRequest",
    "ContentBlock",
    "Usage",
    "LLMResponse",
]
