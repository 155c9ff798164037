"""Session-level errors. Re-exports the endpoint errors so callers import from one place."""

from __future__ import annotations

from src.llm_core.errors import (
    AssistantError,
    ContextOverflowError,
    ProtocolError,
    TransportError,
)


class ToolError(AssistantError):
    """A single tool invocation failed (provider failure, malformed arguments, ...)."""

    code = "TOOL_ERROR"


class UnknownToolError(ToolError):
    """No registered provider offers the requested tool."""

    code = "UNKNOWN_TOOL"

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}", tool=name)
        self.name = name


class NoToolInvocationsError(AssistantError):
    """The invoker was handed an empty batch; indicates a dispatcher defect."""

    code = "NO_TOOL_INVOCATIONS"

    def __init__(self) -> None:
        super().__init__("No tools provided for execution")


class ConfigurationError(AssistantError):
    """Invalid session setup, raised at construction time only."""

    code = "CONFIGURATION_ERROR"


class SessionClosed(AssistantError):
    """The session or its event channel can no longer accept work."""

    code = "SESSION_CLOSED"


__all__ = [
    "AssistantError",
    "ConfigurationError",
    "ContextOverflowError",
    "NoToolInvocationsError",
    "ProtocolError",
    "SessionClosed",
    "ToolError",
    "TransportError",
    "UnknownToolError",
]
