"""Error taxonomy shared by the LLM adapters and the session orchestrator.

Every error raised across module boundaries derives from AssistantError so the
HTTP and CLI layers can catch one type and report ``code`` + ``message``.
"""

from __future__ import annotations

from typing import Any


class AssistantError(Exception):
    """Base error.

    Attributes:
        code: machine readable error code (e.g. "TRANSPORT_ERROR").
        message: human readable description.
        extra: additional context (provider, tool name, ...).
    """

    code = "ASSISTANT_ERROR"

    def __init__(self, message: str, *, code: str | None = None, **extra: Any) -> None:
        self.message = message
        if code is not None:
            self.code = code
        self.extra = extra
        super().__init__(message)


class TransportError(AssistantError):
    """Network or HTTP level failure talking to the LLM endpoint (timeouts included)."""

    code = "TRANSPORT_ERROR"


class ContextOverflowError(TransportError):
    """The endpoint rejected the request because the history no longer fits its context window."""

    code = "CONTEXT_OVERFLOW"


class ProtocolError(AssistantError):
    """Malformed response: missing or unknown termination signal, unexpected shape."""

    code = "PROTOCOL_ERROR"


__all__ = [
    "AssistantError",
    "TransportError",
    "ContextOverflowError",
    "ProtocolError",
]
