"""Session orchestrator: dispatcher state machine, concurrent tool invocation and compaction."""

from .commands import CommandError, ExitCommand, ResetCommand, RollCommand, parse_command
from .compaction import CompactionDecision, CompactionPolicy, RetryState
from .config import SessionConfig, configure_logging
from .conversation import Conversation
from .dispatcher import Dispatcher, DispatcherState, TurnOutcome
from .errors import (
    AssistantError,
    ConfigurationError,
    ContextOverflowError,
    NoToolInvocationsError,
    ProtocolError,
    SessionClosed,
    ToolError,
    TransportError,
    UnknownToolError,
)
from .events import (
    AssistantErrorEvent,
    AssistantResponse,
    AssistantThinking,
    AssistantThinkingDone,
    EventChannel,
)
from .invoker import ToolInvoker
from .models import (
    AssistantMessage,
    ErrorMessage,
    Message,
    MessageId,
    SystemMessage,
    ThinkingDoneMessage,
    ThinkingMessage,
    Tool,
    ToolInvocation,
    ToolOutput,
    ToolResult,
    UserMessage,
)
from .registry import ToolRegistry
from .session import Session, SessionBuilder
from .session_store import create_session, delete_session, get_session
from .tools import BaseTool, CompositeToolProvider, Toolkit, ToolProvider

__all__ = [
    "AssistantError",
    "AssistantErrorEvent",
    "AssistantMessage",
    "AssistantResponse",
    "AssistantThinking",
    "AssistantThinkingDone",
    "BaseTool",
    "CommandError",
    "CompactionDecision",
    "CompactionPolicy",
    "CompositeToolProvider",
    "ConfigurationError",
    "ContextOverflowError",
    "Conversation",
    "Dispatcher",
    "DispatcherState",
    "ErrorMessage",
    "EventChannel",
    "ExitCommand",
    "Message",
    "MessageId",
    "NoToolInvocationsError",
    "ProtocolError",
    "ResetCommand",
    "RetryState",
    "RollCommand",
    "Session",
    "SessionBuilder",
    "SessionClosed",
    "SessionConfig",
    "SystemMessage",
    "ThinkingDoneMessage",
    "ThinkingMessage",
    "Tool",
    "ToolError",
    "ToolInvocation",
    "ToolInvoker",
    "ToolOutput",
    "ToolProvider",
    "ToolRegistry",
    "ToolResult",
    "Toolkit",
    "TransportError",
    "UnknownToolError",
    "UserMessage",
    "configure_logging",
    "create_session",
    "delete_session",
    "get_session",
    "parse_command",
]
