"""Tool protocol: single tools, toolkits and fan-out providers."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from .errors import ToolError, UnknownToolError
from .models import Tool, ToolOutput

logger = logging.getLogger(__name__)


class ToolProvider(ABC):
    """Anything the invoker can call: enumerates tools, executes them by name.

    ``call_tool`` returns a list of text fragments or raises ToolError.
    """

    @abstractmethod
    def list_tools(self) -> list[Tool]:
        ...

    @abstractmethod
    async def call_tool(self, name: str, arguments: dict[str, Any]) -> list[str]:
        ...


class BaseTool(ABC):
    """Base class for a single tool."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema for parameters."""
        ...

    @abstractmethod
    async def execute(self, params: dict[str, Any]) -> ToolOutput:
        ...

    def to_tool(self) -> Tool:
        return Tool(name=self.name, description=self.description, input_schema=self.parameters)

    def to_tool_schema(self) -> dict[str, Any]:
        """Standard function-calling schema for any LLM provider."""
        return self.to_tool().to_tool_schema()


class Toolkit(ToolProvider):
    """A provider backed by a fixed set of BaseTools."""

    def __init__(self, tools: Iterable[BaseTool]):
        self._tools: dict[str, BaseTool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"duplicate tool '{tool.name}' in toolkit")
            self._tools[tool.name] = tool

    def list_tools(self) -> list[Tool]:
        return [t.to_tool() for t in self._tools.values()]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> list[str]:
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name)
        try:
            output = await tool.execute(arguments)
        except ToolError:
            raise
        except Exception as e:
            raise ToolError(str(e) or type(e).__name__, tool=name) from e
        if not output.success:
            raise ToolError(output.error or "tool reported failure", tool=name)
        if output.content is None:
            return []
        if isinstance(output.content, str):
            return [output.content]
        return list(output.content)


class CompositeToolProvider(ToolProvider):
    """Presents several backends as one provider.

    A call fans out to every backend that offers the tool; fragments are joined
    in backend order. Any backend failure fails the whole call.
    """

    def __init__(self, providers: Iterable[ToolProvider]):
        self._providers = list(providers)

    def list_tools(self) -> list[Tool]:
        seen: dict[str, Tool] = {}
        for provider in self._providers:
            for tool in provider.list_tools():
                seen.setdefault(tool.name, tool)
        return list(seen.values())

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> list[str]:
        targets = [
            p for p in self._providers if any(t.name == name for t in p.list_tools())
        ]
        if not targets:
            raise UnknownToolError(name)
        results = await asyncio.gather(
            *(p.call_tool(name, arguments) for p in targets), return_exceptions=True
        )
        fragments: list[str] = []
        for result in results:
            if isinstance(result, ToolError):
                raise result
            if isinstance(result, BaseException):
                raise ToolError(str(result) or type(result).__name__, tool=name) from result
            fragments.extend(result)
        if not fragments:
            fragments = [f"No results returned for tool: {name}"]
        return fragments
