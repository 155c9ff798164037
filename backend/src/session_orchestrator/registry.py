"""Immutable tool-name → provider lookup, built once per session."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

from .errors import ConfigurationError, UnknownToolError
from .models import Tool
from .tools import ToolProvider

logger = logging.getLogger(__name__)


class ToolRegistry(Mapping[str, ToolProvider]):
    """Read-only mapping of tool name to the provider that implements it.

    Safe to share across concurrent tool calls: nothing mutates it after build().
    """

    def __init__(self, entries: Mapping[str, ToolProvider], tools: Iterable[Tool]):
        self._entries = MappingProxyType(dict(entries))
        self._tools = tuple(tools)

    @classmethod
    def build(cls, providers: Iterable[ToolProvider]) -> ToolRegistry:
        """Ask every provider for its tools and merge them into one registry.

        Raises ConfigurationError for an empty provider set, a provider that
        advertises nothing, or a tool name offered by two providers.
        """
        providers = list(providers)
        if not providers:
            raise ConfigurationError("At least one tool provider must be registered")

        entries: dict[str, ToolProvider] = {}
        tools: list[Tool] = []
        for provider in providers:
            advertised = provider.list_tools()
            if not advertised:
                raise ConfigurationError(
                    f"Tool provider {type(provider).__name__} does not advertise any tools"
                )
            for tool in advertised:
                if tool.name in entries:
                    raise ConfigurationError(
                        f"Tool '{tool.name}' is provided by both "
                        f"{type(entries[tool.name]).__name__} and {type(provider).__name__}",
                        tool=tool.name,
                    )
                entries[tool.name] = provider
                tools.append(tool)

        logger.info("Registered %d tool(s): %s", len(tools), ", ".join(t.name for t in tools))
        return cls(entries, tools)

    @property
    def tools(self) -> tuple[Tool, ...]:
        """Advertised descriptors, in registration order."""
        return self._tools

    def resolve(self, name: str) -> ToolProvider:
        try:
            return self._entries[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def __getitem__(self, name: str) -> ToolProvider:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
