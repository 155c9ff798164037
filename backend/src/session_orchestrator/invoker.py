"""Concurrent execution of one batch of tool invocations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from .errors import NoToolInvocationsError, ToolError
from .models import ToolInvocation, ToolResult
from .registry import ToolRegistry
from .tools import ToolProvider

logger = logging.getLogger(__name__)


class ToolInvoker:
    """Runs a batch of invocations concurrently and returns results in input order.

    A failing invocation becomes an error result; it never aborts the batch.
    """

    def __init__(self, registry: ToolRegistry, timeout: float | None = None):
        self.registry = registry
        self.timeout = timeout

    async def invoke(self, invocations: Sequence[ToolInvocation]) -> list[ToolResult]:
        if not invocations:
            raise NoToolInvocationsError()

        logger.info("Found %d tool(s) to execute in parallel", len(invocations))
        # Full barrier: gather waits for every invocation; _invoke_one never raises
        # except for cancellation, which cancels the outstanding siblings.
        results = await asyncio.gather(*(self._invoke_one(inv) for inv in invocations))
        return list(results)

    async def _invoke_one(self, invocation: ToolInvocation) -> ToolResult:
        logger.info(
            "Executing tool invocation %s for %s: %s",
            invocation.id,
            invocation.name,
            invocation.arguments,
        )
        try:
            provider = self.registry.resolve(invocation.name)
            if not isinstance(invocation.arguments, dict):
                raise ToolError(
                    f"Malformed arguments: expected a JSON object, got {type(invocation.arguments).__name__}",
                    tool=invocation.name,
                )
            call = self._call(provider, invocation)
            if self.timeout is not None:
                fragments = await asyncio.wait_for(call, timeout=self.timeout)
            else:
                fragments = await call
        except asyncio.TimeoutError:
            reason = f"Tool '{invocation.name}' timed out after {self.timeout:.1f}s"
            logger.error("Error executing tool %s: %s", invocation.name, reason)
            return ToolResult.failure(invocation, reason)
        except Exception as e:
            logger.error("Error executing tool %s: %r", invocation.name, e)
            return ToolResult.failure(invocation, str(e) or type(e).__name__)
        return ToolResult.success(invocation, fragments)

    async def _call(self, provider: ToolProvider, invocation: ToolInvocation) -> list[str]:
        # Only wait_for may surface a TimeoutError from _invoke_one.
        try:
            return await provider.call_tool(invocation.name, invocation.arguments)
        except asyncio.TimeoutError as e:
            raise ToolError(str(e) or type(e).__name__, tool=invocation.name) from e
