"""Unit tests for SessionBuilder validation and Session lifecycle (cancel, worker, reset)."""
from __future__ import annotations

import asyncio
import unittest
from typing import Any

from helpers import (
    CredentialedProvider,
    FakeToolProvider,
    ScriptedProvider,
    returning,
    text_response,
    tool_use_response,
)
from src.llm_core.models import LLMRequest, LLMResponse
from src.session_orchestrator.config import SessionConfig
from src.session_orchestrator.dispatcher import DispatcherState
from src.session_orchestrator.errors import ConfigurationError, SessionClosed
from src.session_orchestrator.events import AssistantErrorEvent, AssistantResponse
from src.session_orchestrator.session import SessionBuilder


def dice() -> FakeToolProvider:
    return FakeToolProvider({"roll_dice": returning("14")})


def builder(provider: Any, *toolkits: Any) -> SessionBuilder:
    b = SessionBuilder().with_provider(provider).with_system_prompt("persona")
    for toolkit in toolkits or (dice(),):
        b.with_toolkit(toolkit)
    return b


class TestSessionBuilder(unittest.TestCase):
    def test_missing_credentials(self) -> None:
        with self.assertRaises(ConfigurationError):
            builder(CredentialedProvider(api_key="")).build()

    def test_credentials_present(self) -> None:
        session = builder(CredentialedProvider("sk-test")).build()
        self.assertEqual(session.state, DispatcherState.IDLE)

    def test_no_toolkits(self) -> None:
        with self.assertRaises(ConfigurationError):
            SessionBuilder().with_provider(ScriptedProvider()).build()

    def test_toolkit_without_tools(self) -> None:
        with self.assertRaises(ConfigurationError):
            builder(ScriptedProvider(), FakeToolProvider({})).build()

    def test_duplicate_tool_names(self) -> None:
        with self.assertRaises(ConfigurationError):
            builder(ScriptedProvider(), dice(), dice()).build()

    def test_non_positive_max_tokens(self) -> None:
        with self.assertRaises(ConfigurationError):
            builder(ScriptedProvider()).with_max_tokens(0).build()

    def test_system_prompt_pinned_and_model_name(self) -> None:
        session = (
            builder(ScriptedProvider())
            .with_model("anthropic:claude-3-5-haiku-20241022")
            .with_max_tokens(512)
            .build()
        )
        self.assertEqual(len(session.conversation), 1)
        self.assertEqual(session.conversation[0].role, "system")
        self.assertEqual(session.conversation[0].text, "persona")
        self.assertEqual(session.dispatcher.model, "claude-3-5-haiku-20241022")
        self.assertEqual(session.dispatcher.max_tokens, 512)

    def test_config_values_flow_into_components(self) -> None:
        config = SessionConfig(
            max_compaction_attempts=5,
            compaction_retry_delay=0.0,
            tool_timeout=2.5,
            event_capacity=8,
        )
        session = builder(ScriptedProvider()).with_config(config).build()
        self.assertEqual(session.dispatcher.compaction.max_attempts, 5)
        self.assertEqual(session.dispatcher.invoker.timeout, 2.5)
        self.assertEqual(session.events.capacity, 8)


class TestSession(unittest.IsolatedAsyncioTestCase):
    async def test_submit_runs_turn(self) -> None:
        session = builder(ScriptedProvider(text_response("Roll initiative!"))).build()
        outcome = await session.submit("start")
        self.assertTrue(outcome.ok)
        self.assertEqual(session.events.drain(), [AssistantResponse("Roll initiative!")])

    async def test_concurrent_submits_never_overlap(self) -> None:
        in_flight = 0
        peak = 0

        async def slow(request: LLMRequest) -> LLMResponse:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return text_response("ok")

        session = builder(ScriptedProvider(slow, slow, slow)).build()
        outcomes = await asyncio.gather(*(session.submit(f"m{i}") for i in range(3)))
        self.assertTrue(all(o.ok for o in outcomes))
        self.assertEqual(peak, 1)

    async def test_cancel_in_flight_request(self) -> None:
        entered = asyncio.Event()

        async def hang(request: LLMRequest) -> LLMResponse:
            entered.set()
            await asyncio.sleep(10)
            return text_response("too late")

        session = builder(ScriptedProvider(hang)).build()
        turn = asyncio.create_task(session.submit("describe the dragon"))
        await entered.wait()
        self.assertTrue(session.cancel())

        outcome = await turn
        self.assertEqual(outcome.status, "failed")
        self.assertEqual(outcome.text, "Request cancelled")
        self.assertEqual(session.events.drain(), [AssistantErrorEvent("Request cancelled")])
        self.assertEqual([m.role for m in session.conversation], ["system", "user"])
        self.assertEqual(session.state, DispatcherState.IDLE)

    async def test_cancel_aborts_outstanding_tool_calls(self) -> None:
        entered = asyncio.Event()
        tool_cancelled = asyncio.Event()

        async def blocking(arguments: dict[str, Any]) -> list[str]:
            entered.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                tool_cancelled.set()
                raise
            return ["never"]

        provider = ScriptedProvider(tool_use_response(("t1", "lookup_npc", {"name": "Mira"})))
        session = builder(provider, FakeToolProvider({"lookup_npc": blocking})).build()
        turn = asyncio.create_task(session.submit("who is Mira?"))
        await entered.wait()
        session.cancel()
        outcome = await turn

        self.assertTrue(tool_cancelled.is_set())
        self.assertEqual(outcome.text, "Request cancelled")
        self.assertEqual([m.role for m in session.conversation], ["system", "user"])
        errors = [e for e in session.events.drain() if isinstance(e, AssistantErrorEvent)]
        self.assertEqual(errors, [AssistantErrorEvent("Request cancelled")])

    async def test_cancel_when_idle(self) -> None:
        session = builder(ScriptedProvider()).build()
        self.assertFalse(session.cancel())

    async def test_session_usable_after_cancel(self) -> None:
        entered = asyncio.Event()

        async def hang(request: LLMRequest) -> LLMResponse:
            entered.set()
            await asyncio.sleep(10)
            return text_response("too late")

        session = builder(ScriptedProvider(hang, text_response("Back again."))).build()
        turn = asyncio.create_task(session.submit("first"))
        await entered.wait()
        session.cancel()
        await turn
        outcome = await session.submit("second")
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.text, "Back again.")

    async def test_worker_processes_pushed_messages_in_order(self) -> None:
        provider = ScriptedProvider(text_response("first"), text_response("second"))
        session = builder(provider).build()
        session.start()
        session.push("one")
        session.push("two")
        await session.close()

        self.assertEqual([r.dialogue[-1].content for r in provider.requests], ["one", "two"])
        events = [event async for event in session.events]
        self.assertEqual(events, [AssistantResponse("first"), AssistantResponse("second")])
        with self.assertRaises(SessionClosed):
            session.push("three")
        with self.assertRaises(SessionClosed):
            await session.submit("four")

    async def test_reset_keeps_system_prompt(self) -> None:
        session = builder(ScriptedProvider(text_response("hi"))).build()
        await session.submit("hello")
        self.assertEqual(len(session.conversation), 3)
        await session.reset()
        self.assertEqual([m.role for m in session.conversation], ["system"])


if __name__ == "__main__":
    unittest.main()
