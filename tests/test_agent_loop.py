"""Tests for the agent loop."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest

from picobot.agent.context import ContextBuilder
from picobot.agent.loop import (
    EMPTY_REPLY,
    PROVIDER_ERROR_REPLY,
    REMEMBER_ACK,
    AgentLoop,
)
from picobot.agent.memory import MemoryStore
from picobot.bus.events import InboundMessage
from picobot.bus.queue import MessageBus
from picobot.errors import ProviderError
from picobot.providers.base import LLMProvider, LLMResponse, ToolCallRequest
from picobot.providers.stub import StubProvider
from picobot.session.manager import SessionManager
from picobot.tools.base import Tool, TurnContext
from picobot.tools.registry import ToolRegistry


class ScriptedProvider(LLMProvider):
    """Returns queued responses in order and records every request."""

    def __init__(self, *responses: LLMResponse) -> None:
        self.responses = list(responses)
        self.calls: list[list[dict[str, Any]]] = []

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str = "",
        max_tokens: int = 8192,
        temperature: float = 0.7,
    ) -> LLMResponse:
        self.calls.append(list(messages))
        return self.responses.pop(0)

    def get_default_model(self) -> str:
        return "scripted"


class AlwaysToolProvider(ScriptedProvider):
    """Requests the counter tool on every call."""

    async def chat(self, messages: list[dict[str, Any]], **kwargs: Any) -> LLMResponse:
        self.calls.append(list(messages))
        n = len(self.calls)
        return LLMResponse(
            content="",
            tool_calls=[ToolCallRequest(id=f"call-{n}", name="counter", arguments={})],
        )


class FailingProvider(ScriptedProvider):
    """Raises on every call."""

    async def chat(self, messages: list[dict[str, Any]], **kwargs: Any) -> LLMResponse:
        self.calls.append(list(messages))
        raise ProviderError("upstream unavailable")


class CounterTool(Tool):
    def __init__(self) -> None:
        self.count = 0
        self.contexts: list[TurnContext] = []

    @property
    def name(self) -> str:
        return "counter"

    @property
    def description(self) -> str:
        return "Count calls"

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}, "required": []}

    async def execute(self, context: TurnContext, **kwargs: Any) -> str:
        self.count += 1
        self.contexts.append(context)
        return f"result {self.count}"


def _make_loop(
    tmp_path: Path,
    provider: LLMProvider,
    tools: ToolRegistry | None = None,
    bus: MessageBus | None = None,
    max_iterations: int = 20,
) -> AgentLoop:
    return AgentLoop(
        bus=bus or MessageBus(buffer_size=10),
        provider=provider,
        tools=tools or ToolRegistry(),
        sessions=SessionManager(tmp_path / "sessions"),
        memory=MemoryStore(tmp_path),
        max_iterations=max_iterations,
    )


def _text(content: str) -> LLMResponse:
    return LLMResponse(content=content)


class TestRememberShortcut:
    """Test the "remember" fast path."""

    @pytest.mark.asyncio
    async def test_remember_to_skips_provider(self, tmp_path: Path) -> None:
        """The note is stored without any LLM call."""
        provider = FailingProvider()
        loop = _make_loop(tmp_path, provider)

        reply = await loop.process_direct("Remember to buy milk")

        assert reply == REMEMBER_ACK
        assert provider.calls == []
        today = await loop.memory.read_today()
        assert "buy milk" in today
        assert "to buy milk" not in today

    @pytest.mark.asyncio
    async def test_remember_without_to(self, tmp_path: Path) -> None:
        provider = FailingProvider()
        loop = _make_loop(tmp_path, provider)

        assert await loop.process_direct("remember the door code is 1234") == REMEMBER_ACK
        assert "the door code is 1234" in await loop.memory.read_today()

    @pytest.mark.asyncio
    async def test_remember_prefix_inside_word_is_not_shortcut(self, tmp_path: Path) -> None:
        """Only the word "remember" triggers the shortcut."""
        provider = ScriptedProvider(_text("sure"))
        loop = _make_loop(tmp_path, provider)

        assert await loop.process_direct("remembering things is hard") == "sure"
        assert len(provider.calls) == 1


class TestToolLoop:
    """Test the bounded tool-calling loop."""

    @pytest.mark.asyncio
    async def test_max_iterations_returns_last_tool_result(self, tmp_path: Path) -> None:
        """A provider that never stops calling tools is cut off after max_iterations."""
        provider = AlwaysToolProvider()
        counter = CounterTool()
        tools = ToolRegistry()
        tools.register(counter)
        loop = _make_loop(tmp_path, provider, tools=tools, max_iterations=5)

        reply = await loop.process_direct("count forever")

        assert len(provider.calls) == 5
        assert counter.count == 5
        assert reply == "result 5"

    @pytest.mark.asyncio
    async def test_max_iterations_with_empty_results(self, tmp_path: Path) -> None:
        class SilentTool(CounterTool):
            async def execute(self, context: TurnContext, **kwargs: Any) -> str:
                self.count += 1
                return ""

        tools = ToolRegistry()
        tools.register(SilentTool())
        loop = _make_loop(tmp_path, AlwaysToolProvider(), tools=tools, max_iterations=2)

        assert await loop.process_direct("count quietly") == EMPTY_REPLY

    @pytest.mark.asyncio
    async def test_tool_result_fed_back_then_final_answer(self, tmp_path: Path) -> None:
        provider = ScriptedProvider(
            LLMResponse(
                content="",
                tool_calls=[ToolCallRequest(id="call-1", name="counter", arguments={})],
            ),
            _text("done counting"),
        )
        counter = CounterTool()
        tools = ToolRegistry()
        tools.register(counter)
        loop = _make_loop(tmp_path, provider, tools=tools)

        reply = await loop.process_direct("count once", channel="telegram", chat_id="99")

        assert reply == "done counting"
        assert counter.contexts == [TurnContext(channel="telegram", chat_id="99")]
        second_request = provider.calls[1]
        assert second_request[-2]["role"] == "assistant"
        assert second_request[-2]["tool_calls"][0]["function"]["name"] == "counter"
        assert second_request[-1] == {
            "role": "tool",
            "tool_call_id": "call-1",
            "name": "counter",
            "content": "result 1",
        }

    @pytest.mark.asyncio
    async def test_tool_failure_becomes_observation(self, tmp_path: Path) -> None:
        """Unknown tools produce an error observation instead of aborting the turn."""
        provider = ScriptedProvider(
            LLMResponse(
                content="",
                tool_calls=[ToolCallRequest(id="call-1", name="missing", arguments={})],
            ),
            _text("I could not do that"),
        )
        loop = _make_loop(tmp_path, provider)

        assert await loop.process_direct("try it") == "I could not do that"
        observation = provider.calls[1][-1]["content"]
        assert observation.startswith("(tool error) tool not found")

    @pytest.mark.asyncio
    async def test_empty_final_content_falls_back_to_tool_result(self, tmp_path: Path) -> None:
        provider = ScriptedProvider(
            LLMResponse(
                content="",
                tool_calls=[ToolCallRequest(id="call-1", name="counter", arguments={})],
            ),
            _text(""),
        )
        tools = ToolRegistry()
        tools.register(CounterTool())
        loop = _make_loop(tmp_path, provider, tools=tools)

        assert await loop.process_direct("go") == "result 1"

    @pytest.mark.asyncio
    async def test_empty_reply_without_tools(self, tmp_path: Path) -> None:
        loop = _make_loop(tmp_path, ScriptedProvider(_text("")))
        assert await loop.process_direct("hello?") == EMPTY_REPLY

    def test_reply_constants_are_distinct(self) -> None:
        assert len({EMPTY_REPLY, PROVIDER_ERROR_REPLY, REMEMBER_ACK}) == 3


class TestProcessDirect:
    """Test the one-shot entry point."""

    @pytest.mark.asyncio
    async def test_echo_stub_reply(self, tmp_path: Path) -> None:
        loop = _make_loop(tmp_path, StubProvider())
        reply = await loop.process_direct("hello", timeout=5.0)
        assert "hello" in reply

    @pytest.mark.asyncio
    async def test_session_is_recorded(self, tmp_path: Path) -> None:
        loop = _make_loop(tmp_path, ScriptedProvider(_text("hi there")))
        await loop.process_direct("hello")

        fresh = SessionManager(tmp_path / "sessions")
        fresh.load_all()
        assert fresh.get_or_create("cli:direct").history == ["user: hello", "assistant: hi there"]

    @pytest.mark.asyncio
    async def test_history_reaches_the_provider(self, tmp_path: Path) -> None:
        provider = ScriptedProvider(_text("first"), _text("second"))
        loop = _make_loop(tmp_path, provider)

        await loop.process_direct("one")
        await loop.process_direct("two")

        contents = [m["content"] for m in provider.calls[1]]
        assert contents[-3:] == ["one", "first", "two"]

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, tmp_path: Path) -> None:
        loop = _make_loop(tmp_path, FailingProvider())
        with pytest.raises(ProviderError):
            await loop.process_direct("hello")

    @pytest.mark.asyncio
    async def test_deadline(self, tmp_path: Path) -> None:
        class SlowProvider(ScriptedProvider):
            async def chat(self, messages: list[dict[str, Any]], **kwargs: Any) -> LLMResponse:
                await asyncio.sleep(5)
                return _text("too late")

        loop = _make_loop(tmp_path, SlowProvider())
        with pytest.raises(asyncio.TimeoutError):
            await loop.process_direct("hello", timeout=0.05)


class TestRun:
    """Test the continuous bus-driven loop."""

    @pytest.mark.asyncio
    async def test_reply_published_to_origin(self, tmp_path: Path) -> None:
        bus = MessageBus(buffer_size=10)
        loop = _make_loop(tmp_path, StubProvider(), bus=bus)
        task = asyncio.create_task(loop.run())

        await bus.publish_inbound(
            InboundMessage(channel="telegram", sender_id="u1", chat_id="42", content="ping")
        )
        out = await asyncio.wait_for(bus.consume_outbound(), timeout=2.0)

        assert out.channel == "telegram"
        assert out.chat_id == "42"
        assert "ping" in out.content

        bus.close()
        await asyncio.wait_for(task, timeout=2.0)

    @pytest.mark.asyncio
    async def test_provider_error_becomes_apology(self, tmp_path: Path) -> None:
        bus = MessageBus(buffer_size=10)
        loop = _make_loop(tmp_path, FailingProvider(), bus=bus)
        task = asyncio.create_task(loop.run())

        await bus.publish_inbound(
            InboundMessage(channel="cli", sender_id="u1", chat_id="local", content="hello")
        )
        out = await asyncio.wait_for(bus.consume_outbound(), timeout=2.0)
        assert out.content == PROVIDER_ERROR_REPLY

        bus.close()
        await asyncio.wait_for(task, timeout=2.0)

    @pytest.mark.asyncio
    async def test_undecodable_memory_still_answered(self, tmp_path: Path) -> None:
        """Broken bytes in memory files do not silence the agent."""
        bus = MessageBus(buffer_size=10)
        loop = _make_loop(tmp_path, StubProvider(), bus=bus)
        loop.memory.long_term_path.write_bytes(b"likes \xff\xfe tea\n")
        (tmp_path / "SOUL.md").write_bytes(b"\xff calm\n")
        task = asyncio.create_task(loop.run())

        await bus.publish_inbound(
            InboundMessage(channel="cli", sender_id="u1", chat_id="local", content="hello")
        )
        out = await asyncio.wait_for(bus.consume_outbound(), timeout=2.0)

        assert "hello" in out.content
        fresh = SessionManager(tmp_path / "sessions")
        fresh.load_all()
        assert fresh.get_or_create("cli:local").history[0] == "user: hello"

        bus.close()
        await asyncio.wait_for(task, timeout=2.0)

    @pytest.mark.asyncio
    async def test_unexpected_error_answered_and_recorded(self, tmp_path: Path) -> None:
        class BrokenContext(ContextBuilder):
            def build_messages(self, *args: Any, **kwargs: Any) -> list[dict[str, Any]]:
                raise RuntimeError("template exploded")

        bus = MessageBus(buffer_size=10)
        sessions = SessionManager(tmp_path / "sessions")
        loop = AgentLoop(
            bus=bus,
            provider=StubProvider(),
            tools=ToolRegistry(),
            sessions=sessions,
            memory=MemoryStore(tmp_path),
            context=BrokenContext(tmp_path),
        )
        task = asyncio.create_task(loop.run())

        for text in ("first", "second"):
            await bus.publish_inbound(
                InboundMessage(channel="cli", sender_id="u1", chat_id="local", content=text)
            )
            out = await asyncio.wait_for(bus.consume_outbound(), timeout=2.0)
            assert out.content == PROVIDER_ERROR_REPLY

        assert sessions.get_or_create("cli:local").history == [
            "user: first",
            f"assistant: {PROVIDER_ERROR_REPLY}",
            "user: second",
            f"assistant: {PROVIDER_ERROR_REPLY}",
        ]

        bus.close()
        await asyncio.wait_for(task, timeout=2.0)
