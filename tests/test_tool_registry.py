"""Tests for the tool base class and registry."""

from __future__ import annotations

from typing import Any

import pytest

from picobot.errors import ToolError, ToolNotFoundError
from picobot.tools.base import Tool, TurnContext
from picobot.tools.registry import ToolRegistry


class EchoTool(Tool):
    """Returns its text argument, tagged with the turn's chat."""

    def __init__(self, description: str = "Echo text back") -> None:
        self._description = description

    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return self._description

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"text": {"type": "string"}},
            "required": ["text"],
        }

    async def execute(self, context: TurnContext, text: str = "", **kwargs: Any) -> str:
        return f"{context.chat_id}:{text}"


class BrokenTool(EchoTool):
    @property
    def name(self) -> str:
        return "broken"

    async def execute(self, context: TurnContext, **kwargs: Any) -> str:
        raise ToolError("broken: always fails")


class TestToolRegistry:
    """Test registration and dispatch."""

    def test_register_same_name_keeps_latest(self) -> None:
        """Registering a name twice leaves one definition, the most recent."""
        registry = ToolRegistry()
        registry.register(EchoTool("first"))
        registry.register(EchoTool("second"))

        definitions = registry.definitions()
        assert len(registry) == 1
        assert len(definitions) == 1
        assert definitions[0]["function"]["description"] == "second"

    def test_definitions_use_function_schema(self) -> None:
        """Definitions follow the OpenAI function-calling shape."""
        registry = ToolRegistry()
        registry.register(EchoTool())

        schema = registry.definitions()[0]
        assert schema["type"] == "function"
        assert schema["function"]["name"] == "echo"
        assert schema["function"]["parameters"]["required"] == ["text"]

    def test_unregister(self) -> None:
        """Unregistered tools are gone; unknown names are ignored."""
        registry = ToolRegistry()
        registry.register(EchoTool())
        registry.unregister("echo")
        registry.unregister("never-registered")

        assert "echo" not in registry
        assert registry.get("echo") is None

    @pytest.mark.asyncio
    async def test_execute_passes_turn_context(self) -> None:
        """The turn's addressing reaches the tool."""
        registry = ToolRegistry()
        registry.register(EchoTool())

        result = await registry.execute("echo", {"text": "hi"}, TurnContext("cli", "c42"))
        assert result == "c42:hi"

    @pytest.mark.asyncio
    async def test_execute_filters_unknown_arguments(self) -> None:
        """Arguments outside the schema are dropped before execution."""
        registry = ToolRegistry()
        registry.register(EchoTool())

        result = await registry.execute("echo", {"text": "hi", "bogus": 1})
        assert result == ":hi"

    @pytest.mark.asyncio
    async def test_execute_unknown_tool(self) -> None:
        """Unknown or empty names raise ToolNotFoundError."""
        registry = ToolRegistry()

        with pytest.raises(ToolNotFoundError, match="nope"):
            await registry.execute("nope", {})
        with pytest.raises(ToolNotFoundError, match="required"):
            await registry.execute("", {})

    @pytest.mark.asyncio
    async def test_execute_missing_required_parameter(self) -> None:
        """Missing required parameters raise ToolError."""
        registry = ToolRegistry()
        registry.register(EchoTool())

        with pytest.raises(ToolError, match="text"):
            await registry.execute("echo", {})

    @pytest.mark.asyncio
    async def test_tool_errors_propagate(self) -> None:
        """Errors raised by the tool reach the caller unchanged."""
        registry = ToolRegistry()
        registry.register(BrokenTool())

        with pytest.raises(ToolError, match="always fails"):
            await registry.execute("broken", {"text": "x"})
