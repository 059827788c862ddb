"""Dynamic tool registry for managing available tools."""

from __future__ import annotations

import threading
from typing import Any

from loguru import logger

from ..errors import ToolNotFoundError
from .base import Tool, TurnContext


class ToolRegistry:
    """Name-keyed registry of tools, safe to share across tasks and threads."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}
        self._lock = threading.Lock()

    def register(self, tool: Tool) -> None:
        """Register a tool, replacing any tool with the same name."""
        with self._lock:
            replaced = tool.name in self._tools
            self._tools[tool.name] = tool
        if replaced:
            logger.debug(f"Replaced tool: {tool.name}")
        else:
            logger.debug(f"Registered tool: {tool.name}")

    def unregister(self, name: str) -> None:
        """Unregister a tool by name."""
        with self._lock:
            removed = self._tools.pop(name, None)
        if removed is not None:
            logger.debug(f"Unregistered tool: {name}")

    def get(self, name: str) -> Tool | None:
        """Get a tool by name."""
        with self._lock:
            return self._tools.get(name)

    def list_tools(self) -> list[Tool]:
        """List all registered tools."""
        with self._lock:
            return list(self._tools.values())

    def definitions(self) -> list[dict[str, Any]]:
        """Get OpenAI function-calling schemas for all tools."""
        return [tool.to_schema() for tool in self.list_tools()]

    async def execute(
        self,
        name: str,
        arguments: dict[str, Any],
        context: TurnContext | None = None,
    ) -> str:
        """Execute a tool by name with given arguments.

        Raises ToolNotFoundError if no such tool is registered. Errors raised
        by the tool itself propagate unchanged.
        """
        tool = self.get(name) if name else None
        if tool is None:
            raise ToolNotFoundError(name)

        params = tool.validate_params(arguments or {})
        result = await tool.execute(context or TurnContext(), **params)
        logger.debug(f"Tool {name} executed successfully")
        return result

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._tools
