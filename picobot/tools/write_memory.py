"""Tool for writing to the agent's own memory files."""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from ..errors import ToolError
from .base import Tool, TurnContext

if TYPE_CHECKING:
    from ..agent.memory import MemoryStore


class WriteMemoryTool(Tool):
    """Append to today's note or write long-term memory."""

    def __init__(self, memory: "MemoryStore") -> None:
        self._memory = memory

    @property
    def name(self) -> str:
        return "write_memory"

    @property
    def description(self) -> str:
        return "Write or append to memory (today's note or long-term MEMORY.md)"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "target": {
                    "type": "string",
                    "enum": ["today", "long"],
                    "description": "'today' for the daily note or 'long' for long-term memory",
                },
                "content": {
                    "type": "string",
                    "description": "The content to write or append",
                },
                "append": {
                    "type": "boolean",
                    "description": "If true, append to existing content; if false, overwrite (long only)",
                    "default": True,
                },
            },
            "required": ["target", "content"],
        }

    async def execute(
        self,
        context: TurnContext,
        target: str = "",
        content: Any = "",
        append: bool = True,
        **kwargs: Any,
    ) -> str:
        if not isinstance(content, str) or not content.strip():
            raise ToolError("write_memory: 'content' must be a non-empty string")

        if target == "today":
            await self._memory.append_today(content)
            return "appended to today"

        if target == "long":
            if append:
                previous = await self._memory.read_long_term()
                await self._memory.write_long_term(f"{previous.rstrip()}\n{content}".strip())
                return "appended to long-term memory"
            await self._memory.write_long_term(content)
            return "wrote long-term memory"

        raise ToolError(f"write_memory: unknown target {target!r} (use today or long)")
