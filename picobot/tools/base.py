"""Abstract base class for tools with JSON Schema validation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from ..errors import ToolError


@dataclass(frozen=True)
class TurnContext:
    """Addressing for the turn that triggered a tool call."""

    channel: str = ""
    chat_id: str = ""


class Tool(ABC):
    """Base class for all picobot tools.

    Tools are shared singletons: anything specific to the current turn
    arrives through the ``context`` argument of :meth:`execute`, never
    through instance state.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Tool name (used in function calling)."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        ...

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema for tool parameters."""
        ...

    @abstractmethod
    async def execute(self, context: TurnContext, **kwargs: Any) -> str:
        """Execute the tool. Returns the result text, raises ToolError on failure."""
        ...

    def validate_params(self, params: dict[str, Any]) -> dict[str, Any]:
        """Validate parameters against the JSON Schema.

        Basic validation: checks required fields.
        Returns params filtered to the declared properties.
        """
        schema = self.parameters
        required = schema.get("required", [])
        properties = schema.get("properties", {})

        for field in required:
            if field not in params:
                raise ToolError(f"{self.name}: missing required parameter '{field}'")

        return {key: value for key, value in params.items() if key in properties}

    def to_schema(self) -> dict[str, Any]:
        """Convert to OpenAI function-calling schema format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }
