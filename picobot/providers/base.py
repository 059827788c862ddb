"""Provider-neutral chat types and the LLMProvider interface."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from ..errors import ProviderError

__all__ = ["LLMProvider", "LLMResponse", "ProviderError", "ToolCallRequest"]


@dataclass(frozen=True)
class ToolCallRequest:
    """One function call the model asked for."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def parse_arguments(raw: Any) -> dict[str, Any]:
        """Decode wire arguments. Undecodable text is kept under ``"raw"``."""
        if isinstance(raw, dict):
            return raw
        if not raw:
            return {}
        try:
            decoded = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            return {"raw": raw}
        return decoded if isinstance(decoded, dict) else {"raw": raw}

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": json.dumps(self.arguments)},
        }


@dataclass
class LLMResponse:
    """A single completion: either final text or a batch of tool calls."""

    content: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    finish_reason: str = ""
    usage: dict[str, int] = field(default_factory=dict)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def assistant_message(self) -> dict[str, Any]:
        """The assistant turn to append to the transcript before tool results."""
        message: dict[str, Any] = {"role": "assistant", "content": self.content or None}
        if self.tool_calls:
            message["tool_calls"] = [tc.to_wire() for tc in self.tool_calls]
        return message


class LLMProvider(ABC):
    """A chat-completion backend.

    ``tools`` may be empty or None. Any failed round trip must surface as
    ProviderError so the agent loop can tell it apart from tool failures.
    """

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str = "",
        max_tokens: int = 8192,
        temperature: float = 0.7,
    ) -> LLMResponse: ...

    @abstractmethod
    def get_default_model(self) -> str: ...
