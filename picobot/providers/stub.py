"""Offline provider that echoes the last user message."""

from __future__ import annotations

from typing import Any

from .base import LLMProvider, LLMResponse


class StubProvider(LLMProvider):
    """Echo provider for local testing; never requests tools."""

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str = "",
        max_tokens: int = 8192,
        temperature: float = 0.7,
    ) -> LLMResponse:
        for message in reversed(messages):
            if message.get("role") == "user" and message.get("content"):
                return LLMResponse(content=f"(stub) Echo: {message['content']}")
        return LLMResponse(content="(stub) Hello from StubProvider")

    def get_default_model(self) -> str:
        return "stub-model"
