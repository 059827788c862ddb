"""LiteLLM-based unified LLM provider."""

from __future__ import annotations

import os
from typing import Any

import litellm
from loguru import logger

from ..config.schema import Config
from .base import LLMProvider, LLMResponse, ProviderError, ToolCallRequest
from .registry import PROVIDERS, resolve_model_name


class LiteLLMProvider(LLMProvider):
    """Unified LLM provider using litellm for multi-provider support."""

    def __init__(self, config: Config) -> None:
        self._config = config
        self._provider = config.provider
        if self._provider not in PROVIDERS:
            raise ValueError(
                f"Unknown provider {self._provider!r}. Known: {', '.join(PROVIDERS)}"
            )
        self._setup_env()

    def _setup_env(self) -> None:
        """Export API keys and bases for all configured providers."""
        for name, provider_config in self._config.providers.items():
            spec = PROVIDERS.get(name)
            if not spec:
                logger.warning(f"Unknown provider in config: {name}")
                continue

            if provider_config.api_key:
                os.environ[spec.env_key] = provider_config.api_key
                logger.debug(f"Set {spec.env_key} for provider {name}")

            if provider_config.api_base and spec.api_base_env:
                os.environ[spec.api_base_env] = provider_config.api_base

    def get_default_model(self) -> str:
        return self._config.agents.defaults.model or PROVIDERS[self._provider].default_model

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str = "",
        max_tokens: int = 8192,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Send a chat completion request via litellm."""
        resolved_model = resolve_model_name(self._provider, model or self.get_default_model())

        kwargs: dict[str, Any] = {
            "model": resolved_model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        provider_config = self._config.providers.get(self._provider)
        if provider_config and provider_config.api_base:
            kwargs["api_base"] = provider_config.api_base
        if provider_config and provider_config.extra_headers:
            kwargs["extra_headers"] = provider_config.extra_headers

        try:
            logger.debug(f"LLM call: model={resolved_model}, messages={len(messages)}")
            response = await litellm.acompletion(**kwargs)
        except Exception as e:
            logger.error(f"LLM call failed: {e}")
            raise ProviderError(f"{self._provider} request failed: {e}") from e

        return self._parse_response(response)

    def _parse_response(self, response: Any) -> LLMResponse:
        """Parse a litellm response into our LLMResponse."""
        if not response.choices:
            raise ProviderError("provider returned no choices")
        choice = response.choices[0]
        message = choice.message

        tool_calls: list[ToolCallRequest] = []
        for tc in message.tool_calls or []:
            tool_calls.append(
                ToolCallRequest(
                    id=tc.id,
                    name=tc.function.name,
                    arguments=ToolCallRequest.parse_arguments(tc.function.arguments),
                )
            )

        usage = {}
        if getattr(response, "usage", None):
            usage = {
                "prompt_tokens": response.usage.prompt_tokens or 0,
                "completion_tokens": response.usage.completion_tokens or 0,
                "total_tokens": response.usage.total_tokens or 0,
            }

        return LLMResponse(
            content=message.content or "",
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason or "",
            usage=usage,
        )
