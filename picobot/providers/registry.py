"""LLM provider table with model name prefixing for litellm routing."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ProviderSpec:
    """Routing details for one LLM backend."""

    name: str
    prefix: str  # litellm model prefix, "" when litellm recognizes the bare name
    env_key: str  # environment variable litellm reads the API key from
    default_model: str
    api_base_env: str = ""
    needs_key: bool = True


PROVIDERS: dict[str, ProviderSpec] = {
    spec.name: spec
    for spec in (
        ProviderSpec(
            name="openrouter",
            prefix="openrouter/",
            env_key="OPENROUTER_API_KEY",
            default_model="openrouter/free",
        ),
        ProviderSpec(
            name="anthropic",
            prefix="",
            env_key="ANTHROPIC_API_KEY",
            default_model="claude-3-5-haiku-latest",
        ),
        ProviderSpec(
            name="openai",
            prefix="",
            env_key="OPENAI_API_KEY",
            default_model="gpt-4o-mini",
        ),
        ProviderSpec(
            name="deepseek",
            prefix="deepseek/",
            env_key="DEEPSEEK_API_KEY",
            default_model="deepseek-chat",
        ),
        ProviderSpec(
            name="gemini",
            prefix="gemini/",
            env_key="GEMINI_API_KEY",
            default_model="gemini-1.5-flash",
        ),
        ProviderSpec(
            name="ollama",
            prefix="ollama_chat/",
            env_key="OLLAMA_API_KEY",
            default_model="llama3.2",
            api_base_env="OLLAMA_API_BASE",
            needs_key=False,
        ),
        ProviderSpec(
            name="custom",
            prefix="openai/",
            env_key="CUSTOM_API_KEY",
            default_model="default",
            api_base_env="CUSTOM_API_BASE",
        ),
    )
}


def resolve_model_name(provider_name: str, model: str) -> str:
    """Prefix ``model`` for ``provider_name`` unless it already carries a known prefix."""
    spec = PROVIDERS.get(provider_name)
    if not spec:
        return model

    for p in PROVIDERS.values():
        if p.prefix and model.startswith(p.prefix):
            return model

    return f"{spec.prefix}{model}"
