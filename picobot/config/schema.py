"""Configuration schema for picobot."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


DEFAULT_HOME = Path.home() / ".picobot"
DEFAULT_WORKSPACE = DEFAULT_HOME / "workspace"


class ProviderConfig(BaseModel):
    """Configuration for a single LLM provider."""

    api_key: str = ""
    api_base: str = ""
    extra_headers: dict[str, str] = Field(default_factory=dict)


class AgentDefaults(BaseModel):
    """Default agent configuration."""

    workspace: str = str(DEFAULT_WORKSPACE)
    model: str = ""  # empty: use the provider's default model
    max_tokens: int = 8192
    temperature: float = 0.7
    max_tool_iterations: int = Field(default=20, ge=1)
    heartbeat_interval_s: int = Field(default=60, ge=1)
    recent_memories: int = Field(default=5, ge=0)


class AgentsConfig(BaseModel):
    """Agent configuration."""

    defaults: AgentDefaults = Field(default_factory=AgentDefaults)


class BusConfig(BaseModel):
    """Message bus configuration."""

    buffer_size: int = Field(default=200, ge=1)


class ExecConfig(BaseModel):
    """Command execution configuration."""

    timeout: int = Field(default=60, ge=1)


class ToolsConfig(BaseModel):
    """Tools configuration."""

    exec: ExecConfig = Field(default_factory=ExecConfig)


class Config(BaseSettings):
    """Root configuration for picobot."""

    model_config = {"env_prefix": "PICOBOT_", "env_nested_delimiter": "__"}

    provider: str = "openrouter"
    providers: dict[str, ProviderConfig] = Field(
        default_factory=lambda: {"openrouter": ProviderConfig()}
    )
    agents: AgentsConfig = Field(default_factory=AgentsConfig)
    bus: BusConfig = Field(default_factory=BusConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)

    @property
    def home_dir(self) -> Path:
        return DEFAULT_HOME

    @property
    def workspace_dir(self) -> Path:
        return Path(self.agents.defaults.workspace).expanduser()

    @property
    def sessions_dir(self) -> Path:
        return self.workspace_dir / "sessions"

    @property
    def memory_dir(self) -> Path:
        return self.workspace_dir / "memory"
