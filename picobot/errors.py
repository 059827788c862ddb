"""Exception types shared across picobot."""

from __future__ import annotations


class PicobotError(Exception):
    """Base class for all picobot errors."""


class ToolError(PicobotError):
    """A tool failed to execute. Shown to the model as an observation."""


class ToolNotFoundError(ToolError):
    """No tool is registered under the requested name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"tool not found: {name!r}" if name else "tool name is required")


class ProviderError(PicobotError):
    """An LLM provider round trip failed."""


class BusClosedError(PicobotError):
    """The message bus was used after close()."""
