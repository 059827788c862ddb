"""Message bus event types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class InboundMessage:
    """A message received from a chat channel (or injected by the scheduler)."""

    channel: str  # e.g., "telegram", "cli", "heartbeat"
    sender_id: str
    chat_id: str
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    media: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def session_key(self) -> str:
        """Unique session key for this conversation."""
        return f"{self.channel}:{self.chat_id}"


@dataclass
class OutboundMessage:
    """A message to send to a chat channel."""

    channel: str
    chat_id: str
    content: str
    reply_to: str = ""
    media: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
