"""In-process message bus."""

from .events import InboundMessage, OutboundMessage
from .queue import MessageBus

__all__ = ["InboundMessage", "MessageBus", "OutboundMessage"]
