"""Channel adapter interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from ..bus.events import InboundMessage

if TYPE_CHECKING:
    from ..bus.queue import MessageBus


class BaseChannel(ABC):
    """A chat surface wired to the bus.

    Incoming text goes through :meth:`publish`. Replies never come from the
    bus directly: the ChannelManager drains the outbound queue and calls
    :meth:`send` on the channel whose ``name`` matches the message.
    """

    def __init__(self, bus: "MessageBus") -> None:
        self._bus = bus

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def start(self) -> None: ...

    async def stop(self) -> None:
        """Release resources. Channels without any may keep the default."""

    @abstractmethod
    async def send(self, chat_id: str, content: str) -> None: ...

    async def publish(
        self, sender_id: str, chat_id: str, content: str, **metadata: Any
    ) -> InboundMessage:
        """Hand a received message to the agent, waiting while the inbound queue is full."""
        message = InboundMessage(
            channel=self.name,
            sender_id=sender_id,
            chat_id=chat_id,
            content=content,
            metadata=metadata,
        )
        await self._bus.publish_inbound(message)
        return message
