"""Channel manager: owns the channels and drains the outbound queue."""

from __future__ import annotations

from loguru import logger

from ..bus.events import OutboundMessage
from ..bus.queue import MessageBus
from ..errors import BusClosedError
from .base import BaseChannel


class ChannelManager:
    """Manages all chat channels, handles routing and dispatch."""

    def __init__(self, bus: MessageBus) -> None:
        self._bus = bus
        self._channels: dict[str, BaseChannel] = {}

    def register(self, channel: BaseChannel) -> None:
        """Register a channel."""
        self._channels[channel.name] = channel
        logger.info(f"Registered channel: {channel.name}")

    async def start_all(self) -> None:
        """Start all registered channels."""
        for name, channel in self._channels.items():
            try:
                await channel.start()
                logger.info(f"Started channel: {name}")
            except Exception as e:
                logger.error(f"Failed to start channel {name}: {e}")

    async def stop_all(self) -> None:
        """Stop all registered channels."""
        for name, channel in self._channels.items():
            try:
                await channel.stop()
                logger.info(f"Stopped channel: {name}")
            except Exception as e:
                logger.error(f"Error stopping channel {name}: {e}")

    async def dispatch_loop(self) -> None:
        """Deliver outbound messages until cancelled or the bus is closed."""
        while True:
            try:
                message = await self._bus.consume_outbound()
            except BusClosedError:
                logger.info("Outbound queue closed, stopping dispatch")
                return
            await self.dispatch_outbound(message)

    async def dispatch_outbound(self, message: OutboundMessage) -> bool:
        """Dispatch an outbound message to its channel. Returns True if delivered."""
        channel = self._channels.get(message.channel)
        if channel is None:
            logger.warning(f"No channel registered for: {message.channel}")
            return False
        try:
            await channel.send(message.chat_id, message.content)
        except Exception as e:
            logger.error(f"Failed to dispatch to {message.channel}: {e}")
            return False
        return True

    def get_channel(self, name: str) -> BaseChannel | None:
        """Get a channel by name."""
        return self._channels.get(name)

    @property
    def active_channels(self) -> list[str]:
        """List active channel names."""
        return list(self._channels.keys())
