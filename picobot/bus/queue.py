"""Async message bus: two bounded queues between channels and the agent."""

from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from ..errors import BusClosedError
from .events import InboundMessage, OutboundMessage

# Placed on a queue by close() to wake a consumer blocked in get().
_CLOSED = object()


class MessageBus:
    """Two-queue message bus decoupling channels from the agent.

    Inbound publishing applies backpressure: producers wait while the queue
    is full. Outbound publishing never blocks: when the queue is full the
    message is dropped and ``publish_outbound`` returns False.
    """

    DEFAULT_BUFFER_SIZE = 200

    def __init__(self, buffer_size: int = DEFAULT_BUFFER_SIZE) -> None:
        if buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        self._buffer_size = buffer_size
        self._inbound: asyncio.Queue[Any] = asyncio.Queue(maxsize=buffer_size)
        self._outbound: asyncio.Queue[Any] = asyncio.Queue(maxsize=buffer_size)
        self._closed = False

    @property
    def buffer_size(self) -> int:
        return self._buffer_size

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def inbound_size(self) -> int:
        return self._inbound.qsize()

    @property
    def outbound_size(self) -> int:
        return self._outbound.qsize()

    async def publish_inbound(self, message: InboundMessage) -> None:
        """Publish an inbound message, waiting while the queue is full."""
        self._check_open()
        if self._inbound.full():
            logger.warning(
                f"Inbound queue full ({self._buffer_size}), {message.channel} producer waiting"
            )
        logger.debug(
            f"Inbound from {message.channel}:{message.sender_id}: {message.content[:80]}"
        )
        await self._inbound.put(message)

    def publish_outbound(self, message: OutboundMessage) -> bool:
        """Publish an outbound message without blocking.

        Returns False if the queue is full and the message was dropped.
        """
        self._check_open()
        try:
            self._outbound.put_nowait(message)
        except asyncio.QueueFull:
            logger.error(
                f"Outbound queue full! Dropping message to {message.channel}:{message.chat_id}"
            )
            return False
        logger.debug(f"Outbound to {message.channel}: {message.content[:80]}")
        return True

    async def consume_inbound(self) -> InboundMessage:
        """Wait for the next inbound message. Raises BusClosedError once closed and drained."""
        return await self._consume(self._inbound)

    async def consume_outbound(self) -> OutboundMessage:
        """Wait for the next outbound message. Raises BusClosedError once closed and drained."""
        return await self._consume(self._outbound)

    def close(self) -> None:
        """Close both queues. Publishing afterwards is a programming error."""
        if self._closed:
            return
        self._closed = True
        for queue in (self._inbound, self._outbound):
            try:
                queue.put_nowait(_CLOSED)
            except asyncio.QueueFull:
                # Consumers are not blocked on a full queue; they see the
                # closed flag once it drains.
                pass
        logger.debug("Message bus closed")

    async def _consume(self, queue: asyncio.Queue[Any]) -> Any:
        if self._closed and queue.empty():
            raise BusClosedError("message bus is closed")
        item = await queue.get()
        if item is _CLOSED:
            raise BusClosedError("message bus is closed")
        return item

    def _check_open(self) -> None:
        if self._closed:
            raise BusClosedError("cannot publish on a closed message bus")
