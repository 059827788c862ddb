"""Message tool for sending messages to the current chat."""

from __future__ import annotations

import json
from typing import Any, TYPE_CHECKING

from ..bus.events import OutboundMessage
from ..errors import ToolError
from .base import Tool, TurnContext

if TYPE_CHECKING:
    from ..bus.queue import MessageBus


class MessageTool(Tool):
    """Send a message to the chat the current turn came from."""

    def __init__(self, bus: "MessageBus") -> None:
        self._bus = bus

    @property
    def name(self) -> str:
        return "message"

    @property
    def description(self) -> str:
        return "Send a message to the current channel/chat. Use this to proactively communicate."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": "The message content to send",
                },
            },
            "required": ["content"],
        }

    async def execute(self, context: TurnContext, content: Any = "", **kwargs: Any) -> str:
        if not isinstance(content, str):
            content = json.dumps(content)
        if not content:
            raise ToolError("message: 'content' argument required")

        sent = self._bus.publish_outbound(
            OutboundMessage(
                channel=context.channel,
                chat_id=context.chat_id,
                content=content,
            )
        )
        if not sent:
            raise ToolError("message: outbound queue full")
        return "sent"
