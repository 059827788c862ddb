"""Heartbeat service for proactive agent wake-ups."""

from __future__ import annotations

import asyncio
from pathlib import Path

from loguru import logger

from ..bus.events import InboundMessage
from ..bus.queue import MessageBus

EMPTY_TEMPLATE = """# Heartbeat Tasks

Add tasks here for picobot to pick up on its next heartbeat.
Use checkbox format:

- [x] Completed tasks are ignored
"""


class HeartbeatService:
    """Periodically reads HEARTBEAT.md and hands open tasks to the agent.

    Only files with at least one unchecked item (``- [ ]``) trigger a
    message, so an idle checklist costs no LLM calls.
    """

    def __init__(
        self,
        workspace: str | Path,
        bus: MessageBus,
        interval: float = 60.0,
    ) -> None:
        self._workspace = Path(workspace).expanduser()
        self._bus = bus
        self._interval = interval

    @property
    def heartbeat_path(self) -> Path:
        return self._workspace / "HEARTBEAT.md"

    async def run(self) -> None:
        """Check HEARTBEAT.md every interval until cancelled."""
        logger.info(f"Heartbeat started (interval: {self._interval}s)")
        try:
            while True:
                await asyncio.sleep(self._interval)
                await self.check()
        finally:
            logger.info("Heartbeat stopped")

    async def check(self) -> bool:
        """Publish pending tasks to the agent. Returns True if a message was sent."""
        try:
            content = self.heartbeat_path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Failed to read HEARTBEAT.md: {e}")
            return False

        if not has_open_tasks(content):
            return False

        logger.info("Heartbeat: found open tasks")
        await self._bus.publish_inbound(
            InboundMessage(
                channel="heartbeat",
                sender_id="heartbeat",
                chat_id="system",
                content=(
                    "[HEARTBEAT CHECK] Review and execute any pending tasks from HEARTBEAT.md:\n\n"
                    + content
                ),
            )
        )
        return True

    def initialize(self) -> None:
        """Create the HEARTBEAT.md template if it doesn't exist."""
        if not self.heartbeat_path.exists():
            self.heartbeat_path.parent.mkdir(parents=True, exist_ok=True)
            self.heartbeat_path.write_text(EMPTY_TEMPLATE, encoding="utf-8")
            logger.info("Initialized HEARTBEAT.md")


def has_open_tasks(content: str) -> bool:
    """True if any line is an unchecked checkbox item."""
    return any(
        line.strip().startswith(("- [ ]", "- []", "* [ ]")) for line in content.splitlines()
    )
