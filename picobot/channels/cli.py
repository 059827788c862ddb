"""Interactive CLI channel using prompt-toolkit and rich."""

from __future__ import annotations

import asyncio
from pathlib import Path

from loguru import logger
from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

from ..bus.queue import MessageBus
from .base import BaseChannel

EXIT_WORDS = ("exit", "quit", "bye")
RESPONSE_TIMEOUT = 300  # seconds


class CLIChannel(BaseChannel):
    """Interactive terminal channel with rich markdown output."""

    CHAT_ID = "local"

    def __init__(self, bus: MessageBus, history_file: Path | None = None) -> None:
        super().__init__(bus)
        self._history_file = history_file
        self._console = Console()
        self._running = False
        self._response_event = asyncio.Event()

    @property
    def name(self) -> str:
        return "cli"

    async def start(self) -> None:
        """Run the input loop until the user exits."""
        self._running = True
        await self._input_loop()

    async def stop(self) -> None:
        self._running = False

    async def send(self, chat_id: str, content: str) -> None:
        """Print a reply and release the prompt."""
        self._console.print()
        self._console.print(
            Panel(
                Markdown(content),
                title="[bold green]picobot[/bold green]",
                border_style="green",
                padding=(1, 2),
            )
        )
        self._response_event.set()

    async def _input_loop(self) -> None:
        history = None
        if self._history_file is not None:
            self._history_file.parent.mkdir(parents=True, exist_ok=True)
            history = FileHistory(str(self._history_file))
        session: PromptSession[str] = PromptSession(history=history, multiline=False)

        self._console.print(
            Panel.fit(
                "[bold blue]picobot[/bold blue] - personal automation agent\n"
                "Type [bold]exit[/bold] to quit",
                title="Welcome",
                border_style="blue",
            )
        )

        while self._running:
            try:
                user_input = await session.prompt_async("\nyou> ")
            except (EOFError, KeyboardInterrupt):
                break

            if not user_input.strip():
                continue
            if user_input.strip().lower() in EXIT_WORDS:
                break

            self._response_event.clear()
            await self.publish("local", self.CHAT_ID, user_input)

            self._console.print("\n[dim]Thinking...[/dim]")
            try:
                await asyncio.wait_for(self._response_event.wait(), timeout=RESPONSE_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning("CLI response timed out")
                self._console.print("[dim](Response timed out)[/dim]")

        self._running = False
        self._console.print("[dim]Goodbye![/dim]")
