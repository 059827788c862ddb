"""Picobot CLI entry point."""

from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt

app = typer.Typer(
    name="picobot",
    no_args_is_help=True,
)
memory_app = typer.Typer(help="Inspect or modify workspace memory files.", no_args_is_help=True)
app.add_typer(memory_app, name="memory")

console = Console()

if TYPE_CHECKING:
    from .agent.loop import AgentLoop
    from .agent.memory import MemoryStore
    from .bus.queue import MessageBus
    from .config.schema import Config
    from .cron.scheduler import Scheduler
    from .providers.base import LLMProvider
    from .tools.registry import ToolRegistry
    from .tools.skills import SkillManager


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from . import __version__

        console.print(f"picobot v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """A small personal automation agent with tools, reminders and memory."""
    _configure_logging(verbose)


def _build_tools(
    config: Config,
    bus: MessageBus,
    scheduler: Scheduler,
    memory: MemoryStore,
    skills: SkillManager,
) -> ToolRegistry:
    """Build and register all tools."""
    from .tools.cron import CronTool
    from .tools.filesystem import EditFileTool, ListDirTool, ReadFileTool, WriteFileTool
    from .tools.message import MessageTool
    from .tools.registry import ToolRegistry
    from .tools.shell import ExecTool
    from .tools.skills import CreateSkillTool, DeleteSkillTool, ListSkillsTool, ReadSkillTool
    from .tools.web import WebFetchTool
    from .tools.write_memory import WriteMemoryTool

    workspace = config.workspace_dir

    registry = ToolRegistry()
    registry.register(MessageTool(bus))
    registry.register(CronTool(scheduler))
    registry.register(WriteMemoryTool(memory))
    registry.register(ReadFileTool(workspace))
    registry.register(WriteFileTool(workspace))
    registry.register(EditFileTool(workspace))
    registry.register(ListDirTool(workspace))
    registry.register(ExecTool(timeout=config.tools.exec.timeout, workspace=workspace))
    registry.register(WebFetchTool())
    registry.register(CreateSkillTool(skills))
    registry.register(ListSkillsTool(skills))
    registry.register(ReadSkillTool(skills))
    registry.register(DeleteSkillTool(skills))
    return registry


def _make_provider(config: Config) -> LLMProvider:
    """Pick the LLM provider; fall back to the offline stub when no key is configured."""
    from .providers.litellm_provider import LiteLLMProvider
    from .providers.registry import PROVIDERS
    from .providers.stub import StubProvider

    if config.provider == "stub":
        return StubProvider()

    spec = PROVIDERS.get(config.provider)
    provider_config = config.providers.get(config.provider)
    has_key = bool(provider_config and provider_config.api_key)
    if spec is not None and spec.needs_key and not has_key:
        logger.warning(f"No API key configured for {config.provider}, using the stub provider")
        return StubProvider()

    return LiteLLMProvider(config)


@dataclass
class _Runtime:
    """Everything one agent process wires together."""

    bus: MessageBus
    scheduler: Scheduler
    memory: MemoryStore
    tools: ToolRegistry
    agent: AgentLoop


def _build_runtime(config: Config) -> _Runtime:
    from .agent.context import ContextBuilder
    from .agent.loop import AgentLoop
    from .agent.memory import MemoryStore
    from .bus.queue import MessageBus
    from .config.loader import ensure_dirs
    from .cron.scheduler import Scheduler, bus_callback
    from .session.manager import SessionManager
    from .tools.skills import SkillManager

    ensure_dirs(config)
    defaults = config.agents.defaults

    bus = MessageBus(buffer_size=config.bus.buffer_size)
    scheduler = Scheduler(bus_callback(bus))
    memory = MemoryStore(config.workspace_dir)
    sessions = SessionManager(config.sessions_dir)
    skills = SkillManager(config.workspace_dir)
    loaded = sessions.load_all()
    logger.debug(f"Loaded {loaded} session(s)")

    tools = _build_tools(config, bus, scheduler, memory, skills)
    agent = AgentLoop(
        bus=bus,
        provider=_make_provider(config),
        tools=tools,
        sessions=sessions,
        memory=memory,
        context=ContextBuilder(
            config.workspace_dir, top_k=defaults.recent_memories, skills=skills
        ),
        model=defaults.model,
        max_iterations=defaults.max_tool_iterations,
        recent_memories=defaults.recent_memories,
        max_tokens=defaults.max_tokens,
        temperature=defaults.temperature,
    )
    return _Runtime(bus=bus, scheduler=scheduler, memory=memory, tools=tools, agent=agent)


async def _cancel_tasks(tasks: list[asyncio.Task]) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


async def _run_agent_mode(config: Config) -> None:
    """Run picobot in interactive CLI mode."""
    from .channels.cli import CLIChannel
    from .channels.manager import ChannelManager

    rt = _build_runtime(config)

    manager = ChannelManager(rt.bus)
    cli = CLIChannel(rt.bus, history_file=config.home_dir / "history")
    manager.register(cli)

    tasks = [
        asyncio.create_task(rt.agent.run()),
        asyncio.create_task(rt.scheduler.run()),
        asyncio.create_task(manager.dispatch_loop()),
    ]
    try:
        await cli.start()
    finally:
        rt.bus.close()
        await _cancel_tasks(tasks)


async def _run_one_shot(config: Config, message: str, timeout: float) -> str:
    rt = _build_runtime(config)
    return await rt.agent.process_direct(message, timeout=timeout)


async def _run_gateway_mode(config: Config) -> None:
    """Run the long-lived agent with scheduler and heartbeat."""
    from .channels.manager import ChannelManager
    from .heartbeat.service import HeartbeatService

    rt = _build_runtime(config)
    manager = ChannelManager(rt.bus)
    heartbeat = HeartbeatService(
        workspace=config.workspace_dir,
        bus=rt.bus,
        interval=config.agents.defaults.heartbeat_interval_s,
    )
    heartbeat.initialize()

    console.print(
        Panel.fit(
            "[bold blue]picobot gateway[/bold blue] is running\n"
            f"Active channels: {', '.join(manager.active_channels) or 'none'}\n"
            f"Model: {rt.agent.model}\n"
            f"Tools: {len(rt.tools)} registered\n"
            "Press Ctrl+C to stop",
            title="Gateway Mode",
            border_style="blue",
        )
    )

    tasks = [
        asyncio.create_task(rt.agent.run()),
        asyncio.create_task(rt.scheduler.run()),
        asyncio.create_task(heartbeat.run()),
        asyncio.create_task(manager.dispatch_loop()),
    ]
    try:
        await manager.start_all()
        await asyncio.gather(*tasks)
    except asyncio.CancelledError:
        pass
    finally:
        await manager.stop_all()
        rt.bus.close()
        await _cancel_tasks(tasks)
        console.print("[yellow]Gateway stopped.[/yellow]")


WORKSPACE_TEMPLATES = {
    "SOUL.md": """# Soul

## Personality
I am concise, practical and friendly. I get things done and keep the user informed.

## Communication Style
- Short answers first, details on request
- Confirm what I did after using a tool
""",
    "USER.md": """# User Profile

## About You
- Name: (your name)
- Timezone: (your timezone)

## Preferences
- (add your preferences here)
""",
    "AGENTS.md": """# Agent Instructions

- Use tools to act instead of describing what you would do
- Record anything worth keeping with write_memory
- Use the cron tool for reminders and follow-ups
- Read files before editing them
""",
    "TOOLS.md": """# Tools

- message: send a message to the current chat
- cron: add, list or cancel reminders (delays like 30s, 5m, 1h30m)
- write_memory: append to today's notes or update long-term memory
- read_file / write_file / edit_file / list_dir: workspace files
- exec: run a program given as an argument list
- web_fetch: fetch a web page as text
- create_skill / list_skills / read_skill / delete_skill: reusable instructions under skills/
""",
}


@app.command()
def onboard(
    yes: bool = typer.Option(False, "--yes", "-y", help="Accept defaults without prompting."),
) -> None:
    """Set up picobot for the first time."""
    from .agent.memory import MemoryStore
    from .bus.queue import MessageBus
    from .config.loader import CONFIG_FILE, ensure_dirs, save_config
    from .config.schema import Config, ProviderConfig
    from .heartbeat.service import HeartbeatService
    from .providers.registry import PROVIDERS

    console.print(
        Panel.fit(
            "[bold blue]Welcome to picobot![/bold blue]\n\n"
            "This will create your configuration and workspace files.",
            title="Onboarding",
            border_style="blue",
        )
    )

    if CONFIG_FILE.exists() and not yes:
        if not Confirm.ask("Configuration already exists. Overwrite?", default=False):
            console.print("[yellow]Onboarding cancelled.[/yellow]")
            raise typer.Exit()

    provider = "stub"
    api_key = ""
    model = ""
    if not yes:
        choices = ["stub", *PROVIDERS.keys()]
        provider = Prompt.ask("LLM provider", choices=choices, default="openrouter")
        if provider != "stub" and PROVIDERS[provider].needs_key:
            api_key = Prompt.ask(f"API key for {provider} (or press Enter to skip)", default="")
        if provider != "stub":
            model = Prompt.ask("Model name", default=PROVIDERS[provider].default_model)

    providers = {provider: ProviderConfig(api_key=api_key)} if provider in PROVIDERS else {}
    config = Config(provider=provider, providers=providers, agents={"defaults": {"model": model}})

    ensure_dirs(config)
    save_config(config)

    ws = config.workspace_dir
    for filename, content in WORKSPACE_TEMPLATES.items():
        path = ws / filename
        if not path.exists():
            path.write_text(content, encoding="utf-8")

    memory = MemoryStore(ws)
    if not memory.long_term_path.exists():
        asyncio.run(memory.write_long_term("# Long-term Memory"))
    HeartbeatService(ws, MessageBus()).initialize()

    console.print(
        Panel.fit(
            "[bold green]Setup complete![/bold green]\n\n"
            f"Config: {CONFIG_FILE}\n"
            f"Workspace: {ws}\n\n"
            "Quick start:\n"
            "  [bold]picobot agent[/bold]          - Chat in the terminal\n"
            "  [bold]picobot agent -m 'hi'[/bold]  - One-shot message\n"
            "  [bold]picobot gateway[/bold]        - Run with reminders and heartbeat\n"
            "  [bold]picobot status[/bold]         - Check configuration",
            title="Ready!",
            border_style="green",
        )
    )


@app.command()
def agent(
    message: str = typer.Option("", "--message", "-m", help="Send one message and print the reply."),
    timeout: float = typer.Option(60.0, "--timeout", help="One-shot deadline in seconds."),
) -> None:
    """Chat with picobot in the terminal."""
    from .config.loader import load_config
    from .errors import ProviderError

    config = load_config()

    if message:
        try:
            reply = asyncio.run(_run_one_shot(config, message, timeout))
        except ProviderError as e:
            console.print(f"[red]Provider error: {e}[/red]")
            raise typer.Exit(1)
        except asyncio.TimeoutError:
            console.print(f"[red]No reply within {timeout}s[/red]")
            raise typer.Exit(1)
        except ValueError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
        console.print(reply)
        return

    try:
        asyncio.run(_run_agent_mode(config))
    except KeyboardInterrupt:
        console.print("\n[yellow]Goodbye![/yellow]")
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


@app.command()
def gateway() -> None:
    """Run picobot as a long-lived service (agent, reminders, heartbeat)."""
    from .config.loader import load_config

    config = load_config()

    try:
        asyncio.run(_run_gateway_mode(config))
    except KeyboardInterrupt:
        console.print("\n[yellow]Gateway stopped.[/yellow]")
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


@app.command()
def status() -> None:
    """Show picobot configuration and status."""
    from . import __version__
    from .config.loader import CONFIG_FILE, load_config

    config = load_config()
    defaults = config.agents.defaults

    config_exists = CONFIG_FILE.exists()
    ws_exists = config.workspace_dir.exists()
    sessions = list(config.sessions_dir.glob("*.jsonl")) if config.sessions_dir.exists() else []

    console.print(
        Panel.fit(
            f"[bold]Version:[/bold] {__version__}\n"
            f"[bold]Config file:[/bold] {CONFIG_FILE} {'[green](exists)[/green]' if config_exists else '[red](missing)[/red]'}\n"
            f"[bold]Workspace:[/bold] {config.workspace_dir} {'[green](exists)[/green]' if ws_exists else '[red](missing)[/red]'}\n"
            f"[bold]Sessions:[/bold] {len(sessions)} in {config.sessions_dir}\n"
            f"\n[bold]Provider:[/bold] {config.provider}\n"
            f"[bold]Model:[/bold] {defaults.model or '(provider default)'}\n"
            f"[bold]Max tool iterations:[/bold] {defaults.max_tool_iterations}\n"
            f"[bold]Heartbeat interval:[/bold] {defaults.heartbeat_interval_s}s\n"
            f"[bold]Bus buffer:[/bold] {config.bus.buffer_size}",
            title="picobot status",
            border_style="blue",
        )
    )

    memory_file = config.memory_dir / "MEMORY.md"
    if memory_file.exists():
        console.print(f"  MEMORY.md: {memory_file.stat().st_size} bytes")


def _memory_store() -> MemoryStore:
    from .agent.memory import MemoryStore
    from .config.loader import load_config

    return MemoryStore(load_config().workspace_dir)


def _check_target(target: str, allowed: tuple[str, ...] = ("today", "long")) -> None:
    if target not in allowed:
        console.print(f"[red]unknown target: {target}[/red]")
        raise typer.Exit(1)


@memory_app.command("read")
def memory_read(target: str = typer.Argument(..., help="today or long")) -> None:
    """Print today's notes or long-term memory."""
    _check_target(target)
    store = _memory_store()
    reader = store.read_today if target == "today" else store.read_long_term
    console.print(asyncio.run(reader()), markup=False)


@memory_app.command("append")
def memory_append(
    target: str = typer.Argument(..., help="today or long"),
    content: str = typer.Option(..., "--content", "-c", help="Content to append."),
) -> None:
    """Append to today's notes or long-term memory."""
    _check_target(target)
    store = _memory_store()

    async def _append() -> str:
        if target == "today":
            await store.append_today(content)
            return "appended to today"
        existing = await store.read_long_term()
        await store.write_long_term(existing.rstrip("\n") + "\n" + content)
        return "appended to long-term memory"

    console.print(asyncio.run(_append()))


@memory_app.command("write")
def memory_write(
    target: str = typer.Argument(..., help="long"),
    content: str = typer.Option(..., "--content", "-c", help="Content to write."),
) -> None:
    """Overwrite long-term memory."""
    _check_target(target, allowed=("long",))
    asyncio.run(_memory_store().write_long_term(content))
    console.print("wrote long-term memory")


@memory_app.command("recent")
def memory_recent(
    days: int = typer.Option(1, "--days", "-d", help="Number of days to include."),
) -> None:
    """Show the notes of the last N days."""
    out = asyncio.run(_memory_store().read_recent_days(days))
    console.print(out or "[dim](no notes)[/dim]")


@memory_app.command("rank")
def memory_rank(
    query: str = typer.Option(..., "--query", "-q", help="Query to rank against."),
    top: int = typer.Option(5, "--top", "-k", help="Number of results."),
) -> None:
    """Rank today's notes and long-term memory against a query."""
    from .agent.memory import SimpleRanker

    items = asyncio.run(_memory_store().note_items())
    ranked = SimpleRanker().rank(query, items, top)
    if not ranked:
        console.print("[dim](no memories)[/dim]")
        return
    for item in ranked:
        console.print(f"- ({item.kind}) {item.text}", markup=False)


if __name__ == "__main__":
    app()
