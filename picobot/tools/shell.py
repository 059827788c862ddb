"""Command execution tool with safety guards."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from loguru import logger

from ..errors import ToolError
from .base import Tool, TurnContext

# Programs that are never run, whatever their arguments.
DANGEROUS_PROGRAMS = frozenset({"rm", "sudo", "dd", "mkfs", "shutdown", "reboot"})

MAX_OUTPUT = 10000  # chars


def _is_dangerous(program: str) -> bool:
    return Path(program).name.lower() in DANGEROUS_PROGRAMS


def _is_unsafe_arg(arg: str) -> bool:
    return arg.startswith(("/", "~")) or ".." in arg


class ExecTool(Tool):
    """Run a command given as an argv array, with a timeout.

    Shell strings are rejected so the model cannot chain commands or use
    redirection; arguments that reach outside the working directory are
    rejected too.
    """

    def __init__(self, timeout: int = 60, workspace: str | Path = "") -> None:
        self._timeout = timeout
        self._workspace = str(Path(workspace).expanduser()) if workspace else None

    @property
    def name(self) -> str:
        return "exec"

    @property
    def description(self) -> str:
        return "Execute a command (array form only, restricted for safety) and return its output."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "cmd": {
                    "type": "array",
                    "items": {"type": "string"},
                    "minItems": 1,
                    "description": "Command as array [program, arg1, arg2, ...]. String form is disallowed.",
                },
            },
            "required": ["cmd"],
        }

    def _parse_argv(self, cmd: Any) -> list[str]:
        if isinstance(cmd, str):
            raise ToolError("exec: string commands are disallowed; use array form")
        if not isinstance(cmd, list) or not cmd:
            raise ToolError("exec: 'cmd' must be a non-empty array")
        if not all(isinstance(a, str) for a in cmd):
            raise ToolError("exec: cmd array must contain strings only")

        if _is_dangerous(cmd[0]):
            raise ToolError(f"exec: program '{cmd[0]}' is disallowed")
        for arg in cmd[1:]:
            if _is_unsafe_arg(arg):
                raise ToolError(f"exec: argument '{arg}' looks unsafe")
        return cmd

    async def execute(self, context: TurnContext, cmd: Any = None, **kwargs: Any) -> str:
        argv = self._parse_argv(cmd)

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=self._workspace,
            )
        except OSError as e:
            raise ToolError(f"exec: cannot start '{argv[0]}': {e}") from e

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.warning(f"exec: {argv[0]} timed out after {self._timeout}s")
            raise ToolError(f"exec: command timed out after {self._timeout}s") from None

        output = stdout.decode("utf-8", errors="replace").rstrip("\n")
        if len(output) > MAX_OUTPUT:
            output = output[:MAX_OUTPUT] + f"\n\n... (truncated, {len(output) - MAX_OUTPUT} more chars)"

        if process.returncode != 0:
            raise ToolError(f"exec: exit code {process.returncode}\n{output}".rstrip())
        return output or "(no output)"
