"""Workspace filesystem tools: read, write, edit, list."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from ..errors import ToolError
from .base import Tool, TurnContext

MAX_READ_LINES = 500


class _WorkspaceTool(Tool):
    """Shared path handling: every path must resolve inside the workspace."""

    def __init__(self, workspace: str | Path) -> None:
        self._workspace = Path(workspace).expanduser().resolve()

    def _resolve_path(self, path: str) -> Path:
        p = Path(path).expanduser()
        if not p.is_absolute():
            p = self._workspace / p
        resolved = p.resolve()
        if resolved != self._workspace and self._workspace not in resolved.parents:
            raise ToolError(f"{self.name}: access denied, {path} is outside the workspace")
        return resolved


class ReadFileTool(_WorkspaceTool):
    """Read contents of a file."""

    @property
    def name(self) -> str:
        return "read_file"

    @property
    def description(self) -> str:
        return "Read a text file from the workspace. Returns the file content."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Path relative to the workspace"},
                "offset": {
                    "type": "integer",
                    "description": "Line number to start from (0-indexed)",
                    "default": 0,
                },
                "limit": {
                    "type": "integer",
                    "description": f"Maximum number of lines to read (default: {MAX_READ_LINES})",
                    "default": MAX_READ_LINES,
                },
            },
            "required": ["path"],
        }

    async def execute(
        self,
        context: TurnContext,
        path: str = "",
        offset: int = 0,
        limit: int = MAX_READ_LINES,
        **kwargs: Any,
    ) -> str:
        p = self._resolve_path(path)
        if not p.exists():
            raise ToolError(f"read_file: file not found: {path}")
        if not p.is_file():
            raise ToolError(f"read_file: not a file: {path}")

        lines = p.read_text(encoding="utf-8", errors="replace").splitlines()
        selected = lines[offset : offset + limit]
        result = "\n".join(selected)
        remaining = len(lines) - (offset + len(selected))
        if remaining > 0:
            result += f"\n\n... ({remaining} more lines, use offset={offset + len(selected)})"
        return result


class WriteFileTool(_WorkspaceTool):
    """Write content to a file."""

    @property
    def name(self) -> str:
        return "write_file"

    @property
    def description(self) -> str:
        return "Write content to a workspace file. Creates parent directories; overwrites existing content."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Path relative to the workspace"},
                "content": {"type": "string", "description": "Content to write"},
            },
            "required": ["path", "content"],
        }

    async def execute(
        self, context: TurnContext, path: str = "", content: str = "", **kwargs: Any
    ) -> str:
        p = self._resolve_path(path)
        if p.is_dir():
            raise ToolError(f"write_file: {path} is a directory")
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content, encoding="utf-8")
        return f"Wrote {len(content)} chars to {path}"


class EditFileTool(_WorkspaceTool):
    """Edit a file with find-and-replace."""

    @property
    def name(self) -> str:
        return "edit_file"

    @property
    def description(self) -> str:
        return "Edit a workspace file by replacing an exact, unique text match."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Path relative to the workspace"},
                "old_text": {"type": "string", "description": "Exact text to find"},
                "new_text": {"type": "string", "description": "Replacement text"},
            },
            "required": ["path", "old_text", "new_text"],
        }

    async def execute(
        self,
        context: TurnContext,
        path: str = "",
        old_text: str = "",
        new_text: str = "",
        **kwargs: Any,
    ) -> str:
        p = self._resolve_path(path)
        if not p.is_file():
            raise ToolError(f"edit_file: file not found: {path}")

        content = p.read_text(encoding="utf-8")
        count = content.count(old_text) if old_text else 0
        if count == 0:
            raise ToolError(f"edit_file: old_text not found in {path}")
        if count > 1:
            raise ToolError(
                f"edit_file: found {count} matches for old_text, add context to make it unique"
            )

        p.write_text(content.replace(old_text, new_text, 1), encoding="utf-8")
        return f"Edited {path}"


class ListDirTool(_WorkspaceTool):
    """List directory contents."""

    @property
    def name(self) -> str:
        return "list_dir"

    @property
    def description(self) -> str:
        return "List a workspace directory. Shows files and subdirectories."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Directory relative to the workspace",
                    "default": ".",
                },
            },
            "required": [],
        }

    async def execute(self, context: TurnContext, path: str = ".", **kwargs: Any) -> str:
        p = self._resolve_path(path)
        if not p.is_dir():
            raise ToolError(f"list_dir: not a directory: {path}")

        entries = sorted(p.iterdir(), key=lambda e: (not e.is_dir(), e.name.lower()))
        if not entries:
            return f"Directory {path} is empty"

        lines = []
        for entry in entries:
            if entry.is_dir():
                lines.append(f"  {entry.name}/")
            else:
                lines.append(f"  {entry.name}  ({entry.stat().st_size} bytes)")
        return f"Contents of {path}:\n" + "\n".join(lines)
