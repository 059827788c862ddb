"""System prompt and per-turn message builder."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger

from ..tools.skills import SkillManager
from .memory import MemoryItem, Ranker, SimpleRanker

# Workspace files injected into the system prompt when present.
BOOTSTRAP_FILES = {
    "agents": "AGENTS.md",
    "soul": "SOUL.md",
    "user": "USER.md",
    "tools": "TOOLS.md",
}

HISTORY_ROLES = ("user", "assistant")


def _build_core_identity() -> str:
    return """You are picobot, a small personal automation agent. You are helpful, concise and proactive.

You can call tools to message the user, schedule reminders, read and write files in your workspace, run simple commands, fetch web pages and keep reusable skills under skills/<name>/SKILL.md.

Memory:
- Long-term facts live in memory/MEMORY.md and are always shown to you
- Daily notes live in memory/YYYY-MM-DD.md
- Use the write_memory tool to record anything worth keeping; the conversation history is short and older turns are forgotten
- Use the cron tool for reminders; when a scheduled reminder fires you will receive it as a message, relay it to the user naturally"""


class ContextBuilder:
    """Assembles the LLM message list for one turn."""

    def __init__(
        self,
        workspace: str | Path,
        ranker: Ranker | None = None,
        top_k: int = 5,
        skills: SkillManager | None = None,
    ) -> None:
        self._workspace = Path(workspace).expanduser()
        self._ranker = ranker or SimpleRanker()
        self._top_k = top_k
        self._skills = skills or SkillManager(self._workspace)

    def build_system_prompt(self) -> str:
        parts = [_build_core_identity()]

        for name, filename in BOOTSTRAP_FILES.items():
            path = self._workspace / filename
            if not path.exists():
                continue
            try:
                content = path.read_text(encoding="utf-8", errors="replace").strip()
            except OSError as e:
                logger.warning(f"Failed to read {filename}: {e}")
                continue
            if content:
                parts.append(f"<{name}>\n{content}\n</{name}>")

        try:
            skills_summary = self._skills.get_summary()
        except OSError as e:
            logger.warning(f"Failed to list skills: {e}")
            skills_summary = ""
        if skills_summary:
            parts.append(f"<skills>\n{skills_summary}\n</skills>")

        now = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
        parts.append(f"<current_time>{now}</current_time>")
        return "\n\n".join(parts)

    def build_messages(
        self,
        history: list[str],
        current: str,
        channel: str,
        chat_id: str,
        memory_context: str = "",
        memories: list[MemoryItem] | None = None,
    ) -> list[dict[str, Any]]:
        """Build messages: system prompt, memory, ranked notes, history, current input."""
        system = self.build_system_prompt()
        if channel:
            system += f"\n\n<conversation channel=\"{channel}\" chat_id=\"{chat_id}\" />"
        messages: list[dict[str, Any]] = [{"role": "system", "content": system}]

        if memory_context.strip():
            messages.append(
                {"role": "system", "content": f"<memory>\n{memory_context.strip()}\n</memory>"}
            )

        ranked = self._ranker.rank(current, memories or [], self._top_k)
        if ranked:
            summary = "\n".join(f"- ({m.kind}) {m.text}" for m in ranked)
            messages.append(
                {"role": "system", "content": f"Relevant memories:\n{summary}"}
            )

        for entry in history:
            messages.append(parse_history_entry(entry))

        messages.append({"role": "user", "content": current})
        return messages


def parse_history_entry(entry: str) -> dict[str, Any]:
    """Turn a flattened "role: content" entry back into a chat message."""
    role, sep, content = entry.partition(": ")
    if sep and role in HISTORY_ROLES:
        return {"role": role, "content": content}
    return {"role": "user", "content": entry}


def format_tool_result(tool_call_id: str, name: str, result: str) -> dict[str, Any]:
    """Format a tool result as a message for the LLM."""
    return {
        "role": "tool",
        "tool_call_id": tool_call_id,
        "name": name,
        "content": result,
    }
