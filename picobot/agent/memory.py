"""Memory system: MEMORY.md (long-term) + one dated note file per day."""

from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Protocol

from loguru import logger


@dataclass(frozen=True)
class MemoryItem:
    """A single remembered note."""

    kind: str  # "short" (daily note) or "long"
    text: str


class MemoryStore:
    """Plain-text note store under ``<workspace>/memory``.

    MEMORY.md  - Long-term facts. Always loaded into the system prompt.
    YYYY-MM-DD.md - Today's notes, appended one line at a time.

    Notes appended during this process are also kept in a bounded in-memory
    list so the agent can rank the most recent ones for each turn.
    """

    def __init__(self, workspace: str | Path, max_recent: int = 100) -> None:
        self._memory_dir = Path(workspace).expanduser() / "memory"
        self._memory_dir.mkdir(parents=True, exist_ok=True)
        self._recent: deque[MemoryItem] = deque(maxlen=max_recent)

    @property
    def memory_dir(self) -> Path:
        return self._memory_dir

    @property
    def long_term_path(self) -> Path:
        return self._memory_dir / "MEMORY.md"

    def today_path(self, now: datetime | None = None) -> Path:
        day = (now or datetime.now()).strftime("%Y-%m-%d")
        return self._memory_dir / f"{day}.md"

    async def append_today(self, text: str) -> None:
        """Append a note to today's file."""
        text = text.strip()
        if not text:
            return
        now = datetime.now()
        with open(self.today_path(now), "a", encoding="utf-8") as f:
            f.write(f"- [{now.strftime('%H:%M')}] {text}\n")
        self._recent.append(MemoryItem(kind="short", text=text))
        logger.debug(f"Appended to today's note: {text[:80]}")

    async def read_today(self) -> str:
        path = self.today_path()
        if not path.exists():
            return ""
        return path.read_text(encoding="utf-8", errors="replace")

    async def read_long_term(self) -> str:
        if not self.long_term_path.exists():
            return ""
        return self.long_term_path.read_text(encoding="utf-8", errors="replace")

    async def write_long_term(self, content: str) -> None:
        """Replace long-term memory."""
        self.long_term_path.write_text(content.strip() + "\n", encoding="utf-8")
        self._recent.append(MemoryItem(kind="long", text=content.strip()))
        logger.info(f"Updated MEMORY.md ({len(content)} chars)")

    def recent(self, n: int) -> list[MemoryItem]:
        """The ``n`` most recently written notes, newest first."""
        if n <= 0:
            return []
        return list(reversed(self._recent))[:n]

    async def read_recent_days(self, days: int) -> str:
        """Concatenate the dated note files of the last ``days`` days, oldest first."""
        today = datetime.now()
        parts: list[str] = []
        for offset in range(max(days, 0) - 1, -1, -1):
            day = today - timedelta(days=offset)
            path = self.today_path(day)
            if not path.exists():
                continue
            content = path.read_text(encoding="utf-8", errors="replace").strip()
            if content:
                parts.append(f"## {day.strftime('%Y-%m-%d')}\n{content}")
        return "\n\n".join(parts)

    async def note_items(self) -> list[MemoryItem]:
        """Today's notes (one item per line) followed by long-term memory."""
        items: list[MemoryItem] = []
        for line in (await self.read_today()).splitlines():
            line = line.strip().removeprefix("- ")
            if line.startswith("[") and "] " in line:
                line = line.split("] ", 1)[1]
            if line:
                items.append(MemoryItem(kind="short", text=line))
        long_term = (await self.read_long_term()).strip()
        if long_term:
            items.append(MemoryItem(kind="long", text=long_term))
        return items

    async def get_memory_context(self) -> str:
        """Long-term memory plus today's notes, formatted for the system prompt."""
        parts: list[str] = []

        long_term = (await self.read_long_term()).strip()
        if long_term:
            parts.append(f"## Long-term memory\n{long_term}")

        today = (await self.read_today()).strip()
        if today:
            parts.append(f"## Today's notes ({datetime.now().strftime('%Y-%m-%d')})\n{today}")

        return "\n\n".join(parts)


class Ranker(Protocol):
    """Orders memories by relevance to a query."""

    def rank(self, query: str, items: list[MemoryItem], top_k: int) -> list[MemoryItem]: ...


_WORD = re.compile(r"[a-z0-9]+")


def _words(text: str) -> set[str]:
    return set(_WORD.findall(text.lower()))


class SimpleRanker:
    """Ranks memories by how many words they share with the query.

    Ties keep their original order, so with no overlap at all the most
    recent notes win.
    """

    def rank(self, query: str, items: list[MemoryItem], top_k: int) -> list[MemoryItem]:
        if top_k <= 0 or not items:
            return []
        query_words = _words(query)
        scored = [(len(query_words & _words(item.text)), i, item) for i, item in enumerate(items)]
        scored.sort(key=lambda s: (-s[0], s[1]))
        return [item for _, _, item in scored[:top_k]]
