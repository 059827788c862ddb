"""Session management with JSONL persistence."""

from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import quote

from loguru import logger

# Older entries are trimmed on save to keep session files small and the LLM
# context bounded. Durable facts belong in memory notes, not session replay.
MAX_HISTORY_SIZE = 50


@dataclass
class Session:
    """A conversation session: a flat log of "role: content" entries."""

    key: str
    history: list[str] = field(default_factory=list)
    updated_at: float = field(default_factory=time.time)

    def add_message(self, role: str, content: str) -> None:
        self.history.append(f"{role}: {content}")

    def trim(self, limit: int = MAX_HISTORY_SIZE) -> None:
        """Keep only the most recent ``limit`` entries."""
        if len(self.history) > limit:
            self.history = self.history[-limit:]


class SessionManager:
    """Manage conversation sessions with JSONL file persistence."""

    def __init__(self, sessions_dir: str | Path) -> None:
        self._dir = Path(sessions_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    @property
    def sessions_dir(self) -> Path:
        return self._dir

    def _session_path(self, key: str) -> Path:
        """Get file path for a session key."""
        # Percent-encoding keeps distinct keys in distinct files.
        safe_key = quote(key, safe="")
        return self._dir / f"{safe_key}.jsonl"

    def get_or_create(self, key: str) -> Session:
        """Get the in-memory session for ``key`` or create an empty one."""
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = Session(key=key)
                self._sessions[key] = session
            return session

    def save(self, session: Session) -> None:
        """Trim a session and write it to disk."""
        with self._lock:
            session.trim()
            session.updated_at = time.time()
            self._sessions[session.key] = session
            path = self._session_path(session.key)
            temp_path = path.with_suffix(".tmp")
            try:
                with open(temp_path, "w", encoding="utf-8") as f:
                    header = {
                        "_type": "metadata",
                        "key": session.key,
                        "updated_at": session.updated_at,
                    }
                    f.write(json.dumps(header) + "\n")
                    for entry in session.history:
                        f.write(json.dumps(entry) + "\n")
                temp_path.replace(path)
            except OSError:
                temp_path.unlink(missing_ok=True)
                raise

        logger.debug(f"Saved session {session.key} ({len(session.history)} entries)")

    def load_all(self) -> int:
        """Load every session file into memory. Returns how many were loaded.

        Unreadable or corrupt files are skipped.
        """
        loaded: list[Session] = []
        for path in sorted(self._dir.glob("*.jsonl")):
            try:
                loaded.append(self._load_session(path))
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping session file {path.name}: {e}")

        with self._lock:
            for session in loaded:
                self._sessions[session.key] = session

        logger.info(f"Loaded {len(loaded)} session(s) from {self._dir}")
        return len(loaded)

    @staticmethod
    def _load_session(path: Path) -> Session:
        """Parse one session file. Raises ValueError if it is malformed."""
        with open(path, "r", encoding="utf-8") as f:
            lines = [line for line in f.read().splitlines() if line.strip()]
        if not lines:
            raise ValueError("empty file")

        header = json.loads(lines[0])
        if not isinstance(header, dict) or header.get("_type") != "metadata":
            raise ValueError("missing metadata header")
        key = header.get("key")
        if not isinstance(key, str) or not key:
            raise ValueError("missing session key")

        history: list[str] = []
        for line in lines[1:]:
            entry = json.loads(line)
            if not isinstance(entry, str):
                raise ValueError("history entries must be strings")
            history.append(entry)

        return Session(
            key=key,
            history=history,
            updated_at=float(header.get("updated_at", time.time())),
        )

    def delete(self, key: str) -> None:
        """Forget a session and remove its file."""
        with self._lock:
            self._sessions.pop(key, None)
            path = self._session_path(key)
            if path.exists():
                path.unlink()
        logger.debug(f"Deleted session {key}")

    def list_sessions(self) -> list[str]:
        """List the keys of all in-memory sessions."""
        with self._lock:
            return sorted(self._sessions)
