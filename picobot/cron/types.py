"""Cron job data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone


@dataclass
class CronJob:
    """A scheduled job."""

    id: str
    name: str
    message: str
    fire_at: datetime
    channel: str  # originating channel, e.g. "telegram"
    chat_id: str
    recurring: bool = False
    interval: timedelta = field(default_factory=timedelta)
    fired: bool = False

    def remaining(self, now: datetime | None = None) -> timedelta:
        """Time left until the job is due (never negative)."""
        now = now or datetime.now(timezone.utc)
        return max(self.fire_at - now, timedelta())

