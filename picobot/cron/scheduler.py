"""In-memory scheduler for one-shot and fixed-interval jobs."""

from __future__ import annotations

import asyncio
import inspect
import re
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

from loguru import logger

from ..bus.events import InboundMessage
from ..bus.queue import MessageBus
from .types import CronJob

FireCallback = Callable[[CronJob], "Awaitable[None] | None"]

# Duration pattern: 30s, 2m, 1h30m, 1.5h, 1d, 250ms
DURATION_PATTERN = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d)")

_UNIT_SECONDS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(text: str) -> timedelta:
    """Parse a duration string (e.g., '30s', '2m', '1h30m') to a timedelta."""
    text = text.strip().lower()
    if not text:
        raise ValueError("empty duration")

    seconds = 0.0
    pos = 0
    for match in DURATION_PATTERN.finditer(text):
        if match.start() != pos:
            raise ValueError(f"Invalid duration format: {text!r}")
        seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"Invalid duration format: {text!r}")
    return timedelta(seconds=seconds)


def _as_timedelta(value: float | timedelta) -> timedelta:
    if isinstance(value, timedelta):
        return value
    return timedelta(seconds=value)


class Scheduler:
    """Tick-driven job table. Nothing is persisted across restarts.

    Due jobs are selected and updated under one lock (one-shot jobs are
    removed, recurring jobs re-armed), then the fire callback runs outside
    the lock so a slow callback never stalls add/cancel/list.
    """

    TICK_INTERVAL = 1.0  # seconds

    def __init__(self, callback: FireCallback | None = None) -> None:
        self._callback = callback
        self._jobs: dict[str, CronJob] = {}
        self._lock = threading.Lock()
        self._next_id = 0
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def add(
        self,
        name: str,
        message: str,
        delay: float | timedelta,
        channel: str = "",
        chat_id: str = "",
    ) -> str:
        """Schedule a job that fires once after ``delay``. Returns the job ID."""
        return self._add(name, message, _as_timedelta(delay), channel, chat_id, recurring=False)

    def add_recurring(
        self,
        name: str,
        message: str,
        interval: float | timedelta,
        channel: str = "",
        chat_id: str = "",
    ) -> str:
        """Schedule a job that fires every ``interval`` until cancelled. Returns the job ID."""
        return self._add(name, message, _as_timedelta(interval), channel, chat_id, recurring=True)

    def _add(
        self,
        name: str,
        message: str,
        delay: timedelta,
        channel: str,
        chat_id: str,
        recurring: bool,
    ) -> str:
        if delay <= timedelta():
            raise ValueError("delay must be positive")

        with self._lock:
            self._next_id += 1
            job_id = f"job-{self._next_id}"
            self._jobs[job_id] = CronJob(
                id=job_id,
                name=name,
                message=message,
                fire_at=datetime.now(timezone.utc) + delay,
                channel=channel,
                chat_id=chat_id,
                recurring=recurring,
                interval=delay if recurring else timedelta(),
            )

        if recurring:
            logger.info(f"cron: scheduled recurring job {name!r} ({job_id}) every {delay}")
        else:
            logger.info(f"cron: scheduled job {name!r} ({job_id}) to fire in {delay}")
        return job_id

    def cancel(self, job_id: str) -> bool:
        """Remove a job by ID. Returns True if it was pending."""
        with self._lock:
            removed = self._jobs.pop(job_id, None)
        if removed is None:
            return False
        logger.info(f"cron: cancelled job {job_id}")
        return True

    def cancel_by_name(self, name: str) -> bool:
        """Remove the first job with the given name. Returns True if found."""
        with self._lock:
            for job_id, job in self._jobs.items():
                if job.name == name:
                    del self._jobs[job_id]
                    break
            else:
                return False
        logger.info(f"cron: cancelled job {name!r} ({job_id})")
        return True

    def list(self) -> list[CronJob]:
        """Snapshot of all pending jobs, soonest first."""
        with self._lock:
            jobs = [replace(job) for job in self._jobs.values()]
        return sorted(jobs, key=lambda j: j.fire_at)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    async def run(self) -> None:
        """Tick until cancelled."""
        self._running = True
        logger.info("cron: scheduler started")
        try:
            while True:
                await asyncio.sleep(self.TICK_INTERVAL)
                await self.tick()
        finally:
            self._running = False
            logger.info("cron: scheduler stopped")

    async def tick(self, now: datetime | None = None) -> list[CronJob]:
        """Fire every job due at ``now``. Returns the snapshots that fired."""
        now = now or datetime.now(timezone.utc)

        with self._lock:
            due = [job for job in self._jobs.values() if not job.fired and now > job.fire_at]
            fired: list[CronJob] = []
            for job in due:
                if job.recurring:
                    job.fire_at = now + job.interval
                else:
                    job.fired = True
                    del self._jobs[job.id]
                fired.append(replace(job))

        for job in fired:
            logger.info(f"cron: firing job {job.name!r} ({job.id}): {job.message}")
            await self._fire(job)
        return fired

    async def _fire(self, job: CronJob) -> None:
        if self._callback is None:
            return
        try:
            result: Any = self._callback(job)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"cron: callback for job {job.id} failed: {e}")


def reminder_message(job: CronJob) -> InboundMessage:
    """The synthetic inbound message a fired job injects into the agent."""
    return InboundMessage(
        channel=job.channel,
        sender_id="cron",
        chat_id=job.chat_id,
        content=(
            f"[Scheduled reminder fired: {job.name}] {job.message}\n"
            "Please relay this to the user in a friendly way."
        ),
        metadata={"job_id": job.id},
    )


def bus_callback(bus: MessageBus) -> FireCallback:
    """Fire callback that routes each job back through the agent via the bus."""

    async def _inject(job: CronJob) -> None:
        await bus.publish_inbound(reminder_message(job))

    return _inject
