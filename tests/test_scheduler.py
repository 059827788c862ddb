"""Tests for the in-memory job scheduler."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from picobot.bus.queue import MessageBus
from picobot.cron import CronJob, Scheduler, bus_callback, parse_duration


class Recorder:
    """Fire callback that remembers every job it was handed."""

    def __init__(self) -> None:
        self.fired: list[CronJob] = []

    def __call__(self, job: CronJob) -> None:
        self.fired.append(job)


class TestParseDuration:
    """Test duration parsing."""

    @pytest.mark.parametrize(
        "text,seconds",
        [("30s", 30), ("2m", 120), ("1h30m", 5400), ("1.5h", 5400), ("1d", 86400), ("250ms", 0.25)],
    )
    def test_valid(self, text: str, seconds: float) -> None:
        assert parse_duration(text).total_seconds() == pytest.approx(seconds)

    @pytest.mark.parametrize("text", ["", "soon", "5", "5 minutes", "m5"])
    def test_invalid(self, text: str) -> None:
        with pytest.raises(ValueError):
            parse_duration(text)


class TestScheduler:
    """Test job bookkeeping and firing."""

    def test_add_assigns_unique_ids(self) -> None:
        scheduler = Scheduler()
        first = scheduler.add("a", "msg", 60)
        second = scheduler.add("b", "msg", 60)
        assert first != second
        assert len(scheduler) == 2

    def test_non_positive_delay_rejected(self) -> None:
        scheduler = Scheduler()
        with pytest.raises(ValueError):
            scheduler.add("a", "msg", 0)
        with pytest.raises(ValueError):
            scheduler.add_recurring("a", "msg", timedelta(seconds=-1))

    def test_list_returns_copies_sorted_by_fire_time(self) -> None:
        """Listing is a snapshot; mutating it does not touch the table."""
        scheduler = Scheduler()
        scheduler.add("later", "msg", 120)
        scheduler.add("sooner", "msg", 10)

        jobs = scheduler.list()
        assert [j.name for j in jobs] == ["sooner", "later"]
        jobs[0].name = "changed"
        assert scheduler.list()[0].name == "sooner"

    @pytest.mark.asyncio
    async def test_one_shot_fires_exactly_once(self) -> None:
        """A 100 ms job fires on the first tick past due and is then removed."""
        recorder = Recorder()
        scheduler = Scheduler(recorder)
        scheduler.add("quick", "ping", 0.1, channel="cli", chat_id="c1")

        assert await scheduler.tick() == []
        await asyncio.sleep(0.15)

        fired = await scheduler.tick()
        assert [j.name for j in fired] == ["quick"]
        assert await scheduler.tick() == []
        assert len(recorder.fired) == 1
        assert recorder.fired[0].chat_id == "c1"
        assert len(scheduler) == 0

    @pytest.mark.asyncio
    async def test_run_loop_fires_once(self) -> None:
        """The ticking loop delivers a due job a single time."""
        recorder = Recorder()
        scheduler = Scheduler(recorder)
        scheduler.TICK_INTERVAL = 0.05
        scheduler.add("quick", "ping", 0.1)

        task = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(recorder.fired) == 1
        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_cancelled_job_never_fires(self) -> None:
        recorder = Recorder()
        scheduler = Scheduler(recorder)
        job_id = scheduler.add("quick", "ping", 0.1)

        assert scheduler.cancel(job_id) is True
        assert scheduler.cancel(job_id) is False

        await asyncio.sleep(0.15)
        await scheduler.tick()
        assert recorder.fired == []

    @pytest.mark.asyncio
    async def test_cancel_by_name(self) -> None:
        scheduler = Scheduler()
        scheduler.add("tea", "brew", 60)
        assert scheduler.cancel_by_name("tea") is True
        assert scheduler.cancel_by_name("tea") is False

    @pytest.mark.asyncio
    async def test_recurring_fires_until_cancelled(self) -> None:
        """A recurring job re-arms on every fire and stops once cancelled."""
        recorder = Recorder()
        scheduler = Scheduler(recorder)
        job_id = scheduler.add_recurring("stretch", "stand up", 10)
        start = scheduler.list()[0].fire_at

        await scheduler.tick(start + timedelta(seconds=1))
        await scheduler.tick(start + timedelta(seconds=5))  # re-armed for +11s
        await scheduler.tick(start + timedelta(seconds=12))
        await scheduler.tick(start + timedelta(seconds=23))
        assert len(recorder.fired) == 3
        assert len(scheduler) == 1

        scheduler.cancel(job_id)
        await scheduler.tick(start + timedelta(seconds=100))
        assert len(recorder.fired) == 3

    @pytest.mark.asyncio
    async def test_async_callback_awaited_and_errors_contained(self) -> None:
        """Async callbacks are awaited; a failing callback does not stop the tick."""
        seen: list[str] = []

        async def callback(job: CronJob) -> None:
            if job.name == "bad":
                raise RuntimeError("boom")
            seen.append(job.name)

        scheduler = Scheduler(callback)
        scheduler.add("bad", "x", 1)
        scheduler.add("good", "y", 2)
        start = scheduler.list()[0].fire_at

        fired = await scheduler.tick(start + timedelta(seconds=5))
        assert len(fired) == 2
        assert seen == ["good"]

    @pytest.mark.asyncio
    async def test_bus_callback_injects_reminder(self) -> None:
        """A fired job comes back to the agent as an inbound message."""
        bus = MessageBus(buffer_size=10)
        scheduler = Scheduler(bus_callback(bus))
        scheduler.add("tea", "brew the tea", 1, channel="telegram", chat_id="42")
        start = scheduler.list()[0].fire_at

        await scheduler.tick(start + timedelta(seconds=1))
        msg = await bus.consume_inbound()
        assert msg.channel == "telegram"
        assert msg.chat_id == "42"
        assert msg.sender_id == "cron"
        assert "brew the tea" in msg.content
        assert msg.content.startswith("[Scheduled reminder fired: tea]")
