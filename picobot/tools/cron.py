"""Cron tool for scheduling reminders and recurring tasks."""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from ..cron.scheduler import parse_duration
from ..errors import ToolError
from .base import Tool, TurnContext

if TYPE_CHECKING:
    from ..cron.scheduler import Scheduler


class CronTool(Tool):
    """Schedule reminders that fire back into the current chat."""

    def __init__(self, scheduler: "Scheduler") -> None:
        self._scheduler = scheduler

    @property
    def name(self) -> str:
        return "cron"

    @property
    def description(self) -> str:
        return (
            "Schedule a reminder or task after a delay. "
            "Actions: add (schedule), list (show pending), cancel (remove by name)."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "action": {
                    "type": "string",
                    "enum": ["add", "list", "cancel"],
                    "description": "add (schedule a new job), list (show pending jobs), cancel (remove a job by name)",
                },
                "name": {
                    "type": "string",
                    "description": "A short name for the job (used to identify it for cancellation)",
                },
                "message": {
                    "type": "string",
                    "description": "The reminder message or task description to deliver when the job fires",
                },
                "delay": {
                    "type": "string",
                    "description": "How long to wait before firing, e.g. '30s', '2m', '1h30m'",
                },
                "recurring": {
                    "type": "boolean",
                    "description": "If true, repeat every 'delay' until cancelled",
                    "default": False,
                },
            },
            "required": ["action"],
        }

    async def execute(self, context: TurnContext, action: str = "", **kwargs: Any) -> str:
        if action == "add":
            return self._add(context, **kwargs)

        if action == "list":
            jobs = self._scheduler.list()
            if not jobs:
                return "No pending jobs."
            lines = [f"{len(jobs)} pending job(s):"]
            for j in jobs:
                remaining = round(j.remaining().total_seconds())
                every = f", every {j.interval}" if j.recurring else ""
                lines.append(f"- {j.name} ({j.id}): {j.message!r}, fires in {remaining}s{every}")
            return "\n".join(lines)

        if action == "cancel":
            name = kwargs.get("name", "")
            if not name:
                raise ToolError("cron cancel: 'name' is required")
            if self._scheduler.cancel_by_name(name):
                return f"Cancelled job {name!r}."
            return f"No job found with name {name!r}."

        raise ToolError(f"cron: unknown action {action!r} (use add, list, or cancel)")

    def _add(self, context: TurnContext, **kwargs: Any) -> str:
        name = kwargs.get("name") or "reminder"
        message = kwargs.get("message", "")
        delay_text = kwargs.get("delay", "")
        recurring = bool(kwargs.get("recurring", False))

        if not message:
            raise ToolError("cron add: 'message' is required")
        if not delay_text:
            raise ToolError("cron add: 'delay' is required (e.g. '2m', '1h')")
        try:
            delay = parse_duration(delay_text)
        except ValueError as e:
            raise ToolError(f"cron add: invalid delay {delay_text!r}: {e}") from e
        if delay.total_seconds() <= 0:
            raise ToolError("cron add: delay must be positive")

        if recurring:
            job_id = self._scheduler.add_recurring(
                name, message, delay, context.channel, context.chat_id
            )
            return f"Scheduled recurring job {name!r} (id: {job_id}). Fires every {delay}."

        job_id = self._scheduler.add(name, message, delay, context.channel, context.chat_id)
        return f"Scheduled job {name!r} (id: {job_id}). Will fire in {delay}."
