"""In-memory job scheduler."""

from .scheduler import Scheduler, bus_callback, parse_duration
from .types import CronJob

__all__ = ["CronJob", "Scheduler", "bus_callback", "parse_duration"]
