"""Scheduler package: tick loop and serve-mode runner."""

from httpcron.scheduler.cron_scheduler import HttpJobScheduler, SchedulerState
from httpcron.scheduler.runner import run, serve

__all__ = ["HttpJobScheduler", "SchedulerState", "run", "serve"]
