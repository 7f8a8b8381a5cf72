"""Tick-driven HTTP job scheduler on top of APScheduler's asyncio scheduler.

APScheduler only provides the cadence: a single interval job calls
:meth:`HttpJobScheduler.tick` every ``tick_interval`` seconds with
``max_instances=1``, so ticks never overlap and the tick is the only writer of
schedule state. Each due job runs as its own asyncio task and is never
awaited by the tick.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from httpcron.execution.executor import JobExecutor
    from httpcron.execution.outcome import ExecutionOutcome
    from httpcron.execution.tracker import ExecutionTracker
    from httpcron.jobs.registry import JobRegistry, RegisteredJob

logger = logging.getLogger(__name__)

TICK_JOB_ID = "httpcron-tick"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SchedulerState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    DISPATCHING = "dispatching"
    STOPPED = "stopped"


class HttpJobScheduler:
    """Discovers due jobs on every tick and dispatches them concurrently.

    Executions of the same job may overlap when ``allow_overlap`` is true
    (the default): schedule fidelity wins over mutual exclusion. With
    overlap disabled, globally or per job, a firing whose previous execution
    is still running is skipped; its schedule still advances.
    """

    def __init__(
        self,
        registry: JobRegistry,
        executor: JobExecutor,
        tracker: ExecutionTracker,
        *,
        tick_interval: float = 1.0,
        allow_overlap: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._registry = registry
        self._executor = executor
        self._tracker = tracker
        self._tick_interval = tick_interval
        self._allow_overlap = allow_overlap
        self._clock = clock
        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._in_flight: dict[int, set[asyncio.Task]] = {}
        self._state = SchedulerState.IDLE

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self, now: datetime | None = None) -> list[asyncio.Task]:
        """Scan for due jobs, advance their schedule, dispatch them.

        Must run on the event loop. Returns the tasks started by this tick.
        """
        if self._state is SchedulerState.STOPPED:
            return []
        now = now or self._clock()
        dispatched: list[asyncio.Task] = []
        try:
            self._state = SchedulerState.SCANNING
            due = self._registry.due(now)

            self._state = SchedulerState.DISPATCHING
            for job in due:
                # Advance before dispatch so a hung execution cannot refire this slot
                self._registry.advance(job, now)
                if not self._may_start(job):
                    logger.warning(
                        "Skipping firing of job '%s': previous execution still running",
                        job.name,
                    )
                    continue
                dispatched.append(self._dispatch(job))
        finally:
            if self._state is not SchedulerState.STOPPED:
                self._state = SchedulerState.IDLE
        return dispatched

    async def _on_tick(self) -> None:
        self.tick()

    def _may_start(self, job: RegisteredJob) -> bool:
        allow = job.definition.allow_overlap
        if allow is None:
            allow = self._allow_overlap
        return allow or not self._in_flight.get(job.key)

    def _dispatch(self, job: RegisteredJob) -> asyncio.Task:
        task = asyncio.create_task(self._run_firing(job), name=f"httpcron:{job.name}")
        self._in_flight.setdefault(job.key, set()).add(task)
        task.add_done_callback(lambda done, key=job.key: self._forget(key, done))
        logger.debug("Dispatched job '%s'", job.name)
        return task

    def _forget(self, key: int, task: asyncio.Task) -> None:
        tasks = self._in_flight.get(key)
        if tasks is None:
            return
        tasks.discard(task)
        if not tasks:
            del self._in_flight[key]

    async def _run_firing(self, job: RegisteredJob) -> ExecutionOutcome | None:
        """One firing: open a tracker, execute, always emit the end event."""
        firing = None
        outcome = None
        try:
            firing = self._tracker.begin(job.definition, job.zone)
            outcome = await self._executor.execute(
                job.definition, on_attempt=firing.attempt_finished
            )
        except Exception:
            logger.exception("Fatal error while executing job '%s'", job.name)
        finally:
            if firing is not None:
                firing.finished(outcome)
        return outcome

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start ticking. Must be called from within a running event loop."""
        self._scheduler.add_job(
            self._on_tick,
            IntervalTrigger(seconds=self._tick_interval),
            id=TICK_JOB_ID,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
        )
        self._scheduler.start()
        logger.info(
            "Scheduler started: %d jobs, tick every %.3gs", len(self._registry), self._tick_interval
        )

    async def shutdown(self, grace_seconds: float = 10.0) -> None:
        """Stop ticking, give in-flight firings *grace_seconds*, cancel the rest."""
        if self._state is SchedulerState.STOPPED:
            return
        self._state = SchedulerState.STOPPED
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

        pending = self.in_flight
        if pending:
            logger.info(
                "Waiting up to %.1fs for %d in-flight executions", grace_seconds, len(pending)
            )
            _, still_running = await asyncio.wait(pending, timeout=grace_seconds)
            if still_running:
                logger.warning("Abandoning %d executions at shutdown", len(still_running))
                for task in still_running:
                    task.cancel()
                await asyncio.gather(*still_running, return_exceptions=True)
        logger.info("Scheduler shut down")

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def running(self) -> bool:
        """Whether the tick job is active."""
        return self._scheduler.running

    @property
    def in_flight(self) -> set[asyncio.Task]:
        return {task for tasks in self._in_flight.values() for task in tasks}
