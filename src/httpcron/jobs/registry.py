"""Job registry: frozen job definitions plus their mutable schedule state.

The registry is owned by the scheduler and mutated only from its tick, so no
locking is needed. Executors receive the frozen :class:`JobDefinition`, never
the schedule state.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime, tzinfo

from httpcron.cron import CronExpression, parse_cron, resolve_timezone
from httpcron.errors import NoUpcomingTrigger
from httpcron.jobs.models import JobDefinition

logger = logging.getLogger(__name__)


@dataclass
class ScheduleState:
    """When a job fires next, and when it last fired."""

    next_fire_at: datetime | None
    last_fire_at: datetime | None = None
    disabled_reason: str | None = None

    @property
    def active(self) -> bool:
        return self.next_fire_at is not None


@dataclass(frozen=True)
class RegisteredJob:
    """A loaded job with its parsed cron expression and resolved zone.

    ``key`` is the job's position in the file; names need not be unique.
    """

    key: int
    definition: JobDefinition
    cron: CronExpression
    zone: tzinfo

    @property
    def name(self) -> str:
        return self.definition.name


class JobRegistry:
    """Holds every enabled job and its :class:`ScheduleState`."""

    def __init__(self, definitions: Iterable[JobDefinition], now: datetime) -> None:
        self._jobs: list[RegisteredJob] = []
        self._states: dict[int, ScheduleState] = {}

        for key, definition in enumerate(definitions):
            if not definition.enabled:
                logger.info("Job '%s' is disabled, not scheduling", definition.name)
                continue
            job = RegisteredJob(
                key=key,
                definition=definition,
                cron=parse_cron(definition.cron_expression),
                zone=resolve_timezone(definition.timezone),
            )
            self._jobs.append(job)
            self._states[key] = ScheduleState(next_fire_at=None)
            self._schedule_next(job, now)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def jobs(self) -> tuple[RegisteredJob, ...]:
        return tuple(self._jobs)

    def __len__(self) -> int:
        return len(self._jobs)

    def state(self, job: RegisteredJob) -> ScheduleState:
        """A copy of the job's schedule state."""
        return replace(self._states[job.key])

    def due(self, now: datetime) -> list[RegisteredJob]:
        """Active jobs whose ``next_fire_at`` is at or before *now*."""
        due_jobs = []
        for job in self._jobs:
            next_fire_at = self._states[job.key].next_fire_at
            if next_fire_at is not None and next_fire_at <= now:
                due_jobs.append(job)
        return due_jobs

    # ------------------------------------------------------------------
    # Mutation (tick loop only)
    # ------------------------------------------------------------------

    def advance(self, job: RegisteredJob, now: datetime) -> datetime | None:
        """Record a firing at *now* and compute the following fire time.

        Returns the new ``next_fire_at``, or None if the job got disabled.
        """
        self._states[job.key].last_fire_at = now
        return self._schedule_next(job, now)

    def _schedule_next(self, job: RegisteredJob, now: datetime) -> datetime | None:
        state = self._states[job.key]
        try:
            state.next_fire_at = job.cron.next_fire_time(now, job.zone)
        except NoUpcomingTrigger as exc:
            state.next_fire_at = None
            state.disabled_reason = str(exc)
            logger.warning("Disabling job '%s': %s", job.name, exc)
            return None
        logger.debug("Job '%s' next fires at %s", job.name, state.next_fire_at.isoformat())
        return state.next_fire_at
