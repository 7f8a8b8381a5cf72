"""Execution tracker: correlation ids and lifecycle events for each firing.

Every event of a firing carries the same correlation id, so grepping the log
for one id reconstructs the firing in order::

    3f2a... 2024-05-01 12:00:05.002 Http job start, job name: ping
    3f2a... 2024-05-01 12:00:05.002 Job: [name: ping, enable: true, ...]
    3f2a... 2024-05-01 12:00:05.131 Http request success, job name: ping
    3f2a... 2024-05-01 12:00:05.131 Http response: ok
    3f2a... 2024-05-01 12:00:05.131 Http job end, job name: ping
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone, tzinfo
from typing import TYPE_CHECKING

from httpcron.execution.outcome import AttemptResult, ExecutionOutcome, Failure

if TYPE_CHECKING:
    from httpcron.execution.sink import EventSink
    from httpcron.jobs.models import JobDefinition

logger = logging.getLogger(__name__)


def generate_correlation_id() -> str:
    """uuid4 without hyphens."""
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ExecutionContext:
    correlation_id: str
    job_name: str
    started_at: datetime
    attempt: int = 1


@dataclass(frozen=True)
class ExecutionEvent:
    """One log line of a firing."""

    correlation_id: str
    timestamp: datetime
    job_name: str
    message: str

    def render(self) -> str:
        """``<id> <YYYY-MM-DD HH:MM:SS.mmm> <message>``"""
        ts = self.timestamp
        millis = ts.microsecond // 1000
        return f"{self.correlation_id} {ts:%Y-%m-%d %H:%M:%S}.{millis:03d} {self.message}"


class FiringTracker:
    """Emits the events of a single firing; created by :class:`ExecutionTracker`."""

    def __init__(
        self,
        owner: ExecutionTracker,
        context: ExecutionContext,
        job: JobDefinition,
        zone: tzinfo,
    ) -> None:
        self._owner = owner
        self._context = context
        self._job = job
        self._zone = zone
        self._finished = False

    @property
    def context(self) -> ExecutionContext:
        return self._context

    @property
    def correlation_id(self) -> str:
        return self._context.correlation_id

    def _emit(self, message: str) -> None:
        self._owner.emit(
            ExecutionEvent(
                correlation_id=self._context.correlation_id,
                timestamp=self._owner.now(self._zone),
                job_name=self._job.name,
                message=message,
            )
        )

    def started(self) -> None:
        self._emit(f"Http job start, job name: {self._job.name}")
        self._emit(f"Job: [{self._job.describe()}]")

    def attempt_finished(self, result: AttemptResult) -> None:
        """Log one attempt; passed to the executor as its attempt listener."""
        name = self._job.name
        self._context = replace(self._context, attempt=result.attempt)

        if result.ok:
            self._emit(f"Http request success, job name: {name}")
            self._emit(f"Http response: {result.body}")
            return

        error = result.error
        if error.status_code is not None:
            self._emit(f"Http request failed, job name: {name}, http status: {error.status_code}")
        else:
            self._emit(f"Http request failed, job name: {name}, error: {error.message}")
        if error.body is not None:
            self._emit(f"Http response: {error.body}")
        if result.will_retry:
            self._emit(
                f"Http request retry, job name: {name}, "
                f"attempt: {result.attempt + 1}/{result.total_attempts}"
            )

    def finished(self, outcome: ExecutionOutcome | None) -> None:
        """Emit the terminal events; *outcome* is None when execution crashed."""
        if self._finished:
            return
        self._finished = True
        if isinstance(outcome, Failure):
            self._emit(
                f"Http request retry exhausted, job name: {self._job.name}, "
                f"attempts: {outcome.attempts}"
            )
        self._emit(f"Http job end, job name: {self._job.name}")
        self._owner.release(self._context.correlation_id)


class ExecutionTracker:
    """Hands out correlation ids and routes firing events to a sink.

    Ids of firings still in progress are remembered so a collision can never
    hand the same id to two concurrent firings.
    """

    def __init__(
        self,
        sink: EventSink,
        *,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = generate_correlation_id,
    ) -> None:
        self._sink = sink
        self._clock = clock
        self._id_factory = id_factory
        self._active: set[str] = set()

    @property
    def active_ids(self) -> frozenset[str]:
        return frozenset(self._active)

    def now(self, zone: tzinfo) -> datetime:
        return self._clock().astimezone(zone)

    def emit(self, event: ExecutionEvent) -> None:
        self._sink.emit(event)

    def release(self, correlation_id: str) -> None:
        self._active.discard(correlation_id)

    def _next_id(self) -> str:
        correlation_id = self._id_factory()
        while correlation_id in self._active:
            logger.debug("Correlation id collision on %s, regenerating", correlation_id)
            correlation_id = self._id_factory()
        self._active.add(correlation_id)
        return correlation_id

    def begin(self, job: JobDefinition, zone: tzinfo = timezone.utc) -> FiringTracker:
        """Open a firing: allocate its id and emit the start events.

        If the start events cannot be produced the firing is closed again
        before the error propagates.
        """
        context = ExecutionContext(
            correlation_id=self._next_id(),
            job_name=job.name,
            started_at=self.now(zone),
        )
        firing = FiringTracker(self, context, job, zone)
        try:
            firing.started()
        except Exception:
            # Close the firing so its id is released and the log has an end line
            firing.finished(None)
            raise
        return firing
