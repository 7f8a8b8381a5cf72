"""Execution event sinks.

Trackers never write log lines themselves: they hand events to a sink. The
queue-backed sink feeds a single :class:`LogEventWriter` task, so lines from
concurrent firings interleave only at whole-line granularity.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from httpcron.execution.tracker import ExecutionEvent

EXECUTION_LOGGER = "httpcron.executions"

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    """Accepts execution events; must not block."""

    def emit(self, event: ExecutionEvent) -> None:
        ...


class ListEventSink:
    """Keeps events in memory (CLI dry runs and tests)."""

    def __init__(self) -> None:
        self.events: list[ExecutionEvent] = []

    def emit(self, event: ExecutionEvent) -> None:
        self.events.append(event)

    def lines(self) -> list[str]:
        return [event.render() for event in self.events]


class QueueEventSink:
    """Puts events on an :class:`asyncio.Queue` for a writer task."""

    def __init__(self, queue: asyncio.Queue[ExecutionEvent] | None = None) -> None:
        self.queue: asyncio.Queue[ExecutionEvent] = queue if queue is not None else asyncio.Queue()

    def emit(self, event: ExecutionEvent) -> None:
        self.queue.put_nowait(event)


class LogEventWriter:
    """Single consumer that renders queued events through ``logging``."""

    def __init__(
        self,
        queue: asyncio.Queue[ExecutionEvent],
        target: logging.Logger | None = None,
    ) -> None:
        self._queue = queue
        self._target = target or logging.getLogger(EXECUTION_LOGGER)

    async def run(self) -> None:
        """Write events until cancelled."""
        while True:
            event = await self._queue.get()
            try:
                self._target.info(event.render())
            except Exception:
                logger.exception("Failed to write execution event")
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Wait until every queued event has been written."""
        await self._queue.join()
