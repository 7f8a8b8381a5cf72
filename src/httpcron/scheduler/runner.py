"""Serve-mode orchestrator: load jobs, tick until a signal, drain, exit."""

from __future__ import annotations

import asyncio
import logging
import signal
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from httpcron.execution.executor import JobExecutor, RetryPolicy, create_http_client
from httpcron.execution.sink import LogEventWriter, QueueEventSink
from httpcron.execution.tracker import ExecutionTracker
from httpcron.jobs.registry import JobRegistry
from httpcron.jobs.source import FileJobSource
from httpcron.scheduler.cron_scheduler import HttpJobScheduler

if TYPE_CHECKING:
    from httpcron.config.settings import Settings
    from httpcron.jobs.source import JobSource

logger = logging.getLogger(__name__)

# Upper bound on flushing buffered execution events at exit
_DRAIN_TIMEOUT_SECONDS = 5.0


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def _handle_signal(signum: int) -> None:
        logger.info("Received signal %d, shutting down...", signum)
        stop_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, _handle_signal, signum)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler
            signal.signal(
                signum,
                lambda sig, frame: loop.call_soon_threadsafe(_handle_signal, sig),
            )


async def run(
    settings: Settings,
    *,
    source: JobSource | None = None,
    stop_event: asyncio.Event | None = None,
    install_signals: bool = True,
) -> None:
    """Load the job file and schedule its jobs until *stop_event* is set.

    Raises:
        ConfigError: The job file is missing, duplicated or invalid.
        CronValidationError: A job's cron expression is invalid.
    """
    source = source or FileJobSource(settings.jobs_dir, settings.default_timezone)
    job_file = source.load()
    registry = JobRegistry(job_file.http_jobs, datetime.now(timezone.utc))
    if not len(registry):
        logger.warning("No enabled jobs to schedule")

    sink = QueueEventSink()
    writer = LogEventWriter(sink.queue)
    writer_task = asyncio.create_task(writer.run(), name="httpcron:log-writer")
    tracker = ExecutionTracker(sink)

    stop_event = stop_event or asyncio.Event()
    if install_signals:
        _install_signal_handlers(stop_event)

    async with create_http_client(settings.user_agent) as client:
        scheduler = HttpJobScheduler(
            registry,
            JobExecutor(client, RetryPolicy.from_settings(settings)),
            tracker,
            tick_interval=settings.tick_interval_seconds,
            allow_overlap=settings.allow_overlap,
        )
        scheduler.start()
        logger.info("Serve mode active, %d jobs scheduled", len(registry))
        try:
            await stop_event.wait()
        finally:
            await scheduler.shutdown(settings.shutdown_grace_seconds)
            try:
                await asyncio.wait_for(writer.drain(), timeout=_DRAIN_TIMEOUT_SECONDS)
            except asyncio.TimeoutError:
                logger.warning("Dropped execution events that could not be written in time")
            writer_task.cancel()
            await asyncio.gather(writer_task, return_exceptions=True)

    logger.info("Serve mode stopped")


def serve(settings: Settings) -> None:
    """Run the scheduler and block until SIGINT/SIGTERM.

    This is the entry point for ``python -m httpcron serve``.
    """
    asyncio.run(run(settings))
