"""Execution pipeline: HTTP executor, tracker and event sinks."""

from httpcron.execution.executor import JobExecutor, RetryPolicy, create_http_client
from httpcron.execution.outcome import AttemptResult, ExecutionOutcome, Failure, Success
from httpcron.execution.sink import (
    EXECUTION_LOGGER,
    EventSink,
    ListEventSink,
    LogEventWriter,
    QueueEventSink,
)
from httpcron.execution.tracker import (
    ExecutionContext,
    ExecutionEvent,
    ExecutionTracker,
    FiringTracker,
)

__all__ = [
    "EXECUTION_LOGGER",
    "AttemptResult",
    "EventSink",
    "ExecutionContext",
    "ExecutionEvent",
    "ExecutionOutcome",
    "ExecutionTracker",
    "Failure",
    "FiringTracker",
    "JobExecutor",
    "ListEventSink",
    "LogEventWriter",
    "QueueEventSink",
    "RetryPolicy",
    "Success",
    "create_http_client",
]
