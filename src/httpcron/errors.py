"""Exception hierarchy shared by every httpcron component."""

from __future__ import annotations

from enum import Enum


class HttpCronError(Exception):
    """Base class for all httpcron errors."""


class ConfigError(HttpCronError):
    """The job file is missing, duplicated, malformed or incomplete."""


class CronValidationError(HttpCronError, ValueError):
    """A cron expression could not be parsed."""

    def __init__(self, expression: str, reason: str) -> None:
        self.expression = expression
        self.reason = reason
        super().__init__(f"Invalid cron expression '{expression}': {reason}")


class NoUpcomingTrigger(HttpCronError):
    """No instant matches the expression within the look-ahead window."""

    def __init__(self, expression: str, horizon_years: int) -> None:
        self.expression = expression
        self.horizon_years = horizon_years
        super().__init__(
            f"Cron expression '{expression}' has no fire time "
            f"within the next {horizon_years} years"
        )


# Names used in the scheduling vocabulary
InvalidCronExpression = CronValidationError
SchedulingExhausted = NoUpcomingTrigger


class FailureKind(str, Enum):
    """Why an attempt or a firing failed."""

    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    HTTP_STATUS_ERROR = "http_status_error"
    RETRY_EXHAUSTED = "retry_exhausted"


class ExecutionError(HttpCronError):
    """One failed HTTP attempt.

    Raised inside the executor and recovered by the retry loop; callers only
    ever see it as ``Failure.last_error``.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(message)
