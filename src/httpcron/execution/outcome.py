"""Results of one firing: per-attempt records and the terminal outcome."""

from __future__ import annotations

from dataclasses import dataclass

from httpcron.errors import ExecutionError, FailureKind


@dataclass(frozen=True)
class AttemptResult:
    """What happened on one HTTP attempt of a firing."""

    attempt: int
    total_attempts: int
    status_code: int | None = None
    body: str | None = None
    error: ExecutionError | None = None
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def will_retry(self) -> bool:
        return not self.ok and self.attempt < self.total_attempts


@dataclass(frozen=True)
class Success:
    status_code: int
    body: str
    attempts: int


@dataclass(frozen=True)
class Failure:
    """Terminal failure of a firing.

    ``kind`` is ``RETRY_EXHAUSTED`` for executor results; ``last_error.kind``
    tells whether the final attempt timed out, failed on the network or got a
    non-2xx status.
    """

    kind: FailureKind
    last_error: ExecutionError
    attempts: int


ExecutionOutcome = Success | Failure
