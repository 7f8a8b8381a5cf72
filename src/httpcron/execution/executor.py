"""HTTP job executor: one request per attempt, deadline per attempt, bounded retries."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from httpcron.errors import ExecutionError, FailureKind
from httpcron.execution.outcome import AttemptResult, ExecutionOutcome, Failure, Success

if TYPE_CHECKING:
    from httpcron.config.settings import Settings
    from httpcron.jobs.models import JobDefinition

logger = logging.getLogger(__name__)

AttemptListener = Callable[[AttemptResult], None]


@dataclass(frozen=True)
class RetryPolicy:
    """Delay between attempts of one firing.

    With ``backoff_seconds == 0`` retries are immediate; otherwise the delay
    grows by ``multiplier`` per retry, capped at ``max_backoff_seconds``.
    """

    backoff_seconds: float = 0.0
    multiplier: float = 2.0
    max_backoff_seconds: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryPolicy:
        return cls(
            backoff_seconds=settings.retry_backoff_seconds,
            multiplier=settings.retry_backoff_multiplier,
            max_backoff_seconds=settings.retry_backoff_max_seconds,
        )

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before *attempt* (attempt 1 never waits)."""
        if attempt <= 1 or self.backoff_seconds <= 0:
            return 0.0
        delay = self.backoff_seconds * self.multiplier ** (attempt - 2)
        return min(delay, self.max_backoff_seconds)


def create_http_client(user_agent: str = "httpcron") -> httpx.AsyncClient:
    """Shared client for all executions; timeouts are set per request."""
    return httpx.AsyncClient(headers={"User-Agent": user_agent}, follow_redirects=False)


class JobExecutor:
    """Runs the HTTP request of a due job and reports a single outcome."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._client = client
        self._retry_policy = retry_policy or RetryPolicy()

    def build_request(self, job: JobDefinition) -> httpx.Request:
        """Build the request for one attempt; the body is sent as JSON."""
        spec = job.request
        return self._client.build_request(
            spec.method,
            spec.url,
            headers=spec.headers,
            json=spec.body,
            timeout=job.timeout_seconds,
        )

    async def execute(
        self,
        job: JobDefinition,
        on_attempt: AttemptListener | None = None,
    ) -> ExecutionOutcome:
        """Run up to ``max_retry + 1`` attempts, stopping at the first 2xx.

        Never raises for HTTP, network or timeout problems; those end up in
        the returned :class:`Failure`.
        """
        total = job.total_attempts
        last_error: ExecutionError | None = None

        for attempt in range(1, total + 1):
            delay = self._retry_policy.delay_before(attempt)
            if delay:
                await asyncio.sleep(delay)

            started = time.monotonic()
            try:
                response = await self._attempt(job)
            except ExecutionError as exc:
                last_error = exc
                result = AttemptResult(
                    attempt=attempt,
                    total_attempts=total,
                    status_code=exc.status_code,
                    body=exc.body,
                    error=exc,
                    elapsed_seconds=time.monotonic() - started,
                )
                logger.debug(
                    "Job '%s' attempt %d/%d failed (%s): %s",
                    job.name, attempt, total, exc.kind.value, exc.message,
                )
            else:
                result = AttemptResult(
                    attempt=attempt,
                    total_attempts=total,
                    status_code=response.status_code,
                    body=response.text,
                    elapsed_seconds=time.monotonic() - started,
                )

            if on_attempt is not None:
                on_attempt(result)
            if result.ok:
                return Success(
                    status_code=response.status_code,
                    body=response.text,
                    attempts=attempt,
                )

        if last_error is None:
            msg = f"Job '{job.name}' allows no attempts"
            raise RuntimeError(msg)
        logger.warning(
            "Job '%s' failed after %d attempts: %s", job.name, total, last_error.message
        )
        return Failure(
            kind=FailureKind.RETRY_EXHAUSTED,
            last_error=last_error,
            attempts=total,
        )

    async def _attempt(self, job: JobDefinition) -> httpx.Response:
        """Send one request under the job's deadline.

        Raises:
            ExecutionError: On an unbuildable request, timeout, transport
                failure or non-2xx status.
        """
        try:
            request = self.build_request(job)
        except (httpx.InvalidURL, UnicodeEncodeError, TypeError, ValueError) as exc:
            msg = f"could not build request: {exc}"
            raise ExecutionError(FailureKind.NETWORK_ERROR, msg) from exc

        try:
            response = await asyncio.wait_for(
                self._client.send(request), timeout=job.timeout_seconds
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            msg = f"request timed out after {job.timeout_millis} ms"
            raise ExecutionError(FailureKind.TIMEOUT, msg) from exc
        except httpx.HTTPError as exc:
            msg = str(exc) or type(exc).__name__
            raise ExecutionError(FailureKind.NETWORK_ERROR, msg) from exc

        if not response.is_success:
            raise ExecutionError(
                FailureKind.HTTP_STATUS_ERROR,
                f"http status {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return response
