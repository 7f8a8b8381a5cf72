"""Job definition models: what to call, when, and how patiently."""

from __future__ import annotations

import json
from typing import Any, Literal

import httpx
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from httpcron.cron import resolve_timezone

HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "HEAD", "OPTIONS", "PATCH"]

DEFAULT_TIMEOUT_MILLIS = 5000
DEFAULT_MAX_RETRY = 3


def _render_json(value: Any) -> str:
    """Compact JSON rendering used in job snapshots."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _check_timezone(value: str | None) -> str | None:
    if value is not None:
        resolve_timezone(value)
    return value


class HttpJobRequest(BaseModel):
    """The HTTP call a job makes on every firing."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    url: str
    method: HttpMethod = "GET"
    headers: dict[str, str] | None = None
    body: Any = None

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("url")
    @classmethod
    def check_url(cls, value: str) -> str:
        """Require an absolute http(s) URL."""
        try:
            url = httpx.URL(value)
        except httpx.InvalidURL as exc:
            msg = f"invalid url '{value}': {exc}"
            raise ValueError(msg) from exc
        if url.scheme not in ("http", "https") or not url.host:
            msg = f"url must be an absolute http(s) URL, got '{value}'"
            raise ValueError(msg)
        return value

    @field_validator("headers")
    @classmethod
    def check_headers(cls, value: dict[str, str] | None) -> dict[str, str] | None:
        """Header names and values must be encodable on the wire."""
        if value is None:
            return value
        try:
            httpx.Headers(value)
        except UnicodeEncodeError as exc:
            msg = f"header {exc.object!r} is not ASCII"
            raise ValueError(msg) from exc
        return value

    @field_validator("body")
    @classmethod
    def check_body(cls, value: Any) -> Any:
        """The body is sent as JSON, so it must be a plain JSON value."""
        try:
            json.dumps(value, allow_nan=False)
        except (TypeError, ValueError) as exc:
            msg = f"body is not a JSON value: {exc}"
            raise ValueError(msg) from exc
        return value

    def describe(self) -> str:
        headers = _render_json(self.headers) if self.headers is not None else "None"
        body = _render_json(self.body) if self.body is not None else "None"
        return (
            f"url: {self.url}, method: {self.method}, "
            f"headers: {headers}, body: {body}"
        )


class JobDefinition(BaseModel):
    """One scheduled HTTP job, immutable once loaded.

    File keys use the short ``jobs.json`` spelling (``enable``, ``cron``)
    and also accept the camelCase and snake_case spellings.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    name: str
    enabled: bool = Field(
        default=True, validation_alias=AliasChoices("enabled", "enable")
    )
    cron_expression: str = Field(
        validation_alias=AliasChoices("cron_expression", "cronExpression", "cron")
    )
    timezone: str | None = None
    timeout_millis: int = Field(
        default=DEFAULT_TIMEOUT_MILLIS,
        gt=0,
        validation_alias=AliasChoices("timeout_millis", "timeoutMillis"),
    )
    max_retry: int = Field(
        default=DEFAULT_MAX_RETRY,
        ge=0,
        validation_alias=AliasChoices("max_retry", "maxRetry"),
    )
    allow_overlap: bool | None = Field(
        default=None,
        validation_alias=AliasChoices("allow_overlap", "allowOverlap"),
    )
    request: HttpJobRequest

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value: str | None) -> str | None:
        return _check_timezone(value)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_millis / 1000

    @property
    def total_attempts(self) -> int:
        return self.max_retry + 1

    def describe(self) -> str:
        """Snapshot text used in the ``Job: [...]`` execution log line."""
        enable = "true" if self.enabled else "false"
        return (
            f"name: {self.name}, enable: {enable}, cron: {self.cron_expression}, "
            f"request: [{self.request.describe()}]"
        )


class JobFile(BaseModel):
    """Top-level job document: a shared time zone and the job list."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    timezone: str = "UTC"
    http_jobs: list[JobDefinition] = Field(
        validation_alias=AliasChoices("http_jobs", "jobs")
    )

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value: str | None) -> str | None:
        return _check_timezone(value)

    @model_validator(mode="before")
    @classmethod
    def inherit_timezone(cls, data: Any) -> Any:
        """Give every job without its own ``timezone`` the file-level one."""
        if not isinstance(data, dict):
            return data
        zone = data.get("timezone")
        key = "http_jobs" if "http_jobs" in data else "jobs"
        jobs = data.get(key)
        if zone is None or not isinstance(jobs, list):
            return data
        inherited = [
            {**job, "timezone": zone}
            if isinstance(job, dict) and job.get("timezone") is None
            else job
            for job in jobs
        ]
        return {**data, key: inherited}

    @property
    def enabled_jobs(self) -> list[JobDefinition]:
        return [job for job in self.http_jobs if job.enabled]
