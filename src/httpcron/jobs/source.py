"""Job source: locate and parse the single ``jobs`` file of a directory."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

import yaml
from pydantic import ValidationError

from httpcron.cron import parse_cron
from httpcron.errors import ConfigError, CronValidationError
from httpcron.jobs.models import JobFile

logger = logging.getLogger(__name__)

JOB_FILE_NAMES: tuple[str, ...] = ("jobs.json", "jobs.yaml", "jobs.yml")


class JobSource(Protocol):
    """Anything that yields a validated :class:`JobFile`."""

    def load(self) -> JobFile:
        """Return the job document, raising ConfigError when it is unusable."""
        ...


def find_job_file(directory: str | Path) -> Path:
    """Return the one job file in *directory*.

    Raises:
        ConfigError: If no job file, or more than one, is present.
    """
    base = Path(directory)
    found = [base / name for name in JOB_FILE_NAMES if (base / name).is_file()]
    if not found:
        msg = f"No jobs file found in '{base}' (expected one of: {', '.join(JOB_FILE_NAMES)})"
        raise ConfigError(msg)
    if len(found) > 1:
        names = ", ".join(path.name for path in found)
        msg = f"Multiple jobs files exist in '{base}' ({names}); keep exactly one"
        raise ConfigError(msg)
    return found[0]


def _parse_document(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Could not read '{path}': {exc}"
        raise ConfigError(msg) from exc

    try:
        if path.suffix == ".json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        msg = f"Could not parse '{path.name}': {exc}"
        raise ConfigError(msg) from exc


def _format_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "<root>"
        problems.append(f"{location}: {error['msg']}")
    return "; ".join(problems)


class FileJobSource:
    """Loads ``jobs.json`` / ``jobs.yaml`` / ``jobs.yml`` from a directory."""

    def __init__(self, directory: str | Path = ".", default_timezone: str = "UTC") -> None:
        self._directory = Path(directory)
        self._default_timezone = default_timezone

    def load(self) -> JobFile:
        """Locate, parse and validate the job file.

        Every cron expression is parsed here so that evaluation can never fail
        on syntax later on.

        Raises:
            ConfigError: Zero or several job files, bad syntax, missing fields.
            CronValidationError: A job's cron expression is invalid.
        """
        path = find_job_file(self._directory)
        data = _parse_document(path)
        if not isinstance(data, dict):
            msg = f"'{path.name}' must contain a mapping at the top level"
            raise ConfigError(msg)

        data = {"timezone": self._default_timezone, **data}
        if data["timezone"] is None:
            data["timezone"] = self._default_timezone

        try:
            job_file = JobFile.model_validate(data)
        except ValidationError as exc:
            msg = f"Invalid job definition in '{path.name}': {_format_validation_error(exc)}"
            raise ConfigError(msg) from exc

        for job in job_file.http_jobs:
            try:
                parse_cron(job.cron_expression)
            except CronValidationError as exc:
                logger.error("Job '%s' has an invalid cron expression: %s", job.name, exc.reason)
                raise

        logger.info(
            "Loaded %d jobs (%d enabled) from %s",
            len(job_file.http_jobs),
            len(job_file.enabled_jobs),
            path,
        )
        return job_file
