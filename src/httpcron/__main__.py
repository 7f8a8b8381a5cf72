"""CLI entry point: ``python -m httpcron serve|validate|next``."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timezone

from httpcron.config import Settings, get_settings
from httpcron.errors import HttpCronError
from httpcron.execution.sink import EXECUTION_LOGGER


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="httpcron",
        description="httpcron: fire HTTP requests on cron schedules.",
    )
    parser.add_argument(
        "--jobs-dir",
        default=None,
        help="Directory holding jobs.json / jobs.yaml / jobs.yml.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Start the long-lived scheduler.")
    sub.add_parser("validate", help="Load the jobs file and show each job's next fire time.")

    nxt = sub.add_parser("next", help="Print upcoming fire times of a cron expression.")
    nxt.add_argument("expression", help='Cron expression, e.g. "*/5 * * * * ?".')
    nxt.add_argument("--timezone", default=None, help="IANA zone (default: settings).")
    nxt.add_argument("--count", type=int, default=5, help="How many fire times to print.")

    return parser


def _configure_logging(level_name: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Execution events are already fully formatted lines
    executions = logging.getLogger(EXECUTION_LOGGER)
    if not executions.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(message)s"))
        executions.addHandler(handler)
    executions.setLevel(logging.INFO)
    executions.propagate = False


def _validate(settings: Settings) -> int:
    from httpcron.jobs import FileJobSource, JobRegistry

    job_file = FileJobSource(settings.jobs_dir, settings.default_timezone).load()
    registry = JobRegistry(job_file.http_jobs, datetime.now(timezone.utc))
    scheduled = {job.key: job for job in registry.jobs}

    for key, definition in enumerate(job_file.http_jobs):
        job = scheduled.get(key)
        if job is None:
            status = "disabled"
        else:
            state = registry.state(job)
            status = (
                f"next fire at {state.next_fire_at.isoformat()}"
                if state.active
                else f"inactive ({state.disabled_reason})"
            )
        print(
            f"{definition.name}: cron '{definition.cron_expression}' "
            f"[{definition.timezone or 'UTC'}] {status}"
        )
    return 0


def _next(settings: Settings, expression: str, zone: str | None, count: int) -> int:
    from httpcron.cron import parse_cron

    cron = parse_cron(expression)
    for moment in cron.upcoming(
        datetime.now(timezone.utc), zone or settings.default_timezone, count
    ):
        print(moment.isoformat())
    return 0


def main(argv: list[str] | None = None) -> int:
    """Parse CLI args and dispatch to the chosen command."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except ValueError as exc:
        _configure_logging("INFO")
        logging.getLogger("httpcron").error("Invalid settings: %s", exc)
        return 1

    # Override jobs_dir from CLI flag
    if args.jobs_dir:
        settings = settings.model_copy(update={"jobs_dir": args.jobs_dir})

    _configure_logging(settings.log_level)
    logger = logging.getLogger("httpcron")

    try:
        if args.command == "serve":
            from httpcron.scheduler.runner import serve

            serve(settings)
            return 0

        if args.command == "validate":
            return _validate(settings)

        if args.command == "next":
            return _next(settings, args.expression, args.timezone, args.count)
    except (HttpCronError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    return 1  # unreachable with required=True


if __name__ == "__main__":
    sys.exit(main())
