"""Tests for the command-line entry point."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from httpcron.__main__ import main
from httpcron.config import get_settings
from httpcron.execution.sink import EXECUTION_LOGGER


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("HTTPCRON_JOBS_DIR", raising=False)
    monkeypatch.delenv("HTTPCRON_DEFAULT_TIMEZONE", raising=False)
    get_settings.cache_clear()
    # main() attaches a stdout handler; keep it from outliving capsys
    executions = logging.getLogger(EXECUTION_LOGGER)
    handlers = list(executions.handlers)
    yield
    get_settings.cache_clear()
    for handler in executions.handlers[:]:
        if handler not in handlers:
            executions.removeHandler(handler)
    executions.propagate = True


def _write_jobs(directory: Path, *jobs: dict) -> None:
    (directory / "jobs.json").write_text(json.dumps({"http_jobs": list(jobs)}), encoding="utf-8")


class TestValidate:
    def test_lists_jobs_with_next_fire_time(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _write_jobs(
            tmp_path,
            {"name": "ping", "cron": "*/5 * * * * ?", "request": {"url": "http://a.test"}},
            {
                "name": "off",
                "enable": False,
                "cron": "0 0 * * * ?",
                "request": {"url": "http://b.test"},
            },
            {
                "name": "never",
                "cron": "0 0 0 30 2 ?",
                "timezone": "Europe/Oslo",
                "request": {"url": "http://c.test"},
            },
        )

        assert main(["--jobs-dir", str(tmp_path), "validate"]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert lines[0].startswith("ping: cron '*/5 * * * * ?' [UTC] next fire at ")
        assert lines[1] == "off: cron '0 0 * * * ?' [UTC] disabled"
        assert lines[2].startswith("never: cron '0 0 0 30 2 ?' [Europe/Oslo] inactive (")

    def test_missing_file_exits_nonzero(self, tmp_path: Path) -> None:
        assert main(["--jobs-dir", str(tmp_path), "validate"]) == 1

    def test_invalid_cron_exits_nonzero(self, tmp_path: Path) -> None:
        _write_jobs(
            tmp_path,
            {"name": "bad", "cron": "*/5 * * 99 * ?", "request": {"url": "http://a.test"}},
        )
        assert main(["--jobs-dir", str(tmp_path), "validate"]) == 1


class TestNext:
    def test_prints_upcoming_fire_times(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["next", "0 0 12 * * ?", "--count", "2", "--timezone", "UTC"]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 2
        assert all(line.endswith("T12:00:00+00:00") for line in lines)

    def test_invalid_expression(self) -> None:
        assert main(["next", "* * *"]) == 1

    def test_unknown_timezone(self) -> None:
        assert main(["next", "0 0 12 * * ?", "--timezone", "Nowhere/Else"]) == 1

    def test_invalid_settings_exit_cleanly(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        monkeypatch.setenv("HTTPCRON_DEFAULT_TIMEZONE", "Nowhere/Else")
        get_settings.cache_clear()

        with caplog.at_level(logging.ERROR, logger="httpcron"):
            assert main(["next", "0 0 12 * * ?"]) == 1

        assert "Invalid settings" in caplog.text


class TestServe:
    @patch("httpcron.scheduler.runner.serve")
    def test_serve_uses_jobs_dir_override(self, mock_serve, tmp_path: Path) -> None:
        assert main(["--jobs-dir", str(tmp_path), "serve"]) == 0

        (settings,) = mock_serve.call_args.args
        assert settings.jobs_dir == str(tmp_path)

    def test_command_is_required(self) -> None:
        with pytest.raises(SystemExit):
            main([])
