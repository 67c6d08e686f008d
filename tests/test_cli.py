#!/usr/bin/env python3
"""
Tests for the keystroke-guard developer CLI.
"""

import json
import logging

import pytest
from click.testing import CliRunner

from guard_cli import cli


@pytest.fixture()
def runner(isolated_logs, monkeypatch):
    for var in ("GUARD_ENV", "GUARD_DEBUG", "GUARD_STRICT_FIELDS"):
        monkeypatch.delenv(var, raising=False)
    return CliRunner()


def test_limits_lists_default_quotas(runner):
    result = runner.invoke(cli, ["--no-log-file", "limits"])
    assert result.exit_code == 0, result.output
    for action in ("login", "biometric", "api"):
        assert action in result.output
    assert "15 min" in result.output


def test_validate_valid_form(runner):
    form = json.dumps({"email": "jane@example.com", "name": "Jane"})
    result = runner.invoke(cli, ["--no-log-file", "validate", form])
    assert result.exit_code == 0, result.output
    assert "valid" in result.output


def test_validate_invalid_form_exits_1(runner):
    form = json.dumps({"email": "bad", "confidence": 500})
    result = runner.invoke(cli, ["--no-log-file", "validate", form])
    assert result.exit_code == 1
    assert "Invalid email format" in result.output
    assert "Confidence cannot exceed 100" in result.output


def test_validate_form_from_file(runner, tmp_path):
    path = tmp_path / "form.json"
    path.write_text(json.dumps({"password": "short"}))
    result = runner.invoke(cli, ["--no-log-file", "validate", f"@{path}"])
    assert result.exit_code == 1
    assert "Password must be at least 8" in result.output


def test_validate_rejects_non_object(runner):
    result = runner.invoke(cli, ["--no-log-file", "validate", "[1, 2]"])
    assert result.exit_code == 2


def test_sanitize(runner):
    result = runner.invoke(cli, ["--no-log-file", "sanitize", "<script>alert(1)</script>"])
    assert result.exit_code == 0
    assert result.output.strip() == "scriptalert(1)/script"


def test_simulate_shows_denial(runner):
    result = runner.invoke(cli, ["--no-log-file", "simulate", "--action", "login", "--identifier", "bob"])
    assert result.exit_code == 0, result.output
    assert result.output.count("allowed") == 5
    assert "denied" in result.output
    assert "Too many login attempts" in result.output


def test_simulate_unknown_action(runner):
    result = runner.invoke(cli, ["--no-log-file", "simulate", "--action", "logon"])
    assert result.exit_code == 2
    assert "Unknown action" in result.output


def test_config_file_overrides_quota(runner, tmp_path):
    path = tmp_path / "guard.json"
    path.write_text(json.dumps({"rate_limits": {"login": {"window_ms": 60000, "max_attempts": 2}}}))
    result = runner.invoke(cli, ["--config", str(path), "--no-log-file", "simulate", "--attempts", "3"])
    assert result.exit_code == 0, result.output
    assert result.output.count("allowed") == 2


def test_bad_config_file_exits_2(runner, tmp_path):
    path = tmp_path / "guard.json"
    path.write_text("{oops")
    result = runner.invoke(cli, ["--config", str(path), "--no-log-file", "limits"])
    assert result.exit_code == 2


def test_no_log_file_writes_nothing(runner, isolated_logs):
    result = runner.invoke(cli, ["--no-log-file", "limits"])
    assert result.exit_code == 0, result.output
    assert not isolated_logs.exists()


def test_log_files_written_by_default(runner, isolated_logs):
    loggers = [logging.getLogger("security"), logging.getLogger("guard_errors")]
    try:
        result = runner.invoke(cli, ["limits"])
        assert result.exit_code == 0, result.output
        assert (isolated_logs / "guard.log").exists()
        assert (isolated_logs / "guard_error.log").exists()
    finally:
        for lg in loggers:
            for handler in list(lg.handlers):
                lg.removeHandler(handler)
                handler.close()


def test_crash_with_no_log_file_writes_nothing(runner, isolated_logs, monkeypatch):
    import guard_cli

    def broken_build_guard(config):
        raise RuntimeError("boom")

    monkeypatch.setattr(guard_cli, "build_guard", broken_build_guard)
    monkeypatch.setattr("sys.argv", ["keystroke-guard", "--no-log-file", "limits"])
    with pytest.raises(RuntimeError):
        guard_cli.main()
    assert not isolated_logs.exists()
