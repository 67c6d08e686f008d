"""
pytest fixtures shared across all test modules.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from monitoring.metrics import SecurityMetrics  # noqa: E402
from security import RateLimiter, SecurityGuard, SecurityValidator  # noqa: E402
from test_utils import FakeClock  # noqa: E402


@pytest.fixture()
def clock():
    """Return a FakeClock that tests advance by hand."""
    return FakeClock()


@pytest.fixture()
def limiter(clock):
    """Return a RateLimiter with default quotas on the fake clock."""
    return RateLimiter(clock=clock, sweep_interval_ms=None)


@pytest.fixture()
def guard(limiter):
    """Return a SecurityGuard for user 'user-1' with fresh metrics."""
    return SecurityGuard(
        validator=SecurityValidator(),
        limiter=limiter,
        metrics=SecurityMetrics(),
        user_id="user-1",
    )


@pytest.fixture()
def isolated_logs(tmp_path, monkeypatch):
    """Point rotating log files at a temporary directory."""
    import logging_config

    monkeypatch.setattr(logging_config, "LOGS_DIR", tmp_path / "logs")
    return tmp_path / "logs"
