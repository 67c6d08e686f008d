"""
SecurityGuard tests – throttling as seen by UI flows, failure reporting
and metrics.
"""

import json
import logging

import pytest

from monitoring.metrics import SecurityMetrics
from security import RateLimitConfig, RateLimiter, SecurityGuard, SecurityValidator, UnknownActionError
from utils.config import Config, build_guard


def test_check_rate_limit_uses_bound_user(guard):
    for _ in range(5):
        assert guard.check_rate_limit("login")
    assert not guard.check_rate_limit("login")
    assert guard.limiter.get_remaining_attempts("user-1", "login") == 0


def test_explicit_user_overrides_bound_user(guard):
    for _ in range(5):
        guard.check_rate_limit("login", user_id="alice")
    assert not guard.check_rate_limit("login", user_id="alice")
    assert guard.check_rate_limit("login")


def test_anonymous_caller_not_throttled(limiter):
    guard = SecurityGuard(limiter=limiter)
    assert guard.limiter is limiter
    for _ in range(20):
        assert guard.check_rate_limit("login")
    assert len(limiter) == 0


def test_anonymous_caller_unknown_action_still_raises(limiter):
    guard = SecurityGuard(limiter=limiter)
    with pytest.raises(UnknownActionError):
        guard.check_rate_limit("logon")


def test_denial_is_logged_and_counted(guard, caplog):
    for _ in range(5):
        guard.check_rate_limit("login")
    with caplog.at_level(logging.WARNING, logger="security.guard"):
        assert not guard.check_rate_limit("login")
    assert "Rate limit exceeded for: user-1" in caplog.text
    stats = guard.metrics.get_stats()
    assert stats["rate_limit_allowed"] == {"login": 5}
    assert stats["rate_limit_denied"] == {"login": 1}


def test_retry_message_rounds_up_minutes(guard, clock):
    for _ in range(6):
        guard.check_rate_limit("login")
    clock.advance(60 * 1000 + 1)
    assert guard.retry_message("user-1", "login") == "Too many login attempts. Please try again in 14 minutes."


def test_retry_message_without_window(guard):
    assert guard.retry_message("nobody", "api") == "Too many api attempts. Please try again in 1 minute."


def test_validate_form_reports_failures(guard, caplog):
    with caplog.at_level(logging.INFO, logger="security.guard"):
        assert not guard.validate_form({"email": "bad", "name": "ok", "confidence": 500})
    assert set(guard.validation_errors) == {"email", "confidence"}
    assert "Data validation failed for field: email" in caplog.text
    assert guard.metrics.get_stats()["validation_failures"] == {"email": 1, "confidence": 1}


def test_validate_field_success_records_nothing(guard):
    assert guard.validate_field("email", "a@b.com")
    assert guard.metrics.get_stats()["validation_failures"] == {}


def test_clear_errors_and_sanitize(guard):
    guard.validate_field("email", "bad")
    guard.clear_errors()
    assert guard.validation_errors == {}
    assert guard.sanitize_input(" <b>hi</b> ") == "bhi/b"


def test_injected_collaborators_are_kept(limiter):
    validator = SecurityValidator()
    metrics = SecurityMetrics()
    guard = SecurityGuard(validator=validator, limiter=limiter, metrics=metrics)
    assert len(limiter) == 0
    assert guard.limiter is limiter
    assert guard.validator is validator
    assert guard.metrics is metrics


def test_injected_quota_is_enforced(clock):
    limiter = RateLimiter(
        configs={"login": RateLimitConfig(window_ms=60000, max_attempts=2)}, clock=clock, sweep_interval_ms=None
    )
    guard = SecurityGuard(limiter=limiter, user_id="u")
    assert [guard.check_rate_limit("login") for _ in range(3)] == [True, True, False]


def test_build_guard_applies_configured_quota(tmp_path, clock):
    path = tmp_path / "guard.json"
    path.write_text(json.dumps({"rate_limits": {"login": {"window_ms": 60000, "max_attempts": 2}}}))
    guard = build_guard(Config(path), clock=clock, user_id="u")
    assert [guard.check_rate_limit("login") for _ in range(3)] == [True, True, False]
    assert guard.limiter.get_reset_time("u", "login") == clock.now + 60000


def test_default_collaborators():
    guard = SecurityGuard()
    assert isinstance(guard.metrics, SecurityMetrics)
    assert guard.limiter.action_types == ["api", "biometric", "login"]
