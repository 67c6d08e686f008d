import logging
import math
from typing import Any, Dict, Mapping, Optional

from monitoring.metrics import SecurityMetrics
from security.rate_limiter import RateLimiter
from security.validator import SecurityValidator

logger = logging.getLogger(__name__)


class SecurityGuard:
    """Entry point for UI flows: throttles actions and validates form input.

    Denials and field failures are logged and counted; they are never raised.
    """

    def __init__(
        self,
        validator: Optional[SecurityValidator] = None,
        limiter: Optional[RateLimiter] = None,
        metrics: Optional[SecurityMetrics] = None,
        user_id: Optional[str] = None,
    ):
        self.validator = validator if validator is not None else SecurityValidator()
        self.limiter = limiter if limiter is not None else RateLimiter()
        self.metrics = metrics if metrics is not None else SecurityMetrics()
        self.user_id = user_id

    def check_rate_limit(self, action_type: str, user_id: Optional[str] = None) -> bool:
        """Return True if the current user may perform the action now.

        Callers without a user id are not throttled here.
        """
        identifier = user_id or self.user_id
        if not identifier:
            self.limiter.get_config(action_type)
            return True
        allowed = self.limiter.is_allowed(identifier, action_type)
        self.metrics.track_rate_limit(action_type, allowed)
        if not allowed:
            logger.warning("Rate limit exceeded for: %s (%s)", identifier, action_type)
        return allowed

    def retry_message(self, identifier: str, action_type: str) -> str:
        """Human-readable retry-later message for a throttled identifier."""
        reset_time = self.limiter.get_reset_time(identifier, action_type)
        now = self.limiter.now()
        minutes = max(1, math.ceil((reset_time - now) / (1000 * 60))) if reset_time else 1
        unit = "minute" if minutes == 1 else "minutes"
        return f"Too many {action_type} attempts. Please try again in {minutes} {unit}."

    def validate_field(self, field: str, value: Any) -> bool:
        ok = self.validator.validate_field(field, value)
        if not ok:
            self._report_failure(field)
        return ok

    def validate_form(self, data: Mapping[str, Any]) -> bool:
        results = [self.validate_field(name, value) for name, value in data.items()]
        return all(results)

    def sanitize_input(self, text: str) -> str:
        return self.validator.sanitize_input(text)

    def clear_errors(self) -> None:
        self.validator.clear_errors()

    @property
    def validation_errors(self) -> Dict[str, str]:
        return self.validator.errors

    def _report_failure(self, field: str) -> None:
        self.metrics.track_validation_failure(field)
        logger.info("Data validation failed for field: %s (user=%s)", field, self.user_id or "anonymous")
