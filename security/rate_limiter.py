"""
Fixed-window rate limiter keyed by (identifier, action type).

Each key gets a window anchored to its first attempt, not to wall-clock
boundaries. Up to ``2 * max_attempts`` actions can pass across the seam of
two consecutive windows.

State is held in memory by one limiter instance. Separate processes, browser
tabs or server replicas do not share quota, so this is advisory throttling
for the UI layer and not a security control: the backend must enforce its
own limits.
"""

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Mapping, Optional

from security.exceptions import SchemaError, UnknownActionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    """Quota for one action type."""

    window_ms: int
    max_attempts: int

    def __post_init__(self):
        for name in ("window_ms", "max_attempts"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise SchemaError(f"{name} must be a positive integer, got {value!r}")


@dataclass
class RateLimitEntry:
    """Attempts observed for one key in its current window."""

    count: int
    reset_time: int


DEFAULT_LIMITS: Dict[str, RateLimitConfig] = {
    "login": RateLimitConfig(window_ms=15 * 60 * 1000, max_attempts=5),
    "biometric": RateLimitConfig(window_ms=5 * 60 * 1000, max_attempts=10),
    "api": RateLimitConfig(window_ms=60 * 1000, max_attempts=100),
}


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class RateLimiter:
    """Fixed-window rate limiter with per-action quotas."""

    # Shared bucket for callers that deliberately throttle all anonymous traffic together
    ANONYMOUS = "*anonymous*"

    def __init__(
        self,
        configs: Optional[Mapping[str, RateLimitConfig]] = None,
        clock: Optional[Callable[[], int]] = None,
        sweep_interval_ms: Optional[int] = 60 * 1000,
    ):
        self._configs: Dict[str, RateLimitConfig] = dict(DEFAULT_LIMITS if configs is None else configs)
        for action_type, config in self._configs.items():
            if not isinstance(config, RateLimitConfig):
                raise SchemaError(f"Config for {action_type!r} must be a RateLimitConfig, got {config!r}")
        self._clock = clock or now_ms
        self.sweep_interval_ms = sweep_interval_ms
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = Lock()
        self._last_sweep = self._clock()

    def now(self) -> int:
        """Current time in epoch milliseconds, as seen by this limiter's clock."""
        return self._clock()

    @property
    def action_types(self):
        return sorted(self._configs)

    def get_config(self, action_type: str) -> RateLimitConfig:
        try:
            return self._configs[action_type]
        except KeyError:
            raise UnknownActionError(action_type) from None

    def _key(self, identifier: str, action_type: str) -> str:
        if not isinstance(identifier, str) or not identifier:
            raise ValueError(
                "identifier must be a non-empty string; use RateLimiter.ANONYMOUS for a shared bucket"
            )
        return f"{identifier}:{action_type}"

    def _live_entry(self, key: str, now: int) -> Optional[RateLimitEntry]:
        """Return the entry for key, dropping it if its window has passed. Caller holds the lock."""
        entry = self._entries.get(key)
        if entry is not None and now > entry.reset_time:
            del self._entries[key]
            return None
        return entry

    def is_allowed(self, identifier: str, action_type: str) -> bool:
        """Record an attempt and return True if it fits in the current window."""
        config = self.get_config(action_type)
        key = self._key(identifier, action_type)
        now = self._clock()
        with self._lock:
            self._maybe_sweep(now)
            entry = self._live_entry(key, now)
            if entry is None:
                self._entries[key] = RateLimitEntry(count=1, reset_time=now + config.window_ms)
                return True
            if entry.count >= config.max_attempts:
                logger.debug("Rate limit reached for %s (%d/%d)", key, entry.count, config.max_attempts)
                return False
            entry.count += 1
            return True

    def get_remaining_attempts(self, identifier: str, action_type: str) -> int:
        config = self.get_config(action_type)
        key = self._key(identifier, action_type)
        with self._lock:
            entry = self._live_entry(key, self._clock())
            if entry is None:
                return config.max_attempts
            return max(0, config.max_attempts - entry.count)

    def get_reset_time(self, identifier: str, action_type: str) -> int:
        """Epoch milliseconds at which the key's window ends, or 0 if none is open."""
        self.get_config(action_type)
        key = self._key(identifier, action_type)
        with self._lock:
            entry = self._live_entry(key, self._clock())
            return 0 if entry is None else entry.reset_time

    def reset(self, identifier: str, action_type: str) -> None:
        """Discard the window for a key, restoring its full quota."""
        self.get_config(action_type)
        key = self._key(identifier, action_type)
        with self._lock:
            self._entries.pop(key, None)

    def evict_expired(self) -> int:
        """Drop every entry whose window has passed and return how many were removed."""
        now = self._clock()
        with self._lock:
            return self._sweep(now)

    def _maybe_sweep(self, now: int) -> None:
        if self.sweep_interval_ms is None or now - self._last_sweep < self.sweep_interval_ms:
            return
        self._sweep(now)

    def _sweep(self, now: int) -> int:
        expired = [k for k, entry in self._entries.items() if now > entry.reset_time]
        for k in expired:
            del self._entries[k]
        self._last_sweep = now
        if expired:
            logger.debug("Evicted %d expired rate-limit entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
