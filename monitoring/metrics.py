import time
import threading
from collections import defaultdict
from typing import Dict


def _label(value: str) -> str:
    """Escape a Prometheus label value."""
    return value.replace("\\", "\\\\").replace("\"", "\\\"").replace("\n", "\\n")


class SecurityMetrics:
    """Thread-safe counters for rate-limit decisions and validation failures."""

    def __init__(self):
        self._lock = threading.Lock()
        self._allowed: Dict[str, int] = defaultdict(int)
        self._denied: Dict[str, int] = defaultdict(int)
        self._validation_failures: Dict[str, int] = defaultdict(int)
        self._start_time = time.time()

    def track_rate_limit(self, action_type: str, allowed: bool) -> None:
        with self._lock:
            if allowed:
                self._allowed[action_type] += 1
            else:
                self._denied[action_type] += 1

    def track_validation_failure(self, field: str) -> None:
        with self._lock:
            self._validation_failures[field] += 1

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "uptime_seconds": time.time() - self._start_time,
                "rate_limit_allowed": dict(self._allowed),
                "rate_limit_denied": dict(self._denied),
                "validation_failures": dict(self._validation_failures),
            }

    def get_prometheus_format(self) -> str:
        stats = self.get_stats()
        lines = [f'guard_uptime_seconds {stats["uptime_seconds"]:.2f}']
        for action, count in sorted(stats["rate_limit_allowed"].items()):
            lines.append(f'guard_rate_limit_total{{action="{_label(action)}",decision="allowed"}} {count}')
        for action, count in sorted(stats["rate_limit_denied"].items()):
            lines.append(f'guard_rate_limit_total{{action="{_label(action)}",decision="denied"}} {count}')
        for field, count in sorted(stats["validation_failures"].items()):
            lines.append(f'guard_validation_failures_total{{field="{_label(field)}"}} {count}')
        return '\n'.join(lines) + '\n'

    def reset(self) -> None:
        with self._lock:
            self._allowed.clear()
            self._denied.clear()
            self._validation_failures.clear()
            self._start_time = time.time()
