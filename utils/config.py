import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from security.exceptions import ConfigError, SchemaError
from security.guard import SecurityGuard
from security.rate_limiter import RateLimitConfig, RateLimiter
from security.validator import SecurityValidator


class Config:
    """Hierarchical configuration with dot-notation access and env-var overrides."""

    DEFAULTS: Dict[str, Any] = {
        "environment": "development",
        "rate_limits": {
            "login": {"window_ms": 15 * 60 * 1000, "max_attempts": 5},
            "biometric": {"window_ms": 5 * 60 * 1000, "max_attempts": 10},
            "api": {"window_ms": 60 * 1000, "max_attempts": 100},
        },
        "rate_limiter": {"sweep_interval_ms": 60 * 1000},
        "validation": {"strict_unknown_fields": False},
        "logging": {"debug": False},
    }

    def __init__(self, config_path: Optional[Path] = None):
        self._data: Dict[str, Any] = copy.deepcopy(self.DEFAULTS)
        if config_path and Path(config_path).exists():
            try:
                with open(config_path) as fh:
                    loaded = json.load(fh)
            except (OSError, json.JSONDecodeError) as exc:
                raise ConfigError(f"Cannot read config file {config_path}: {exc}") from exc
            if not isinstance(loaded, dict):
                raise ConfigError(f"Config file {config_path} must contain a JSON object")
            self._merge(self._data, loaded)

    def _merge(self, base: dict, override: dict) -> None:
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._merge(base[key], value)
            else:
                base[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieve a value using dot notation, e.g. 'rate_limits.login.max_attempts'."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def get_all(self) -> Dict:
        return copy.deepcopy(self._data)

    @classmethod
    def from_env(cls, config_path: Optional[Path] = None) -> "Config":
        """Build a Config whose values can be overridden by environment variables."""
        instance = cls(config_path)
        mapping = {
            "GUARD_ENV": "environment",
            "GUARD_DEBUG": "logging.debug",
            "GUARD_STRICT_FIELDS": "validation.strict_unknown_fields",
        }
        for env_var, dot_key in mapping.items():
            val = os.environ.get(env_var)
            if val is not None:
                parts = dot_key.split(".")
                node = instance._data
                for part in parts[:-1]:
                    node = node.setdefault(part, {})
                node[parts[-1]] = _coerce(val)
        return instance


def _coerce(value: str) -> Any:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    return value.strip()


def build_rate_limits(config: Config) -> Dict[str, RateLimitConfig]:
    """Turn the 'rate_limits' section into RateLimitConfig objects."""
    section = config.get("rate_limits", {})
    if not isinstance(section, dict):
        raise SchemaError("rate_limits must be a mapping of action type to quota")
    limits = {}
    for action_type, quota in section.items():
        if not isinstance(quota, dict) or set(quota) != {"window_ms", "max_attempts"}:
            raise SchemaError(f"rate_limits.{action_type} needs exactly window_ms and max_attempts")
        limits[action_type] = RateLimitConfig(window_ms=quota["window_ms"], max_attempts=quota["max_attempts"])
    return limits


def build_limiter(config: Config, clock=None) -> RateLimiter:
    return RateLimiter(
        configs=build_rate_limits(config),
        clock=clock,
        sweep_interval_ms=config.get("rate_limiter.sweep_interval_ms"),
    )


def build_validator(config: Config) -> SecurityValidator:
    return SecurityValidator(
        strict_unknown_fields=bool(config.get("validation.strict_unknown_fields", False)),
        environment=config.get("environment", "development"),
    )


def build_guard(config: Config, clock=None, user_id: Optional[str] = None) -> SecurityGuard:
    """Assemble a SecurityGuard from configuration."""
    return SecurityGuard(
        validator=build_validator(config),
        limiter=build_limiter(config, clock=clock),
        user_id=user_id,
    )
