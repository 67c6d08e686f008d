"""Security module: rate limiting and input validation."""

from security.exceptions import (
    ConfigError,
    InvalidInputError,
    SchemaError,
    SecurityError,
    UnknownActionError,
    ValidationError,
)
from security.guard import SecurityGuard
from security.rate_limiter import DEFAULT_LIMITS, RateLimitConfig, RateLimitEntry, RateLimiter
from security.validator import DEFAULT_SCHEMAS, FieldSchema, SecurityValidator

__all__ = [
    "ConfigError",
    "DEFAULT_LIMITS",
    "DEFAULT_SCHEMAS",
    "FieldSchema",
    "InvalidInputError",
    "RateLimitConfig",
    "RateLimitEntry",
    "RateLimiter",
    "SchemaError",
    "SecurityError",
    "SecurityGuard",
    "SecurityValidator",
    "UnknownActionError",
    "ValidationError",
]
