"""Exception hierarchy for the security core.

Expected failures (quota exceeded, a bad field value) are reported through
return values and the validation error map. These exceptions cover
misconfiguration and unexpected input that must reach the caller.
"""


class SecurityError(Exception):
    """Base class for errors raised by the security package."""


class UnknownActionError(SecurityError, KeyError):
    """Raised when a rate-limit action type has no configured quota."""

    def __init__(self, action_type: str):
        self.action_type = action_type
        super().__init__(f"Unknown rate-limit action type: {action_type!r}")

    def __str__(self) -> str:
        return self.args[0]


class SchemaError(SecurityError, ValueError):
    """Raised when a field schema or rate-limit config is malformed."""


class InvalidInputError(SecurityError, ValueError):
    """Generic rejection used when input cannot be processed safely."""

    def __init__(self, message: str = "Invalid input"):
        super().__init__(message)


class ValidationError(SecurityError, ValueError):
    """Raised by whole-record validation helpers for the first failing field."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class ConfigError(SecurityError):
    """Raised when a configuration file cannot be read or parsed."""
