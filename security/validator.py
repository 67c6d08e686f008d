import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from security.exceptions import InvalidInputError, SchemaError, ValidationError

logger = logging.getLogger(__name__)

Rule = Tuple[Callable[[Any], bool], str]

ENVIRONMENTS = ("development", "production")

_EMAIL_RE = re.compile(
    r"^(?!\.)(?!.*\.\.)([a-z0-9_'+\-.]*)[a-z0-9_+\-]@([a-z0-9][a-z0-9\-]*\.)+[a-z]{2,}$",
    re.IGNORECASE,
)
_IPV4_RE = re.compile(r"^(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)$")
_IPV6_RE = re.compile(r"^(?:[0-9a-fA-F]{1,4}:){7}[0-9a-fA-F]{1,4}$")
_SPECIAL_CHARS_RE = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")
_ANGLE_BRACKETS_RE = re.compile(r"[<>]")
_JS_PROTOCOL_RE = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(r"on\w+=", re.IGNORECASE)


@dataclass(frozen=True)
class FieldSchema:
    """Type check plus ordered rules for one form field.

    Rules run in order and the first failing rule's message is reported.
    An optional field is skipped entirely when its value is empty or None.
    """

    kind: str
    rules: Tuple[Rule, ...] = ()
    optional: bool = False
    type_message: Optional[str] = None

    KINDS = {"string": (str,), "integer": (int, float)}

    def __post_init__(self):
        if self.kind not in self.KINDS:
            raise SchemaError(f"Unsupported schema kind {self.kind!r}")
        for rule in self.rules:
            if not (isinstance(rule, tuple) and len(rule) == 2):
                raise SchemaError(f"Rule must be a (predicate, message) pair, got {rule!r}")
            predicate, message = rule
            if not callable(predicate):
                raise SchemaError(f"Rule predicate is not callable: {predicate!r}")
            if not isinstance(message, str) or not message:
                raise SchemaError("Rule message must be a non-empty string")

    def check_type(self, value: Any) -> Optional[str]:
        """Return an error message if value has the wrong type."""
        if isinstance(value, bool) or not isinstance(value, self.KINDS[self.kind]):
            return self.type_message or f"Expected {self.kind}"
        if self.kind == "integer" and isinstance(value, float) and not value.is_integer():
            return self.type_message or "Expected integer"
        return None


def _no_angle_brackets(value: str) -> bool:
    return not _ANGLE_BRACKETS_RE.search(value)


DEFAULT_SCHEMAS: Dict[str, FieldSchema] = {
    "email": FieldSchema(
        kind="string",
        rules=(
            (lambda v: bool(_EMAIL_RE.match(v)), "Invalid email format"),
            (lambda v: len(v) >= 5, "Email too short"),
            (lambda v: len(v) <= 254, "Email too long"),
            (lambda v: ".." not in v, "Invalid email format"),
            (_no_angle_brackets, "Invalid characters in email"),
        ),
    ),
    "password": FieldSchema(
        kind="string",
        rules=(
            (lambda v: len(v) >= 8, "Password must be at least 8 characters"),
            (lambda v: len(v) <= 128, "Password too long"),
            (lambda v: re.search(r"[A-Z]", v) is not None, "Password must contain uppercase letter"),
            (lambda v: re.search(r"[a-z]", v) is not None, "Password must contain lowercase letter"),
            (lambda v: re.search(r"\d", v) is not None, "Password must contain number"),
            (lambda v: _SPECIAL_CHARS_RE.search(v) is not None, "Password must contain special character"),
        ),
    ),
    "name": FieldSchema(
        kind="string",
        rules=(
            (lambda v: len(v) >= 1, "Name is required"),
            (lambda v: len(v) <= 100, "Name too long"),
            (_no_angle_brackets, "Invalid characters in name"),
            (lambda v: len(v.strip()) > 0, "Name cannot be empty"),
        ),
    ),
    "organizationName": FieldSchema(
        kind="string",
        optional=True,
        rules=(
            (lambda v: len(v) >= 2, "Organization name too short"),
            (lambda v: len(v) <= 200, "Organization name too long"),
            (_no_angle_brackets, "Invalid characters in organization name"),
        ),
    ),
    "confidence": FieldSchema(
        kind="integer",
        type_message="Confidence must be integer",
        rules=(
            (lambda v: v >= 0, "Confidence cannot be negative"),
            (lambda v: v <= 100, "Confidence cannot exceed 100"),
        ),
    ),
    "ipAddress": FieldSchema(
        kind="string",
        rules=((lambda v: bool(_IPV4_RE.match(v) or _IPV6_RE.match(v)), "Invalid IP address format"),),
    ),
    "userAgent": FieldSchema(
        kind="string",
        rules=(
            (lambda v: len(v) <= 500, "User agent too long"),
            (_no_angle_brackets, "Invalid characters in user agent"),
        ),
    ),
}


class SecurityValidator:
    """Validates form fields against schemas and sanitizes free text.

    Failed fields are recorded in an error map (field -> message) so a form
    can show every problem at once. Fields with no schema pass through unless
    ``strict_unknown_fields`` is set, in which case they are rejected.

    ``environment`` controls how a rule that crashes is handled: in
    development the exception propagates, in production it is logged and the
    field is rejected with a generic message.
    """

    GENERIC_ERROR = "Invalid input"
    UNKNOWN_FIELD_ERROR = "Unknown field"

    def __init__(
        self,
        schemas: Optional[Mapping[str, FieldSchema]] = None,
        strict_unknown_fields: bool = False,
        environment: str = "development",
    ):
        if environment not in ENVIRONMENTS:
            raise SchemaError(f"environment must be one of {ENVIRONMENTS}, got {environment!r}")
        self._schemas: Dict[str, FieldSchema] = dict(DEFAULT_SCHEMAS if schemas is None else schemas)
        for name, schema in self._schemas.items():
            if not isinstance(schema, FieldSchema):
                raise SchemaError(f"Schema for {name!r} must be a FieldSchema, got {schema!r}")
        self.strict_unknown_fields = strict_unknown_fields
        self.environment = environment
        self._errors: Dict[str, str] = {}

    @property
    def errors(self) -> Dict[str, str]:
        return dict(self._errors)

    @property
    def fields(self):
        return sorted(self._schemas)

    def validate_field(self, field_name: str, value: Any) -> bool:
        """Validate one value, recording or clearing its error message."""
        message = self._check(field_name, value)
        if message is None:
            self._errors.pop(field_name, None)
            return True
        self._errors[field_name] = message
        return False

    def validate_form(self, data: Mapping[str, Any]) -> bool:
        """Validate every field in data without stopping at the first failure."""
        results = [self.validate_field(name, value) for name, value in data.items()]
        return all(results)

    def clear_errors(self) -> None:
        self._errors.clear()

    def _check(self, field_name: str, value: Any) -> Optional[str]:
        schema = self._schemas.get(field_name)
        if schema is None:
            if self.strict_unknown_fields:
                return self.UNKNOWN_FIELD_ERROR
            logger.warning("No schema for field %r; accepting value unvalidated", field_name)
            return None

        if schema.optional and (value is None or value == ""):
            return None

        type_error = schema.check_type(value)
        if type_error:
            return type_error

        for predicate, message in schema.rules:
            try:
                ok = predicate(value)
            except Exception:
                if self.environment != "production":
                    raise
                logger.exception("Validation rule crashed for field %r", field_name)
                return self.GENERIC_ERROR
            if not ok:
                return message
        return None

    def sanitize_input(self, text: str) -> str:
        """Strip markup and script vectors from free text before it is stored or rendered.

        This is defence in depth only; output encoding at render time is still required.
        """
        if not isinstance(text, str):
            if self.environment != "production":
                raise TypeError(f"sanitize_input expects str, got {type(text).__name__}")
            logger.error("sanitize_input received %s instead of str", type(text).__name__)
            raise InvalidInputError()
        text = text.replace("\x00", "")
        text = _ANGLE_BRACKETS_RE.sub("", text)
        # Removing one vector can splice together another, e.g. "javajavascript:script:"
        previous = None
        while text != previous:
            previous = text
            text = _JS_PROTOCOL_RE.sub("", text)
            text = _EVENT_HANDLER_RE.sub("", text)
        return text.strip()

    def validate_profile_data(
        self, name: str, email: str, organization_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """Normalize and validate a profile record, raising ValidationError on the first bad field."""
        if not isinstance(email, str):
            raise ValidationError("email", "Expected string")
        data = {
            "name": self.sanitize_input(name),
            "email": email.strip().lower(),
            "organizationName": self.sanitize_input(organization_name) if organization_name else None,
        }
        for field_name, value in data.items():
            message = self._check(field_name, value)
            if message is not None:
                raise ValidationError(field_name, message)
        return data
