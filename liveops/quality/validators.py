"""
Payload Validation

Structural and size checks for analytics batches and experiment
identifiers. Validators are pure: they never mutate their input, never
raise, and report the first failure found as a ``ValidationResult``.
"""

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

MAX_BATCH_SIZE = 100
MAX_NAME_LENGTH = 255
MAX_IDENTIFIER_LENGTH = 255
# client_timestamp is a BIGINT column
MAX_TIMESTAMP = 2**63 - 1

IDENTIFIER_PATTERN = re.compile(r"[a-zA-Z0-9_-]+")

EVENT_FIELDS = frozenset({"event_name", "timestamp", "properties", "experiment_id", "cohort"})
BATCH_FIELDS = frozenset({"events", "session_id"})


class ValidationErrorCode(str, Enum):
    """Why a payload was rejected"""
    INVALID_EVENT = "invalid_event"
    INVALID_BATCH = "invalid_batch"
    EMPTY_BATCH = "empty_batch"
    BATCH_TOO_LARGE = "batch_too_large"
    INVALID_IDENTIFIER = "invalid_identifier"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation; ``index`` is set for per-event failures"""
    valid: bool
    error: Optional[str] = None
    code: Optional[ValidationErrorCode] = None
    index: Optional[int] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def fail(
        cls,
        code: ValidationErrorCode,
        error: str,
        index: Optional[int] = None,
    ) -> "ValidationResult":
        return cls(valid=False, error=error, code=code, index=index)

    def __bool__(self) -> bool:
        return self.valid


def _is_number(value: Any) -> bool:
    # bool is an int subclass but not a timestamp
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_text(value: Any, field: str, max_length: int) -> Optional[str]:
    """Return an error message if ``value`` is not a usable non-empty string"""
    if not isinstance(value, str) or len(value) == 0:
        return f"{field} must be a non-empty string"
    if len(value) > max_length:
        return f"{field} exceeds {max_length} characters"
    if "\x00" in value:
        return f"{field} must not contain NUL characters"
    return None


def validate_event(event: Any) -> ValidationResult:
    """
    Validate a single analytics event.

    ``event_name`` and a positive ``timestamp`` are required; ``properties``
    must be an object and ``experiment_id``/``cohort`` strings when present.
    A JSON ``null`` for an optional field counts as absent.
    """
    fail = lambda message: ValidationResult.fail(ValidationErrorCode.INVALID_EVENT, message)

    if event is None:
        return fail("Event is null or undefined")
    if not isinstance(event, Mapping):
        return fail("Event must be an object")

    unknown = sorted(set(event) - EVENT_FIELDS)
    if unknown:
        return fail(f"Unknown event field(s): {', '.join(map(str, unknown))}")

    error = _check_text(event.get("event_name"), "event_name", MAX_NAME_LENGTH)
    if error:
        return fail(error)

    timestamp = event.get("timestamp")
    if not _is_number(timestamp) or timestamp <= 0:
        return fail("timestamp must be a positive number")
    if timestamp > MAX_TIMESTAMP or (isinstance(timestamp, float) and math.isnan(timestamp)):
        return fail("timestamp is out of range")

    properties = event.get("properties")
    if properties is not None and not isinstance(properties, Mapping):
        return fail("properties must be an object if provided")

    for field in ("experiment_id", "cohort"):
        value = event.get(field)
        if value is None:
            continue
        if not isinstance(value, str):
            return fail(f"{field} must be a string if provided")
        if len(value) > MAX_IDENTIFIER_LENGTH:
            return fail(f"{field} exceeds {MAX_IDENTIFIER_LENGTH} characters")
        if "\x00" in value:
            return fail(f"{field} must not contain NUL characters")

    return ValidationResult.ok()


def validate_batch(batch: Any, max_size: int = MAX_BATCH_SIZE) -> ValidationResult:
    """
    Validate an analytics batch.

    Size limits are checked before any event so that oversized batches are
    rejected without walking them. The first invalid event fails the whole
    batch, with its index in the message.
    """
    if not isinstance(batch, Mapping) or not isinstance(batch.get("events"), list):
        return ValidationResult.fail(ValidationErrorCode.INVALID_BATCH, "events must be an array")

    unknown = sorted(set(batch) - BATCH_FIELDS)
    if unknown:
        return ValidationResult.fail(
            ValidationErrorCode.INVALID_BATCH,
            f"Unknown batch field(s): {', '.join(map(str, unknown))}",
        )

    events = batch["events"]
    if len(events) == 0:
        return ValidationResult.fail(ValidationErrorCode.EMPTY_BATCH, "events array cannot be empty")

    if len(events) > max_size:
        return ValidationResult.fail(
            ValidationErrorCode.BATCH_TOO_LARGE,
            f"events array exceeds maximum batch size of {max_size}",
        )

    session_id = batch.get("session_id")
    if session_id is not None:
        error = _check_text(session_id, "session_id", MAX_IDENTIFIER_LENGTH)
        if error:
            return ValidationResult.fail(ValidationErrorCode.INVALID_BATCH, error)

    for index, event in enumerate(events):
        result = validate_event(event)
        if not result.valid:
            return ValidationResult.fail(
                result.code,
                f"Event at index {index}: {result.error}",
                index=index,
            )

    return ValidationResult.ok()


def validate_experiment_id(experiment_id: Any) -> ValidationResult:
    """Experiment ids are 1-255 characters of ``[a-zA-Z0-9_-]``"""
    if not isinstance(experiment_id, str) or len(experiment_id) == 0:
        return ValidationResult.fail(
            ValidationErrorCode.INVALID_IDENTIFIER,
            "experiment_id must be a non-empty string",
        )

    if len(experiment_id) > MAX_IDENTIFIER_LENGTH:
        return ValidationResult.fail(
            ValidationErrorCode.INVALID_IDENTIFIER,
            f"experiment_id exceeds {MAX_IDENTIFIER_LENGTH} characters",
        )

    if not IDENTIFIER_PATTERN.fullmatch(experiment_id):
        return ValidationResult.fail(
            ValidationErrorCode.INVALID_IDENTIFIER,
            "experiment_id contains invalid characters",
        )

    return ValidationResult.ok()
