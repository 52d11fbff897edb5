"""
Error Taxonomy

Service errors carry a stable ``ErrorCode`` plus context details that the
RPC boundary copies into the failure response. Store errors are raised by
``SqlStore`` and translated by the services into service errors.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Error codes returned to clients in ``error_code``"""
    MALFORMED_PAYLOAD = "MALFORMED_PAYLOAD"  # not parseable JSON
    VALIDATION_FAILED = "VALIDATION_FAILED"  # parseable, violates field constraints
    INVALID_IDENTIFIER = "INVALID_IDENTIFIER"
    EXPERIMENT_NOT_FOUND = "EXPERIMENT_NOT_FOUND"
    EXPERIMENT_INACTIVE = "EXPERIMENT_INACTIVE"
    ASSIGNMENT_PERSIST_FAILED = "ASSIGNMENT_PERSIST_FAILED"
    STORAGE_FAILED = "STORAGE_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ServiceError(Exception):
    """
    Base class for failures surfaced to RPC callers.

    Keyword arguments become ``details``; fields matching the operation's
    response model (``batch_id``, ``user_id``...) are echoed back.
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_message: str = "Internal server error"
    retryable: bool = False

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details: Dict[str, Any] = details
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code.value!r}, message={self.message!r})"


class MalformedPayload(ServiceError):
    code = ErrorCode.MALFORMED_PAYLOAD
    default_message = "Invalid JSON payload"


class ValidationFailed(ServiceError):
    code = ErrorCode.VALIDATION_FAILED
    default_message = "Payload failed validation"


class InvalidIdentifier(ServiceError):
    code = ErrorCode.INVALID_IDENTIFIER
    default_message = "experiment_id contains invalid characters"


class ExperimentNotFound(ServiceError):
    code = ErrorCode.EXPERIMENT_NOT_FOUND
    default_message = "Experiment not found"


class ExperimentInactive(ServiceError):
    code = ErrorCode.EXPERIMENT_INACTIVE
    default_message = "Experiment is not active"


class AssignmentPersistFailed(ServiceError):
    code = ErrorCode.ASSIGNMENT_PERSIST_FAILED
    default_message = "Failed to save assignment"
    retryable = True


class StorageFailed(ServiceError):
    code = ErrorCode.STORAGE_FAILED
    default_message = "Database operation failed"
    retryable = True


class InternalError(ServiceError):
    code = ErrorCode.INTERNAL_ERROR
    default_message = "Internal server error"


class StoreError(Exception):
    """The store rejected or failed to run a statement"""


class StoreConflictError(StoreError):
    """A uniqueness or integrity constraint rejected a write"""
