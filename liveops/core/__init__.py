"""
Core Module
"""
from .errors import (
    ErrorCode,
    ServiceError,
    MalformedPayload,
    ValidationFailed,
    InvalidIdentifier,
    ExperimentNotFound,
    ExperimentInactive,
    AssignmentPersistFailed,
    StorageFailed,
    InternalError,
    StoreError,
    StoreConflictError,
)
from .payload import parse_payload, reject_unknown_fields

__all__ = [
    "ErrorCode",
    "ServiceError",
    "MalformedPayload",
    "ValidationFailed",
    "InvalidIdentifier",
    "ExperimentNotFound",
    "ExperimentInactive",
    "AssignmentPersistFailed",
    "StorageFailed",
    "InternalError",
    "StoreError",
    "StoreConflictError",
    "parse_payload",
    "reject_unknown_fields",
]
