"""
Payload Validation Module
"""
from .validators import (
    ValidationErrorCode,
    ValidationResult,
    validate_event,
    validate_batch,
    validate_experiment_id,
)

__all__ = [
    "ValidationErrorCode",
    "ValidationResult",
    "validate_event",
    "validate_batch",
    "validate_experiment_id",
]
