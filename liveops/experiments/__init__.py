"""
Experiments Module
"""
from .cohorts import assign_cohort, bucket_value, identity_hash
from .service import ExperimentAssignmentService

__all__ = [
    "assign_cohort",
    "bucket_value",
    "identity_hash",
    "ExperimentAssignmentService",
]
