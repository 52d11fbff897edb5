"""
RPC Models
"""
from .schemas import (
    AnalyticsEvent,
    AnalyticsEventBatch,
    RpcResponse,
    CollectEventsResponse,
    StoredEvent,
    UserEventsResponse,
    ConfigResponse,
    UpdateConfigResponse,
    AssignmentResponse,
    ExperimentSummary,
    ExperimentListResponse,
    HealthResponse,
    DetailedHealthResponse,
)

__all__ = [
    "AnalyticsEvent",
    "AnalyticsEventBatch",
    "RpcResponse",
    "CollectEventsResponse",
    "StoredEvent",
    "UserEventsResponse",
    "ConfigResponse",
    "UpdateConfigResponse",
    "AssignmentResponse",
    "ExperimentSummary",
    "ExperimentListResponse",
    "HealthResponse",
    "DetailedHealthResponse",
]
