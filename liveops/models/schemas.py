"""
RPC Request/Response Models

Pydantic models for the JSON documents exchanged over the RPC surface.
Responses are serialized with ``model_dump_json()``; ``null`` fields are
kept so clients always see the full shape.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from liveops.core.errors import ServiceError


# =============================================================================
# REQUEST MODELS
# =============================================================================

class AnalyticsEvent(BaseModel):
    """Client analytics event"""
    model_config = ConfigDict(extra="forbid")

    event_name: str
    timestamp: Union[int, float] = Field(description="Client time, ms since epoch")
    properties: Optional[Dict[str, Any]] = None
    experiment_id: Optional[str] = None
    cohort: Optional[str] = None


class AnalyticsEventBatch(BaseModel):
    """Batch of analytics events"""
    model_config = ConfigDict(extra="forbid")

    events: List[AnalyticsEvent]
    session_id: Optional[str] = None


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class RpcResponse(BaseModel):
    """Base envelope for RPC responses"""
    success: bool = True
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def failure(cls, exc: ServiceError):
        """Build the failure form, echoing details the model has fields for"""
        echoed = {k: v for k, v in exc.details.items() if k in cls.model_fields}
        return cls(success=False, error=exc.message, error_code=exc.code.value, **echoed)


class CollectEventsResponse(RpcResponse):
    events_inserted: int = 0
    batch_id: str = ""


class StoredEvent(BaseModel):
    """Analytics event as persisted"""
    event_name: str
    event_properties: Dict[str, Any] = Field(default_factory=dict)
    experiment_id: Optional[str] = None
    cohort: Optional[str] = None
    session_id: Optional[str] = None
    client_timestamp: Optional[int] = None
    server_timestamp: int


class UserEventsResponse(RpcResponse):
    events: List[StoredEvent] = Field(default_factory=list)
    count: int = 0


class ConfigResponse(RpcResponse):
    experiment_id: Optional[str] = None
    cohort: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)


class UpdateConfigResponse(RpcResponse):
    experiment_id: Optional[str] = None
    cohort: Optional[str] = None
    version: Optional[int] = None


class AssignmentResponse(RpcResponse):
    user_id: str = ""
    experiment_id: str = ""
    cohort: str = ""
    is_new_assignment: bool = False


class ExperimentSummary(BaseModel):
    """Active experiment as listed to clients"""
    id: str
    name: str
    description: Optional[str] = None
    cohorts: Dict[str, Any] = Field(default_factory=dict)
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class ExperimentListResponse(RpcResponse):
    experiments: List[ExperimentSummary] = Field(default_factory=list)
    count: int = 0


class HealthResponse(BaseModel):
    """Liveness of the service and its store"""
    status: str
    timestamp: int
    database_connected: bool = False
    uptime_seconds: int = 0
    error: Optional[str] = None

    @classmethod
    def failure(cls, exc: ServiceError):
        return cls(status="unhealthy", timestamp=0, error=exc.message)


class DetailedHealthResponse(BaseModel):
    """Per-table diagnostics"""
    status: str
    timestamp: int
    uptime_seconds: int = 0
    checks: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def failure(cls, exc: ServiceError):
        return cls(status="unhealthy", timestamp=0, error=exc.message)
