"""
RPC Registry

Maps RPC ids to service handlers and is the single fault boundary between
the services and the transport: every handler outcome, including
unexpected exceptions, leaves ``dispatch`` as a JSON document.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, Union

import structlog
from prometheus_client import Counter, Histogram
from pydantic import BaseModel

from liveops.core.errors import InternalError, ServiceError
from liveops.database.store import SqlStore
from liveops.diagnostics.health import DiagnosticsReporter
from liveops.experiments.service import ExperimentAssignmentService
from liveops.ingestion.events import EventIngestionPipeline
from liveops.models.schemas import (
    AssignmentResponse,
    CollectEventsResponse,
    ConfigResponse,
    DetailedHealthResponse,
    ExperimentListResponse,
    HealthResponse,
    UpdateConfigResponse,
    UserEventsResponse,
)
from liveops.remote_config.resolver import ConfigResolver
from liveops.serving.cache import ConfigCache

logger = structlog.get_logger(__name__)


# =============================================================================
# METRICS
# =============================================================================

RPC_CALLS = Counter(
    "liveops_rpc_calls_total",
    "Total number of RPC calls",
    ["rpc_id", "outcome"],
)

RPC_LATENCY = Histogram(
    "liveops_rpc_duration_seconds",
    "Time spent serving RPCs",
    ["rpc_id"],
)


Payload = Union[str, bytes, None]
Handler = Callable[[str, Payload], Awaitable[BaseModel]]


class UnknownRpcError(KeyError):
    """No RPC is registered under the requested id"""


class RpcPermissionError(PermissionError):
    """The caller may not invoke this RPC"""


@dataclass
class CallerContext:
    """Authenticated caller as established by the transport"""
    user_id: str
    is_admin: bool = False


@dataclass
class RpcDefinition:
    rpc_id: str
    handler: Handler
    response_model: Type[BaseModel]
    admin_only: bool = False


class RpcRegistry:
    """
    Registered RPCs and their dispatch.

    Example:
        registry = RpcRegistry()
        registry.register("HealthCheck", reporter.health_check, HealthResponse)
        body = await registry.dispatch("HealthCheck", CallerContext("player-1"), "")
    """

    def __init__(self):
        self._rpcs: Dict[str, RpcDefinition] = {}

    def register(
        self,
        rpc_id: str,
        handler: Handler,
        response_model: Type[BaseModel],
        admin_only: bool = False,
    ) -> None:
        """Register a handler under ``rpc_id``"""
        self._rpcs[rpc_id] = RpcDefinition(rpc_id, handler, response_model, admin_only)
        logger.info("Registered RPC", rpc_id=rpc_id, admin_only=admin_only)

    def __contains__(self, rpc_id: str) -> bool:
        return rpc_id in self._rpcs

    @property
    def rpc_ids(self) -> List[str]:
        return sorted(self._rpcs)

    async def dispatch(self, rpc_id: str, ctx: CallerContext, payload: Payload) -> str:
        """
        Invoke an RPC and return its JSON response text.

        Raises:
            UnknownRpcError: ``rpc_id`` is not registered
            RpcPermissionError: Admin RPC called without admin rights
        """
        definition = self._rpcs.get(rpc_id)
        if definition is None:
            raise UnknownRpcError(rpc_id)

        if definition.admin_only and not ctx.is_admin:
            logger.warning("Admin RPC refused", rpc_id=rpc_id, user_id=ctx.user_id)
            raise RpcPermissionError(rpc_id)

        start = time.perf_counter()
        outcome = "success"
        try:
            response = await definition.handler(ctx.user_id, payload)
        except ServiceError as e:
            logger.warning(
                "RPC failed",
                rpc_id=rpc_id,
                user_id=ctx.user_id,
                error_code=e.code.value,
                error=e.message,
            )
            outcome = e.code.value
            response = definition.response_model.failure(e)
        except Exception:
            logger.exception("Unexpected error in RPC", rpc_id=rpc_id, user_id=ctx.user_id)
            outcome = "INTERNAL_ERROR"
            response = definition.response_model.failure(InternalError())

        RPC_CALLS.labels(rpc_id=rpc_id, outcome=outcome).inc()
        RPC_LATENCY.labels(rpc_id=rpc_id).observe(time.perf_counter() - start)

        return response.model_dump_json()


@dataclass
class Services:
    """Service objects sharing one store and one config cache"""
    store: SqlStore
    cache: ConfigCache
    ingestion: EventIngestionPipeline
    resolver: ConfigResolver
    experiments: ExperimentAssignmentService
    diagnostics: DiagnosticsReporter
    closers: List[Callable[[], Awaitable[Any]]] = field(default_factory=list)

    async def aclose(self) -> None:
        for close in self.closers:
            await close()


def create_services(
    store: SqlStore,
    cache: Optional[ConfigCache] = None,
    max_batch_size: int = 100,
    default_query_limit: int = 100,
    max_query_limit: int = 500,
) -> Services:
    """Wire the services over ``store``"""
    cache = cache if cache is not None else ConfigCache()
    return Services(
        store=store,
        cache=cache,
        ingestion=EventIngestionPipeline(
            store,
            max_batch_size=max_batch_size,
            default_query_limit=default_query_limit,
            max_query_limit=max_query_limit,
        ),
        resolver=ConfigResolver(store, cache),
        experiments=ExperimentAssignmentService(store),
        diagnostics=DiagnosticsReporter(store),
    )


def build_registry(services: Services) -> RpcRegistry:
    """Register every RPC the service exposes"""
    registry = RpcRegistry()

    registry.register("AnalyticsCollectEvents", services.ingestion.collect_events, CollectEventsResponse)
    registry.register("AnalyticsGetUserEvents", services.ingestion.get_user_events, UserEventsResponse)
    registry.register("FetchRemoteConfig", services.resolver.fetch_config, ConfigResponse)
    registry.register(
        "UpdateRemoteConfig",
        services.resolver.update_config,
        UpdateConfigResponse,
        admin_only=True,
    )
    registry.register("GetExperimentAssignment", services.experiments.get_assignment, AssignmentResponse)
    registry.register("ListActiveExperiments", services.experiments.list_active_experiments, ExperimentListResponse)
    registry.register("HealthCheck", services.diagnostics.health_check, HealthResponse)
    registry.register("DetailedHealthCheck", services.diagnostics.detailed_health_check, DetailedHealthResponse)

    return registry
