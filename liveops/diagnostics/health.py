"""
Diagnostics

Health probes over the relational store. ``health_check`` is the cheap
liveness form; ``detailed_health_check`` also counts rows in every service
table, each probe independent of the others.
"""

import time
from typing import Any, Callable, Dict, Optional, Tuple

import structlog

from liveops.core.errors import StoreError
from liveops.database.store import SqlStore
from liveops.models.schemas import DetailedHealthResponse, HealthResponse

logger = structlog.get_logger(__name__)

HEALTHY = "healthy"
DEGRADED = "degraded"
UNHEALTHY = "unhealthy"

# check name -> (count query, key the count is reported under)
TABLE_PROBES: Tuple[Tuple[str, str, str], ...] = (
    ("analytics_events_table", "SELECT COUNT(*) AS row_count FROM analytics_events", "row_count"),
    ("config_variants_table", "SELECT COUNT(*) AS row_count FROM config_variants", "row_count"),
    (
        "user_experiment_assignments_table",
        "SELECT COUNT(*) AS row_count FROM user_experiment_assignments",
        "row_count",
    ),
    (
        "experiment_metadata_table",
        "SELECT COUNT(*) AS row_count FROM experiment_metadata WHERE is_active = TRUE",
        "active_experiments",
    ),
)


class DiagnosticsReporter:
    """Reports service and store health"""

    def __init__(
        self,
        store: SqlStore,
        started_at: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self._clock = clock
        self.started_at = started_at if started_at is not None else clock()

    def _timestamp_ms(self) -> int:
        return int(self._clock() * 1000)

    def _uptime_seconds(self) -> int:
        return int(self._clock() - self.started_at)

    async def health_check(self, caller_id: str = "", payload: Any = None) -> HealthResponse:
        """
        Probe the store with ``SELECT 1``.

        ``healthy`` when the sentinel comes back, ``degraded`` when the query
        answers with anything else, ``unhealthy`` when it fails.
        """
        response = HealthResponse(
            status=HEALTHY,
            timestamp=self._timestamp_ms(),
            uptime_seconds=self._uptime_seconds(),
        )

        try:
            rows = await self.store.query("SELECT 1 AS test")
        except StoreError as e:
            logger.error("Health check failed", error=str(e))
            response.status = UNHEALTHY
            response.error = str(e)
            return response

        if rows and rows[0].get("test") == 1:
            response.database_connected = True
        else:
            response.status = DEGRADED
            response.error = "Unexpected database response"

        return response

    async def detailed_health_check(self, caller_id: str = "", payload: Any = None) -> DetailedHealthResponse:
        """
        Connectivity plus per-table row counts.

        A failed connectivity probe makes the report ``unhealthy``; a failed
        table probe marks only that check ``failed`` and the report
        ``degraded``. Every probe runs regardless of earlier failures.
        """
        status = HEALTHY
        checks: Dict[str, Dict[str, Any]] = {}

        try:
            await self.store.query("SELECT 1 AS test")
            checks["database_connection"] = {"status": "ok"}
        except StoreError as e:
            checks["database_connection"] = {"status": "failed", "error": str(e)}
            status = UNHEALTHY

        for name, sql, count_key in TABLE_PROBES:
            try:
                rows = await self.store.query(sql)
                checks[name] = {"status": "ok", count_key: int(rows[0]["row_count"])}
            except StoreError:
                checks[name] = {"status": "failed", "error": "Table may not exist or is inaccessible"}
                if status == HEALTHY:
                    status = DEGRADED

        logger.info("Detailed health check completed", status=status)

        return DetailedHealthResponse(
            status=status,
            timestamp=self._timestamp_ms(),
            uptime_seconds=self._uptime_seconds(),
            checks=checks,
        )
