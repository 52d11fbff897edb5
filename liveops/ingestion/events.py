"""
Analytics Event Ingestion

Accepts client event batches, validates them as a whole and persists them
with a single multi-row INSERT. A batch is either fully written or not at
all; retried batches are not deduplicated.

Also serves the caller's own events back, newest first.
"""

import random
import string
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

import structlog
from prometheus_client import Counter

from liveops.core.errors import StorageFailed, StoreError, ValidationFailed
from liveops.core.payload import parse_payload, reject_unknown_fields
from liveops.database.store import SqlStore, decode_json_column
from liveops.models.schemas import (
    AnalyticsEventBatch,
    CollectEventsResponse,
    StoredEvent,
    UserEventsResponse,
)
from liveops.quality.validators import MAX_BATCH_SIZE, validate_batch

logger = structlog.get_logger(__name__)

EVENTS_INGESTED = Counter(
    "liveops_analytics_events_ingested_total",
    "Analytics events persisted",
)

BATCHES_REJECTED = Counter(
    "liveops_analytics_batches_rejected_total",
    "Analytics batches rejected before storage",
    ["reason"],
)

BATCH_ID_ALPHABET = string.digits + string.ascii_lowercase

EVENT_COLUMNS = (
    "user_id",
    "session_id",
    "event_name",
    "event_properties",
    "experiment_id",
    "cohort",
    "client_timestamp",
    "server_timestamp",
    "created_at",
)

QUERY_FIELDS = ("limit", "offset", "event_name")


def _now_ms() -> int:
    return int(time.time() * 1000)


def generate_batch_id(now_ms: Optional[int] = None) -> str:
    """Correlation id for one ingestion call: ``batch_<ms>_<6 base36 chars>``"""
    suffix = "".join(random.choices(BATCH_ID_ALPHABET, k=6))
    return f"batch_{now_ms if now_ms is not None else _now_ms()}_{suffix}"


def _non_negative_int(params: Dict[str, Any], field: str, default: int) -> int:
    value = params.get(field)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationFailed(f"{field} must be a non-negative integer")
    return value


class EventIngestionPipeline:
    """
    Persists analytics batches for authenticated callers.

    ``user_id`` on every row is the caller identity from the transport,
    never a value from the payload.

    Example:
        pipeline = EventIngestionPipeline(store)
        response = await pipeline.collect_events("player-1", payload_text)
    """

    def __init__(
        self,
        store: SqlStore,
        max_batch_size: int = MAX_BATCH_SIZE,
        default_query_limit: int = 100,
        max_query_limit: int = 500,
    ):
        self.store = store
        self.max_batch_size = max_batch_size
        self.default_query_limit = default_query_limit
        self.max_query_limit = max_query_limit

    async def collect_events(self, caller_id: str, payload: Union[str, bytes, None]) -> CollectEventsResponse:
        """
        Validate and persist one analytics batch.

        Raises:
            MalformedPayload: Payload is not JSON
            ValidationFailed: Batch or one of its events is invalid
            StorageFailed: The INSERT failed; nothing was written
        """
        start = time.perf_counter()

        data = parse_payload(payload, require_object=False)
        result = validate_batch(data, max_size=self.max_batch_size)
        if not result.valid:
            logger.warning(
                "Rejected analytics batch",
                user_id=caller_id,
                reason=result.error,
                code=result.code.value,
            )
            BATCHES_REJECTED.labels(reason=result.code.value).inc()
            raise ValidationFailed(result.error)

        batch = AnalyticsEventBatch.model_validate(data)

        server_timestamp = _now_ms()
        batch_id = generate_batch_id(server_timestamp)
        session_id = batch.session_id or f"session_{caller_id}_{server_timestamp}"
        created_at = datetime.now(timezone.utc)

        values = []
        for event in batch.events:
            row = (
                caller_id,
                session_id,
                event.event_name,
                event.properties or {},
                event.experiment_id,
                event.cohort,
                int(event.timestamp),
                server_timestamp,
                created_at,
            )
            try:
                values.append("(" + ", ".join(self.store.literal(v) for v in row) + ")")
            except ValueError as e:
                raise ValidationFailed(f"Event cannot be stored: {e}", batch_id=batch_id) from e

        sql = (
            f"INSERT INTO analytics_events ({', '.join(EVENT_COLUMNS)}) VALUES "
            + ", ".join(values)
        )

        try:
            inserted = await self.store.execute(sql)
        except StoreError as e:
            logger.error("Failed to insert analytics batch", user_id=caller_id, batch_id=batch_id, error=str(e))
            raise StorageFailed("Database insertion failed", batch_id=batch_id) from e

        if inserted < 0:
            inserted = len(values)
        EVENTS_INGESTED.inc(inserted)

        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info(
            "Analytics batch inserted",
            user_id=caller_id,
            batch_id=batch_id,
            count=inserted,
            elapsed_ms=elapsed_ms,
        )

        return CollectEventsResponse(events_inserted=inserted, batch_id=batch_id)

    async def get_user_events(self, caller_id: str, payload: Union[str, bytes, None]) -> UserEventsResponse:
        """
        Page through the caller's own events, newest first.

        ``limit`` defaults to 100 and is clamped to 500; ``offset`` defaults
        to 0. ``event_name`` narrows to a single event type.
        """
        params = parse_payload(payload, allow_empty=True)
        reject_unknown_fields(params, QUERY_FIELDS)

        limit = min(_non_negative_int(params, "limit", self.default_query_limit), self.max_query_limit)
        offset = _non_negative_int(params, "offset", 0)

        event_name = params.get("event_name")
        if event_name is not None and not isinstance(event_name, str):
            raise ValidationFailed("event_name must be a string")

        conditions = [f"user_id = {self.store.literal(caller_id)}"]
        if event_name is not None:
            conditions.append(f"event_name = {self.store.literal(event_name)}")

        sql = f"""
            SELECT event_name, event_properties, experiment_id, cohort,
                   session_id, client_timestamp, server_timestamp
            FROM analytics_events
            WHERE {' AND '.join(conditions)}
            ORDER BY server_timestamp DESC, id DESC
            LIMIT {limit} OFFSET {offset}
        """

        try:
            rows = await self.store.query(sql)
        except StoreError as e:
            raise StorageFailed("Failed to retrieve events") from e

        events = [self._to_event(row) for row in rows]
        return UserEventsResponse(events=events, count=len(events))

    @staticmethod
    def _to_event(row: Dict[str, Any]) -> StoredEvent:
        properties = decode_json_column(row.get("event_properties"), {})
        return StoredEvent(
            event_name=row["event_name"],
            event_properties=properties if isinstance(properties, dict) else {},
            experiment_id=row.get("experiment_id"),
            cohort=row.get("cohort"),
            session_id=row.get("session_id"),
            client_timestamp=row.get("client_timestamp"),
            server_timestamp=row["server_timestamp"],
        )
