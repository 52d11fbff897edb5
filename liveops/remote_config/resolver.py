"""
Remote Config Resolution

Resolves the configuration a caller should receive:

1. Cached response for the caller, if younger than the cache TTL
2. The active variant of the caller's most recent experiment assignment
3. The active ``("default", "default")`` variant
4. An empty config

Administrative updates upsert a variant and drop the whole cache.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

import structlog

from liveops.core.errors import StorageFailed, StoreError, ValidationFailed
from liveops.core.payload import parse_payload, reject_unknown_fields
from liveops.database.store import SqlStore, decode_json_column
from liveops.models.schemas import ConfigResponse, UpdateConfigResponse
from liveops.quality.validators import validate_experiment_id
from liveops.serving.cache import ConfigCache

logger = structlog.get_logger(__name__)

DEFAULT_EXPERIMENT = "default"
DEFAULT_COHORT = "default"

UPDATE_FIELDS = ("experiment_id", "cohort", "config_data")


class ConfigResolver:
    """
    Serves per-caller remote config through a TTL cache.

    Example:
        resolver = ConfigResolver(store, ConfigCache(ttl_seconds=60))
        response = await resolver.fetch_config("player-1")
    """

    def __init__(self, store: SqlStore, cache: ConfigCache):
        self.store = store
        self.cache = cache

    async def fetch_config(self, caller_id: str, payload: Union[str, bytes, None] = None) -> ConfigResponse:
        """
        Resolve the caller's effective config.

        A missing assignment or variant is not an error; the caller gets the
        default config, or ``{}`` when none is stored.
        """
        cached = self.cache.get(caller_id)
        if cached is not None:
            logger.debug("Config cache hit", user_id=caller_id)
            return cached

        logger.debug("Config cache miss", user_id=caller_id)

        try:
            response = await self._resolve(caller_id)
        except StoreError as e:
            logger.error("Failed to resolve config", user_id=caller_id, error=str(e))
            raise StorageFailed("Failed to fetch config") from e

        self.cache.set(caller_id, response)
        return response

    async def _resolve(self, caller_id: str) -> ConfigResponse:
        lit = self.store.literal

        assignments = await self.store.query(f"""
            SELECT experiment_id, cohort
            FROM user_experiment_assignments
            WHERE user_id = {lit(caller_id)}
            ORDER BY assigned_at DESC, id DESC
            LIMIT 1
        """)

        experiment_id: Optional[str] = None
        cohort: Optional[str] = None
        config: Optional[Dict[str, Any]] = None

        if assignments:
            experiment_id = assignments[0]["experiment_id"]
            cohort = assignments[0]["cohort"]
            config = await self._active_variant(experiment_id, cohort)

        if config is None:
            config = await self._active_variant(DEFAULT_EXPERIMENT, DEFAULT_COHORT)

        return ConfigResponse(
            experiment_id=experiment_id,
            cohort=cohort,
            config=config or {},
        )

    async def _active_variant(self, experiment_id: str, cohort: str) -> Optional[Dict[str, Any]]:
        lit = self.store.literal
        rows = await self.store.query(f"""
            SELECT config_data
            FROM config_variants
            WHERE experiment_id = {lit(experiment_id)}
              AND cohort = {lit(cohort)}
              AND is_active = TRUE
            LIMIT 1
        """)
        if not rows:
            return None

        config = decode_json_column(rows[0]["config_data"], {})
        return config if isinstance(config, dict) else {}

    async def update_config(self, caller_id: str, payload: Union[str, bytes, None]) -> UpdateConfigResponse:
        """
        Create or replace the config of one ``(experiment_id, cohort)``.

        Every update bumps the variant's version and invalidates the entire
        cache, so no caller is served the old document after this returns.
        """
        params = parse_payload(payload)
        reject_unknown_fields(params, UPDATE_FIELDS)

        experiment_id = params.get("experiment_id")
        cohort = params.get("cohort")
        config_data = params.get("config_data")

        for field, value in (("experiment_id", experiment_id), ("cohort", cohort)):
            result = validate_experiment_id(value)
            if not result.valid:
                raise ValidationFailed(result.error.replace("experiment_id", field))

        if not isinstance(config_data, dict):
            raise ValidationFailed("config_data must be an object")

        lit = self.store.literal
        now = datetime.now(timezone.utc)
        try:
            await self.store.execute(f"""
                INSERT INTO config_variants
                    (experiment_id, cohort, config_data, version, is_active, created_at, updated_at)
                VALUES
                    ({lit(experiment_id)}, {lit(cohort)}, {lit(config_data)}, 1, TRUE, {lit(now)}, {lit(now)})
                ON CONFLICT (experiment_id, cohort) DO UPDATE SET
                    config_data = excluded.config_data,
                    version = config_variants.version + 1,
                    updated_at = excluded.updated_at
            """)
        except ValueError as e:
            raise ValidationFailed(f"config_data cannot be stored: {e}") from e
        except StoreError as e:
            raise StorageFailed("Failed to update config") from e
        finally:
            # Also on failure: the write may have landed before the error surfaced
            self.cache.invalidate_all()

        try:
            rows = await self.store.query(f"""
                SELECT version FROM config_variants
                WHERE experiment_id = {lit(experiment_id)} AND cohort = {lit(cohort)}
            """)
        except StoreError as e:
            raise StorageFailed("Config updated but version could not be read") from e

        version = rows[0]["version"] if rows else None
        logger.info(
            "Remote config updated",
            admin_id=caller_id,
            experiment_id=experiment_id,
            cohort=cohort,
            version=version,
        )

        return UpdateConfigResponse(experiment_id=experiment_id, cohort=cohort, version=version)
