"""
Experiment Assignment Service

Assigns callers to experiment cohorts exactly once per
``(user_id, experiment_id)``. The first call computes the cohort with the
assignment engine and stores it; every later call, on any node, returns the
stored row. Two first calls racing each other are settled by the table's
unique constraint: the loser re-reads the winner's row.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import structlog

from liveops.core.errors import (
    AssignmentPersistFailed,
    ExperimentInactive,
    ExperimentNotFound,
    InvalidIdentifier,
    StorageFailed,
    StoreConflictError,
    StoreError,
    ValidationFailed,
)
from liveops.core.payload import parse_payload, reject_unknown_fields
from liveops.database.store import SqlStore, decode_json_column, to_iso
from liveops.experiments.cohorts import DEFAULT_COHORT, assign_cohort
from liveops.models.schemas import AssignmentResponse, ExperimentListResponse, ExperimentSummary
from liveops.quality.validators import validate_experiment_id

logger = structlog.get_logger(__name__)

ASSIGNMENT_FIELDS = ("experiment_id", "user_id")


class ExperimentAssignmentService:
    """
    Durable cohort assignment and experiment listing.

    Example:
        service = ExperimentAssignmentService(store)
        response = await service.get_assignment("player-1", '{"experiment_id": "tutorial_onboarding_v1"}')
    """

    def __init__(self, store: SqlStore):
        self.store = store

    async def get_assignment(self, caller_id: str, payload: Union[str, bytes, None]) -> AssignmentResponse:
        """
        Return the caller's cohort for an experiment, assigning one if needed.

        ``is_new_assignment`` is true only for the call that stored the row.

        Raises:
            InvalidIdentifier: experiment_id fails the identifier rules
            ExperimentNotFound: No such experiment
            ExperimentInactive: Experiment exists but is switched off
            AssignmentPersistFailed: The assignment could not be stored
        """
        params = parse_payload(payload)
        reject_unknown_fields(params, ASSIGNMENT_FIELDS, user_id=caller_id)

        requested_user = params.get("user_id")
        if requested_user is not None and requested_user != caller_id:
            raise ValidationFailed("user_id must match the authenticated caller", user_id=caller_id)

        experiment_id = params.get("experiment_id")
        result = validate_experiment_id(experiment_id)
        if not result.valid:
            raise InvalidIdentifier(result.error, user_id=caller_id)

        try:
            existing = await self._load_assignment(caller_id, experiment_id)
            if existing is not None:
                return self._response(existing, is_new=False)

            experiment = await self._load_experiment(experiment_id)
        except StoreError as e:
            raise StorageFailed("Failed to load experiment assignment", user_id=caller_id, experiment_id=experiment_id) from e

        if experiment is None:
            raise ExperimentNotFound(user_id=caller_id, experiment_id=experiment_id)
        if not experiment["is_active"]:
            raise ExperimentInactive(user_id=caller_id, experiment_id=experiment_id)

        distribution = decode_json_column(experiment["cohorts"], {DEFAULT_COHORT: 1.0})
        if not isinstance(distribution, dict):
            distribution = {}
        cohort = assign_cohort(caller_id, distribution)

        try:
            await self._insert_assignment(caller_id, experiment_id, cohort)
        except StoreConflictError:
            return await self._reread_after_conflict(caller_id, experiment_id)
        except StoreError as e:
            logger.error(
                "Failed to save assignment",
                user_id=caller_id,
                experiment_id=experiment_id,
                error=str(e),
            )
            raise AssignmentPersistFailed(user_id=caller_id, experiment_id=experiment_id) from e

        logger.info(
            "New experiment assignment",
            user_id=caller_id,
            experiment_id=experiment_id,
            cohort=cohort,
        )

        return AssignmentResponse(
            user_id=caller_id,
            experiment_id=experiment_id,
            cohort=cohort,
            is_new_assignment=True,
        )

    async def _reread_after_conflict(self, caller_id: str, experiment_id: str) -> AssignmentResponse:
        """A concurrent request stored the assignment first; return its row"""
        try:
            existing = await self._load_assignment(caller_id, experiment_id)
        except StoreError as e:
            raise AssignmentPersistFailed(user_id=caller_id, experiment_id=experiment_id) from e

        if existing is None:
            raise AssignmentPersistFailed(user_id=caller_id, experiment_id=experiment_id)

        logger.info(
            "Assignment conflict resolved by re-read",
            user_id=caller_id,
            experiment_id=experiment_id,
            cohort=existing["cohort"],
        )
        return self._response(existing, is_new=False)

    async def _load_assignment(self, user_id: str, experiment_id: str) -> Optional[Dict[str, Any]]:
        lit = self.store.literal
        rows = await self.store.query(f"""
            SELECT user_id, experiment_id, cohort
            FROM user_experiment_assignments
            WHERE user_id = {lit(user_id)} AND experiment_id = {lit(experiment_id)}
        """)
        return rows[0] if rows else None

    async def _load_experiment(self, experiment_id: str) -> Optional[Dict[str, Any]]:
        rows = await self.store.query(f"""
            SELECT id, cohorts, is_active
            FROM experiment_metadata
            WHERE id = {self.store.literal(experiment_id)}
        """)
        return rows[0] if rows else None

    async def _insert_assignment(self, user_id: str, experiment_id: str, cohort: str) -> None:
        lit = self.store.literal
        await self.store.execute(f"""
            INSERT INTO user_experiment_assignments (user_id, experiment_id, cohort, assigned_at)
            VALUES ({lit(user_id)}, {lit(experiment_id)}, {lit(cohort)}, {lit(datetime.now(timezone.utc))})
        """)

    @staticmethod
    def _response(row: Dict[str, Any], is_new: bool) -> AssignmentResponse:
        return AssignmentResponse(
            user_id=row["user_id"],
            experiment_id=row["experiment_id"],
            cohort=row["cohort"],
            is_new_assignment=is_new,
        )

    async def list_active_experiments(self, caller_id: str = "", payload: Union[str, bytes, None] = None) -> ExperimentListResponse:
        """Active experiments, most recently started first"""
        try:
            rows = await self.store.query("""
                SELECT id, name, description, cohorts, start_date, end_date
                FROM experiment_metadata
                WHERE is_active = TRUE
                ORDER BY start_date DESC, id
            """)
        except StoreError as e:
            raise StorageFailed("Failed to list experiments") from e

        experiments: List[ExperimentSummary] = []
        for row in rows:
            cohorts = decode_json_column(row["cohorts"], {})
            experiments.append(ExperimentSummary(
                id=row["id"],
                name=row["name"],
                description=row.get("description"),
                cohorts=cohorts if isinstance(cohorts, dict) else {},
                start_date=to_iso(row.get("start_date")),
                end_date=to_iso(row.get("end_date")),
            ))

        logger.info("Retrieved active experiments", count=len(experiments))
        return ExperimentListResponse(experiments=experiments, count=len(experiments))
