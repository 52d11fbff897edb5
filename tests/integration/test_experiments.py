"""
Integration Tests - Experiment Assignment
"""
import json

import pytest

from liveops.core.errors import (
    AssignmentPersistFailed,
    ExperimentInactive,
    ExperimentNotFound,
    InvalidIdentifier,
    StorageFailed,
    StoreError,
    ValidationFailed,
)
from liveops.experiments.cohorts import assign_cohort

TUTORIAL_COHORTS = {"control": 0.5, "verbose_tutorial": 0.5}


def request(experiment_id, **extra) -> str:
    return json.dumps({"experiment_id": experiment_id, **extra})


async def count_assignments(store) -> int:
    rows = await store.query("SELECT COUNT(*) AS n FROM user_experiment_assignments")
    return rows[0]["n"]


class TestGetAssignment:
    """Tests for exactly-once assignment"""

    async def test_first_call_assigns(self, services, store, make_experiment):
        await make_experiment("tutorial_onboarding_v1", TUTORIAL_COHORTS)

        response = await services.experiments.get_assignment("player-42", request("tutorial_onboarding_v1"))

        assert response.success is True
        assert response.is_new_assignment is True
        assert response.user_id == "player-42"
        assert response.experiment_id == "tutorial_onboarding_v1"
        assert response.cohort == assign_cohort("player-42", TUTORIAL_COHORTS)
        assert await count_assignments(store) == 1

    async def test_new_exactly_once(self, services, store, make_experiment):
        await make_experiment("tutorial_onboarding_v1", TUTORIAL_COHORTS)

        responses = [
            await services.experiments.get_assignment("player-42", request("tutorial_onboarding_v1"))
            for _ in range(5)
        ]

        assert [r.is_new_assignment for r in responses] == [True, False, False, False, False]
        assert len({r.cohort for r in responses}) == 1
        assert await count_assignments(store) == 1

    async def test_stored_cohort_survives_weight_changes(self, services, store, make_experiment):
        await make_experiment("exp", {"a": 1.0})
        first = await services.experiments.get_assignment("player-1", request("exp"))

        await store.execute("""UPDATE experiment_metadata SET cohorts = '{"b": 1.0}'""")
        second = await services.experiments.get_assignment("player-1", request("exp"))

        assert first.cohort == second.cohort == "a"
        assert second.is_new_assignment is False

    async def test_matching_user_id_accepted(self, services, make_experiment):
        await make_experiment("exp", {"a": 1.0})
        response = await services.experiments.get_assignment("player-1", request("exp", user_id="player-1"))
        assert response.is_new_assignment is True

    async def test_other_user_id_rejected(self, services, store, make_experiment):
        await make_experiment("exp", {"a": 1.0})

        with pytest.raises(ValidationFailed):
            await services.experiments.get_assignment("player-1", request("exp", user_id="player-2"))
        assert await count_assignments(store) == 0

    async def test_empty_cohorts_assigns_control(self, services, make_experiment):
        await make_experiment("exp", {})
        response = await services.experiments.get_assignment("player-1", request("exp"))
        assert response.cohort == "control"

    async def test_unknown_experiment(self, services, store):
        with pytest.raises(ExperimentNotFound) as exc_info:
            await services.experiments.get_assignment("player-1", request("nope"))

        assert exc_info.value.details == {"user_id": "player-1", "experiment_id": "nope"}
        assert await count_assignments(store) == 0

    async def test_inactive_experiment(self, services, store, make_experiment):
        await make_experiment("starting_gold_v1", {"gold_100": 1.0}, is_active=False)

        with pytest.raises(ExperimentInactive):
            await services.experiments.get_assignment("player-1", request("starting_gold_v1"))
        assert await count_assignments(store) == 0

    @pytest.mark.parametrize("experiment_id", ["bad id", "", "x" * 256, "exp'; --", 12])
    async def test_invalid_identifier(self, services, experiment_id):
        with pytest.raises(InvalidIdentifier):
            await services.experiments.get_assignment("player-1", request(experiment_id))

    async def test_missing_experiment_id(self, services):
        with pytest.raises(InvalidIdentifier):
            await services.experiments.get_assignment("player-1", "{}")

    async def test_unknown_field(self, services):
        with pytest.raises(ValidationFailed):
            await services.experiments.get_assignment("player-1", request("exp", cohort="rich"))


class TestAssignmentRace:
    """A concurrent request stores the assignment between our read and insert"""

    async def test_conflict_returns_existing_row(self, services, store, make_experiment, monkeypatch):
        await make_experiment("exp", {"a": 1.0})
        await store.execute("""
            INSERT INTO user_experiment_assignments (user_id, experiment_id, cohort)
            VALUES ('player-1', 'exp', 'winner')
        """)

        service = services.experiments
        real_load = service._load_assignment
        calls = []

        async def stale_first_read(user_id, experiment_id):
            calls.append(experiment_id)
            if len(calls) == 1:
                return None
            return await real_load(user_id, experiment_id)

        monkeypatch.setattr(service, "_load_assignment", stale_first_read)

        response = await service.get_assignment("player-1", request("exp"))

        assert response.success is True
        assert response.is_new_assignment is False
        assert response.cohort == "winner"
        assert len(calls) == 2
        assert await count_assignments(store) == 1

    async def test_conflict_without_row_fails(self, services, store, make_experiment, monkeypatch):
        await make_experiment("exp", {"a": 1.0})
        await store.execute("""
            INSERT INTO user_experiment_assignments (user_id, experiment_id, cohort)
            VALUES ('player-1', 'exp', 'winner')
        """)

        async def never_found(user_id, experiment_id):
            return None

        monkeypatch.setattr(services.experiments, "_load_assignment", never_found)

        with pytest.raises(AssignmentPersistFailed):
            await services.experiments.get_assignment("player-1", request("exp"))

    async def test_insert_failure(self, services, store, make_experiment, monkeypatch):
        await make_experiment("exp", {"a": 1.0})

        async def broken_insert(user_id, experiment_id, cohort):
            raise StoreError("disk I/O error")

        monkeypatch.setattr(services.experiments, "_insert_assignment", broken_insert)

        with pytest.raises(AssignmentPersistFailed) as exc_info:
            await services.experiments.get_assignment("player-1", request("exp"))

        assert exc_info.value.details == {"user_id": "player-1", "experiment_id": "exp"}
        assert await count_assignments(store) == 0

    async def test_read_failure(self, services, store):
        await store.execute("ALTER TABLE user_experiment_assignments RENAME TO assignments_moved")

        with pytest.raises(StorageFailed):
            await services.experiments.get_assignment("player-1", request("exp"))


class TestListActiveExperiments:
    """Tests for the active experiment listing"""

    async def test_only_active(self, services, make_experiment):
        await make_experiment("tutorial_onboarding_v1", TUTORIAL_COHORTS, start_date="2026-02-01T00:00:00+00:00")
        await make_experiment("starting_gold_v1", {"gold_100": 1.0}, is_active=False)

        response = await services.experiments.list_active_experiments()

        assert response.count == 1
        experiment = response.experiments[0]
        assert experiment.id == "tutorial_onboarding_v1"
        assert experiment.cohorts == TUTORIAL_COHORTS
        assert experiment.start_date.startswith("2026-02-01")

    async def test_latest_start_first(self, services, make_experiment):
        await make_experiment("older", {"a": 1.0}, start_date="2026-01-01T00:00:00+00:00")
        await make_experiment("newer", {"a": 1.0}, start_date="2026-03-01T00:00:00+00:00")

        response = await services.experiments.list_active_experiments()

        assert [e.id for e in response.experiments] == ["newer", "older"]

    async def test_empty(self, services):
        response = await services.experiments.list_active_experiments()
        assert response.count == 0
        assert response.experiments == []
