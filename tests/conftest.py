"""
Test Suite Configuration
"""
import json
from typing import Any, Dict

import pytest

from liveops.config import Settings
from liveops.config.settings import SecuritySettings
from liveops.database import SqlStore, create_engine_from_url, create_schema
from liveops.rpc import create_services
from liveops.serving.cache import ConfigCache

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_ADMIN_TOKEN = "test-admin-token"


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        APP_ENV="testing",
        security=SecuritySettings(ADMIN_TOKEN=TEST_ADMIN_TOKEN),
    )


@pytest.fixture
async def test_engine():
    """In-memory SQLite engine with the service schema"""
    engine = create_engine_from_url(TEST_DATABASE_URL)
    await create_schema(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def store(test_engine) -> SqlStore:
    return SqlStore(test_engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def wall_clock() -> FakeClock:
    """Epoch-seconds clock for timestamps and uptime"""
    return FakeClock(now=1_760_000_000.0)


@pytest.fixture
def cache(clock) -> ConfigCache:
    return ConfigCache(ttl_seconds=60, clock=clock)


@pytest.fixture
def services(store, cache):
    return create_services(store, cache)


@pytest.fixture
def make_experiment(store):
    """Insert an experiment_metadata row"""

    async def _make(
        experiment_id: str,
        cohorts: Dict[str, Any],
        is_active: bool = True,
        start_date: str = "2026-01-01T00:00:00+00:00",
        name: str = "Test Experiment",
    ) -> None:
        lit = store.literal
        await store.execute(f"""
            INSERT INTO experiment_metadata (id, name, description, cohorts, is_active, start_date)
            VALUES ({lit(experiment_id)}, {lit(name)}, NULL, {lit(cohorts)}, {lit(is_active)}, {lit(start_date)})
        """)

    return _make


@pytest.fixture
def make_variant(store):
    """Insert a config_variants row"""

    async def _make(experiment_id: str, cohort: str, config_data: Dict[str, Any], is_active: bool = True) -> None:
        lit = store.literal
        await store.execute(f"""
            INSERT INTO config_variants (experiment_id, cohort, config_data, version, is_active)
            VALUES ({lit(experiment_id)}, {lit(cohort)}, {lit(config_data)}, 1, {lit(is_active)})
        """)

    return _make


def make_batch(count: int = 1, **batch_fields) -> str:
    """JSON payload with ``count`` valid events"""
    events = [
        {"event_name": f"level_start_{i}", "timestamp": 1700000000000 + i, "properties": {"level": i}}
        for i in range(count)
    ]
    return json.dumps({"events": events, **batch_fields})


@pytest.fixture
def batch_payload():
    return make_batch
