"""
Seed Data

Loads the default remote config and the launch experiments. Safe to run
repeatedly: experiments and active variants are upserted, variants of
inactive experiments are only inserted once.

    liveops-seed
    python -m liveops.database.seed
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List

import structlog

from liveops.config.logging import configure_logging
from liveops.database.connection import close_database, init_database
from liveops.database.store import SqlStore

logger = structlog.get_logger(__name__)

BASE_CONFIG: Dict[str, Any] = {
    "game_version": "1.0.0",
    "maintenance_mode": False,
    "feature_flags": {
        "new_ui": False,
        "advanced_tutorial": False,
        "daily_challenges": True,
    },
    "balance": {
        "starting_gold": 100,
        "max_party_size": 4,
        "ability_cooldown_multiplier": 1.0,
        "enemy_health_multiplier": 1.0,
    },
    "rates": {
        "xp_multiplier": 1.0,
        "gold_multiplier": 1.0,
        "drop_rate_multiplier": 1.0,
    },
}


def _with(overrides: Dict[str, Any]) -> Dict[str, Any]:
    """BASE_CONFIG with nested sections replaced or added"""
    config = {key: (dict(value) if isinstance(value, dict) else value) for key, value in BASE_CONFIG.items()}
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key].update(value)
        else:
            config[key] = value
    return config


EXPERIMENTS: List[Dict[str, Any]] = [
    {
        "id": "tutorial_onboarding_v1",
        "name": "Tutorial Onboarding Experiment",
        "description": "Testing different tutorial approaches to improve new player retention",
        "cohorts": {"control": 0.5, "verbose_tutorial": 0.5},
        "is_active": True,
        "variants": {
            "control": _with({
                "tutorial": {
                    "skip_available": True,
                    "step_by_step": False,
                    "tooltips_enabled": True,
                },
            }),
            "verbose_tutorial": _with({
                "feature_flags": {"advanced_tutorial": True},
                "tutorial": {
                    "skip_available": False,
                    "step_by_step": True,
                    "tooltips_enabled": True,
                    "force_completion": True,
                },
            }),
        },
    },
    {
        "id": "starting_gold_v1",
        "name": "Starting Gold Amount Experiment",
        "description": "Testing different starting gold amounts for new player engagement",
        "cohorts": {"gold_100": 0.33, "gold_150": 0.33, "gold_200": 0.34},
        "is_active": False,
        "variants": {
            "gold_100": {"game_version": "1.0.0", "balance": {"starting_gold": 100}},
            "gold_150": {"game_version": "1.0.0", "balance": {"starting_gold": 150}},
            "gold_200": {"game_version": "1.0.0", "balance": {"starting_gold": 200}},
        },
    },
]


async def upsert_variant(
    store: SqlStore,
    experiment_id: str,
    cohort: str,
    config_data: Dict[str, Any],
    is_active: bool = True,
) -> None:
    lit = store.literal
    now = datetime.now(timezone.utc)
    conflict = (
        "DO UPDATE SET config_data = excluded.config_data, updated_at = excluded.updated_at"
        if is_active
        else "DO NOTHING"
    )
    await store.execute(f"""
        INSERT INTO config_variants
            (experiment_id, cohort, config_data, version, is_active, created_at, updated_at)
        VALUES
            ({lit(experiment_id)}, {lit(cohort)}, {lit(config_data)}, 1, {lit(is_active)}, {lit(now)}, {lit(now)})
        ON CONFLICT (experiment_id, cohort) {conflict}
    """)


async def upsert_experiment(store: SqlStore, experiment: Dict[str, Any]) -> None:
    lit = store.literal
    now = datetime.now(timezone.utc)
    await store.execute(f"""
        INSERT INTO experiment_metadata
            (id, name, description, cohorts, is_active, start_date, created_at, updated_at)
        VALUES (
            {lit(experiment["id"])}, {lit(experiment["name"])}, {lit(experiment["description"])},
            {lit(experiment["cohorts"])}, {lit(experiment["is_active"])}, {lit(now)}, {lit(now)}, {lit(now)}
        )
        ON CONFLICT (id) DO UPDATE SET
            cohorts = excluded.cohorts,
            updated_at = excluded.updated_at
    """)

    for cohort, config_data in experiment["variants"].items():
        await upsert_variant(store, experiment["id"], cohort, config_data, is_active=experiment["is_active"])


async def seed(store: SqlStore) -> None:
    """Load the default config and the launch experiments"""
    await upsert_variant(store, "default", "default", BASE_CONFIG)
    logger.info("Seeded default config")

    for experiment in EXPERIMENTS:
        await upsert_experiment(store, experiment)
        logger.info(
            "Seeded experiment",
            experiment_id=experiment["id"],
            cohorts=list(experiment["cohorts"]),
            is_active=experiment["is_active"],
        )


async def main() -> None:
    logger.info("Starting database seeding...")
    engine = await init_database(create_tables=True)
    try:
        await seed(SqlStore(engine))
        logger.info("Database seeding completed successfully!")
    except Exception as e:
        logger.error("Seeding failed", error=str(e))
        raise
    finally:
        await close_database()


def run() -> None:
    """Console script entry point"""
    configure_logging()
    asyncio.run(main())


if __name__ == "__main__":
    run()
