"""
Integration Tests - Analytics Ingestion
"""
import json

import pytest

from liveops.core.errors import MalformedPayload, StorageFailed, ValidationFailed


async def count_events(store) -> int:
    rows = await store.query("SELECT COUNT(*) AS n FROM analytics_events")
    return rows[0]["n"]


class TestCollectEvents:
    """Tests for batch persistence"""

    async def test_batch_inserted(self, services, store, batch_payload):
        response = await services.ingestion.collect_events("player-1", batch_payload(3))

        assert response.success is True
        assert response.events_inserted == 3
        assert response.batch_id.startswith("batch_")
        assert await count_events(store) == 3

    async def test_batch_id_format(self, services, batch_payload):
        response = await services.ingestion.collect_events("player-1", batch_payload(1))
        prefix, millis, suffix = response.batch_id.split("_")
        assert prefix == "batch"
        assert millis.isdigit()
        assert len(suffix) == 6

    async def test_rows_owned_by_caller(self, services, store):
        payload = json.dumps({
            "events": [{
                "event_name": "purchase",
                "timestamp": 1700000000123,
                "properties": {"user_id": "someone-else", "gold": 50},
                "experiment_id": "starting_gold_v1",
                "cohort": "gold_150",
            }],
            "session_id": "session-abc",
        })
        await services.ingestion.collect_events("player-1", payload)

        rows = await store.query("SELECT * FROM analytics_events")
        assert len(rows) == 1
        row = rows[0]
        assert row["user_id"] == "player-1"
        assert row["session_id"] == "session-abc"
        assert row["event_name"] == "purchase"
        assert json.loads(row["event_properties"]) == {"user_id": "someone-else", "gold": 50}
        assert row["experiment_id"] == "starting_gold_v1"
        assert row["cohort"] == "gold_150"
        assert row["client_timestamp"] == 1700000000123
        assert row["server_timestamp"] > 0

    async def test_session_generated_when_absent(self, services, store, batch_payload):
        await services.ingestion.collect_events("player-1", batch_payload(2))

        rows = await store.query("SELECT DISTINCT session_id FROM analytics_events")
        assert len(rows) == 1
        assert rows[0]["session_id"].startswith("session_player-1_")

    async def test_missing_properties_stored_as_empty_object(self, services, store):
        payload = json.dumps({"events": [{"event_name": "boot", "timestamp": 1}]})
        await services.ingestion.collect_events("player-1", payload)

        rows = await store.query("SELECT event_properties, experiment_id FROM analytics_events")
        assert json.loads(rows[0]["event_properties"]) == {}
        assert rows[0]["experiment_id"] is None

    async def test_adversarial_text_round_trips(self, services, store):
        name = "it's \"quoted\" \\ ; DROP TABLE analytics_events; -- :param %s ?"
        payload = json.dumps({"events": [{"event_name": name, "timestamp": 1, "properties": {"note": name}}]})

        response = await services.ingestion.collect_events("o'reilly", payload)
        assert response.events_inserted == 1

        rows = await store.query("SELECT user_id, event_name, event_properties FROM analytics_events")
        assert rows[0]["user_id"] == "o'reilly"
        assert rows[0]["event_name"] == name
        assert json.loads(rows[0]["event_properties"]) == {"note": name}

    async def test_duplicate_batches_inserted_twice(self, services, store, batch_payload):
        payload = batch_payload(2)

        first = await services.ingestion.collect_events("player-1", payload)
        second = await services.ingestion.collect_events("player-1", payload)

        assert first.batch_id != second.batch_id
        assert await count_events(store) == 4

    async def test_empty_batch_writes_nothing(self, services, store):
        with pytest.raises(ValidationFailed) as exc_info:
            await services.ingestion.collect_events("player-1", '{"events": []}')
        assert "empty" in exc_info.value.message
        assert await count_events(store) == 0

    async def test_oversized_batch_writes_nothing(self, services, store, batch_payload):
        with pytest.raises(ValidationFailed) as exc_info:
            await services.ingestion.collect_events("player-1", batch_payload(101))
        assert "100" in exc_info.value.message
        assert await count_events(store) == 0

    async def test_one_bad_event_rejects_batch(self, services, store):
        payload = json.dumps({"events": [
            {"event_name": "ok", "timestamp": 1},
            {"event_name": "", "timestamp": 1},
        ]})
        with pytest.raises(ValidationFailed) as exc_info:
            await services.ingestion.collect_events("player-1", payload)
        assert exc_info.value.message.startswith("Event at index 1: ")
        assert await count_events(store) == 0

    @pytest.mark.parametrize("timestamp", ["1e400", "1e20", "99999999999999999999"])
    async def test_overflowing_timestamp_rejected(self, services, store, timestamp):
        payload = '{"events": [{"event_name": "boot", "timestamp": ' + timestamp + '}]}'

        with pytest.raises(ValidationFailed) as exc_info:
            await services.ingestion.collect_events("player-1", payload)

        assert "out of range" in exc_info.value.message
        assert await count_events(store) == 0

    async def test_malformed_json(self, services, store):
        with pytest.raises(MalformedPayload):
            await services.ingestion.collect_events("player-1", '{"events": [')
        assert await count_events(store) == 0

    async def test_store_failure_reports_batch_id(self, services, store, batch_payload):
        await store.execute("DROP TABLE analytics_events")

        with pytest.raises(StorageFailed) as exc_info:
            await services.ingestion.collect_events("player-1", batch_payload(1))

        assert exc_info.value.details["batch_id"].startswith("batch_")


class TestGetUserEvents:
    """Tests for reading back a caller's events"""

    async def test_only_callers_rows(self, services, batch_payload):
        await services.ingestion.collect_events("player-1", batch_payload(2))
        await services.ingestion.collect_events("player-2", batch_payload(3))

        response = await services.ingestion.get_user_events("player-1", "")
        assert response.count == 2
        assert len(response.events) == 2

    async def test_newest_first(self, services, batch_payload):
        await services.ingestion.collect_events("player-1", batch_payload(3))

        response = await services.ingestion.get_user_events("player-1", None)
        # same server timestamp within a batch; later rows first
        assert [e.event_name for e in response.events] == ["level_start_2", "level_start_1", "level_start_0"]
        assert response.events[0].event_properties == {"level": 2}

    async def test_limit_and_offset(self, services, batch_payload):
        await services.ingestion.collect_events("player-1", batch_payload(5))

        response = await services.ingestion.get_user_events("player-1", '{"limit": 2, "offset": 1}')
        assert [e.event_name for e in response.events] == ["level_start_3", "level_start_2"]

    async def test_limit_clamped(self, services):
        assert services.ingestion.max_query_limit == 500
        response = await services.ingestion.get_user_events("player-1", '{"limit": 100000}')
        assert response.count == 0

    async def test_event_name_filter(self, services, batch_payload):
        await services.ingestion.collect_events("player-1", batch_payload(3))

        response = await services.ingestion.get_user_events("player-1", '{"event_name": "level_start_1"}')
        assert response.count == 1
        assert response.events[0].event_name == "level_start_1"

    @pytest.mark.parametrize("payload", ['{"limit": -1}', '{"offset": "2"}', '{"limit": true}', '{"limit": 1.5}'])
    async def test_bad_paging(self, services, payload):
        with pytest.raises(ValidationFailed):
            await services.ingestion.get_user_events("player-1", payload)

    async def test_unknown_field(self, services):
        with pytest.raises(ValidationFailed):
            await services.ingestion.get_user_events("player-1", '{"user_id": "player-2"}')
