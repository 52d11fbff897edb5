"""
Unit Tests - Payload Decoding and Failure Responses
"""
import json

import pytest

from liveops.core.errors import (
    AssignmentPersistFailed,
    ErrorCode,
    MalformedPayload,
    StorageFailed,
    ValidationFailed,
)
from liveops.core.payload import parse_payload, reject_unknown_fields
from liveops.models.schemas import AssignmentResponse, CollectEventsResponse, ConfigResponse, HealthResponse


class TestParsePayload:
    """Tests for strict JSON decoding"""

    def test_object(self):
        assert parse_payload('{"limit": 10}') == {"limit": 10}

    def test_bytes(self):
        assert parse_payload(b'{"limit": 10}') == {"limit": 10}

    @pytest.mark.parametrize("payload", ["{not json", "{'single': 1}", '{"a": NaN}', '{"a": Infinity}', b"\xff\xfe"])
    def test_malformed(self, payload):
        with pytest.raises(MalformedPayload):
            parse_payload(payload)

    @pytest.mark.parametrize("payload", [None, "", "   "])
    def test_empty_rejected_by_default(self, payload):
        with pytest.raises(MalformedPayload):
            parse_payload(payload)

    @pytest.mark.parametrize("payload", [None, "", "   "])
    def test_empty_allowed(self, payload):
        assert parse_payload(payload, allow_empty=True) == {}

    def test_top_level_must_be_object(self):
        with pytest.raises(MalformedPayload):
            parse_payload("[1, 2]")

    def test_top_level_array_allowed_when_asked(self):
        assert parse_payload("[1, 2]", require_object=False) == [1, 2]

    def test_reject_unknown_fields(self):
        with pytest.raises(ValidationFailed) as exc_info:
            reject_unknown_fields({"limit": 1, "zzz": 2, "aaa": 3}, ["limit"])
        assert exc_info.value.message == "Unknown field(s): aaa, zzz"

    def test_known_fields_pass(self):
        reject_unknown_fields({"limit": 1}, ["limit", "offset"])


class TestFailureResponses:
    """Tests for the failure form of response models"""

    def test_error_code_and_message(self):
        body = json.loads(ConfigResponse.failure(StorageFailed("Failed to fetch config")).model_dump_json())
        assert body["success"] is False
        assert body["error"] == "Failed to fetch config"
        assert body["error_code"] == ErrorCode.STORAGE_FAILED.value
        assert body["config"] == {}

    def test_matching_details_echoed(self):
        response = CollectEventsResponse.failure(StorageFailed(batch_id="batch_1_abcdef"))
        assert response.batch_id == "batch_1_abcdef"
        assert response.events_inserted == 0

    def test_unrelated_details_dropped(self):
        response = CollectEventsResponse.failure(ValidationFailed("bad", user_id="player-1"))
        assert not hasattr(response, "user_id")

    def test_assignment_failure_has_no_cohort(self):
        response = AssignmentResponse.failure(AssignmentPersistFailed(user_id="p1", experiment_id="exp"))
        assert response.cohort == ""
        assert response.user_id == "p1"
        assert response.is_new_assignment is False
        assert response.error == "Failed to save assignment"

    def test_health_failure_is_unhealthy(self):
        response = HealthResponse.failure(StorageFailed())
        assert response.status == "unhealthy"
        assert response.database_connected is False

    def test_null_fields_kept_in_json(self):
        body = json.loads(ConfigResponse(config={"a": 1}).model_dump_json())
        assert body == {
            "success": True,
            "error": None,
            "error_code": None,
            "experiment_id": None,
            "cohort": None,
            "config": {"a": 1},
        }
