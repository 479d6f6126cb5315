"""Tests for wire, glucose and sync-run models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from llu_sync.models import (
    BloodGlucoseRecord,
    ConnectionsResult,
    GlucoseMeasurement,
    LoginResult,
    NormalizedReading,
    SyncRunResult,
    SyncStatus,
    SyncStep,
    TimestampSource,
)


def test_connections_result_reads_server_keys(connections_payload):
    result = ConnectionsResult.model_validate(connections_payload)

    assert result.ok
    connection = result.data[0]
    assert connection.patient_id == "patient-1"
    assert connection.sensor.device_id == "dev-1"
    measurement = connection.glucose_measurement
    assert measurement.trend_arrow == 3
    assert measurement.measurement_color == 1
    assert measurement.glucose_units == 1
    assert measurement.value == 112.0
    assert measurement.is_high is False


def test_unknown_fields_are_ignored(login_payload):
    login_payload["data"]["user"]["uiLanguage"] = "en-US"
    login_payload["data"]["messages"] = {"unread": 0}

    result = LoginResult.model_validate(login_payload)

    assert result.data.user.display_name == "Pat Doe"


def test_measurement_requires_mg_per_dl():
    with pytest.raises(ValidationError):
        GlucoseMeasurement.model_validate({"FactoryTimestamp": "3/21/2024 2:05:30 PM"})


def test_ticket_token_is_secret(connections_result):
    assert "ticket-2" not in repr(connections_result.ticket)


def test_normalized_reading_requires_offset():
    with pytest.raises(ValidationError):
        NormalizedReading(instant=datetime(2024, 3, 21, 14, 5, 30), value_mg_per_dl=100, timestamp_source=TimestampSource.PATTERN)


def test_record_from_reading_keeps_offset():
    instant = datetime(2024, 3, 21, 16, 5, 30, tzinfo=timezone(timedelta(hours=2)))
    reading = NormalizedReading(instant=instant, value_mg_per_dl=100, timestamp_source=TimestampSource.EPOCH_MILLIS)

    record = BloodGlucoseRecord.from_reading(reading, user_id="user-123", data_origin="llu_sync")
    item = record.to_dynamodb_item()

    assert record.zone_offset_seconds == 7200
    assert item["timestamp"] == "2024-03-21T14:05:30+00:00"
    assert item["specimen_source"] == "interstitial_fluid"
    assert item["relation_to_meal"] == "unknown"

    restored = BloodGlucoseRecord.from_dynamodb_item(item)
    assert restored.time == instant
    assert restored.time.utcoffset() == timedelta(hours=2)


def test_record_rejects_negative_values():
    with pytest.raises(ValidationError):
        BloodGlucoseRecord(
            user_id="user-123",
            time=datetime.now(timezone.utc),
            zone_offset_seconds=0,
            value_mg_per_dl=-1,
            data_origin="llu_sync",
        )


def test_sync_run_result_success():
    result = SyncRunResult()
    assert result.step == SyncStep.START
    assert result.status is None

    result.record_step(SyncStep.FETCH_CONNECTIONS)
    result.record_completion()

    assert result.succeeded
    assert result.step == SyncStep.DONE
    assert result.duration_seconds >= 0


def test_sync_run_result_failure_remembers_step():
    result = SyncRunResult()
    result.record_step(SyncStep.WRITE_HEALTH_RECORD)

    result.record_failure("ClientError: throttled")

    assert result.status == SyncStatus.FAILURE
    assert result.step == SyncStep.FAILED
    assert result.failed_step == SyncStep.WRITE_HEALTH_RECORD
    assert result.error_message == "ClientError: throttled"


def test_sync_run_ids_are_unique():
    assert SyncRunResult().run_id != SyncRunResult().run_id
