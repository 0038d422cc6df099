from __future__ import annotations

import io
import json
import logging
from typing import Any, Dict

import pytest

from services.datalog_reader import parse_datalog, read_datalog


def _sensor(component_type: str, gas_code: str, runs, **overrides: Any) -> Dict[str, Any]:
    sensor = {
        "serial_number": "1234567890",
        "component_type": component_type,
        "gas_code": gas_code,
        "alarm_low": 35,
        "alarm_high": 70,
        "alarm_twa": 35,
        "alarm_stel": 100,
        "periods": [
            {
                "period": 1,
                "time": "2024-01-01T08:00:00Z",
                "location": " Plant 7 ",
                "readings": [{"reading": value, "count": count} for value, count in runs],
            }
        ],
    }
    sensor.update(overrides)
    return sensor


def _document(*sensors: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "serial_number": "abc1234",
        "session_date": "2024-01-01T08:00:00Z",
        "session_number": 42,
        "user": " jdoe ",
        "recording_interval": 60,
        "twa_time_base": 8,
        "sensor_sessions": list(sensors),
    }


def test_read_datalog_builds_domain_model() -> None:
    document = _document(
        _sensor("S0020", "G0001", [(0, 10), (30.5, 5)]),
        _sensor("S0002", "G0020", [(20.9, 15)], alarm_twa=None, alarm_stel=None),
    )

    parsed = read_datalog(io.StringIO(json.dumps(document)))

    session = parsed.session
    assert parsed.errors == []
    assert session.serial_number == "ABC1234"
    assert session.user == "jdoe"
    assert session.recording_interval == 60
    assert session.twa_time_base == 8
    assert [sensor.uid for sensor in session.sensor_sessions] == [
        "1234567890#S0020",
        "1234567890#S0002",
    ]

    carbon_monoxide = session.sensor_sessions[0]
    assert carbon_monoxide.alarm_twa == 35.0
    assert carbon_monoxide.periods[0].location == "Plant 7"
    readings = carbon_monoxide.periods[0].readings
    assert [(reading.raw_value, reading.count) for reading in readings] == [(0.0, 10), (30.5, 5)]
    assert all(reading.exposure == [] for reading in readings)
    assert session.sensor_sessions[1].alarm_stel is None


def test_invalid_sensor_session_is_skipped(caplog) -> None:
    document = _document(
        _sensor("S0020", "G0001", [(1.0, 1)]),
        _sensor("S0021", "G0002", [(1.0, 0)]),
    )

    with caplog.at_level(logging.WARNING):
        parsed = parse_datalog(document, log_context={"file_id": "file-1"})

    assert len(parsed.session.sensor_sessions) == 1
    [error] = parsed.errors
    assert error.sensor_number == 2
    assert "invalid sensor session" in error.reason
    assert "count" in error.reason

    records = [record for record in caplog.records if record.name == "services.datalog_reader"]
    assert any("Skipping sensor session 2" in record.getMessage() for record in records)
    assert any(getattr(record, "file_id", None) == "file-1" for record in records)


def test_sensor_with_fault_status_is_skipped() -> None:
    document = _document(
        _sensor("S0020", "G0001", [(1.0, 1)]),
        _sensor("S0021", "G0002", [(1.0, 1)], status=0x1000),
    )

    parsed = parse_datalog(document)

    assert [sensor.component_type for sensor in parsed.session.sensor_sessions] == ["S0020"]
    assert parsed.errors[0].sensor_number == 2
    assert "0x1000" in parsed.errors[0].reason


def test_sample_count_mismatch_is_reported_but_kept() -> None:
    document = _document(
        _sensor("S0020", "G0001", [(1.0, 10)]),
        _sensor("S0021", "G0002", [(1.0, 9)]),
    )

    parsed = parse_datalog(document)

    assert len(parsed.session.sensor_sessions) == 2
    [error] = parsed.errors
    assert error.sensor_number == 2
    assert "[9]" in error.reason and "[10]" in error.reason


def test_invalid_json_raises_value_error() -> None:
    with pytest.raises(ValueError, match="not valid JSON"):
        read_datalog(io.StringIO("{not json"))


def test_non_object_document_raises_value_error() -> None:
    with pytest.raises(ValueError, match="JSON object"):
        parse_datalog([1, 2, 3])


def test_missing_header_field_raises_value_error() -> None:
    document = _document(_sensor("S0020", "G0001", [(1.0, 1)]))
    del document["serial_number"]

    with pytest.raises(ValueError, match="serial_number"):
        parse_datalog(document)


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_reading_rejects_sensor(value: float) -> None:
    document = _document(
        _sensor("S0020", "G0001", [(1.0, 1)]),
        _sensor("S0021", "G0002", [(value, 1)]),
    )

    parsed = read_datalog(io.StringIO(json.dumps(document)))

    assert [sensor.component_type for sensor in parsed.session.sensor_sessions] == ["S0020"]
    [error] = parsed.errors
    assert error.sensor_number == 2
    assert "invalid sensor session" in error.reason


def test_non_finite_alarm_rejects_sensor() -> None:
    document = _document(_sensor("S0020", "G0001", [(1.0, 1)], alarm_stel=float("inf")))

    parsed = read_datalog(io.StringIO(json.dumps(document)))

    assert parsed.session.sensor_sessions == []
    assert "invalid sensor session" in parsed.errors[0].reason


def test_duplicate_sensor_uid_is_skipped() -> None:
    document = _document(
        _sensor("S0020", "G0001", [(1.0, 1)]),
        _sensor("S0020", "G0001", [(5.0, 1)]),
    )

    parsed = parse_datalog(document)

    [sensor] = parsed.session.sensor_sessions
    assert sensor.periods[0].readings[0].raw_value == 1.0
    [error] = parsed.errors
    assert error.sensor_number == 2
    assert "duplicate sensor uid 1234567890#S0020" in error.reason
