"""Parse uploaded JSON datalogs into the domain model."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, TextIO, Tuple

from pydantic import ValidationError

from app.schemas import DatalogHeader, ProcessingError, SensorSessionPayload
from models.datalog import (
    SENSOR_STATUS_OK,
    DatalogPeriod,
    DatalogReading,
    DatalogSensorSession,
    DatalogSession,
)

logger = logging.getLogger(__name__)


@dataclass
class ParsedDatalog:
    """A datalog session together with the sensor sessions that were rejected."""

    session: DatalogSession
    errors: List[ProcessingError] = field(default_factory=list)


def read_datalog(
    handle: TextIO, log_context: Optional[Mapping[str, Any]] = None
) -> ParsedDatalog:
    """Read a JSON datalog from a text stream."""
    try:
        raw = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Datalog is not valid JSON: {exc.msg}") from exc
    return parse_datalog(raw, log_context=log_context)


def parse_datalog(
    raw: Any, log_context: Optional[Mapping[str, Any]] = None
) -> ParsedDatalog:
    if not isinstance(raw, dict):
        raise ValueError("Datalog document must be a JSON object.")

    try:
        header = DatalogHeader.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid datalog header: {_describe(exc)}") from exc

    session = DatalogSession(
        serial_number=header.serial_number,
        session_date=header.session_date,
        session_number=header.session_number,
        user=header.user,
        recording_interval=header.recording_interval,
        twa_time_base=header.twa_time_base,
        base_unit_serial_number=header.base_unit_serial_number,
        comments=header.comments,
    )
    parsed = ParsedDatalog(session=session)
    context = dict(log_context or {})

    accepted: List[Tuple[int, DatalogSensorSession]] = []
    seen_uids = set()
    for sensor_number, raw_sensor in enumerate(header.sensor_sessions, start=1):
        try:
            payload = SensorSessionPayload.model_validate(raw_sensor)
        except ValidationError as exc:
            _reject(parsed, sensor_number, f"invalid sensor session: {_describe(exc)}", context)
            continue

        if payload.status != SENSOR_STATUS_OK:
            _reject(parsed, sensor_number, f"sensor status {payload.status:#06x} is not OK", context)
            continue

        sensor_session = _to_sensor_session(payload)
        if sensor_session.uid in seen_uids:
            _reject(parsed, sensor_number, f"duplicate sensor uid {sensor_session.uid}", context)
            continue
        seen_uids.add(sensor_session.uid)
        session.sensor_sessions.append(sensor_session)
        accepted.append((sensor_number, sensor_session))

    # All sensors of an instrument share one sample clock.
    if accepted:
        _, reference = accepted[0]
        expected = reference.sample_counts()
        for sensor_number, sensor_session in accepted[1:]:
            counts = sensor_session.sample_counts()
            if counts != expected:
                reason = f"per-period sample counts {counts} do not match {expected}"
                parsed.errors.append(ProcessingError(sensor_number=sensor_number, reason=reason))
                logger.warning(
                    "Sample count mismatch",
                    extra={**context, "sensor_uid": sensor_session.uid, "reason": reason},
                )

    return parsed


def _to_sensor_session(payload: SensorSessionPayload) -> DatalogSensorSession:
    periods = [
        DatalogPeriod(
            period=period.period,
            time=period.time,
            location=period.location,
            readings=[
                DatalogReading(
                    raw_value=reading.reading,
                    count=reading.count,
                    temperature=reading.temperature,
                )
                for reading in period.readings
            ],
        )
        for period in payload.periods
    ]
    return DatalogSensorSession(
        serial_number=payload.serial_number.strip(),
        component_type=payload.component_type.strip(),
        gas_code=payload.gas_code.strip(),
        alarm_low=payload.alarm_low,
        alarm_high=payload.alarm_high,
        alarm_twa=payload.alarm_twa,
        alarm_stel=payload.alarm_stel,
        status=payload.status,
        periods=periods,
    )


def _reject(
    parsed: ParsedDatalog, sensor_number: int, reason: str, context: Dict[str, Any]
) -> None:
    parsed.errors.append(ProcessingError(sensor_number=sensor_number, reason=reason))
    logger.warning(
        "Skipping sensor session %s: %s",
        sensor_number,
        reason,
        extra={**context, "sensor_number": sensor_number, "reason": reason},
    )


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)
