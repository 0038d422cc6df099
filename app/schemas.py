"""Pydantic schemas for datalog uploads and exposure reports."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProcessingStatus(str, Enum):
    """Processing lifecycle states exposed via the API."""

    uploaded = "uploaded"
    processing = "processing"
    processed = "processed"
    partial = "partial"
    failed = "failed"


class ReadingPayload(BaseModel):
    """A compressed run of identical raw samples."""

    model_config = ConfigDict(allow_inf_nan=False)

    reading: float
    count: int = Field(default=1, ge=1)
    temperature: Optional[int] = None


class PeriodPayload(BaseModel):
    period: Optional[int] = None
    time: Optional[datetime] = None
    location: str = ""
    readings: List[ReadingPayload] = Field(default_factory=list)


class SensorSessionPayload(BaseModel):
    """One sensor's portion of an uploaded datalog."""

    model_config = ConfigDict(allow_inf_nan=False)

    serial_number: str = Field(..., min_length=1)
    component_type: str = Field(..., min_length=1)
    gas_code: str = ""
    alarm_low: Optional[float] = None
    alarm_high: Optional[float] = None
    alarm_twa: Optional[float] = None
    alarm_stel: Optional[float] = None
    status: int = Field(default=0, ge=0)
    periods: List[PeriodPayload] = Field(default_factory=list)


class DatalogHeader(BaseModel):
    """Session-wide fields of an uploaded datalog.

    Sensor sessions are validated one by one so a single bad sensor does not
    reject the whole file.
    """

    serial_number: str = Field(..., min_length=1)
    session_date: Optional[datetime] = None
    session_number: Optional[int] = None
    user: str = ""
    recording_interval: Optional[int] = None
    twa_time_base: Optional[int] = None
    base_unit_serial_number: str = ""
    comments: str = ""
    sensor_sessions: List[Any] = Field(default_factory=list)


class DatalogUploadResponse(BaseModel):
    """Immediate response payload after accepting a datalog upload."""

    file_id: str = Field(..., description="Generated identifier for the uploaded datalog.")


class ExposurePairOut(BaseModel):
    twa: float
    stel: float


class ReadingExposure(BaseModel):
    reading: float
    count: int = Field(..., ge=0)
    exposure: List[ExposurePairOut] = Field(default_factory=list)


class PeriodExposure(BaseModel):
    period: Optional[int] = None
    time: Optional[datetime] = None
    location: str = ""
    sample_count: int = Field(..., ge=0)
    readings: List[ReadingExposure] = Field(default_factory=list)


class SensorExposure(BaseModel):
    """Exposure computed for one sensor session."""

    uid: str
    gas_code: str
    applied: bool = Field(..., description="False when TWA/STEL does not apply to the sensor.")
    sample_count: int = Field(..., ge=0)
    exposed_sample_count: int = Field(..., ge=0)
    peak_twa: Optional[float] = None
    final_twa: Optional[float] = None
    peak_stel: Optional[float] = None
    periods: List[PeriodExposure] = Field(default_factory=list)


class ProcessingError(BaseModel):
    """Details about a sensor session that could not be used as uploaded."""

    sensor_number: int = Field(..., ge=0, description="1-based sensor index; 0 for the file itself.")
    reason: str


class ExposureReport(BaseModel):
    """Full record representing a processed datalog."""

    file_id: str
    status: ProcessingStatus
    uploaded_at: datetime
    processed_at: Optional[datetime] = None
    processing_ms: Optional[int] = Field(
        default=None, description="Duration in milliseconds from start to finish."
    )
    instrument_serial_number: Optional[str] = None
    recording_interval: Optional[int] = None
    twa_time_base: Optional[int] = None
    sensors: List[SensorExposure] = Field(default_factory=list)
    errors: List[ProcessingError] = Field(default_factory=list)
