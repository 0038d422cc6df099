"""Domain models for downloaded instrument datalogs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

SENSOR_STATUS_OK = 0
_VIRTUAL_UID_PREFIX = "VIRTUAL"


@dataclass(slots=True)
class ExposurePair:
    """TWA and STEL values for one virtual sample instant."""

    twa: float
    stel: float


@dataclass(slots=True)
class DatalogReading:
    """A run-length compressed run of identical raw samples.

    ``exposure`` is populated by the exposure calculator. It is either empty
    (not applicable, or every value rounded to zero) or holds exactly
    ``count`` pairs.
    """

    raw_value: float
    count: int = 1
    temperature: Optional[int] = None
    exposure: List[ExposurePair] = field(default_factory=list)


@dataclass(slots=True)
class DatalogPeriod:
    """A contiguous recording interval, bounded by a site or user change."""

    period: Optional[int] = None
    time: Optional[datetime] = None
    location: str = ""
    readings: List[DatalogReading] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.location = (self.location or "").strip()

    @property
    def sample_count(self) -> int:
        return sum(reading.count for reading in self.readings)


@dataclass(slots=True)
class DatalogSensorSession:
    """One sensor's portion of a datalog session.

    Alarm thresholds are ``None`` when the instrument did not define them.
    ``periods`` must be in chronological order.
    """

    serial_number: str
    component_type: str
    gas_code: str
    alarm_low: Optional[float] = None
    alarm_high: Optional[float] = None
    alarm_twa: Optional[float] = None
    alarm_stel: Optional[float] = None
    status: int = SENSOR_STATUS_OK
    periods: List[DatalogPeriod] = field(default_factory=list)

    @property
    def uid(self) -> str:
        return f"{self.serial_number}#{self.component_type}"

    @property
    def is_virtual(self) -> bool:
        return self.uid.startswith(_VIRTUAL_UID_PREFIX)

    @property
    def is_ok(self) -> bool:
        return self.status == SENSOR_STATUS_OK

    def sample_counts(self) -> List[int]:
        """Uncompressed sample count of each period, in order."""
        return [period.sample_count for period in self.periods]


@dataclass(slots=True)
class DatalogSession:
    """An instrument's datalog session as downloaded by the docking station."""

    serial_number: str
    session_date: Optional[datetime] = None
    session_number: Optional[int] = None
    user: str = ""
    recording_interval: Optional[int] = None
    twa_time_base: Optional[int] = None
    base_unit_serial_number: str = ""
    comments: str = ""
    sensor_sessions: List[DatalogSensorSession] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.serial_number = (self.serial_number or "").strip().upper()
        self.user = (self.user or "").strip()
