"""TWA/STEL exposure computation for datalog sensor sessions.

STEL is a rolling 15 minute average of the raw samples. TWA is the running
sum of raw samples scaled by the fraction of the TWA time base that one
recording interval represents.

Sensor sessions share no state and may be computed in parallel. Within a
session, periods and readings must already be in chronological order; the
calculator cannot detect out-of-order input.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from typing import Deque, Dict, List, Optional

from models.datalog import DatalogSensorSession, DatalogSession, ExposurePair
from models.gas_codes import StelTwaEligibility, default_eligibility

logger = logging.getLogger(__name__)

STEL_PERIOD_SECONDS = 900.0
SECONDS_PER_HOUR = 3600.0
ZERO_THRESHOLD = 0.01


def is_zero(value: float) -> bool:
    """Exposure data is only significant to two decimal places."""
    return round(value, 2) < ZERO_THRESHOLD


def _below_zero(alarm: Optional[float]) -> bool:
    # An undefined alarm compares like the instrument's large negative sentinel.
    return alarm is None or alarm < 0.0


class ExposureCalculator:
    """Pure exposure component that can be unit tested in isolation."""

    def __init__(self, eligibility: Optional[StelTwaEligibility] = None) -> None:
        self.eligibility = eligibility or default_eligibility()

    def is_applicable(
        self,
        sensor_session: DatalogSensorSession,
        recording_interval: int,
        twa_time_base: int,
    ) -> bool:
        if not self.eligibility.is_eligible(sensor_session.gas_code):
            return False
        if recording_interval <= 0 or twa_time_base <= 0:
            return False
        if _below_zero(sensor_session.alarm_stel) and _below_zero(sensor_session.alarm_twa):
            return False
        return True

    def compute_exposure(
        self,
        sensor_session: DatalogSensorSession,
        recording_interval: int,
        twa_time_base: int,
    ) -> bool:
        """Populate ``exposure`` on every reading of the sensor session.

        Returns False, leaving every exposure list empty, when the session is
        not eligible for exposure computation.
        """
        if not self.is_applicable(sensor_session, recording_interval, twa_time_base):
            for period in sensor_session.periods:
                for reading in period.readings:
                    reading.exposure = []
            logger.debug(
                "Exposure not applicable",
                extra={"sensor_uid": sensor_session.uid, "gas_code": sensor_session.gas_code},
            )
            return False

        stel_window_length = math.ceil(STEL_PERIOD_SECONDS / recording_interval)
        twa_factor = recording_interval / (twa_time_base * SECONDS_PER_HOUR)

        # TWA accumulates across periods; STEL restarts with each period.
        cumulative_exposure = 0.0

        for period in sensor_session.periods:
            stel_window_total = 0.0
            stel_window: Deque[float] = deque()

            for reading in period.readings:
                raw_value = reading.raw_value
                if raw_value < 0.0:
                    raw_value = 0.0

                exposure: List[ExposurePair] = []
                non_zero_found = False

                for _ in range(reading.count):
                    cumulative_exposure += raw_value
                    twa = cumulative_exposure * twa_factor

                    stel_window_total += raw_value
                    if len(stel_window) == stel_window_length:
                        sill = stel_window.popleft()
                        if sill > 0.0:
                            stel_window_total -= sill
                    stel_window.append(raw_value)
                    stel = stel_window_total / stel_window_length

                    exposure.append(ExposurePair(twa=twa, stel=stel))
                    non_zero_found = non_zero_found or not is_zero(twa) or not is_zero(stel)

                reading.exposure = exposure if non_zero_found else []

        return True

    def compute_datalog(self, datalog: DatalogSession) -> Dict[str, bool]:
        """Compute exposure for every sensor session of an instrument session."""
        recording_interval = datalog.recording_interval or 0
        twa_time_base = datalog.twa_time_base or 0
        return {
            sensor_session.uid: self.compute_exposure(
                sensor_session, recording_interval, twa_time_base
            )
            for sensor_session in datalog.sensor_sessions
        }
