"""Background exposure processing for uploaded datalogs."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional
from uuid import uuid4

from fastapi import BackgroundTasks, UploadFile

from app.schemas import (
    ExposurePairOut,
    ExposureReport,
    PeriodExposure,
    ProcessingError,
    ProcessingStatus,
    ReadingExposure,
    SensorExposure,
)
from datastore.report_table import ExposureReportTable, build_default_table
from models.datalog import DatalogSensorSession
from models.gas_codes import default_eligibility
from services.datalog_reader import read_datalog
from services.exposure import ExposureCalculator
from settings import get_settings
from storage.datalog_archive import DatalogArchive, build_default_archive

logger = logging.getLogger(__name__)


class DatalogProcessor:
    """Coordinates archiving, background exposure computation, and report retrieval."""

    def __init__(
        self,
        archive: DatalogArchive,
        reports: ExposureReportTable,
        calculator: ExposureCalculator,
        workers: int = 4,
    ) -> None:
        self.archive = archive
        self.reports = reports
        self.calculator = calculator
        self.executor = ThreadPoolExecutor(max_workers=workers)
        self._futures: Dict[str, Future[None]] = {}
        self._futures_lock = Lock()

    def enqueue_file(self, background_tasks: BackgroundTasks, file: UploadFile) -> str:
        """Archive the uploaded datalog and schedule exposure computation."""
        file_id = str(uuid4())
        filename = Path(file.filename or "datalog.json").name

        file.file.seek(0)
        contents = file.file.read()
        if isinstance(contents, str):
            contents = contents.encode("utf-8")
        if not contents:
            raise ValueError("Uploaded file is empty.")

        key = self.archive.store(file_id, filename, contents)

        uploaded_at = datetime.now(timezone.utc)
        self.reports.put(
            ExposureReport(
                file_id=file_id,
                status=ProcessingStatus.uploaded,
                uploaded_at=uploaded_at,
            )
        )
        logger.info(
            "Datalog accepted",
            extra={"file_id": file_id, "object_key": key, "status": ProcessingStatus.uploaded.value},
        )

        future = self.executor.submit(
            self._process_file, file_id=file_id, key=key, uploaded_at=uploaded_at
        )
        with self._futures_lock:
            self._futures[file_id] = future
        future.add_done_callback(lambda _f, fid=file_id: self._clear_future(fid))

        background_tasks.add_task(file.close)
        return file_id

    def fetch_result(self, file_id: str) -> ExposureReport:
        """Retrieve the exposure report for an uploaded datalog."""
        report = self.reports.get(file_id)
        if report is None:
            raise KeyError(f"Exposure report for file {file_id!r} not found.")
        return report

    def fetch_sensor(self, file_id: str, uid: str) -> SensorExposure:
        report = self.fetch_result(file_id)
        for sensor in report.sensors:
            if sensor.uid == uid:
                return sensor
        raise KeyError(f"Sensor {uid!r} not found in file {file_id!r}.")

    def shutdown(self) -> None:
        """Clean up executor resources during application shutdown."""
        self.executor.shutdown(wait=False, cancel_futures=True)

    def _clear_future(self, file_id: str) -> None:
        with self._futures_lock:
            self._futures.pop(file_id, None)

    def _process_file(self, file_id: str, key: str, uploaded_at: datetime) -> None:
        start_time = time.perf_counter()
        self.reports.put(
            ExposureReport(
                file_id=file_id,
                status=ProcessingStatus.processing,
                uploaded_at=uploaded_at,
            )
        )
        log_context = {"file_id": file_id, "object_key": key}

        report = ExposureReport(
            file_id=file_id,
            status=ProcessingStatus.processing,
            uploaded_at=uploaded_at,
        )

        try:
            with self.archive.open_text(key) as handle:
                parsed = read_datalog(handle, log_context=log_context)

            datalog = parsed.session
            report.instrument_serial_number = datalog.serial_number
            report.recording_interval = datalog.recording_interval
            report.twa_time_base = datalog.twa_time_base
            report.errors = list(parsed.errors)

            recording_interval = datalog.recording_interval or 0
            twa_time_base = datalog.twa_time_base or 0
            for sensor_session in datalog.sensor_sessions:
                applied = self.calculator.compute_exposure(
                    sensor_session, recording_interval, twa_time_base
                )
                report.sensors.append(summarize_sensor(sensor_session, applied))

            if not report.sensors:
                report.status = ProcessingStatus.failed
                if not report.errors:
                    report.errors.append(
                        ProcessingError(sensor_number=0, reason="datalog contains no sensor sessions")
                    )
            elif report.errors:
                report.status = ProcessingStatus.partial
            else:
                report.status = ProcessingStatus.processed
        except Exception as exc:
            logger.exception("Datalog processing failed", extra=log_context)
            report.status = ProcessingStatus.failed
            report.sensors = []
            report.errors.append(ProcessingError(sensor_number=0, reason=str(exc)))

        report.processed_at = datetime.now(timezone.utc)
        report.processing_ms = int((time.perf_counter() - start_time) * 1000)
        self.reports.put(report)
        logger.info(
            "Datalog processed",
            extra={
                **log_context,
                "status": report.status.value,
                "processing_ms": report.processing_ms,
                "sensor_count": len(report.sensors),
                "error_count": len(report.errors),
            },
        )


def summarize_sensor(sensor_session: DatalogSensorSession, applied: bool) -> SensorExposure:
    """Build the report entry for a sensor session after exposure computation."""
    peak_twa: Optional[float] = None
    final_twa: Optional[float] = None
    peak_stel: Optional[float] = None
    sample_count = 0
    exposed_sample_count = 0
    periods: List[PeriodExposure] = []

    for period in sensor_session.periods:
        readings: List[ReadingExposure] = []
        for reading in period.readings:
            sample_count += reading.count
            pairs = [ExposurePairOut(twa=pair.twa, stel=pair.stel) for pair in reading.exposure]
            if pairs:
                exposed_sample_count += len(pairs)
                final_twa = pairs[-1].twa
                reading_peak_twa = max(pair.twa for pair in pairs)
                reading_peak_stel = max(pair.stel for pair in pairs)
                peak_twa = reading_peak_twa if peak_twa is None else max(peak_twa, reading_peak_twa)
                peak_stel = reading_peak_stel if peak_stel is None else max(peak_stel, reading_peak_stel)
            readings.append(
                ReadingExposure(reading=reading.raw_value, count=reading.count, exposure=pairs)
            )
        periods.append(
            PeriodExposure(
                period=period.period,
                time=period.time,
                location=period.location,
                sample_count=period.sample_count,
                readings=readings,
            )
        )

    return SensorExposure(
        uid=sensor_session.uid,
        gas_code=sensor_session.gas_code,
        applied=applied,
        sample_count=sample_count,
        exposed_sample_count=exposed_sample_count,
        peak_twa=peak_twa,
        final_twa=final_twa,
        peak_stel=peak_stel,
        periods=periods,
    )


@lru_cache
def build_default_processor(
    workers: Optional[int] = None,
) -> DatalogProcessor:
    """Factory that wires the processor from settings."""
    settings = get_settings()
    calculator = ExposureCalculator(default_eligibility(settings.excluded_gas_codes))
    worker_count = workers or settings.processor_workers
    return DatalogProcessor(
        archive=build_default_archive(),
        reports=build_default_table(),
        calculator=calculator,
        workers=worker_count,
    )
