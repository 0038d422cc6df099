from __future__ import annotations
import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

from app.schemas import ExposureReport
from settings import get_settings

logger = logging.getLogger(__name__)


class ExposureReportTable:
    """Exposure reports keyed by file id, optionally persisted as JSON."""

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self.persistence_path = persistence_path
        self._reports: Dict[str, ExposureReport] = {}
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def put(self, report: ExposureReport) -> None:
        with self._lock:
            self._reports[report.file_id] = report.model_copy(deep=True)
            self._persist()

    def get(self, file_id: str) -> Optional[ExposureReport]:
        with self._lock:
            report = self._reports.get(file_id)
            if report is None:
                return None
            return report.model_copy(deep=True)

    def scan(self) -> list[ExposureReport]:
        """Return deep copies of all stored reports."""

        with self._lock:
            return [report.model_copy(deep=True) for report in self._reports.values()]

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            file_id: report.model_dump(mode="json") for file_id, report in self._reports.items()
        }
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            data = json.loads(self.persistence_path.read_text() or "{}")
        except (OSError, json.JSONDecodeError):
            logger.warning(
                "Ignoring unreadable report table at %s", self.persistence_path
            )
            data = {}

        for file_id, payload in data.items():
            self._reports[file_id] = ExposureReport.model_validate(payload)


@lru_cache
def build_default_table(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> ExposureReportTable:
    settings = get_settings()
    table_name = settings.results_table_name if name is None else name
    table_path = settings.results_persistence_path if path is None else path
    persistence = Path(table_path) if table_path else None
    return ExposureReportTable(name=table_name, persistence_path=persistence)
