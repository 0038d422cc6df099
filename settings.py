from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple


_ARCHIVE_NAME_ENV = "DATALOG_ARCHIVE_NAME"
_ARCHIVE_ROOT_ENV = "DATALOG_ARCHIVE_ROOT"
_TABLE_NAME_ENV = "EXPOSURE_RESULTS_TABLE"
_TABLE_PATH_ENV = "EXPOSURE_RESULTS_PATH"
_WORKER_COUNT_ENV = "PROCESSOR_WORKER_COUNT"
_LOG_LEVEL_ENV = "LOG_LEVEL"
_EXCLUDED_GAS_ENV = "STEL_TWA_EXCLUDED_GAS_CODES"


@dataclass(frozen=True)
class Settings:
    archive_name: str
    archive_root_path: Optional[str]
    results_table_name: str
    results_persistence_path: Optional[str]
    processor_workers: int
    log_level: str
    excluded_gas_codes: Tuple[str, ...] = ()


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_worker_count(default: int) -> int:
    value = os.getenv(_WORKER_COUNT_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


def _read_gas_codes() -> Tuple[str, ...]:
    value = os.getenv(_EXCLUDED_GAS_ENV) or ""
    return tuple(code.strip().upper() for code in value.split(",") if code.strip())


@lru_cache
def get_settings() -> Settings:
    return Settings(
        archive_name=_read_str_env(_ARCHIVE_NAME_ENV, "datalogs"),
        archive_root_path=_read_optional_env(_ARCHIVE_ROOT_ENV, "./tmp/datalogs"),
        results_table_name=_read_str_env(_TABLE_NAME_ENV, "exposure_reports"),
        results_persistence_path=_read_optional_env(
            _TABLE_PATH_ENV, "./tmp/exposure_reports.json"
        ),
        processor_workers=_read_worker_count(4),
        log_level=_read_log_level("INFO"),
        excluded_gas_codes=_read_gas_codes(),
    )
