import json
import time
import uuid
from typing import Dict, Iterator

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.report_table import ExposureReportTable, build_default_table
from services.exposure import ExposureCalculator
from services.processor import DatalogProcessor, build_default_processor
from settings import get_settings
from storage.datalog_archive import DatalogArchive, build_default_archive

_DATALOG = json.dumps(
    {
        "serial_number": "1234567",
        "recording_interval": 1,
        "twa_time_base": 8,
        "sensor_sessions": [
            {
                "serial_number": "1234567",
                "component_type": "S0020",
                "gas_code": "G0001",
                "alarm_twa": 35,
                "alarm_stel": 100,
                "periods": [{"period": 1, "readings": [{"reading": 100, "count": 1}]}],
            }
        ],
    }
)


@pytest.fixture
def api_client(tmp_path, monkeypatch) -> Iterator[TestClient]:
    processors: Dict[int, DatalogProcessor] = {}

    def build_test_processor(workers: int | None = None) -> DatalogProcessor:
        worker_count = workers or 1
        processor = processors.get(worker_count)
        if processor is None:
            processor = DatalogProcessor(
                archive=DatalogArchive(name="test", root_path=tmp_path / "archive"),
                reports=ExposureReportTable(
                    name="test", persistence_path=tmp_path / "reports.json"
                ),
                calculator=ExposureCalculator(),
                workers=worker_count,
            )
            processors[worker_count] = processor
        return processor

    def cache_clear() -> None:
        while processors:
            _, processor = processors.popitem()
            processor.shutdown()

    build_test_processor.cache_clear = cache_clear  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_processor", build_test_processor)
    monkeypatch.setattr("app.api.build_default_processor", build_test_processor)
    monkeypatch.setattr("services.processor.build_default_processor", build_test_processor)

    app = create_app()
    with TestClient(app) as client:
        yield client

    cache_clear()


def _clear_default_caches() -> None:
    build_default_processor.cache_clear()
    build_default_archive.cache_clear()
    build_default_table.cache_clear()
    get_settings.cache_clear()


def test_lifespan_shuts_down_processor_and_clears_cache(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("DATALOG_ARCHIVE_ROOT", str(tmp_path / "archive"))
    monkeypatch.setenv("EXPOSURE_RESULTS_PATH", str(tmp_path / "reports.json"))
    _clear_default_caches()

    app = create_app()
    with TestClient(app):
        processor_during = build_default_processor()
        assert processor_during.executor._shutdown is False

    processor_after = build_default_processor()
    try:
        assert processor_after is not processor_during
        assert processor_after.executor._shutdown is False
    finally:
        processor_after.shutdown()
        _clear_default_caches()


def _poll_for_completion(client: TestClient, file_id: str, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    last_payload: dict | None = None
    while time.monotonic() < deadline:
        response = client.get(f"/datalogs/{file_id}")
        assert response.status_code == 200
        payload = response.json()
        last_payload = payload
        if payload["status"] not in {"uploaded", "processing"}:
            return payload
        time.sleep(0.05)
    pytest.fail(f"Processing for datalog {file_id} did not complete: {last_payload}")


def test_upload_and_poll_processing(api_client: TestClient) -> None:
    response = api_client.post(
        "/datalogs",
        files={"file": ("datalog.json", _DATALOG, "application/json")},
    )

    assert response.status_code == 202
    payload = response.json()
    assert set(payload.keys()) == {"file_id"}
    file_id = payload["file_id"]

    result = _poll_for_completion(api_client, file_id)

    assert result["file_id"] == file_id
    assert result["status"] == "processed"
    assert result["errors"] == []
    assert result["processed_at"] is not None
    [sensor] = result["sensors"]
    assert sensor["uid"] == "1234567#S0020"
    assert sensor["applied"] is True
    [pair] = sensor["periods"][0]["readings"][0]["exposure"]
    assert pair["twa"] == pytest.approx(100 / 28800)
    assert pair["stel"] == pytest.approx(100 / 900)

    sensor_response = api_client.get(f"/datalogs/{file_id}/sensors/1234567%23S0020")
    assert sensor_response.status_code == 200
    assert sensor_response.json()["peak_stel"] == pytest.approx(100 / 900)


def test_upload_empty_file_returns_bad_request(api_client: TestClient) -> None:
    response = api_client.post(
        "/datalogs",
        files={"file": ("empty.json", b"", "application/json")},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Uploaded file is empty."


def test_get_missing_datalog_returns_not_found(api_client: TestClient) -> None:
    missing_id = str(uuid.uuid4())
    response = api_client.get(f"/datalogs/{missing_id}")

    assert response.status_code == 404
    assert missing_id in response.json()["detail"]


def test_get_missing_sensor_returns_not_found(api_client: TestClient) -> None:
    file_id = api_client.post(
        "/datalogs",
        files={"file": ("datalog.json", _DATALOG, "application/json")},
    ).json()["file_id"]
    _poll_for_completion(api_client, file_id)

    response = api_client.get(f"/datalogs/{file_id}/sensors/unknown")

    assert response.status_code == 404
    assert "unknown" in response.json()["detail"]


def test_health(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
