from datetime import datetime, timezone
from pathlib import Path

import pytest

from app.schemas import ExposureReport, ProcessingStatus, SensorExposure
from datastore.report_table import ExposureReportTable
from storage.datalog_archive import DatalogArchive


def test_archive_store_and_load(tmp_path: Path) -> None:
    archive = DatalogArchive(name="test", root_path=tmp_path)
    key = archive.store("file-1", "nested/datalog.json", b"{}")

    assert key == "file-1/datalog.json"
    assert (tmp_path / key).read_bytes() == b"{}"
    assert key in archive.keys()

    fresh_archive = DatalogArchive(name="test", root_path=tmp_path)
    assert fresh_archive.load(key) == b"{}"
    assert fresh_archive.keys() == [key]


def test_archive_open_text_in_memory() -> None:
    archive = DatalogArchive(name="memory")
    key = archive.store("file-2", "datalog.json", '{"serial_number": "X"}'.encode("utf-8"))

    with archive.open_text(key) as handle:
        assert handle.read() == '{"serial_number": "X"}'


def test_archive_missing_key(tmp_path: Path) -> None:
    archive = DatalogArchive(name="test", root_path=tmp_path)

    with pytest.raises(KeyError, match="missing.json"):
        archive.load("missing.json")
    with pytest.raises(KeyError, match="missing.json"):
        with archive.open_text("missing.json"):
            pass


def test_report_table_put_and_reload(tmp_path: Path) -> None:
    path = tmp_path / "reports.json"
    table = ExposureReportTable(name="test", persistence_path=path)
    report = ExposureReport(
        file_id="abc",
        status=ProcessingStatus.processed,
        uploaded_at=datetime.now(timezone.utc),
        sensors=[
            SensorExposure(
                uid="1#S0020",
                gas_code="G0001",
                applied=True,
                sample_count=3,
                exposed_sample_count=3,
                peak_stel=1.5,
            )
        ],
    )

    table.put(report)

    loaded = ExposureReportTable(name="test", persistence_path=path).get("abc")
    assert loaded is not None
    assert loaded.sensors[0].peak_stel == 1.5
