from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _fmt(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:.2f}"


def render_sensors(sensors: Iterable[Dict[str, Any]]) -> None:
    echo_heading("Sensors")
    rendered = False
    for sensor in sensors:
        rendered = True
        if not sensor.get("applied"):
            typer.echo(f"  - {sensor.get('uid')} ({sensor.get('gas_code')}): exposure not applicable")
            continue
        typer.echo(
            f"  - {sensor.get('uid')} ({sensor.get('gas_code')}): "
            f"peak TWA {_fmt(sensor.get('peak_twa'))}, "
            f"final TWA {_fmt(sensor.get('final_twa'))}, "
            f"peak STEL {_fmt(sensor.get('peak_stel'))}, "
            f"{sensor.get('exposed_sample_count')}/{sensor.get('sample_count')} samples exposed"
        )
    if not rendered:
        typer.echo("No sensors processed.")


def render_errors(errors: Iterable[Dict[str, Any]]) -> None:
    echo_heading("Errors")
    rendered = False
    for error in errors:
        rendered = True
        typer.echo(f"  - sensor {error.get('sensor_number')}: {error.get('reason')}")
    if not rendered:
        typer.echo("No errors recorded.")


def render_result(payload: Dict[str, Any]) -> None:
    echo_heading("Exposure Report")
    echo_key_values(
        [
            ("file_id", payload.get("file_id")),
            ("status", payload.get("status")),
            ("instrument", payload.get("instrument_serial_number")),
            ("recording_interval", payload.get("recording_interval")),
            ("twa_time_base", payload.get("twa_time_base")),
            ("uploaded_at", payload.get("uploaded_at")),
            ("processed_at", payload.get("processed_at")),
            ("processing_ms", payload.get("processing_ms")),
        ]
    )
    typer.echo()
    render_sensors(payload.get("sensors") or [])
    typer.echo()
    render_errors(payload.get("errors") or [])
