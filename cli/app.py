from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_errors, render_result, render_sensors
from models.gas_codes import default_eligibility
from services.datalog_reader import read_datalog
from services.exposure import ExposureCalculator
from services.processor import summarize_sensor


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for computing and retrieving datalog exposure (TWA/STEL).",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Exposure API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    poll_interval: Optional[float] = typer.Option(
        None,
        "--poll-interval",
        help="Seconds between status checks when waiting for completion.",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Maximum seconds to wait when polling for results.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(
        base_url=base_url,
        poll_interval=poll_interval,
        poll_timeout=timeout,
    )
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("upload")
def upload_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to a JSON datalog."),
    wait: bool = typer.Option(
        False,
        "--wait/--no-wait",
        help="Wait for processing to finish and display the report.",
    ),
    poll_interval: Optional[float] = typer.Option(
        None,
        "--poll-interval",
        help="Override poll interval while waiting.",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Override timeout while waiting.",
    ),
) -> None:
    """Upload a datalog for asynchronous exposure computation."""
    state = _get_state(ctx)
    typer.echo(f"Uploading {file} to {state.config.base_url} ...")
    file_id = state.client.upload_file(file)
    typer.secho(f"Upload accepted. file_id={file_id}", fg=typer.colors.GREEN)

    if not wait:
        return

    interval = poll_interval if poll_interval is not None else state.config.poll_interval
    poll_timeout = timeout if timeout is not None else state.config.poll_timeout
    typer.echo(f"Waiting for processing (interval={interval}s, timeout={poll_timeout}s)...")
    result = state.client.poll_result(file_id, interval=interval, timeout=poll_timeout)
    typer.echo()
    render_result(result)


@app.command("result")
def result_command(
    ctx: typer.Context,
    file_id: str = typer.Argument(..., help="Identifier returned from the upload command."),
) -> None:
    """Fetch processing status and exposure for a datalog."""
    state = _get_state(ctx)
    render_result(state.client.get_result(file_id))


@app.command("compute")
def compute_command(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to a JSON datalog."),
    exclude_gas: Optional[List[str]] = typer.Option(
        None,
        "--exclude-gas",
        help="Additional gas code to treat as ineligible for TWA/STEL. Repeatable.",
    ),
) -> None:
    """Compute exposure locally without contacting the service."""
    calculator = ExposureCalculator(default_eligibility(exclude_gas or ()))
    try:
        with file.open("r", encoding="utf-8") as handle:
            parsed = read_datalog(handle)
    except ValueError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    datalog = parsed.session
    applied = calculator.compute_datalog(datalog)
    sensors = [
        summarize_sensor(sensor_session, applied[sensor_session.uid]).model_dump()
        for sensor_session in datalog.sensor_sessions
    ]

    typer.secho(f"Instrument {datalog.serial_number}", bold=True)
    typer.echo(f"recording_interval: {datalog.recording_interval}")
    typer.echo(f"twa_time_base: {datalog.twa_time_base}")
    typer.echo()
    render_sensors(sensors)
    typer.echo()
    render_errors(error.model_dump() for error in parsed.errors)
