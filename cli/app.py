from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_data, render_import_summary
from logging_config import configure_logging
from models.records import SensorType
from services.importer import build_default_importer
from services.ingest import build_default_ingest_function, parse_trigger_path
from storage.mock_blob import build_default_container


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for importing and querying cached sensor data.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


def _sensor_name(value: str) -> str:
    try:
        return SensorType.from_name(value).sensor_name
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each HTTP request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("import")
def import_command(
    flush_batches: Optional[int] = typer.Option(
        None,
        "--flush-batches",
        min=1,
        help="Batches accumulated before each save (defaults to IMPORT_FLUSH_BATCHES or 10).",
    ),
) -> None:
    """Import every device's files from blob storage into the cache."""
    configure_logging()
    importer = build_default_importer(flush_batches)
    summary = asyncio.run(importer.run())
    render_import_summary(summary)
    if summary.failed_devices:
        raise typer.Exit(code=1)


@app.command("upload")
def upload_command(
    ctx: typer.Context,
    device: str = typer.Argument(..., help="Device the readings belong to."),
    sensor: str = typer.Argument(..., help="humidity, rainfall or temperature."),
    file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="Daily CSV file named YYYY-MM-DD.csv."
    ),
) -> None:
    """Upload a daily CSV file; the service ingests it in the background."""
    state = _get_state(ctx)
    sensor_name = _sensor_name(sensor)
    typer.echo(f"Uploading {file} to {state.config.base_url} ...")
    path = state.client.upload_file(device, sensor_name, file)
    typer.secho(f"Upload accepted. path={path}", fg=typer.colors.GREEN)


@app.command("data")
def data_command(
    ctx: typer.Context,
    device: str = typer.Argument(..., help="Device name."),
    date: str = typer.Argument(..., help="Day in YYYY-MM-DD format."),
    sensor: Optional[str] = typer.Option(
        None, "--sensor", "-s", help="Restrict the output to one sensor."
    ),
) -> None:
    """Show the cached readings of a device for one day."""
    state = _get_state(ctx)
    sensor_name = _sensor_name(sensor) if sensor else None
    payload = state.client.get_data(device, date, sensor_name)
    render_data(payload)


@app.command("ingest")
def ingest_command(
    path: str = typer.Argument(..., help="Blob path shaped like DEVICE/SENSOR/YYYY-MM-DD.csv."),
) -> None:
    """Ingest one file already stored in blob storage, as the upload trigger would."""
    parts = parse_trigger_path(path)
    if parts is None:
        raise typer.BadParameter(f"Path {path} does not match DEVICE/SENSOR/NAME.csv.")
    device, sensor, name = parts
    configure_logging()

    async def _ingest() -> Optional[int]:
        blob = await build_default_container().get_file(path)
        if blob is None:
            return None
        return await build_default_ingest_function().run(blob, device, sensor, name)

    saved = asyncio.run(_ingest())
    if saved is None:
        typer.secho(f"Blob {path} was not found.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.secho(f"Ingested {saved} records from {path}.", fg=typer.colors.GREEN)
