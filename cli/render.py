from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer

from services.importer import ImportSummary


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def echo_readings(readings: List[Dict[str, Any]]) -> None:
    if not readings:
        typer.echo("No readings recorded.")
        return
    for reading in readings:
        typer.echo(f"  - {reading.get('time')}  {reading.get('value')}")


def render_data(payload: Dict[str, Any]) -> None:
    echo_heading("Sensor Data")
    echo_key_values(
        [
            ("device", payload.get("device")),
            ("date", payload.get("date")),
        ]
    )

    if "sensor" in payload:
        typer.echo(f"sensor: {payload.get('sensor')}")
        typer.echo()
        echo_readings(payload.get("data") or [])
        return

    grouped = payload.get("sensorData") or {}
    if not grouped:
        typer.echo()
        typer.echo("No readings recorded.")
        return
    for sensor, readings in grouped.items():
        typer.echo()
        echo_heading(sensor)
        echo_readings(readings)


def render_import_summary(summary: ImportSummary) -> None:
    echo_heading("Import Summary")
    echo_key_values(
        [
            ("devices", len(summary.devices)),
            ("batches", summary.batch_count),
            ("records", summary.record_count),
            ("flushes", summary.flush_count),
        ]
    )
    if summary.failed_devices:
        typer.secho(
            f"failed devices: {', '.join(summary.failed_devices)}",
            fg=typer.colors.RED,
        )
