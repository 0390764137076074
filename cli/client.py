from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, NoReturn, Optional

import httpx
import typer

from cli.config import CLIConfig

_API_PREFIX = "/api/v1/devices"


class ApiClient:
    """Minimal HTTP client for the sensor data API."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def upload_file(self, device: str, sensor: str, path: Path) -> str:
        if not path.is_file():
            raise typer.BadParameter(f"Path {path} is not a file.")

        try:
            with path.open("rb") as handle:
                response = self._client.post(
                    f"{_API_PREFIX}/{device}/{sensor}/files",
                    files={"file": (path.name, handle, "text/csv")},
                )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        payload = response.json()
        stored_path = payload.get("path")
        if not isinstance(stored_path, str):
            raise typer.BadParameter("Unexpected response payload when uploading file.")
        return stored_path

    def get_data(self, device: str, date: str, sensor: Optional[str] = None) -> Dict[str, Any]:
        url = f"{_API_PREFIX}/{device}/data/{date}"
        if sensor:
            url = f"{url}/{sensor}"
        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> NoReturn:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except ValueError:
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
