"""HTTP route definitions for the service."""

from __future__ import annotations

import io
import re
from datetime import date, datetime
from pathlib import Path

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, UploadFile, status

from app.schemas import (
    AllSensorsDataResponse,
    FileUploadResponse,
    ReadingModel,
    SensorDataResponse,
    group_by_sensor,
)
from models.records import SensorType
from services.cache import DocumentCacheService, build_default_cache_service
from services.ingest import BlobIngestFunction, build_default_ingest_function
from services.parser import CsvRecordParser
from storage.mock_blob import MockBlobContainer, build_default_container
from storage.paths import build_path

_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")

router = APIRouter()
devices_router = APIRouter(prefix="/api/v1/devices", tags=["devices"])


def get_cache_service() -> DocumentCacheService:
    return build_default_cache_service()


def get_container() -> MockBlobContainer:
    return build_default_container()


def get_ingest_function() -> BlobIngestFunction:
    return build_default_ingest_function()


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _require_device(device_name: str) -> str:
    if not device_name.strip():
        raise _bad_request("Device name cannot be empty.")
    return device_name


def _is_calendar_date(value: str) -> bool:
    if not _DATE_PATTERN.fullmatch(value):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def _parse_date(value: str) -> date:
    if not _DATE_PATTERN.fullmatch(value):
        raise _bad_request(f"Date {value!r} must use the YYYY-MM-DD format.")
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise _bad_request(f"Date {value!r} is not a valid calendar date.") from exc


def _parse_sensor(value: str) -> SensorType:
    try:
        return SensorType.from_name(value)
    except ValueError as exc:
        raise _bad_request(str(exc)) from exc


@devices_router.get(
    "/{device_name}/data/{day}",
    response_model=AllSensorsDataResponse,
    summary="Readings of every sensor of a device for one day.",
)
async def get_device_data(
    device_name: str,
    day: str,
    cache: DocumentCacheService = Depends(get_cache_service),
) -> AllSensorsDataResponse:
    requested_date = _parse_date(day)
    readings = await cache.load(_require_device(device_name), requested_date)
    return AllSensorsDataResponse(
        device=device_name,
        date=day,
        sensor_data=group_by_sensor(readings),
    )


@devices_router.get(
    "/{device_name}/data/{day}/{sensor}",
    response_model=SensorDataResponse,
    summary="Readings of one sensor of a device for one day.",
)
async def get_sensor_data(
    device_name: str,
    day: str,
    sensor: str,
    cache: DocumentCacheService = Depends(get_cache_service),
) -> SensorDataResponse:
    requested_date = _parse_date(day)
    sensor_type = _parse_sensor(sensor)
    readings = await cache.load(_require_device(device_name), requested_date, sensor_type)
    return SensorDataResponse(
        device=device_name,
        date=day,
        sensor=sensor,
        data=[ReadingModel.from_sensor_data(reading) for reading in readings],
    )


@devices_router.post(
    "/{device_name}/{sensor}/files",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=FileUploadResponse,
    summary="Store a daily CSV file and ingest it in the background.",
)
async def upload_sensor_file(
    device_name: str,
    sensor: str,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(..., description="CSV file with timestamp,value rows."),
    container: MockBlobContainer = Depends(get_container),
    ingest: BlobIngestFunction = Depends(get_ingest_function),
) -> FileUploadResponse:
    _require_device(device_name)
    sensor_type = _parse_sensor(sensor)

    filename = Path(file.filename or "").name
    extension = CsvRecordParser.file_extension
    if not filename.endswith(extension) or filename == extension:
        raise _bad_request(f"Uploaded file must be a {extension} file.")
    stem = filename[: -len(extension)]
    if not _is_calendar_date(stem):
        raise _bad_request(f"Uploaded file name must be YYYY-MM-DD{extension}.")

    contents = await file.read()
    await file.close()
    if not contents:
        raise _bad_request("Uploaded file is empty.")

    try:
        path = container.put_blob(
            build_path(device_name, sensor_type.sensor_name, filename), contents
        )
    except ValueError as exc:
        raise _bad_request(str(exc)) from exc

    background_tasks.add_task(
        ingest.run,
        io.BytesIO(contents),
        device_name,
        sensor_type.sensor_name,
        stem,
    )
    return FileUploadResponse(path=path)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
