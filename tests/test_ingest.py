"""Tests for the single-file ingestion entry point."""

from __future__ import annotations

import asyncio
import io
import logging
from datetime import date

import pytest

from models.records import SensorType
from services.cache import DocumentCacheService
from services.ingest import BlobIngestFunction, parse_trigger_path
from services.parser import CsvRecordParser
from factories import csv_bytes


def _blob() -> io.BytesIO:
    return io.BytesIO(
        csv_bytes(
            ("2020-04-20T13:45:10", "10"),
            ("2020-04-20T09:58:45", "20"),
            ("2020-04-21T23:01:32", "30"),
        )
    )


@pytest.mark.parametrize(
    ("sensor_name", "sensor_type"),
    [
        ("humidity", SensorType.HUMIDITY),
        ("Rainfall", SensorType.RAINFALL),
        ("TEMPERATURE", SensorType.TEMPERATURE),
    ],
)
def test_run_saves_records_for_each_sensor(
    cache: DocumentCacheService, sensor_name: str, sensor_type: SensorType
) -> None:
    function = BlobIngestFunction(cache=cache, parser=CsvRecordParser())

    saved = asyncio.run(function.run(_blob(), "TestDevice", sensor_name, "2020-04-20"))

    assert saved == 3
    loaded = asyncio.run(cache.load("TestDevice", date(2020, 4, 20), sensor_type))
    assert [item.value for item in loaded] == [20, 10]


def test_run_skips_save_for_empty_files(cache: DocumentCacheService, collection) -> None:
    function = BlobIngestFunction(cache=cache, parser=CsvRecordParser())

    saved = asyncio.run(function.run(io.BytesIO(b"garbage\n"), "TestDevice", "humidity", "2020-04-20"))

    assert saved == 0
    assert collection.count_documents() == 0


def test_run_logs_and_swallows_failures(cache: DocumentCacheService, caplog) -> None:
    function = BlobIngestFunction(cache=cache, parser=CsvRecordParser())

    with caplog.at_level(logging.INFO):
        saved = asyncio.run(function.run(_blob(), "TestDevice", "pressure", "2020-04-20"))

    assert saved == 0
    messages = [record.getMessage() for record in caplog.records if record.name == "services.ingest"]
    assert messages[0] == "Ingestion starts"
    assert "Error occurred while saving data" in messages
    assert messages[-1] == "Ingestion ends"


def test_run_swallows_store_errors(caplog) -> None:
    class FailingCache:
        async def save(self, device_name, sensor_type, records):
            raise ConnectionError("store unavailable")

    function = BlobIngestFunction(cache=FailingCache(), parser=CsvRecordParser())

    assert asyncio.run(function.run(_blob(), "TestDevice", "humidity", "2020-04-20")) == 0
    assert any(record.levelname == "ERROR" for record in caplog.records)


def test_parse_trigger_path() -> None:
    assert parse_trigger_path("dockan/humidity/2020-04-20.csv") == ("dockan", "humidity", "2020-04-20")
    assert parse_trigger_path("/dockan/humidity/2020-04-20.csv") == ("dockan", "humidity", "2020-04-20")
    assert parse_trigger_path("dockan/humidity/historical.zip") is None
    assert parse_trigger_path("dockan/2020-04-20.csv") is None
