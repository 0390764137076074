"""Tests for device/sensor file discovery and batch production."""

from __future__ import annotations

import asyncio
from datetime import date, datetime
from typing import Optional

import pytest

from models.records import SensorType, UnitData
from services.enumerator import DeviceDataEnumerator
from services.parser import CsvRecordParser
from storage.mock_blob import MockBlobContainer
from factories import csv_bytes, zip_bytes


def _collect(enumerator: DeviceDataEnumerator, device: str, sensor: SensorType) -> list[list[UnitData]]:
    async def _run() -> list[list[UnitData]]:
        return [batch async for batch in enumerator.iter_batches(device, sensor)]

    return asyncio.run(_run())


@pytest.mark.parametrize("sensor_type", list(SensorType))
def test_batches_per_daily_file_in_listing_order(container: MockBlobContainer, sensor_type: SensorType) -> None:
    folder = f"dockan/{sensor_type.sensor_name}"
    container.put_blob(f"{folder}/2019-01-02.csv", csv_bytes(("2019-01-02T10:00:00", "2")))
    container.put_blob(f"{folder}/2019-01-01.csv", csv_bytes(("2019-01-01T10:00:00", "1")))
    container.put_blob(f"{folder}/notes.txt", b"ignored")
    enumerator = DeviceDataEnumerator(container, CsvRecordParser())

    batches = _collect(enumerator, "dockan", sensor_type)

    assert batches == [
        [UnitData(datetime(2019, 1, 1, 10, 0, 0), 1)],
        [UnitData(datetime(2019, 1, 2, 10, 0, 0), 2)],
    ]


def test_archive_entries_follow_daily_files_and_corrupt_entries_are_skipped(
    container: MockBlobContainer,
) -> None:
    container.put_blob("dockan/rainfall/2020-05-01.csv", csv_bytes(("2020-05-01T00:00:01", "5")))
    archive = zip_bytes(
        [
            ("2018-01-01.csv", csv_bytes(("2018-01-01T01:00:00", "10"))),
            ("2018-01-02.csv", csv_bytes(("2018-01-02T01:00:00", "20"))),
            ("2018-01-03.csv", csv_bytes(("2018-01-03T01:00:00", "30"))),
        ],
        corrupt=["2018-01-02.csv"],
    )
    container.put_blob("dockan/rainfall/historical.zip", archive)
    enumerator = DeviceDataEnumerator(container, CsvRecordParser())

    batches = _collect(enumerator, "dockan", SensorType.RAINFALL)

    assert [batch[0].value for batch in batches] == [5, 10, 30]


def test_filename_that_is_not_a_date_raises(container: MockBlobContainer) -> None:
    container.put_blob("dockan/humidity/2019-1-01.csv", csv_bytes(("2019-01-01T00:00:00", "1")))
    enumerator = DeviceDataEnumerator(container, CsvRecordParser())

    with pytest.raises(ValueError):
        _collect(enumerator, "dockan", SensorType.HUMIDITY)


def test_blank_device_name_is_rejected(container: MockBlobContainer) -> None:
    enumerator = DeviceDataEnumerator(container, CsvRecordParser())

    with pytest.raises(ValueError):
        _collect(enumerator, "  ", SensorType.HUMIDITY)


def test_missing_sensor_folder_yields_nothing(container: MockBlobContainer) -> None:
    enumerator = DeviceDataEnumerator(container, CsvRecordParser())

    assert _collect(enumerator, "dockan", SensorType.TEMPERATURE) == []


def test_get_all_devices_lists_top_level_folders(container: MockBlobContainer) -> None:
    container.put_blob("beta/humidity/2019-01-01.csv", b"")
    container.put_blob("alpha/rainfall/2019-01-01.csv", b"")
    container.put_blob("readme.txt", b"")
    enumerator = DeviceDataEnumerator(container, CsvRecordParser())

    assert asyncio.run(enumerator.get_all_devices()) == ["alpha", "beta"]


def test_date_from_filename() -> None:
    enumerator = DeviceDataEnumerator(MockBlobContainer(name="test"), CsvRecordParser())

    assert enumerator.date_from_filename("2019-01-13.csv") == date(2019, 1, 13)
    with pytest.raises(ValueError):
        enumerator.date_from_filename("2019-02-30.csv")


class _CountingContainer(MockBlobContainer):
    def __init__(self) -> None:
        super().__init__(name="counting")
        self.fetched: list[str] = []
        self.archives_opened = 0

    async def get_file(self, path: str):
        self.fetched.append(path)
        return await super().get_file(path)

    async def download_parallel(self, path: str) -> Optional[bytes]:
        self.archives_opened += 1
        return await super().download_parallel(path)


def test_batches_are_fetched_lazily() -> None:
    container = _CountingContainer()
    for day in range(1, 4):
        container.put_blob(
            f"dockan/humidity/2019-01-0{day}.csv",
            csv_bytes((f"2019-01-0{day}T00:00:00", str(day))),
        )
    container.put_blob(
        "dockan/humidity/historical.zip",
        zip_bytes([("old.csv", csv_bytes(("2017-01-01T00:00:00", "9")))]),
    )
    enumerator = DeviceDataEnumerator(container, CsvRecordParser())

    async def _take_first() -> list[UnitData]:
        batches = enumerator.iter_batches("dockan", SensorType.HUMIDITY)
        try:
            return await batches.__anext__()
        finally:
            await batches.aclose()

    first = asyncio.run(_take_first())

    assert [record.value for record in first] == [1]
    assert container.fetched == ["dockan/humidity/2019-01-01.csv"]
    assert container.archives_opened == 0


def test_listed_file_missing_at_fetch_is_skipped(caplog) -> None:
    class VanishingContainer(MockBlobContainer):
        async def get_file(self, path: str):
            if path.endswith("2019-01-01.csv"):
                return None
            return await super().get_file(path)

    container = VanishingContainer(name="test")
    container.put_blob("dockan/humidity/2019-01-01.csv", csv_bytes(("2019-01-01T00:00:00", "1")))
    container.put_blob("dockan/humidity/2019-01-02.csv", csv_bytes(("2019-01-02T00:00:00", "2")))
    enumerator = DeviceDataEnumerator(container, CsvRecordParser())

    batches = _collect(enumerator, "dockan", SensorType.HUMIDITY)

    assert [batch[0].value for batch in batches] == [2]
    assert any("disappeared" in record.getMessage() for record in caplog.records)
