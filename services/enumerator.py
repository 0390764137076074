"""Discovery of per-device sensor files and lazy batch production."""

from __future__ import annotations

import logging
import re
from contextlib import aclosing
from datetime import date, datetime
from typing import AsyncIterator

from models.interfaces import BlobContainer
from models.records import SensorType, UnitData
from services.parser import CsvRecordParser
from storage.paths import build_path

logger = logging.getLogger(__name__)

HISTORICAL_FILENAME = "historical.zip"
DATE_FORMAT = "%Y-%m-%d"
_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")


class DeviceDataEnumerator:
    """Produces one parsed batch per daily file, then one per archive entry."""

    def __init__(self, container: BlobContainer, parser: CsvRecordParser) -> None:
        self.container = container
        self.parser = parser

    async def get_all_devices(self) -> list[str]:
        return await self.container.list_folders("")

    async def iter_batches(
        self, device_name: str, sensor_type: SensorType
    ) -> AsyncIterator[list[UnitData]]:
        """Yield parsed batches for one device and sensor.

        Nothing is fetched until the consumer asks for the next batch, and the
        historical archive is only opened once the daily files are exhausted.
        Raises ``ValueError`` for a daily file whose name is not a date.
        """
        if not device_name or not device_name.strip():
            raise ValueError("Device name cannot be empty.")

        directory = build_path(device_name, sensor_type.sensor_name)
        extension = self.parser.file_extension
        filenames = await self.container.list_files(directory)

        for filename in filenames:
            if not filename.endswith(extension):
                continue

            file_date = self.date_from_filename(filename)
            path = build_path(directory, file_date.strftime(DATE_FORMAT) + extension)
            stream = await self.container.get_file(path)
            if stream is None:
                logger.warning(
                    "Listed file disappeared before it could be read",
                    extra={"device": device_name, "sensor": sensor_type.sensor_name, "blob_path": path},
                )
                continue

            with stream:
                batch = self.parser.parse(stream)
            yield batch

        if HISTORICAL_FILENAME not in filenames:
            return

        archive_path = build_path(directory, HISTORICAL_FILENAME)
        logger.info(
            "Reading historical archive",
            extra={"device": device_name, "sensor": sensor_type.sensor_name, "blob_path": archive_path},
        )
        async with aclosing(self.container.iter_zip_entries(archive_path)) as entries:
            async for entry in entries:
                with entry:
                    batch = self.parser.parse(entry)
                yield batch

    def date_from_filename(self, filename: str) -> date:
        stem = filename[: -len(self.parser.file_extension)]
        if not _DATE_PATTERN.fullmatch(stem):
            raise ValueError(f"File name {filename!r} does not match YYYY-MM-DD{self.parser.file_extension}.")
        return datetime.strptime(stem, DATE_FORMAT).date()
