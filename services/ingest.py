"""Single-file ingestion run whenever a new sensor file lands in the container."""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import BinaryIO, Optional, Tuple

from models.records import SensorType
from services.cache import DocumentCacheService, build_default_cache_service
from services.parser import CsvRecordParser

logger = logging.getLogger(__name__)

_TRIGGER_PATH = re.compile(r"(?P<device>[^/]+)/(?P<sensor>[^/]+)/(?P<name>[^/]+)\.csv")


def parse_trigger_path(path: str) -> Optional[Tuple[str, str, str]]:
    """Split ``{device}/{sensor}/{name}.csv`` into its parts, or return ``None``."""
    match = _TRIGGER_PATH.fullmatch(path.strip("/"))
    if match is None:
        return None
    return match.group("device"), match.group("sensor"), match.group("name")


class BlobIngestFunction:
    def __init__(self, cache: DocumentCacheService, parser: CsvRecordParser) -> None:
        self.cache = cache
        self.parser = parser

    async def run(
        self,
        blob: BinaryIO,
        device_name: str,
        sensor_name: str,
        file_name: str,
    ) -> int:
        """Parse and store one uploaded file; returns the number of records saved.

        Every failure is logged and swallowed so the trigger never redelivers
        the same file.
        """
        blob_path = f"{device_name}/{sensor_name}/{file_name}"
        logger.info("Ingestion starts", extra={"blob_path": blob_path})

        saved = 0
        try:
            records = self.parser.parse(blob)
            sensor_type = SensorType.from_name(sensor_name)
            if records:
                await self.cache.save(device_name, sensor_type, records)
                saved = len(records)
        except Exception:
            logger.exception("Error occurred while saving data", extra={"blob_path": blob_path})

        logger.info("Ingestion ends", extra={"blob_path": blob_path, "record_count": saved})
        return saved


@lru_cache
def build_default_ingest_function() -> BlobIngestFunction:
    return BlobIngestFunction(cache=build_default_cache_service(), parser=CsvRecordParser())
