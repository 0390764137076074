"""Bulk import of every device's files into the document cache."""

from __future__ import annotations

import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

from models.records import SensorType, UnitData
from services.cache import DocumentCacheService, build_default_cache_service
from services.enumerator import DeviceDataEnumerator
from services.parser import CsvRecordParser
from settings import get_settings
from storage.mock_blob import build_default_container

logger = logging.getLogger(__name__)

DEFAULT_FLUSH_BATCHES = 10


@dataclass
class ImportSummary:
    """Counters collected over one import run."""

    devices: List[str] = field(default_factory=list)
    failed_devices: List[str] = field(default_factory=list)
    batch_count: int = 0
    record_count: int = 0
    flush_count: int = 0


class DataImporter:
    """Walks every device and sensor and writes their batches to the cache.

    Records are accumulated per device and sensor and flushed every
    ``flush_batches`` batches, plus once more for whatever is left when the
    sensor's files run out. A failure stops only the device it happened on.
    """

    def __init__(
        self,
        enumerator: DeviceDataEnumerator,
        cache: DocumentCacheService,
        flush_batches: int = DEFAULT_FLUSH_BATCHES,
        prepare_storage: bool = False,
    ) -> None:
        if flush_batches < 1:
            raise ValueError("flush_batches must be a positive integer.")
        self.enumerator = enumerator
        self.cache = cache
        self.flush_batches = flush_batches
        self.prepare_storage = prepare_storage

    async def run(self) -> ImportSummary:
        logger.info("Importer starts")
        summary = ImportSummary()

        if self.prepare_storage:
            await self.cache.prepare_storage()

        devices = await self.enumerator.get_all_devices()
        logger.info("Available devices: %s", ", ".join(devices))

        for device in devices:
            summary.devices.append(device)
            try:
                for sensor_type in SensorType:
                    await self._import_sensor(device, sensor_type, summary)
            except Exception:
                summary.failed_devices.append(device)
                logger.exception(
                    "Error occurred while importing device", extra={"device": device}
                )

        logger.info(
            "Importer ends",
            extra={
                "batch_count": summary.batch_count,
                "record_count": summary.record_count,
                "flush_count": summary.flush_count,
            },
        )
        return summary

    async def _import_sensor(
        self, device: str, sensor_type: SensorType, summary: ImportSummary
    ) -> None:
        logger.info(
            "Fetching data", extra={"device": device, "sensor": sensor_type.sensor_name}
        )
        pending: list[UnitData] = []
        batches_since_flush = 0

        async with aclosing(self.enumerator.iter_batches(device, sensor_type)) as batches:
            async for batch in batches:
                pending.extend(batch)
                batches_since_flush += 1
                summary.batch_count += 1

                if batches_since_flush == self.flush_batches:
                    await self._flush(device, sensor_type, pending, summary)
                    pending = []
                    batches_since_flush = 0

        await self._flush(device, sensor_type, pending, summary)

    async def _flush(
        self,
        device: str,
        sensor_type: SensorType,
        records: list[UnitData],
        summary: ImportSummary,
    ) -> None:
        if not records:
            return
        await self.cache.save(device, sensor_type, records)
        summary.record_count += len(records)
        summary.flush_count += 1
        logger.info(
            "Saved data",
            extra={
                "device": device,
                "sensor": sensor_type.sensor_name,
                "record_count": summary.record_count,
            },
        )


@lru_cache
def build_default_importer(flush_batches: Optional[int] = None) -> DataImporter:
    """Factory that wires the importer with the configured stores."""
    settings = get_settings()
    enumerator = DeviceDataEnumerator(
        container=build_default_container(),
        parser=CsvRecordParser(),
    )
    return DataImporter(
        enumerator=enumerator,
        cache=build_default_cache_service(),
        flush_batches=flush_batches or settings.flush_batches,
        prepare_storage=True,
    )
