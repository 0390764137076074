"""Per device/date/sensor document storage for parsed readings."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from datetime import date, datetime
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from datastore.mock_documents import ID_FIELD, build_default_collection
from models.interfaces import DocumentCollection
from models.records import SensorData, SensorType, UnitData

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M:%S"
INDEXED_FIELDS = ("deviceName", "date", "sensorType")


class StoredValue(BaseModel):
    """A reading inside a day document."""

    time: str
    value: int


class StoredDocument(BaseModel):
    """All readings of one device and sensor for one calendar day."""

    model_config = ConfigDict(populate_by_name=True)

    device_name: str = Field(..., alias="deviceName")
    date: str
    sensor_type: SensorType = Field(..., alias="sensorType")
    values: List[StoredValue] = Field(default_factory=list)


class DocumentCacheService:
    def __init__(self, collection: DocumentCollection) -> None:
        self.collection = collection

    async def prepare_storage(self) -> None:
        """Create the lookup indexes. Meant to run once per importer process."""
        for field in INDEXED_FIELDS:
            await self.collection.create_index(field, unique=False)
        logger.info("Storage indexes ensured", extra={"reason": ",".join(INDEXED_FIELDS)})

    async def save(
        self,
        device_name: str,
        sensor_type: SensorType,
        records: Iterable[UnitData],
    ) -> int:
        """Replace the day documents covered by ``records``.

        Each calendar day becomes one document holding that day's readings in
        time order; all days are written concurrently. Returns the number of
        documents written.
        """
        _require_device(device_name)

        groups: Dict[date, list[UnitData]] = defaultdict(list)
        for record in records:
            groups[record.timestamp.date()].append(record)
        if not groups:
            return 0

        results = await asyncio.gather(
            *(
                self._upsert(device_name, sensor_type, day, readings)
                for day, readings in groups.items()
            ),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

        logger.debug(
            "Saved day documents",
            extra={
                "device": device_name,
                "sensor": sensor_type.sensor_name,
                "document_count": len(groups),
            },
        )
        return len(groups)

    async def load(
        self,
        device_name: str,
        day: date,
        sensor_type: Optional[SensorType] = None,
    ) -> list[SensorData]:
        _require_device(device_name)
        documents = await self.collection.find(_document_filter(device_name, day, sensor_type))

        readings: list[SensorData] = []
        for raw in documents:
            payload = {key: value for key, value in raw.items() if key != ID_FIELD}
            document = StoredDocument.model_validate(payload)
            document_day = datetime.strptime(document.date, DATE_FORMAT).date()
            for stored in document.values:
                time_of_day = datetime.strptime(stored.time, TIME_FORMAT).time()
                readings.append(
                    SensorData(
                        timestamp=datetime.combine(document_day, time_of_day),
                        value=stored.value,
                        sensor_type=document.sensor_type,
                    )
                )
        return readings

    async def _upsert(
        self,
        device_name: str,
        sensor_type: SensorType,
        day: date,
        readings: list[UnitData],
    ) -> None:
        document = StoredDocument(
            device_name=device_name,
            date=day.strftime(DATE_FORMAT),
            sensor_type=sensor_type,
            values=[
                StoredValue(time=reading.timestamp.strftime(TIME_FORMAT), value=reading.value)
                for reading in sorted(readings, key=lambda reading: reading.timestamp)
            ],
        )
        await self.collection.replace_one(
            _document_filter(device_name, day, sensor_type),
            document.model_dump(by_alias=True, mode="json"),
            upsert=True,
        )


def _require_device(device_name: str) -> None:
    if not device_name or not device_name.strip():
        raise ValueError("Device name cannot be empty.")


def _document_filter(
    device_name: str,
    day: date,
    sensor_type: Optional[SensorType] = None,
) -> dict[str, Any]:
    filter: dict[str, Any] = {"deviceName": device_name, "date": day.strftime(DATE_FORMAT)}
    if sensor_type is not None:
        filter["sensorType"] = int(sensor_type)
    return filter


@lru_cache
def build_default_cache_service() -> DocumentCacheService:
    return DocumentCacheService(collection=build_default_collection())
