"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from typing import Dict, Iterable, List

from pydantic import BaseModel, ConfigDict, Field

from models.records import SensorData

TIME_FORMAT = "%H:%M:%S"


class ReadingModel(BaseModel):
    """One reading as returned to API clients."""

    value: int
    time: str = Field(..., description="Time of day formatted as HH:mm:ss.")

    @classmethod
    def from_sensor_data(cls, reading: SensorData) -> ReadingModel:
        return cls(value=reading.value, time=reading.timestamp.strftime(TIME_FORMAT))


class SensorDataResponse(BaseModel):
    """Readings of a single sensor for one device and day."""

    device: str
    date: str
    sensor: str
    data: List[ReadingModel] = Field(default_factory=list)


class AllSensorsDataResponse(BaseModel):
    """Readings of every sensor for one device and day, keyed by sensor name."""

    model_config = ConfigDict(populate_by_name=True)

    device: str
    date: str
    sensor_data: Dict[str, List[ReadingModel]] = Field(
        default_factory=dict, alias="sensorData"
    )


class FileUploadResponse(BaseModel):
    """Immediate response payload after accepting a sensor file."""

    path: str = Field(..., description="Blob path the file was stored under.")


def group_by_sensor(readings: Iterable[SensorData]) -> Dict[str, List[ReadingModel]]:
    grouped: Dict[str, List[ReadingModel]] = {}
    for reading in readings:
        grouped.setdefault(reading.sensor_type.sensor_name, []).append(
            ReadingModel.from_sensor_data(reading)
        )
    return grouped
