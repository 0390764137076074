"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum


class SensorType(IntEnum):
    """Closed set of reading kinds. The integer value is the persisted form."""

    HUMIDITY = 0
    RAINFALL = 1
    TEMPERATURE = 2

    @property
    def sensor_name(self) -> str:
        """Lower-case name used in blob paths and API routes."""
        return self.name.lower()

    @classmethod
    def from_name(cls, name: str) -> SensorType:
        """Resolve a textual sensor name, ignoring case and surrounding blanks."""
        member = cls.__members__.get((name or "").strip().upper())
        if member is None:
            raise ValueError(f"Unknown sensor type {name!r}.")
        return member


@dataclass(frozen=True, slots=True)
class UnitData:
    """A single timestamped reading parsed from a CSV row."""

    timestamp: datetime
    value: int


@dataclass(frozen=True, slots=True)
class SensorData:
    """A reading loaded back from the store together with its sensor type."""

    timestamp: datetime
    value: int
    sensor_type: SensorType
