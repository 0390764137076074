from __future__ import annotations

import dataclasses
from datetime import datetime

import pytest

from models.records import SensorType, UnitData


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("humidity", SensorType.HUMIDITY),
        ("RAINFALL", SensorType.RAINFALL),
        (" Temperature ", SensorType.TEMPERATURE),
    ],
)
def test_sensor_type_from_name(name: str, expected: SensorType) -> None:
    assert SensorType.from_name(name) is expected


@pytest.mark.parametrize("name", ["", "wind", "humid", "0"])
def test_sensor_type_from_unknown_name_raises(name: str) -> None:
    with pytest.raises(ValueError):
        SensorType.from_name(name)


def test_sensor_name_round_trips() -> None:
    for sensor_type in SensorType:
        assert SensorType.from_name(sensor_type.sensor_name) is sensor_type
    assert [sensor.sensor_name for sensor in SensorType] == ["humidity", "rainfall", "temperature"]


def test_unit_data_is_immutable_and_compared_by_value() -> None:
    reading = UnitData(datetime(2020, 12, 24, 13, 45, 10), 10)

    assert reading == UnitData(datetime(2020, 12, 24, 13, 45, 10), 10)
    assert reading != UnitData(datetime(2020, 12, 24, 13, 45, 10), 11)
    with pytest.raises(dataclasses.FrozenInstanceError):
        reading.value = 5  # type: ignore[misc]
