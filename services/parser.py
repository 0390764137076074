"""CSV parsing for per-day sensor files."""

from __future__ import annotations

import csv
import io
import logging
import re
from datetime import datetime, timezone
from typing import BinaryIO, Union

from dateutil import parser as date_parser

from models.records import UnitData

logger = logging.getLogger(__name__)

_INTEGER_PATTERN = re.compile(r"\s*[+-]?\d+\s*")
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


class CsvRecordParser:
    """Turns headerless ``timestamp,value`` rows into :class:`UnitData`.

    Rows whose timestamp or value cannot be parsed are skipped; a malformed row
    never stops the rows after it from being read.
    """

    file_extension = ".csv"

    def parse(self, source: Union[BinaryIO, bytes]) -> list[UnitData]:
        raw = source if isinstance(source, bytes) else source.read()
        text = io.StringIO(raw.decode("utf-8-sig", errors="replace"), newline="")
        reader = csv.reader(text)

        records: list[UnitData] = []
        row_number = 0
        while True:
            row_number += 1
            try:
                row = next(reader)
            except StopIteration:
                break
            except csv.Error as exc:
                self._skip(row_number, f"malformed row: {exc}")
                continue

            if len(row) < 2:
                if row:
                    self._skip(row_number, "missing value column")
                continue

            try:
                timestamp = self.parse_timestamp(row[0])
            except (ValueError, OverflowError):
                self._skip(row_number, "invalid timestamp")
                continue

            try:
                value = self.parse_value(row[1])
            except ValueError:
                self._skip(row_number, "invalid integer value")
                continue

            records.append(UnitData(timestamp=timestamp, value=value))

        return records

    @staticmethod
    def parse_timestamp(value: str) -> datetime:
        # Some exports append extra fields to the timestamp after a semicolon.
        candidate = value.split(";", 1)[0].strip()
        if not candidate:
            raise ValueError("Timestamp is empty.")

        iso_candidate = candidate[:-1] + "+00:00" if candidate.endswith("Z") else candidate
        try:
            parsed = datetime.fromisoformat(iso_candidate)
        except ValueError:
            parsed = date_parser.parse(candidate)

        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)

        return parsed.replace(microsecond=0)

    @staticmethod
    def parse_value(value: str) -> int:
        if not _INTEGER_PATTERN.fullmatch(value):
            raise ValueError(f"Invalid integer {value!r}.")
        parsed = int(value)
        if not _INT32_MIN <= parsed <= _INT32_MAX:
            raise ValueError(f"Integer {value!r} is out of range.")
        return parsed

    @staticmethod
    def _skip(row_number: int, reason: str) -> None:
        logger.debug("Skipping row", extra={"row_number": row_number, "reason": reason})
