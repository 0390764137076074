from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_CONTAINER_NAME_ENV = "BLOB_CONTAINER_NAME"
_CONTAINER_ROOT_ENV = "BLOB_ROOT_PATH"
_DOWNLOAD_CHUNKS_ENV = "BLOB_DOWNLOAD_CHUNKS"
_DB_NAME_ENV = "CACHE_DB_NAME"
_COLLECTION_NAME_ENV = "CACHE_COLLECTION_NAME"
_COLLECTION_PATH_ENV = "CACHE_PERSISTENCE_PATH"
_FLUSH_BATCHES_ENV = "IMPORT_FLUSH_BATCHES"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    container_name: str
    container_root_path: Optional[str]
    download_chunks: int
    database_name: str
    collection_name: str
    collection_persistence_path: Optional[str]
    flush_batches: int
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        container_name=_read_str_env(_CONTAINER_NAME_ENV, "iot"),
        container_root_path=_read_optional_env(_CONTAINER_ROOT_ENV, "./tmp/blobs"),
        download_chunks=_read_positive_int(_DOWNLOAD_CHUNKS_ENV, 100),
        database_name=_read_str_env(_DB_NAME_ENV, "sensors"),
        collection_name=_read_str_env(_COLLECTION_NAME_ENV, "sensor_data"),
        collection_persistence_path=_read_optional_env(
            _COLLECTION_PATH_ENV, "./tmp/cache_db.json"
        ),
        flush_batches=_read_positive_int(_FLUSH_BATCHES_ENV, 10),
        log_level=_read_log_level("INFO"),
    )
