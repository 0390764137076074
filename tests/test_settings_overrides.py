from __future__ import annotations

from typing import Iterable

from datastore.mock_documents import build_default_collection
from services.cache import build_default_cache_service
from services.importer import build_default_importer
from settings import get_settings
from storage.mock_blob import build_default_container


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


_CACHES = (
    get_settings,
    build_default_container,
    build_default_collection,
    build_default_cache_service,
    build_default_importer,
)


def test_environment_overrides_apply(monkeypatch, tmp_path) -> None:
    blob_root = tmp_path / "blobs"
    db_path = tmp_path / "db.json"

    monkeypatch.setenv("BLOB_CONTAINER_NAME", "custom-container")
    monkeypatch.setenv("BLOB_ROOT_PATH", str(blob_root))
    monkeypatch.setenv("BLOB_DOWNLOAD_CHUNKS", "8")
    monkeypatch.setenv("CACHE_DB_NAME", "custom-db")
    monkeypatch.setenv("CACHE_COLLECTION_NAME", "custom-collection")
    monkeypatch.setenv("CACHE_PERSISTENCE_PATH", str(db_path))
    monkeypatch.setenv("IMPORT_FLUSH_BATCHES", "3")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    _clear_caches(_CACHES)

    try:
        settings = get_settings()
        container = build_default_container()
        collection = build_default_collection()
        importer = build_default_importer()

        assert settings.log_level == "DEBUG"
        assert container.name == "custom-container"
        assert container.root_path == blob_root
        assert container.download_chunks == 8
        assert collection.name == "custom-collection"
        assert collection.database == "custom-db"
        assert collection.persistence_path == db_path
        assert importer.flush_batches == 3
        assert importer.prepare_storage is True
        assert importer.cache.collection is collection
    finally:
        _clear_caches(_CACHES)


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("IMPORT_FLUSH_BATCHES", "zero")
    monkeypatch.setenv("BLOB_DOWNLOAD_CHUNKS", "-4")
    monkeypatch.setenv("BLOB_ROOT_PATH", "   ")
    monkeypatch.setenv("CACHE_COLLECTION_NAME", "")
    get_settings.cache_clear()

    try:
        settings = get_settings()

        assert settings.flush_batches == 10
        assert settings.download_chunks == 100
        assert settings.container_root_path is None
        assert settings.collection_name == "sensor_data"
    finally:
        get_settings.cache_clear()
