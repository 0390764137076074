from __future__ import annotations

import pytest

from datastore.mock_documents import MockDocumentCollection
from services.cache import DocumentCacheService
from storage.mock_blob import MockBlobContainer


@pytest.fixture()
def container() -> MockBlobContainer:
    return MockBlobContainer(name="test", download_chunks=7)


@pytest.fixture()
def collection() -> MockDocumentCollection:
    return MockDocumentCollection(name="test")


@pytest.fixture()
def cache(collection: MockDocumentCollection) -> DocumentCacheService:
    return DocumentCacheService(collection=collection)
