from __future__ import annotations

import asyncio
import copy
import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Mapping, Optional, Tuple
from uuid import uuid4

from settings import get_settings

ID_FIELD = "_id"

_LookupKey = Tuple[Any, ...]


@dataclass(frozen=True)
class ReplaceResult:
    matched_count: int
    upserted_id: Optional[str] = None


class MockDocumentCollection:
    """Document collection supporting exact-field queries and native upserts.

    ``replace_one`` finds its target through lookup tables keyed by the filter's
    field values. A table is built the first time a combination of filter
    fields is used and kept current on every write. Writes to
    ``persistence_path`` run in a worker thread, and a writer that finds a newer
    snapshot already on disk skips its own.
    """

    def __init__(
        self,
        name: str,
        database: str = "sensors",
        persistence_path: Optional[Path] = None,
    ) -> None:
        self.name = name
        self.database = database
        self.persistence_path = persistence_path
        self._documents: Dict[str, dict[str, Any]] = {}
        self._indexes: Dict[str, dict[str, Any]] = {}
        self._lookups: Dict[Tuple[str, ...], Dict[_LookupKey, str]] = {}
        self._lock = Lock()
        self._write_lock = Lock()
        self._version = 0
        self._persisted_version = 0
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    async def find(self, filter: Mapping[str, Any]) -> list[dict[str, Any]]:
        with self._lock:
            return [
                copy.deepcopy(document)
                for document in self._documents.values()
                if _matches(document, filter)
            ]

    async def replace_one(
        self,
        filter: Mapping[str, Any],
        replacement: Mapping[str, Any],
        upsert: bool = False,
    ) -> ReplaceResult:
        """Replace the first document matching ``filter``.

        With ``upsert`` the replacement is inserted when nothing matches. The
        lookup and the write happen under one lock, so two upserts on the same
        key never create two documents.
        """
        if ID_FIELD in replacement:
            raise ValueError("Replacement documents must not carry an _id.")

        with self._lock:
            document_id = self._find_id(filter)
            if document_id is None and not upsert:
                return ReplaceResult(matched_count=0)

            if document_id is None:
                document_id = uuid4().hex
                result = ReplaceResult(matched_count=0, upserted_id=document_id)
            else:
                result = ReplaceResult(matched_count=1)
            self._store(document_id, {ID_FIELD: document_id, **copy.deepcopy(dict(replacement))})

        await self._flush()
        return result

    async def create_index(self, field: str, unique: bool = False) -> str:
        name = f"{field}_1"
        with self._lock:
            self._indexes[name] = {"key": {field: 1}, "unique": unique}
            self._version += 1
        await self._flush()
        return name

    def index_information(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._indexes)

    def count_documents(self) -> int:
        with self._lock:
            return len(self._documents)

    def _find_id(self, filter: Mapping[str, Any]) -> Optional[str]:
        fields = tuple(sorted(filter))
        key = _lookup_key(filter, fields)
        if key is None:
            return next(
                (
                    document_id
                    for document_id, document in self._documents.items()
                    if _matches(document, filter)
                ),
                None,
            )
        lookup = self._lookups.get(fields)
        if lookup is None:
            lookup = self._build_lookup(fields)
        return lookup.get(key)

    def _build_lookup(self, fields: Tuple[str, ...]) -> Dict[_LookupKey, str]:
        lookup: Dict[_LookupKey, str] = {}
        for document_id, document in self._documents.items():
            key = _lookup_key(document, fields)
            if key is not None:
                lookup.setdefault(key, document_id)
        self._lookups[fields] = lookup
        return lookup

    def _store(self, document_id: str, document: dict[str, Any]) -> None:
        previous = self._documents.get(document_id)
        self._documents[document_id] = document
        self._version += 1
        for fields, lookup in list(self._lookups.items()):
            old_key = _lookup_key(previous, fields) if previous is not None else None
            new_key = _lookup_key(document, fields)
            if old_key is not None and old_key != new_key:
                # Another document may share the old key; rebuild on next use.
                del self._lookups[fields]
            elif new_key is not None:
                lookup.setdefault(new_key, document_id)

    async def _flush(self) -> None:
        if self.persistence_path:
            await asyncio.to_thread(self._persist)

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        with self._write_lock:
            with self._lock:
                if self._version == self._persisted_version:
                    return
                version = self._version
                documents = dict(self._documents)
                indexes = copy.deepcopy(self._indexes)
            payload = {"documents": documents, "indexes": indexes}
            self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))
            self._persisted_version = version

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        self._documents = dict(data.get("documents", {}))
        self._indexes = dict(data.get("indexes", {}))


def _matches(document: Mapping[str, Any], filter: Mapping[str, Any]) -> bool:
    return all(
        field in document and document[field] == value for field, value in filter.items()
    )


def _lookup_key(source: Mapping[str, Any], fields: Tuple[str, ...]) -> Optional[_LookupKey]:
    if any(field not in source for field in fields):
        return None
    key = tuple(source[field] for field in fields)
    try:
        hash(key)
    except TypeError:
        return None
    return key


@lru_cache
def build_default_collection(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> MockDocumentCollection:
    settings = get_settings()
    collection_name = settings.collection_name if name is None else name
    collection_path = settings.collection_persistence_path if path is None else path
    persistence = Path(collection_path) if collection_path else None
    return MockDocumentCollection(
        name=collection_name,
        database=settings.database_name,
        persistence_path=persistence,
    )
