from __future__ import annotations

from typing import Any, AsyncGenerator, BinaryIO, Mapping, Optional, Protocol, runtime_checkable


@runtime_checkable
class BlobContainer(Protocol):
    async def list_files(self, path: str) -> list[str]:
        ...

    async def list_folders(self, path: str) -> list[str]:
        ...

    async def get_file(self, path: str) -> Optional[BinaryIO]:
        ...

    def iter_zip_entries(self, path: str) -> AsyncGenerator[BinaryIO, None]:
        ...


@runtime_checkable
class DocumentCollection(Protocol):
    async def find(self, filter: Mapping[str, Any]) -> list[dict[str, Any]]:
        ...

    async def replace_one(
        self,
        filter: Mapping[str, Any],
        replacement: Mapping[str, Any],
        upsert: bool = False,
    ) -> Any:
        ...

    async def create_index(self, field: str, unique: bool = False) -> str:
        ...
