from __future__ import annotations

from typing import Any, Protocol

Document = dict[str, Any]


class DocumentStore(Protocol):
    """
    Collection-scoped document CRUD. Documents are keyed by their `id` field.
    """

    async def get_all(self, collection: str) -> list[Document]: ...
    async def put(self, collection: str, document: Document) -> None: ...
    async def put_bulk(self, collection: str, documents: list[Document]) -> None: ...
    async def delete(self, collection: str, doc_id: str | int) -> None: ...
    async def clear(self, collection: str) -> None: ...
