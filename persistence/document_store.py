from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

from json_store import atomic_write_json, read_json, read_json_strict

from .collections import COLLECTIONS, ID_FIELD, SCHEMA_VERSION
from .errors import StorageFault, UnknownCollectionError
from .interfaces import Document, DocumentStore
from .locks import GLOBAL_PATH_LOCKS
from . import paths

logger = logging.getLogger(__name__)

MANIFEST_NAME = "_schema.json"


def document_key(document: Mapping[str, Any]) -> str:
    """
    Return the storage key of a document (its `id` as a string).

    Raises StorageFault when the document is not a mapping or has no usable id.
    """
    if not isinstance(document, Mapping):
        raise StorageFault(f"Document must be a JSON object, got {type(document).__name__}")
    doc_id = document.get(ID_FIELD)
    if isinstance(doc_id, bool) or not isinstance(doc_id, (str, int)):
        raise StorageFault(f"Document is missing a string or integer {ID_FIELD!r}")
    key = str(doc_id)
    if not key:
        raise StorageFault(f"Document {ID_FIELD!r} must not be empty")
    return key


class DiskCollectionStore:
    """
    Blocking, file-backed engine for the local document store.

    Layout under `root`:

    - `_schema.json`          {"version": N, "collections": [...]}
    - `<collection>.json`     {"<id>": {...document...}, ...}

    Each collection file is replaced atomically on every write, so a put, a
    bulk put, a delete or a clear is visible entirely or not at all. The
    per-path lock is held across each read-modify-write cycle.
    """

    def __init__(self, root: Path, collections: Sequence[str] = COLLECTIONS):
        self._root = root
        self._collections = tuple(collections)
        self._open_guard = threading.Lock()
        self._opened = False

    @property
    def root(self) -> Path:
        return self._root

    @property
    def collections(self) -> tuple[str, ...]:
        return self._collections

    @property
    def is_open(self) -> bool:
        return self._opened

    def open(self) -> None:
        """
        Create the store directory and any missing collection files.

        Idempotent; existing collection files are never rewritten.
        """
        if self._opened:
            return
        with self._open_guard:
            if self._opened:
                return
            manifest_path = self._root / MANIFEST_NAME
            try:
                self._root.mkdir(parents=True, exist_ok=True)
                manifest = read_json(manifest_path)
                previous = manifest.get("version") if isinstance(manifest, dict) else None
                created = []
                for name in self._collections:
                    path = self._path(name)
                    if not path.exists():
                        atomic_write_json(path, {}, indent=None, sort_keys=False)
                        created.append(name)
                atomic_write_json(
                    manifest_path,
                    {"version": SCHEMA_VERSION, "collections": list(self._collections)},
                )
            except OSError as e:
                raise StorageFault(f"Could not open document store at {self._root}: {e}") from e

            if previous != SCHEMA_VERSION:
                logger.info(
                    "STORE OPEN: %s schema %s -> %s (created: %s)",
                    self._root,
                    previous,
                    SCHEMA_VERSION,
                    ", ".join(created) or "none",
                )
            self._opened = True

    def get_all(self, collection: str) -> list[Document]:
        path = self._prepare(collection)
        with GLOBAL_PATH_LOCKS.held(path):
            return list(self._read(collection, path).values())

    def put(self, collection: str, document: Mapping[str, Any]) -> None:
        key = document_key(document)
        path = self._prepare(collection)
        with GLOBAL_PATH_LOCKS.held(path):
            docs = self._read(collection, path)
            docs[key] = dict(document)
            self._write(collection, path, docs)

    def put_bulk(self, collection: str, documents: Iterable[Mapping[str, Any]]) -> None:
        # Validate every key before touching the file: all-or-nothing.
        staged = [(document_key(d), dict(d)) for d in documents]
        path = self._prepare(collection)
        with GLOBAL_PATH_LOCKS.held(path):
            docs = self._read(collection, path)
            for key, doc in staged:
                docs[key] = doc
            self._write(collection, path, docs)

    def delete(self, collection: str, doc_id: str | int) -> None:
        path = self._prepare(collection)
        with GLOBAL_PATH_LOCKS.held(path):
            docs = self._read(collection, path)
            if docs.pop(str(doc_id), None) is None:
                return
            self._write(collection, path, docs)

    def clear(self, collection: str) -> None:
        path = self._prepare(collection)
        with GLOBAL_PATH_LOCKS.held(path):
            self._write(collection, path, {})

    def _prepare(self, collection: str) -> Path:
        if collection not in self._collections:
            raise UnknownCollectionError(collection)
        self.open()
        return self._path(collection)

    def _path(self, collection: str) -> Path:
        return self._root / f"{collection}.json"

    def _read(self, collection: str, path: Path) -> dict[str, Document]:
        try:
            raw = read_json_strict(path)
        except (OSError, ValueError) as e:
            raise StorageFault(f"Collection {collection!r} is unreadable: {e}") from e
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise StorageFault(f"Collection {collection!r} is corrupted (expected an object)")
        return raw

    def _write(self, collection: str, path: Path, docs: dict[str, Document]) -> None:
        try:
            atomic_write_json(path, docs, indent=None, sort_keys=False)
        except (OSError, TypeError, ValueError) as e:
            raise StorageFault(f"Could not write collection {collection!r}: {e}") from e


class AsyncDocumentStore(DocumentStore):
    """
    Async wrapper around DiskCollectionStore.
    Uses asyncio.to_thread to avoid blocking the event loop on file I/O.
    """

    def __init__(self, engine: DiskCollectionStore) -> None:
        self._engine = engine

    @property
    def engine(self) -> DiskCollectionStore:
        return self._engine

    @property
    def collections(self) -> tuple[str, ...]:
        return self._engine.collections

    async def get_all(self, collection: str) -> list[Document]:
        return await asyncio.to_thread(self._engine.get_all, collection)

    async def put(self, collection: str, document: Mapping[str, Any]) -> None:
        await asyncio.to_thread(self._engine.put, collection, document)

    async def put_bulk(self, collection: str, documents: Iterable[Mapping[str, Any]]) -> None:
        await asyncio.to_thread(self._engine.put_bulk, collection, list(documents))

    async def delete(self, collection: str, doc_id: str | int) -> None:
        await asyncio.to_thread(self._engine.delete, collection, doc_id)

    async def clear(self, collection: str) -> None:
        await asyncio.to_thread(self._engine.clear, collection)


def open_document_store(data_dir: Path | None = None) -> AsyncDocumentStore:
    """Build the store over `<data_dir>/store`. Opening is deferred to the first operation."""
    base = data_dir if data_dir is not None else paths.data_dir()
    return AsyncDocumentStore(DiskCollectionStore(paths.store_dir(base)))
