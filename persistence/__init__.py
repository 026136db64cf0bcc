from __future__ import annotations

from .document_store import AsyncDocumentStore, DiskCollectionStore, open_document_store
from .errors import SnapshotFormatFault, StorageFault, TransportFault, UnknownCollectionError
from .mirror_slots import MirrorSlotRepository, SqlMirrorSlotRepository
from .repositories import ConsoleRepository
from .snapshot import SnapshotCodec

__all__ = [
    "AsyncDocumentStore",
    "DiskCollectionStore",
    "open_document_store",
    "SnapshotFormatFault",
    "StorageFault",
    "TransportFault",
    "UnknownCollectionError",
    "MirrorSlotRepository",
    "SqlMirrorSlotRepository",
    "ConsoleRepository",
    "SnapshotCodec",
]
