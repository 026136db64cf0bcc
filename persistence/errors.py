from __future__ import annotations


class ConsoleStoreError(Exception):
    """Base class for console data-layer errors."""


class StorageFault(ConsoleStoreError):
    """
    The local persistence engine is unavailable or a write/read failed.

    Propagated to the caller; never retried automatically.
    """


class UnknownCollectionError(StorageFault):
    """Raised when an operation names a collection outside the registry."""

    def __init__(self, collection: str):
        super().__init__(f"Unknown collection: {collection!r}")
        self.collection = collection


class TransportFault(ConsoleStoreError):
    """Remote mirror unreachable, answered non-2xx, or sent a malformed response."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SnapshotFormatFault(ConsoleStoreError):
    """Snapshot payload is not valid JSON or does not have the snapshot shape."""
