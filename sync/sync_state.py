from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal, Mapping, Protocol

from pydantic import BaseModel, ValidationError

from persistence import paths
from json_store import atomic_write_json, read_json
from persistence.locks import GLOBAL_PATH_LOCKS

SyncMode = Literal["Cloud-Linked", "Local-Only"]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class SyncState(BaseModel):
    """
    Mirrors the on-disk sync_state.json schema:
      { "sync_key": "GMYT-..." | null, "last_sync": "<ISO-8601>" | null }

    Describes the mirror relationship, not business data, so it lives outside
    the document store and is never part of a snapshot.
    """

    sync_key: str | None = None
    last_sync: str | None = None

    @classmethod
    def from_disk_doc(cls, doc: Mapping[str, Any]) -> "SyncState":
        return cls.model_validate(doc)

    def to_disk_doc(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @property
    def is_linked(self) -> bool:
        return bool(self.sync_key)


class SyncStatus(BaseModel):
    status: SyncMode
    sync_key: str | None = None
    last_sync: str | None = None
    endpoint: str
    engine: str = "disk-json"

    @classmethod
    def from_state(cls, state: SyncState, *, endpoint: str) -> "SyncStatus":
        return cls(
            status="Cloud-Linked" if state.is_linked else "Local-Only",
            sync_key=state.sync_key,
            last_sync=state.last_sync,
            endpoint=endpoint,
        )

    @property
    def last_sync_display(self) -> str:
        return self.last_sync or "Never"


class SyncStateRepository(Protocol):
    def load(self) -> SyncState:
        ...

    def save(self, state: SyncState) -> None:
        ...


class DiskSyncStateRepository(SyncStateRepository):
    """
    Stores the sync state in data/sync_state.json.

    A missing or unreadable file loads as local-only; collection data is kept
    elsewhere and is strict about corruption, this file is not.
    """

    def __init__(self, path: Path | None = None):
        self._path = path if path is not None else paths.sync_state_path(paths.data_dir())

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> SyncState:
        with GLOBAL_PATH_LOCKS.held(self._path):
            raw = read_json(self._path)
        if not isinstance(raw, dict):
            return SyncState()
        try:
            return SyncState.from_disk_doc(raw)
        except ValidationError:
            # Unreadable state means local-only; the next save rewrites it.
            return SyncState()

    def save(self, state: SyncState) -> None:
        with GLOBAL_PATH_LOCKS.held(self._path):
            atomic_write_json(self._path, state.to_disk_doc())
