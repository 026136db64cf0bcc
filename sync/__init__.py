from __future__ import annotations

from .keys import generate_sync_key
from .mirror_client import RemoteMirrorClient
from .sync_state import DiskSyncStateRepository, SyncState, SyncStateRepository, SyncStatus

__all__ = [
    "generate_sync_key",
    "RemoteMirrorClient",
    "DiskSyncStateRepository",
    "SyncState",
    "SyncStateRepository",
    "SyncStatus",
]
