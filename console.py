from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import httpx

from persistence import paths
from persistence.document_store import AsyncDocumentStore, open_document_store
from persistence.repositories import ConsoleRepository
from persistence.snapshot import SnapshotCodec
from settings import Settings, get_settings
from sync.mirror_client import RemoteMirrorClient
from sync.sync_state import DiskSyncStateRepository

logger = logging.getLogger(__name__)


@dataclass
class Console:
    """Process-wide data layer: store, codec, mirror client and typed facade."""

    store: AsyncDocumentStore
    codec: SnapshotCodec
    mirror: RemoteMirrorClient
    repo: ConsoleRepository
    http: httpx.AsyncClient
    data_dir: Path

    async def aclose(self) -> None:
        await self.repo.wait_for_pending_pushes()
        await self.http.aclose()


def build_console(
    settings: Settings | None = None,
    *,
    data_dir: Path | None = None,
    http: httpx.AsyncClient | None = None,
) -> Console:
    settings = settings or get_settings()
    base = data_dir if data_dir is not None else paths.data_dir()

    store = open_document_store(base)
    codec = SnapshotCodec(store)

    # Sync state is loaded once here and saved by the client on every change.
    state_repo = DiskSyncStateRepository(paths.sync_state_path(base))
    state = state_repo.load()

    # No timeout: a push that never resolves simply never resolves.
    client = http if http is not None else httpx.AsyncClient(timeout=None, follow_redirects=True)
    mirror = RemoteMirrorClient(
        codec,
        state=state,
        state_repo=state_repo,
        endpoint_url=settings.sync_endpoint_url,
        http=client,
    )
    logger.info(
        "CONSOLE: data=%s mode=%s endpoint=%s",
        base,
        mirror.status().status,
        settings.sync_endpoint_url,
    )
    return Console(
        store=store,
        codec=codec,
        mirror=mirror,
        repo=ConsoleRepository(store, mirror),
        http=client,
        data_dir=base,
    )


_CONSOLE: Console | None = None


def get_console() -> Console:
    global _CONSOLE
    if _CONSOLE is None:
        _CONSOLE = build_console()
    return _CONSOLE


async def close_console() -> None:
    global _CONSOLE
    console, _CONSOLE = _CONSOLE, None
    if console is not None:
        await console.aclose()


def reset_console() -> None:
    """Drop the process-wide console without closing it (tests rebuild it per sandbox)."""
    global _CONSOLE
    _CONSOLE = None
