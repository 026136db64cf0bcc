from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from persistence.errors import StorageFault, TransportFault
from persistence.snapshot import SnapshotCodec

from .keys import normalize_sync_key
from .sync_state import SyncState, SyncStateRepository, SyncStatus, utc_now_iso
from .wire import PullReply, PushReply

logger = logging.getLogger(__name__)

ReplyT = TypeVar("ReplyT", bound=BaseModel)


def mask_sync_key(key: str | None) -> str:
    # Sync keys act as shared secrets; keep them out of logs.
    if not key:
        return "<none>"
    return key[:4] + "..." if len(key) > 6 else "***"


class RemoteMirrorClient:
    """
    Best-effort replication of the full local snapshot to a remote slot
    addressed by the sync key.

    Merge rule: remote wins on first contact (set_sync_key pulls first),
    local wins thereafter (every mutation pushes and overwrites the slot).
    Concurrent writers to one key are last-writer-wins at snapshot
    granularity. There is no retry loop and no request timeout.
    """

    def __init__(
        self,
        codec: SnapshotCodec,
        *,
        state: SyncState,
        state_repo: SyncStateRepository,
        endpoint_url: str,
        http: httpx.AsyncClient,
    ) -> None:
        self._codec = codec
        self._state = state
        self._state_repo = state_repo
        self._endpoint_url = endpoint_url
        self._http = http
        # One push in flight at a time; each export happens after the previous POST settles.
        self._push_lock = asyncio.Lock()

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def endpoint_url(self) -> str:
        return self._endpoint_url

    def status(self) -> SyncStatus:
        return SyncStatus.from_state(self._state, endpoint=self._endpoint_url)

    async def set_sync_key(self, key: str) -> bool:
        """
        Adopt a sync key, then hydrate from whatever the remote already holds under it.
        """
        normalized = normalize_sync_key(key)
        if normalized is None:
            raise ValueError("Sync key must be a non-empty string")
        if normalized != self._state.sync_key:
            await self._save_state(SyncState(sync_key=normalized, last_sync=None))
        logger.info("SYNC KEY: linked to %s", mask_sync_key(normalized))
        return await self.pull()

    async def clear_sync_key(self) -> None:
        await self._save_state(SyncState())
        logger.info("SYNC KEY: cleared; running local-only")

    async def push(self) -> bool:
        """
        Upload the full snapshot. Never raises; returns whether the remote accepted it.

        Pushes are serialized, so the last one to reach the remote carries the
        newest local state.
        """
        async with self._push_lock:
            return await self._push_locked()

    async def _push_locked(self) -> bool:
        key = self._state.sync_key
        if not key:
            return False
        try:
            body = await self._codec.export_snapshot()
        except StorageFault as e:
            logger.error("SYNC PUSH: could not export local snapshot: %s", e)
            return False

        try:
            reply = await self._request("POST", key, PushReply, content=body)
        except TransportFault as e:
            logger.warning("SYNC PUSH: %s failed: %s", mask_sync_key(key), e)
            return False

        logger.debug("SYNC PUSH: %s accepted (%s)", mask_sync_key(key), reply.message)
        await self._mark_synced()
        return True

    async def force_push_all(self) -> bool:
        """Push local state regardless of what the remote holds."""
        return await self.push()

    async def pull(self) -> bool:
        """
        Fetch the remote slot and reconcile.

        - empty slot: local is authoritative, push it up
        - snapshot present: replace local collections with it
        - transport failure: False, nothing changed
        """
        key = self._state.sync_key
        if not key:
            return False
        try:
            reply = await self._request("GET", key, PullReply)
        except TransportFault as e:
            logger.warning("SYNC PULL: %s failed: %s", mask_sync_key(key), e)
            return False

        if reply.data is None:
            logger.info("SYNC PULL: remote slot %s is empty; pushing local state", mask_sync_key(key))
            return await self.push()

        ok = await self._codec.import_snapshot(json.dumps(reply.data))
        if not ok:
            logger.warning("SYNC PULL: remote snapshot for %s was rejected", mask_sync_key(key))
            return False
        await self._mark_synced()
        logger.info("SYNC PULL: local store replaced from %s", mask_sync_key(key))
        return True

    async def _request(
        self,
        method: str,
        key: str,
        reply_model: type[ReplyT],
        *,
        content: str | None = None,
    ) -> ReplyT:
        headers = {"Content-Type": "application/json"} if content is not None else None
        try:
            resp = await self._http.request(
                method,
                self._endpoint_url,
                params={"key": key},
                content=content.encode("utf-8") if content is not None else None,
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise TransportFault(f"{method} {self._endpoint_url}: {e!r}") from e

        if not resp.is_success:
            raise TransportFault(
                f"{method} {self._endpoint_url} answered {resp.status_code}",
                status_code=resp.status_code,
            )
        try:
            payload: Any = resp.json()
            return reply_model.model_validate(payload)
        except (ValueError, ValidationError) as e:
            raise TransportFault(f"{method} {self._endpoint_url} sent a malformed reply: {e}") from e

    async def _mark_synced(self) -> None:
        try:
            await self._save_state(self._state.model_copy(update={"last_sync": utc_now_iso()}))
        except OSError as e:
            logger.warning("SYNC STATE: could not record last sync: %r", e)

    async def _save_state(self, state: SyncState) -> None:
        await asyncio.to_thread(self._state_repo.save, state)
        self._state = state
