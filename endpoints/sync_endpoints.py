# sync_endpoints.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from persistence.mirror_slots import MirrorSlotRepository, SqlMirrorSlotRepository
from settings import get_settings
from sync.wire import ErrorReply

router = APIRouter(tags=["sync"])
logger = logging.getLogger(__name__)

SETTINGS = get_settings()
DEBUG_LOG_REQUESTS = SETTINGS.debug_log_requests

SYNC_PATH = "/api/sync"

_SLOTS: MirrorSlotRepository | None = None


def get_slot_repository() -> MirrorSlotRepository:
    global _SLOTS
    if _SLOTS is None:
        _SLOTS = SqlMirrorSlotRepository(SETTINGS.database_url)
    return _SLOTS


def _iso(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _error(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    body = ErrorReply(error=error, details=details).model_dump(exclude_none=True)
    return JSONResponse(body, status_code=status_code)


@router.api_route(SYNC_PATH, methods=["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"])
async def sync_slot(
    request: Request,
    key: str | None = None,
    slots: MirrorSlotRepository = Depends(get_slot_repository),
) -> JSONResponse:
    """
    GET pulls the snapshot stored under `key`; POST replaces it with the body.
    """
    if not key or not key.strip():
        return _error(400, "Sync key required")

    if DEBUG_LOG_REQUESTS:
        logger.debug("SYNC %s: key=%s...", request.method, key[:4])

    try:
        if request.method == "GET":
            payload = await slots.get_payload(key)
            if payload is None:
                return JSONResponse({"message": "Slot exists but has never been pushed", "data": None})
            return JSONResponse({"message": "Pull successful", "data": payload, "timestamp": _iso(datetime.now(timezone.utc))})

        if request.method == "POST":
            try:
                data = await request.json()
            except ValueError:
                data = None
            if not isinstance(data, dict):
                return _error(400, "Invalid payload format")
            updated = await slots.upsert(key, data)
            return JSONResponse({"message": "Mirror slot updated", "timestamp": _iso(updated)})

        return _error(405, "Method not allowed")
    except SQLAlchemyError as e:
        logger.error("SYNC %s: persistence failure: %r", request.method, e)
        return _error(500, "Sync store failure", details=str(e))
