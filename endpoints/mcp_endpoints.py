from __future__ import annotations

import json
import logging
from typing import Any, Literal

from typing_extensions import TypedDict

import jwt
from pydantic import AnyHttpUrl

from mcp.server.auth.provider import AccessToken, TokenVerifier
from mcp.server.auth.settings import AuthSettings
from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.server import Context
from mcp.server.transport_security import TransportSecuritySettings

from console import get_console
from endpoints.auth_endpoints import ISSUER, JWT_ALG, JWT_SECRET, SCOPE_ADMIN, SCOPE_READ
from persistence import paths
from persistence.collections import COLLECTIONS
from settings import get_settings
from sync.keys import generate_sync_key as new_sync_key

REQUIRED_SCOPES = [SCOPE_READ]
SETTINGS = get_settings()
DEBUG_LOG_TOKENS = SETTINGS.debug_log_tokens

logger = logging.getLogger(__name__)

ISSUER_URL = AnyHttpUrl(ISSUER)
RESOURCE_SERVER_URL = AnyHttpUrl(f"{ISSUER}/mcp")

# Cap on documents echoed back as text; structuredContent always carries all of them.
TEXT_PREVIEW_LIMIT = 20


class ToolTextContent(TypedDict):
    type: Literal["text"]
    text: str


class ConsoleToolResponse(TypedDict, total=False):
    content: list[ToolTextContent]
    structuredContent: dict[str, Any]


def _get_access_token(ctx: Context | None) -> AccessToken:
    if ctx is None:
        raise ValueError("Context is required")

    req = ctx.request_context.request
    if req is None:
        raise ValueError("Missing request on MCP context")

    try:
        return req.user.access_token
    except AttributeError as e:
        raise ValueError("Missing authenticated operator on MCP context") from e


def _require_admin(ctx: Context | None) -> str:
    access = _get_access_token(ctx)
    if SCOPE_ADMIN not in (access.scopes or []):
        raise ValueError(f"Operator {access.client_id} lacks the {SCOPE_ADMIN} scope")
    return access.client_id


def _reply(message: str | None = None, **structured: Any) -> ConsoleToolResponse:
    return {
        "content": ([{"type": "text", "text": message}] if message else []),
        "structuredContent": structured,
    }


def _status_payload() -> dict[str, Any]:
    status = get_console().mirror.status()
    payload = status.model_dump(mode="json")
    payload["last_sync_display"] = status.last_sync_display
    return payload


class JwtTokenVerifier(TokenVerifier):
    async def verify_token(self, token: str) -> AccessToken | None:
        try:
            payload = jwt.decode(
                token,
                JWT_SECRET,
                algorithms=[JWT_ALG],
                options={"require": ["exp", "sub", "iss"]},
            )
        except jwt.PyJWTError as e:
            logger.info("MCP VERIFY: jwt decode failed: %r", e)
            return None

        iss = payload.get("iss")
        sub = payload.get("sub")
        scopes = payload.get("scp")

        if DEBUG_LOG_TOKENS:
            # WARNING: Logging bearer tokens is sensitive. Use only for local debugging.
            masked = (token[:16] + "...") if isinstance(token, str) else str(token)
            logger.debug("MCP VERIFY: token=%s iss=%s sub=%s scp=%s", masked, iss, sub, scopes)

        if iss != ISSUER:
            logger.info("MCP VERIFY: issuer mismatch (got=%s expected=%s)", iss, ISSUER)
            return None

        if not isinstance(sub, str) or not sub:
            logger.info("MCP VERIFY: bad sub")
            return None

        if not isinstance(scopes, list) or not all(isinstance(s, str) for s in scopes):
            logger.info("MCP VERIFY: bad scopes")
            return None

        if any(req not in scopes for req in REQUIRED_SCOPES):
            logger.info("MCP VERIFY: missing required scopes %s", REQUIRED_SCOPES)
            return None

        exp = payload.get("exp")
        return AccessToken(
            token=token,
            client_id=sub,
            scopes=scopes,
            expires_at=int(exp) if isinstance(exp, int) else None,
            resource=None,
        )


mcp = FastMCP(
    "Operations Console",
    stateless_http=True,
    json_response=True,
    token_verifier=JwtTokenVerifier(),
    auth=AuthSettings(
        issuer_url=ISSUER_URL,
        resource_server_url=RESOURCE_SERVER_URL,
        required_scopes=REQUIRED_SCOPES,
    ),
    # FastMCP enables DNS rebinding protection on localhost, which rejects tunnelled Host headers.
    transport_security=TransportSecuritySettings(enable_dns_rebinding_protection=False),
)


@mcp.tool()
async def get_sync_status(ctx: Context | None = None) -> ConsoleToolResponse:
    """
    Reports whether the console is linked to a remote mirror and when it last synced.
    """
    _get_access_token(ctx)
    status = _status_payload()
    return _reply(
        f"{status['status']}; last sync: {status['last_sync_display']}.",
        status=status,
    )


@mcp.tool()
async def list_documents(collection: str, ctx: Context | None = None) -> ConsoleToolResponse:
    """
    Lists every document in one console collection (tasks, users, payroll, ...).
    """
    _get_access_token(ctx)
    if collection not in COLLECTIONS:
        return _reply(
            f"Unknown collection {collection!r}. Known: {', '.join(COLLECTIONS)}.",
            documents=[],
        )
    docs = await get_console().store.get_all(collection)
    preview = "\n".join(json.dumps(d, ensure_ascii=False) for d in docs[:TEXT_PREVIEW_LIMIT])
    more = f"\n... {len(docs) - TEXT_PREVIEW_LIMIT} more" if len(docs) > TEXT_PREVIEW_LIMIT else ""
    return _reply(
        f"{len(docs)} document(s) in {collection}.\n{preview}{more}".rstrip(),
        collection=collection,
        documents=docs,
    )


@mcp.tool()
async def export_snapshot(save_to_file: bool = False, ctx: Context | None = None) -> ConsoleToolResponse:
    """
    Exports the whole console store as one snapshot object. With save_to_file,
    also writes a dated backup file under the data dir.
    """
    _get_access_token(ctx)
    console = get_console()
    snapshot = await console.codec.snapshot()
    counts = {name: len(docs) for name, docs in snapshot.items()}
    message = "Snapshot: " + ", ".join(f"{k}={v}" for k, v in counts.items())
    extra: dict[str, Any] = {}
    if save_to_file:
        path = await console.codec.export_to_file(paths.exports_dir(console.data_dir))
        message += f"\nSaved to {path}."
        extra["path"] = str(path)
    return _reply(message, snapshot=snapshot, counts=counts, **extra)


@mcp.tool()
async def import_snapshot(payload: str, ctx: Context | None = None) -> ConsoleToolResponse:
    """
    Restores collections from a snapshot JSON string. Collections missing from the
    payload are left alone. Requires the console.admin scope.
    """
    operator = _require_admin(ctx)
    console = get_console()
    ok = await console.codec.import_snapshot(payload)
    if not ok:
        return _reply("Invalid snapshot schema; nothing was changed.", imported=False)
    logger.info("MCP IMPORT: snapshot restored by %s", operator)
    pushed = await console.mirror.push()
    return _reply("Snapshot imported.", imported=True, pushed=pushed, status=_status_payload())


@mcp.tool()
async def connect_sync_key(key: str | None = None, ctx: Context | None = None) -> ConsoleToolResponse:
    """
    Links the console to a remote mirror slot (generating a key when none is given)
    and hydrates from it. Requires the console.admin scope.
    """
    operator = _require_admin(ctx)
    sync_key = key.strip() if isinstance(key, str) and key.strip() else new_sync_key()
    ok = await get_console().mirror.set_sync_key(sync_key)
    logger.info("MCP SYNC: %s linked the console (ok=%s)", operator, ok)
    msg = f"Linked to {sync_key}." if ok else f"Linked to {sync_key}, but the first sync failed; running local-only until it succeeds."
    return _reply(msg, synced=ok, sync_key=sync_key, status=_status_payload())


@mcp.tool()
async def push_now(ctx: Context | None = None) -> ConsoleToolResponse:
    """
    Pushes the full local snapshot to the linked mirror slot immediately.
    """
    _get_access_token(ctx)
    ok = await get_console().mirror.force_push_all()
    return _reply("Pushed." if ok else "Push did not complete.", pushed=ok, status=_status_payload())


@mcp.tool()
async def generate_sync_key(ctx: Context | None = None) -> ConsoleToolResponse:
    """
    Suggests a fresh sync key without linking to it.
    """
    _get_access_token(ctx)
    key = new_sync_key()
    return _reply(key, sync_key=key)
