from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

import pytest


def _fake_ctx(client_id: str, scopes: list[str]):
    # minimal shape for _get_access_token: ctx.request_context.request.user.access_token
    access_token = SimpleNamespace(client_id=client_id, scopes=scopes)
    user = SimpleNamespace(access_token=access_token)
    request = SimpleNamespace(user=user)
    request_context = SimpleNamespace(request=request)
    return SimpleNamespace(request_context=request_context)


def test_mcp_tools_read_flow(sandbox_project):
    async def _run():
        import endpoints.mcp_endpoints as mcp
        from console import get_console

        ctx = _fake_ctx("u-ict-1", ["console.read"])
        await get_console().repo.save_task({"id": "t1", "tasksForToday": "Patch servers"})

        r = await mcp.get_sync_status(ctx=ctx)
        assert r["structuredContent"]["status"]["status"] == "Local-Only"

        r = await mcp.list_documents("tasks", ctx=ctx)
        assert [d["id"] for d in r["structuredContent"]["documents"]] == ["t1"]

        r = await mcp.list_documents("candidates", ctx=ctx)
        assert "Unknown collection" in r["content"][0]["text"]

        r = await mcp.export_snapshot(ctx=ctx)
        assert r["structuredContent"]["counts"]["tasks"] == 1
        assert "path" not in r["structuredContent"]

        r = await mcp.export_snapshot(save_to_file=True, ctx=ctx)
        saved = sandbox_project / "exports"
        assert r["structuredContent"]["path"].startswith(str(saved))
        assert len(list(saved.glob("console-snapshot-*.json"))) == 1

        r = await mcp.generate_sync_key(ctx=ctx)
        assert r["structuredContent"]["sync_key"].startswith("GMYT-")

        await get_console().repo.wait_for_pending_pushes()

    asyncio.run(_run())


def test_mcp_import_requires_admin_and_fails_closed(sandbox_project):
    async def _run():
        import endpoints.mcp_endpoints as mcp
        from console import get_console

        staff = _fake_ctx("u-ict-1", ["console.read"])
        admin = _fake_ctx("u-ceo", ["console.read", "console.admin"])
        await get_console().store.put("users", {"id": "u9", "name": "Keep"})

        with pytest.raises(ValueError):
            await mcp.import_snapshot(json.dumps({"users": []}), ctx=staff)

        r = await mcp.import_snapshot("[not, an, object]", ctx=admin)
        assert r["structuredContent"]["imported"] is False
        assert await get_console().store.get_all("users") == [{"id": "u9", "name": "Keep"}]

        r = await mcp.import_snapshot(json.dumps({"users": [{"id": "u1", "name": "New"}]}), ctx=admin)
        assert r["structuredContent"]["imported"] is True
        # Local-only console: nothing to push to.
        assert r["structuredContent"]["pushed"] is False
        assert await get_console().store.get_all("users") == [{"id": "u1", "name": "New"}]

    asyncio.run(_run())
