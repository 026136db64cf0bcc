from __future__ import annotations

from fastapi.testclient import TestClient


def test_app_smoke_routes(sandbox_project):
    import app as app_module

    client = TestClient(app_module.create_app())

    r = client.get("/.well-known/oauth-protected-resource")
    assert r.status_code == 200
    assert "console.read" in r.json()["scopes_supported"]

    # mcp redirect helpers
    r = client.get("/mcp", follow_redirects=False)
    assert r.status_code == 307
    assert r.headers["location"] == "/mcp/"

    r = client.get("/api/status")
    assert r.status_code == 200
    assert r.json()["status"] == "Local-Only"
    assert r.json()["last_sync_display"] == "Never"


def test_app_serves_its_own_mirror_endpoint(sandbox_project):
    import app as app_module

    client = TestClient(app_module.create_app())

    r = client.post("/api/sync", params={"key": "GMYT-APP"}, json={"tasks": [{"id": "t1"}]})
    assert r.status_code == 200
    assert client.get("/api/sync", params={"key": "GMYT-APP"}).json()["data"] == {"tasks": [{"id": "t1"}]}
    assert (sandbox_project / "mirror.db").exists()
