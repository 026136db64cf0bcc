from __future__ import annotations

import jwt
from fastapi.testclient import TestClient


def test_sign_in_issues_scoped_token(sandbox_project):
    import app as app_module
    from endpoints.auth_endpoints import ISSUER, JWT_ALG, JWT_SECRET

    client = TestClient(app_module.create_app())

    # Default accounts are seeded on first read of `users`.
    r = client.post("/auth/token", data={"username": "ceo", "password": "password123"})
    assert r.status_code == 200
    body = r.json()
    assert body["token_type"] == "bearer"

    claims = jwt.decode(body["access_token"], JWT_SECRET, algorithms=[JWT_ALG])
    assert claims["iss"] == ISSUER
    assert claims["sub"] == "u-ceo"
    assert claims["scp"] == ["console.read", "console.admin"]

    r = client.post("/auth/token", data={"username": "ict.manager", "password": "password123"})
    assert r.status_code == 200
    staff = jwt.decode(r.json()["access_token"], JWT_SECRET, algorithms=[JWT_ALG])
    assert staff["scp"] == ["console.read"]


def test_sign_in_rejects_bad_password(sandbox_project):
    import app as app_module

    client = TestClient(app_module.create_app())
    r = client.post("/auth/token", data={"username": "ceo", "password": "wrong"})
    assert r.status_code == 401


def test_token_verifier_accepts_issued_tokens(sandbox_project):
    import asyncio

    from endpoints.auth_endpoints import issue_access_token
    from endpoints.mcp_endpoints import JwtTokenVerifier
    from persistence.records import UserAccount

    async def _run():
        verifier = JwtTokenVerifier()
        token = issue_access_token(UserAccount(id="u-ceo", username="ceo", role="CEO"))
        access = await verifier.verify_token(token)
        assert access is not None
        assert access.client_id == "u-ceo"
        assert "console.admin" in access.scopes

        assert await verifier.verify_token("not-a-jwt") is None

    asyncio.run(_run())
