# auth_endpoints.py
from __future__ import annotations

import logging
import time
from typing import Any

import jwt
from fastapi import APIRouter, Form, HTTPException

from console import get_console
from persistence.records import UserAccount
from settings import get_settings

router = APIRouter(tags=["auth"])
logger = logging.getLogger(__name__)

# Centralized settings
SETTINGS = get_settings()

JWT_SECRET = SETTINGS.jwt_secret
JWT_ALG = SETTINGS.jwt_alg
ISSUER = SETTINGS.issuer
ACCESS_TOKEN_TTL_SECONDS = SETTINGS.access_token_ttl_seconds

SCOPE_READ = "console.read"
SCOPE_ADMIN = "console.admin"
SCOPES_SUPPORTED = [SCOPE_READ, SCOPE_ADMIN]

# Roles allowed to restore snapshots and change the sync link.
ADMIN_ROLES = frozenset({"CEO"})


def scopes_for(user: UserAccount) -> list[str]:
    scopes = [SCOPE_READ]
    if user.role in ADMIN_ROLES:
        scopes.append(SCOPE_ADMIN)
    return scopes


def issue_access_token(user: UserAccount, *, now: int | None = None) -> str:
    issued_at = int(time.time()) if now is None else int(now)
    payload: dict[str, Any] = {
        "iss": ISSUER,
        "sub": str(user.id),
        "username": user.username,
        "role": user.role,
        "scp": scopes_for(user),
        "iat": issued_at,
        "exp": issued_at + ACCESS_TOKEN_TTL_SECONDS,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


@router.post("/auth/token")
async def token(username: str = Form(...), password: str = Form(...)) -> dict[str, Any]:
    """
    Operator sign-in against the `users` collection; returns a bearer token.
    """
    user = await get_console().repo.authenticate(username.strip(), password)
    if user is None:
        logger.info("AUTH: rejected sign-in for %r", username)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    logger.info("AUTH: signed in %s (%s)", user.username, user.role)
    scopes = scopes_for(user)
    return {
        "access_token": issue_access_token(user),
        "token_type": "bearer",
        "expires_in": ACCESS_TOKEN_TTL_SECONDS,
        "scope": " ".join(scopes),
    }
