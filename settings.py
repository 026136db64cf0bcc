from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Deployment / URLs
    public_base_url: str
    local_base_url: str
    issuer: str

    # Local store
    data_dir: Path | None

    # Remote mirror
    sync_endpoint_url: str
    database_url: str | None

    # JWT (operator sign-in)
    jwt_secret: str
    jwt_alg: str
    access_token_ttl_seconds: int

    # Debug
    debug_log_tokens: bool
    debug_log_requests: bool


def get_settings() -> Settings:
    public_base_url = (os.getenv("PUBLIC_BASE_URL", "")).rstrip("/")
    local_base_url = (os.getenv("LOCAL_BASE_URL", "http://127.0.0.1:8000")).rstrip("/")
    issuer = public_base_url or local_base_url

    raw_data_dir = os.getenv("CONSOLE_DATA_DIR", "").strip()
    data_dir = Path(raw_data_dir).expanduser() if raw_data_dir else None

    # The console mirrors to its own /api/sync unless pointed elsewhere.
    sync_endpoint_url = (os.getenv("SYNC_ENDPOINT_URL", f"{issuer}/api/sync")).rstrip("/")

    # None means sqlite under the data dir (resolved in persistence.mirror_slots)
    database_url = os.getenv("DATABASE_URL") or None

    # NOTE: default is insecure; set JWT_SECRET in production
    jwt_secret = os.getenv("JWT_SECRET", "dev-only-console-secret")
    jwt_alg = os.getenv("JWT_ALG", "HS256")
    access_token_ttl_seconds = _env_int("ACCESS_TOKEN_TTL_SECONDS", 8 * 3600)

    debug_log_tokens = _env_bool("DEBUG_LOG_TOKENS", False)
    debug_log_requests = _env_bool("DEBUG_LOG_REQUESTS", True)

    return Settings(
        public_base_url=public_base_url,
        local_base_url=local_base_url,
        issuer=issuer,
        data_dir=data_dir,
        sync_endpoint_url=sync_endpoint_url,
        database_url=database_url,
        jwt_secret=jwt_secret,
        jwt_alg=jwt_alg,
        access_token_ttl_seconds=access_token_ttl_seconds,
        debug_log_tokens=debug_log_tokens,
        debug_log_requests=debug_log_requests,
    )
