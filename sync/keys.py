from __future__ import annotations

from persistence.ids import random_base36

SYNC_KEY_PREFIX = "GMYT"


def generate_sync_key() -> str:
    """A fresh operator sync key such as `GMYT-4K2Z-Q9XA`."""
    return f"{SYNC_KEY_PREFIX}-{random_base36(4).upper()}-{random_base36(4).upper()}"


def normalize_sync_key(raw: str | None) -> str | None:
    if not isinstance(raw, str):
        return None
    key = raw.strip()
    return key or None
