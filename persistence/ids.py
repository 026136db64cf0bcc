from __future__ import annotations

import secrets
import string
import time

BASE36 = string.digits + string.ascii_lowercase


def random_base36(length: int) -> str:
    return "".join(secrets.choice(BASE36) for _ in range(length))


def generate_id(prefix: str = "") -> str:
    """`<prefix><epoch-ms>-<9 base-36 chars>`, e.g. `task-1718000000000-k3j9x0q2a`."""
    return f"{prefix}{int(time.time() * 1000)}-{random_base36(9)}"
