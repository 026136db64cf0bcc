from __future__ import annotations

import json
from pathlib import Path
from typing import Any


def read_json(path: Path) -> Any | None:
    """
    Read JSON from disk.

    Returns None for missing files, empty files, or invalid JSON.
    """
    try:
        return read_json_strict(path)
    except (OSError, ValueError):
        return None


def read_json_strict(path: Path) -> Any | None:
    """
    Read JSON from disk, raising OSError/ValueError on unreadable or invalid content.

    Missing and empty files still read as None.
    """
    if not path.exists():
        return None
    raw = path.read_text(encoding="utf-8")
    if not raw.strip():
        return None
    return json.loads(raw)


def atomic_write_json(path: Path, payload: Any, *, indent: int | None = 2, sort_keys: bool = True) -> None:
    """
    Atomically write JSON to disk by writing to a temp file then replacing.

    The payload is encoded before the temp file is opened, so an unencodable
    payload leaves nothing behind.
    """
    text = json.dumps(payload, indent=indent, sort_keys=sort_keys, ensure_ascii=False)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        f.write(text)
        f.write("\n")
    tmp_path.replace(path)
