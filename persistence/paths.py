from __future__ import annotations

from pathlib import Path

from settings import get_settings


def project_root() -> Path:
    # persistence/paths.py -> persistence -> project root
    return Path(__file__).resolve().parents[1]


def data_dir() -> Path:
    configured = get_settings().data_dir
    return ensure_dir(configured if configured is not None else project_root() / "data")


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def store_dir(data_dir: Path) -> Path:
    return data_dir / "store"


def sync_state_path(data_dir: Path) -> Path:
    return data_dir / "sync_state.json"


def mirror_db_path(data_dir: Path) -> Path:
    return data_dir / "mirror.db"


def exports_dir(data_dir: Path) -> Path:
    return ensure_dir(data_dir / "exports")
