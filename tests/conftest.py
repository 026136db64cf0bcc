from __future__ import annotations

from pathlib import Path
import sys

import httpx
import pytest


# Ensure the repository root (parent of ./tests) is importable during pytest collection.
# This avoids ModuleNotFoundError for imports like `import persistence...` under pytest import modes
# that don't automatically prepend the cwd/rootdir to sys.path.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture
def sandbox_project(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """
    Redirect the console data dir to a temp directory so tests never touch real ./data.
    """
    import console
    import endpoints.sync_endpoints as sync_endpoints

    data = tmp_path / "data"
    monkeypatch.setenv("CONSOLE_DATA_DIR", str(data))
    # Process-wide singletons are rebuilt lazily against the sandbox.
    console.reset_console()
    monkeypatch.setattr(sync_endpoints, "_SLOTS", None)
    yield data
    console.reset_console()


@pytest.fixture
def store(tmp_path: Path):
    from persistence.document_store import open_document_store

    return open_document_store(tmp_path)


@pytest.fixture
def mirror_app(tmp_path: Path):
    """
    A standalone remote mirror (the /api/sync router) over its own SQLite file.
    """
    from fastapi import FastAPI

    from endpoints.sync_endpoints import get_slot_repository, router
    from persistence.mirror_slots import SqlMirrorSlotRepository

    slots = SqlMirrorSlotRepository(f"sqlite:///{tmp_path / 'remote.db'}")
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_slot_repository] = lambda: slots
    app.state.slots = slots
    yield app
    slots.dispose()


@pytest.fixture
def console_factory(tmp_path: Path):
    """
    Build consoles whose mirror client talks to an in-process transport.

    Each call gets its own data dir, standing in for a separate device.
    """
    from dataclasses import replace

    from console import build_console
    from settings import get_settings

    settings = replace(get_settings(), sync_endpoint_url="http://mirror.test/api/sync")
    counter = iter(range(1000))

    def _make(transport: httpx.AsyncBaseTransport, *, name: str | None = None):
        data_dir = tmp_path / (name or f"device-{next(counter)}")
        http = httpx.AsyncClient(transport=transport, base_url="http://mirror.test")
        return build_console(settings, data_dir=data_dir, http=http)

    return _make
