from __future__ import annotations

import asyncio
import json
import logging
from datetime import date
from pathlib import Path

from .collections import ID_FIELD
from .document_store import AsyncDocumentStore
from .errors import SnapshotFormatFault
from .interfaces import Document

logger = logging.getLogger(__name__)

EXPORT_FILENAME_PREFIX = "console-snapshot"


def snapshot_filename(day: date | None = None) -> str:
    return f"{EXPORT_FILENAME_PREFIX}-{(day or date.today()).isoformat()}.json"


def parse_snapshot(raw: str, collections: tuple[str, ...]) -> dict[str, list[Document]]:
    """
    Parse and validate a snapshot string.

    Returns only the known collections the payload carries (a `null` value
    counts as absent). Raises SnapshotFormatFault for anything that could not
    be restored in full.
    """
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise SnapshotFormatFault(f"Snapshot is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise SnapshotFormatFault(f"Snapshot must be a JSON object, got {type(payload).__name__}")

    present: dict[str, list[Document]] = {}
    for name in collections:
        docs = payload.get(name)
        if docs is None:
            continue
        if not isinstance(docs, list):
            raise SnapshotFormatFault(f"Collection {name!r} must be an array")
        for i, doc in enumerate(docs):
            if not isinstance(doc, dict):
                raise SnapshotFormatFault(f"{name}[{i}] must be an object")
            doc_id = doc.get(ID_FIELD)
            if isinstance(doc_id, bool) or not isinstance(doc_id, (str, int)) or str(doc_id) == "":
                raise SnapshotFormatFault(f"{name}[{i}] has no usable {ID_FIELD!r}")
        present[name] = docs
    return present


class SnapshotCodec:
    """
    Whole-store serialization.

    The export is `{collection: [documents...]}` over every known collection,
    in registry order. The same shape is the backup file format and the body
    pushed to the remote mirror.
    """

    def __init__(self, store: AsyncDocumentStore):
        self._store = store

    @property
    def collections(self) -> tuple[str, ...]:
        return self._store.collections

    async def snapshot(self) -> dict[str, list[Document]]:
        dump: dict[str, list[Document]] = {}
        for name in self.collections:
            dump[name] = await self._store.get_all(name)
        return dump

    async def export_snapshot(self) -> str:
        return json.dumps(await self.snapshot(), ensure_ascii=False, separators=(",", ":"))

    async def import_snapshot(self, raw: str) -> bool:
        """
        Replace every collection present in `raw` with its documents.

        Returns False (and leaves the store untouched) when `raw` is malformed.
        Storage failures while applying propagate as StorageFault.
        """
        try:
            present = parse_snapshot(raw, self.collections)
        except SnapshotFormatFault as e:
            logger.warning("SNAPSHOT IMPORT: rejected payload: %s", e)
            return False

        for name, docs in present.items():
            await self._store.clear(name)
            await self._store.put_bulk(name, docs)
        logger.info(
            "SNAPSHOT IMPORT: restored %d collection(s), %d document(s)",
            len(present),
            sum(len(d) for d in present.values()),
        )
        return True

    async def export_to_file(self, directory: Path, *, day: date | None = None) -> Path:
        target = directory / snapshot_filename(day)
        text = await self.export_snapshot()
        await asyncio.to_thread(_write_text, target, text)
        logger.info("SNAPSHOT EXPORT: wrote %s", target)
        return target

    async def import_from_file(self, path: Path) -> bool:
        try:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, ValueError) as e:
            logger.warning("SNAPSHOT IMPORT: cannot read %s: %r", path, e)
            return False
        return await self.import_snapshot(raw)


def _write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
