from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Protocol

from sqlalchemy import JSON, DateTime, String, create_engine, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from . import paths

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class MirrorSlot(Base):
    """One remote mirror slot: the latest full snapshot pushed under a sync key."""

    __tablename__ = "console_sync"

    sync_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )


# Dialects with a native INSERT ... ON CONFLICT DO UPDATE.
_UPSERT_DIALECTS = {"sqlite": sqlite, "postgresql": postgresql}


class MirrorSlotRepository(Protocol):
    async def get_payload(self, sync_key: str) -> dict[str, Any] | None: ...
    async def upsert(self, sync_key: str, payload: dict[str, Any]) -> datetime: ...


def default_database_url() -> str:
    return f"sqlite:///{paths.mirror_db_path(paths.data_dir())}"


def _create_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # Calls arrive on asyncio.to_thread workers, not the creating thread.
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


class SqlMirrorSlotRepository(MirrorSlotRepository):
    """
    SQLAlchemy-backed slot table. Any SQLAlchemy URL works (SQLite by default,
    Postgres/CockroachDB in deployment). Blocking DB calls run via
    asyncio.to_thread; errors surface as SQLAlchemyError.
    """

    def __init__(self, database_url: str | None = None, *, engine: Engine | None = None) -> None:
        self._engine = engine if engine is not None else _create_engine(database_url or default_database_url())
        self._sessions = sessionmaker(bind=self._engine, expire_on_commit=False)
        self._schema_guard = threading.Lock()
        self._schema_ready = False

    @property
    def engine(self) -> Engine:
        return self._engine

    def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        with self._schema_guard:
            if not self._schema_ready:
                Base.metadata.create_all(self._engine)
                self._schema_ready = True
                logger.info("MIRROR DB: schema ready on %s", self._engine.url.render_as_string(hide_password=True))

    def _get_payload(self, sync_key: str) -> dict[str, Any] | None:
        self._ensure_schema()
        with self._sessions() as session:
            return session.scalar(select(MirrorSlot.payload).where(MirrorSlot.sync_key == sync_key))

    def _upsert(self, sync_key: str, payload: dict[str, Any]) -> datetime:
        self._ensure_schema()
        now = datetime.now(timezone.utc)
        dialect = _UPSERT_DIALECTS.get(self._engine.dialect.name)
        if dialect is not None:
            stmt = dialect.insert(MirrorSlot).values(sync_key=sync_key, payload=payload, last_updated=now)
            stmt = stmt.on_conflict_do_update(
                index_elements=[MirrorSlot.sync_key],
                set_={"payload": stmt.excluded.payload, "last_updated": stmt.excluded.last_updated},
            )
            with self._sessions.begin() as session:
                session.execute(stmt)
            return now

        try:
            self._insert_or_update(sync_key, payload, now)
        except IntegrityError:
            # A concurrent writer created the slot between our read and insert.
            self._insert_or_update(sync_key, payload, now)
        return now

    def _insert_or_update(self, sync_key: str, payload: dict[str, Any], now: datetime) -> None:
        with self._sessions.begin() as session:
            slot = session.get(MirrorSlot, sync_key)
            if slot is None:
                session.add(MirrorSlot(sync_key=sync_key, payload=payload, last_updated=now))
            else:
                slot.payload = payload
                slot.last_updated = now

    async def get_payload(self, sync_key: str) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._get_payload, sync_key)

    async def upsert(self, sync_key: str, payload: dict[str, Any]) -> datetime:
        return await asyncio.to_thread(self._upsert, sync_key, payload)

    def dispose(self) -> None:
        self._engine.dispose()
