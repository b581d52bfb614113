from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, String, create_engine, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.types import JSON
from starlette.concurrency import run_in_threadpool

from telescope.exceptions import ConfigurationError
from telescope.models import Entry, EntryType


class Base(DeclarativeBase):
    pass


class EntryRow(Base):
    __tablename__ = "telescope_entries"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    type: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    batch_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    content: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True, nullable=False)


def _to_entry(row: EntryRow) -> Entry:
    created_at = row.created_at
    # SQLite hands datetimes back naive; they were written as UTC.
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return Entry(
        id=row.id,
        type=EntryType(row.type),
        batch_id=row.batch_id,
        content=row.content,
        created_at=created_at,
    )


class SQLStorage:
    """SQLAlchemy driver. Blocking I/O runs in the threadpool, off the event loop."""

    def __init__(self, database_url: str = "", *, engine: Engine | None = None) -> None:
        if engine is None:
            engine = self._create_engine(database_url)
        self.engine = engine
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        try:
            Base.metadata.create_all(engine)
        except SQLAlchemyError as exc:
            raise ConfigurationError(f"Cannot prepare telescope tables: {exc}") from exc

    @staticmethod
    def _create_engine(database_url: str) -> Engine:
        try:
            url = make_url(database_url)
            connect_args: dict[str, Any] = {}
            if url.get_backend_name() == "sqlite":
                # Sessions are opened from threadpool workers.
                connect_args["check_same_thread"] = False
            return create_engine(url, pool_pre_ping=True, connect_args=connect_args)
        except (ArgumentError, ImportError) as exc:
            raise ConfigurationError(f"Invalid database URL {database_url!r}: {exc}") from exc

    async def save(self, entry: Entry) -> None:
        await run_in_threadpool(self._save, entry)

    async def get(self, entry_id: str) -> Entry | None:
        return await run_in_threadpool(self._get, entry_id)

    async def recent(self, type: EntryType, *, limit: int = 50, before: datetime | None = None) -> list[Entry]:
        return await run_in_threadpool(self._recent, type, limit, before)

    async def batch(self, batch_id: str) -> list[Entry]:
        return await run_in_threadpool(self._batch, batch_id)

    def _save(self, entry: Entry) -> None:
        with self._session_factory() as db:
            db.add(
                EntryRow(
                    id=entry.id,
                    type=entry.type.value,
                    batch_id=entry.batch_id,
                    content=entry.content,
                    created_at=entry.created_at,
                )
            )
            db.commit()

    def _get(self, entry_id: str) -> Entry | None:
        with self._session_factory() as db:
            row = db.execute(select(EntryRow).where(EntryRow.id == entry_id)).scalar_one_or_none()
            return _to_entry(row) if row else None

    def _recent(self, type: EntryType, limit: int, before: datetime | None) -> list[Entry]:
        stmt = select(EntryRow).where(EntryRow.type == type.value)
        if before is not None:
            stmt = stmt.where(EntryRow.created_at < before)
        stmt = stmt.order_by(EntryRow.created_at.desc()).limit(limit)
        with self._session_factory() as db:
            return [_to_entry(row) for row in db.execute(stmt).scalars().all()]

    def _batch(self, batch_id: str) -> list[Entry]:
        stmt = select(EntryRow).where(EntryRow.batch_id == batch_id).order_by(EntryRow.created_at.asc())
        with self._session_factory() as db:
            return [_to_entry(row) for row in db.execute(stmt).scalars().all()]
