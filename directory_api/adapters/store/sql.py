"""Relational record store (SQLAlchemy async ORM).

Production runs on PostgreSQL through asyncpg; any SQLAlchemy async URL
works (tests use aiosqlite). Filtering, ordering and the keyset comparison
run in SQL against indexed columns.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator

from sqlalchemy import JSON, DateTime, Index, String, Text, and_, cast, func, or_, select
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from directory_api.adapters.store.base import AbstractRecordStore, SubmissionPage, clamp_page_size
from directory_api.adapters.store.cursor import decode_cursor, encode_cursor, ensure_utc
from directory_api.core.errors import DuplicateIdError, NotFoundAppError, StoreUnavailableError
from directory_api.schemas.submission import SubmissionRecord, SubmissionStatus

logger = logging.getLogger(__name__)

JsonList = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


class SubmissionORM(Base):
    """ORM row for one submission.

    Attributes mirror SubmissionRecord; ``tags``/``disciplines`` are JSON arrays.
    """

    __tablename__ = "submissions"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    tags: Mapped[list[str] | None] = mapped_column(JsonList)
    disciplines: Mapped[list[str] | None] = mapped_column(JsonList)
    contact: Mapped[str | None] = mapped_column(Text)
    page: Mapped[str | None] = mapped_column(Text)
    ip: Mapped[str | None] = mapped_column(Text)
    user_agent: Mapped[str | None] = mapped_column(Text)
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    status: Mapped[str] = mapped_column(Text, nullable=False, server_default=SubmissionStatus.PENDING.value)
    admin_note: Mapped[str | None] = mapped_column(Text)
    admin_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("submissions_ts_idx", "ts"),
        Index("submissions_status_idx", "status"),
        Index("submissions_ip_ts_idx", "ip", "ts"),
    )

    def __repr__(self) -> str:
        return f"<SubmissionORM(id={self.id!r}, status={self.status!r}, ts={self.ts!r})>"


def _json_dumps(value: Any) -> str:
    # Keep non-ASCII tags searchable as text in backends that store JSON as TEXT.
    return json.dumps(value, ensure_ascii=False)


def _to_record(row: SubmissionORM) -> SubmissionRecord:
    return SubmissionRecord(
        id=row.id,
        name=row.name,
        url=row.url,
        description=row.description or "",
        tags=list(row.tags or []),
        disciplines=list(row.disciplines or []),
        contact=row.contact or "",
        page=row.page or "",
        ip=row.ip or "",
        user_agent=row.user_agent or "",
        ts=ensure_utc(row.ts),
        status=SubmissionStatus(row.status),
        admin_note=row.admin_note or "",
        admin_at=ensure_utc(row.admin_at) if row.admin_at else None,
    )


def _to_row(record: SubmissionRecord) -> SubmissionORM:
    return SubmissionORM(
        id=record.id,
        name=record.name,
        url=record.url,
        description=record.description,
        tags=list(record.tags),
        disciplines=list(record.disciplines),
        contact=record.contact,
        page=record.page,
        ip=record.ip,
        user_agent=record.user_agent,
        ts=ensure_utc(record.ts),
        status=record.status.value,
        admin_note=record.admin_note or None,
        admin_at=record.admin_at,
    )


def normalize_database_url(url: str) -> str:
    """Select the asyncpg driver for plain PostgreSQL URLs.

    Examples:
        >>> normalize_database_url("postgres://u:p@db/app")
        'postgresql+asyncpg://u:p@db/app'
    """
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


class SqlRecordStore(AbstractRecordStore):
    """Record store backed by a ``submissions`` table.

    The table and its indexes are created on first use.
    """

    backend_name = "sql"

    def __init__(self, database_url: str, *, echo: bool = False, **engine_kwargs: Any) -> None:
        """Create the async engine and session factory.

        Args:
            database_url: SQLAlchemy URL; plain postgres URLs get the asyncpg driver.
            echo: Log emitted SQL.
            **engine_kwargs: Passed through to ``create_async_engine`` (e.g. poolclass).
        """
        engine_kwargs.setdefault("pool_pre_ping", True)
        self._engine: AsyncEngine = create_async_engine(
            normalize_database_url(database_url),
            echo=echo,
            json_serializer=_json_dumps,
            **engine_kwargs,
        )
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            autoflush=False,
            expire_on_commit=False,
            class_=AsyncSession,
        )
        self._schema_ready = False
        self._schema_lock = asyncio.Lock()

    async def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        async with self._schema_lock:
            if self._schema_ready:
                return
            try:
                async with self._engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
            except (SQLAlchemyError, OSError) as exc:
                logger.error("store.schema_failed", extra={"error_type": type(exc).__name__})
                raise StoreUnavailableError(
                    code="store_unavailable",
                    message="Record store is unavailable",
                    details={"backend": self.backend_name},
                ) from exc
            self._schema_ready = True

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session that commits on success and rolls back on error.

        SQLAlchemy failures surface as StoreUnavailableError; domain errors
        raised inside the block propagate unchanged.
        """
        await self._ensure_schema()
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise
            except (SQLAlchemyError, OSError) as exc:
                await session.rollback()
                logger.error(
                    "store.query_failed",
                    extra={"backend": self.backend_name, "error_type": type(exc).__name__},
                )
                raise StoreUnavailableError(
                    code="store_unavailable",
                    message="Record store is unavailable",
                    details={"backend": self.backend_name},
                ) from exc
            except Exception:
                await session.rollback()
                raise

    async def insert(self, record: SubmissionRecord) -> None:
        try:
            async with self._session() as session:
                session.add(_to_row(record))
        except IntegrityError as exc:
            raise DuplicateIdError(
                code="duplicate_id",
                message="A submission with this id already exists",
                details={"record_id": record.id},
            ) from exc

    async def get(self, record_id: str) -> SubmissionRecord:
        async with self._session() as session:
            row = await session.get(SubmissionORM, record_id)
            if row is None:
                raise NotFoundAppError(code="not_found", message="Not found", details={"record_id": record_id})
            return _to_record(row)

    async def update(
        self,
        record_id: str,
        status: SubmissionStatus,
        note: str = "",
    ) -> SubmissionRecord:
        async with self._session() as session:
            row = await session.get(SubmissionORM, record_id)
            if row is None:
                raise NotFoundAppError(code="not_found", message="Not found", details={"record_id": record_id})
            row.status = SubmissionStatus(status).value
            row.admin_note = note
            row.admin_at = datetime.now(timezone.utc)
            return _to_record(row)

    async def list(
        self,
        *,
        query: str | None = None,
        cursor: str | None = None,
        limit: int = 20,
    ) -> SubmissionPage:
        limit = clamp_page_size(limit)
        stmt = select(SubmissionORM)

        if query:
            stmt = stmt.where(
                or_(
                    SubmissionORM.name.icontains(query, autoescape=True),
                    SubmissionORM.url.icontains(query, autoescape=True),
                    SubmissionORM.description.icontains(query, autoescape=True),
                    SubmissionORM.contact.icontains(query, autoescape=True),
                    cast(SubmissionORM.tags, String).icontains(query, autoescape=True),
                    cast(SubmissionORM.disciplines, String).icontains(query, autoescape=True),
                )
            )

        if cursor:
            cursor_ts, cursor_id = decode_cursor(cursor)
            stmt = stmt.where(
                or_(
                    SubmissionORM.ts < cursor_ts,
                    and_(SubmissionORM.ts == cursor_ts, SubmissionORM.id < cursor_id),
                )
            )

        stmt = stmt.order_by(SubmissionORM.ts.desc(), SubmissionORM.id.desc()).limit(limit)

        async with self._session() as session:
            rows = (await session.scalars(stmt)).all()

        items = [_to_record(row) for row in rows]
        next_cursor = encode_cursor(items[-1].ts, items[-1].id) if items else None
        return SubmissionPage(items=items, next_cursor=next_cursor)

    async def count_recent(self, ip: str, since: datetime) -> int:
        stmt = (
            select(func.count())
            .select_from(SubmissionORM)
            .where(SubmissionORM.ip == ip, SubmissionORM.ts > ensure_utc(since))
        )
        async with self._session() as session:
            return int((await session.scalar(stmt)) or 0)

    async def aclose(self) -> None:
        await self._engine.dispose()
