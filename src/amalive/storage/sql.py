"""SQLAlchemy-backed durable client storage.

One ``client_storage`` table of key/value rows. SQLite by default
(``sqlite+aiosqlite``), any async SQLAlchemy URL works.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String, Text, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from amalive.core.errors import StorageError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

    from amalive.config.schema import StorageConfig


def _utcnow() -> datetime:
    """Current UTC time for timestamps."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Declarative base for client storage models."""


class ClientValue(Base):
    """A single persisted key/value pair."""

    __tablename__ = "client_storage"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[str] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )


class SqlKeyValueStorage:
    """Async key-value storage over a SQLAlchemy session factory."""

    def __init__(self, factory: async_sessionmaker[AsyncSession]) -> None:
        self._factory = factory

    async def get(self, key: str) -> str | None:
        try:
            async with self._factory() as session:
                result = await session.execute(
                    select(ClientValue.value).where(ClientValue.key == key)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            msg = f"Cannot read {key!r}: {e}"
            raise StorageError(msg) from e

    async def set(self, key: str, value: str) -> None:
        try:
            async with self._factory() as session:
                row = await session.get(ClientValue, key)
                if row is None:
                    session.add(ClientValue(key=key, value=value))
                else:
                    row.value = value
                await session.commit()
        except SQLAlchemyError as e:
            msg = f"Cannot write {key!r}: {e}"
            raise StorageError(msg) from e


async def create_storage(
    config: StorageConfig,
) -> tuple[SqlKeyValueStorage, AsyncEngine]:
    """Create the engine, ensure the table exists, and return the storage.

    The caller owns the engine and must ``await engine.dispose()``.
    """
    url = config.url
    if "~" in url:
        url = url.replace("~", str(Path.home()))

    engine_kwargs: dict[str, object] = {}
    if url.startswith("sqlite"):
        db_path = url.split("///")[-1] if "///" in url else ""
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        if not db_path or ":memory:" in url:
            # In-memory SQLite needs StaticPool so every session sees
            # the same database.
            from sqlalchemy.pool import StaticPool

            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}

    engine = create_async_engine(url, **engine_kwargs)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except SQLAlchemyError as e:
        await engine.dispose()
        msg = f"Cannot initialise client storage at {config.url}: {e}"
        raise StorageError(msg) from e

    factory = async_sessionmaker(engine, expire_on_commit=False)
    return SqlKeyValueStorage(factory), engine
