"""SQLAlchemy-backed :class:`~budget_engine.store.KeyValueStore` adapter.

Each collection is one row of ``budget_engine_kv`` holding the JSON document.
A write replaces the row inside a single transaction, so readers never see a
half-written collection.

Usage
-----
from budget_engine.sql_store import SqlStore

store = SqlStore.from_url("sqlite+pysqlite:///budget.db")
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from .store import _validate_key


class Base(DeclarativeBase):
    pass


class KvEntry(Base):
    __tablename__ = "budget_engine_kv"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def _database_url(override: str | None = None) -> str:
    url = override or os.getenv("BUDGET_ENGINE_DATABASE_URL")
    if not url:
        raise RuntimeError(
            "BUDGET_ENGINE_DATABASE_URL is not set; cannot initialize the SQL store"
        )
    return url


class SqlStore:
    def __init__(self, engine: Engine, *, create_schema: bool = True) -> None:
        self.engine = engine
        self._sessions: sessionmaker[Session] = sessionmaker(
            bind=engine, expire_on_commit=False, class_=Session
        )
        if create_schema:
            Base.metadata.create_all(bind=engine, tables=[KvEntry.__table__])

    @classmethod
    def from_url(cls, database_url: str | None = None) -> SqlStore:
        return cls(create_engine(_database_url(database_url), pool_pre_ping=True))

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""

        session = self._sessions()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get(self, key: str) -> Any:
        with self.session_scope() as session:
            row = session.get(KvEntry, _validate_key(key))
            return None if row is None else row.value

    def set(self, key: str, value: Any) -> None:
        now = datetime.now(UTC)
        with self.session_scope() as session:
            row = session.get(KvEntry, _validate_key(key))
            if row is None:
                session.add(KvEntry(key=key, value=value, updated_at=now))
            else:
                row.value = value
                row.updated_at = now


__all__ = ["Base", "KvEntry", "SqlStore"]
