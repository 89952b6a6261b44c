from __future__ import annotations

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from nerdiversary.config import get_database_settings


class Base(DeclarativeBase):
  pass


engine: AsyncEngine | None = None
SessionLocal: async_sessionmaker[AsyncSession] | None = None


def normalize_database_url(raw: str) -> str:
  """Coerce DSNs onto the async drivers SQLAlchemy needs."""
  database_url = raw.strip()
  if database_url.startswith("postgresql://"):
    return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

  if database_url.startswith("postgres://"):
    return database_url.replace("postgres://", "postgresql+asyncpg://", 1)

  if database_url.startswith("sqlite://"):
    return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)

  return database_url


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
  # SQLite ships with FK enforcement off; cascade deletes are still issued explicitly by the stores.
  cursor = dbapi_connection.cursor()
  cursor.execute("PRAGMA foreign_keys=ON")
  cursor.close()


def build_engine(database_url: str, *, echo: bool = False) -> AsyncEngine:
  """Create an async engine for the given DSN with per-dialect connection setup."""
  db_engine = create_async_engine(normalize_database_url(database_url), echo=echo, future=True)
  if db_engine.dialect.name == "sqlite":
    event.listen(db_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
  return db_engine


def build_session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
  return async_sessionmaker(bind=db_engine, expire_on_commit=False, class_=AsyncSession)


def get_db_engine() -> AsyncEngine:
  global engine
  if engine is None:
    settings = get_database_settings()
    engine = build_engine(settings.pg_dsn, echo=settings.debug)
  return engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
  global SessionLocal
  if SessionLocal is None:
    SessionLocal = build_session_factory(get_db_engine())
  return SessionLocal


async def create_schema(db_engine: AsyncEngine | None = None) -> None:
  """Create tables straight from the models for throwaway databases; deployed databases use migrations."""
  # Import models so they register on the metadata before create_all runs.
  import nerdiversary.schema  # noqa: F401

  target = db_engine or get_db_engine()
  async with target.begin() as connection:
    await connection.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
  """Close pooled connections and forget the cached engine."""
  global engine, SessionLocal
  if engine is not None:
    await engine.dispose()
  engine = None
  SessionLocal = None
