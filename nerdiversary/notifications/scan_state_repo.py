"""Persisted scan watermark and single-flight run lease."""

from __future__ import annotations

import datetime
import logging

from sqlalchemy import or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nerdiversary.core.database import get_session_factory
from nerdiversary.schema.scan_state import ScanState
from nerdiversary.utils.time import ensure_utc, to_storage

logger = logging.getLogger(__name__)

DEFAULT_SCANNER = "milestones"


class ScanStateRepository:
  """Track where the last completed scan ended and which runner may scan now."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory

  def _sessions(self) -> async_sessionmaker[AsyncSession]:
    return self._session_factory or get_session_factory()

  async def get_watermark(self, name: str = DEFAULT_SCANNER) -> datetime.datetime | None:
    async with self._sessions()() as session:
      result = await session.execute(select(ScanState.watermark).where(ScanState.name == name))
      watermark = result.scalar_one_or_none()
      return ensure_utc(watermark) if watermark is not None else None

  async def acquire_lease(self, *, owner: str, now: datetime.datetime, ttl: datetime.timedelta, name: str = DEFAULT_SCANNER) -> bool:
    """Take the run lease unless another owner holds an unexpired one."""
    now_value = to_storage(now)
    async with self._sessions()() as session:
      await self._ensure_row(session=session, name=name, now_value=now_value)
      # A conditional update is atomic on every backend, so only one runner sees rowcount == 1.
      stmt = (
        update(ScanState)
        .where(ScanState.name == name, or_(ScanState.lease_owner.is_(None), ScanState.lease_expires_at.is_(None), ScanState.lease_expires_at < now_value, ScanState.lease_owner == owner))
        .values(lease_owner=owner, lease_expires_at=to_storage(now + ttl), updated_at=now_value)
      )
      result = await session.execute(stmt)
      await session.commit()
      acquired = bool(result.rowcount)

    if not acquired:
      logger.info("Scan lease held elsewhere name=%s owner=%s", name, owner)
    return acquired

  async def release_lease(self, *, owner: str, name: str = DEFAULT_SCANNER) -> None:
    async with self._sessions()() as session:
      stmt = update(ScanState).where(ScanState.name == name, ScanState.lease_owner == owner).values(lease_owner=None, lease_expires_at=None)
      await session.execute(stmt)
      await session.commit()

  async def advance_watermark(self, *, to: datetime.datetime, name: str = DEFAULT_SCANNER) -> None:
    """Move the watermark forward; it never moves backwards."""
    value = to_storage(to)
    async with self._sessions()() as session:
      await self._ensure_row(session=session, name=name, now_value=value)
      stmt = update(ScanState).where(ScanState.name == name, or_(ScanState.watermark.is_(None), ScanState.watermark < value)).values(watermark=value, updated_at=value)
      await session.execute(stmt)
      await session.commit()

  async def _ensure_row(self, *, session: AsyncSession, name: str, now_value: datetime.datetime) -> None:
    insert = pg_insert if session.get_bind().dialect.name == "postgresql" else sqlite_insert
    stmt = insert(ScanState).values(name=name, updated_at=now_value).on_conflict_do_nothing(index_elements=["name"])
    await session.execute(stmt)
