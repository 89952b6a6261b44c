"""Persistent dedup ledger guaranteeing at-most-once delivery per notification key."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nerdiversary.core.database import get_session_factory
from nerdiversary.notifications.contracts import DedupKey, StorageError
from nerdiversary.schema.notification_claims import NotificationClaim
from nerdiversary.schema.notification_log import NotificationLog
from nerdiversary.utils.time import to_storage, utc_now

logger = logging.getLogger(__name__)


class DedupLedger:
  """Claim, record and release notification keys.

  ``try_claim`` is a single unique-key insert, so two workers racing on one key cannot both win.
  A claim that is never recorded (a crash between claim and delivery) stays claimed: the
  notification is missed rather than sent twice.
  """

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory

  def _sessions(self) -> async_sessionmaker[AsyncSession]:
    return self._session_factory or get_session_factory()

  async def try_claim(self, key: DedupKey) -> bool:
    """Reserve a key; returns False when it was already claimed or sent."""
    try:
      async with self._sessions()() as session:
        session.add(NotificationClaim(dedup_key=key.digest, subscription_id=key.subscription_id, claimed_at=to_storage(utc_now())))
        await session.commit()
        return True
    except IntegrityError:
      # Unique violation: another worker owns the key. FK violation: the subscription was retired meanwhile.
      return False
    except SQLAlchemyError as exc:
      raise StorageError(f"Dedup claim failed for subscription_id={key.subscription_id}: {exc}") from exc

  async def is_claimed(self, key: DedupKey) -> bool:
    return bool(await self.claimed_keys([key]))

  async def claimed_keys(self, keys: Iterable[DedupKey]) -> set[str]:
    """Return the digests among ``keys`` that already hold a claim; read-only."""
    digests = list({key.digest for key in keys})
    if not digests:
      return set()

    found: set[str] = set()
    try:
      async with self._sessions()() as session:
        # Chunk to stay under driver bind-parameter limits.
        for start in range(0, len(digests), 500):
          chunk = digests[start : start + 500]
          result = await session.execute(select(NotificationClaim.dedup_key).where(NotificationClaim.dedup_key.in_(chunk)))
          found.update(result.scalars().all())
    except SQLAlchemyError as exc:
      raise StorageError(f"Dedup lookup failed: {exc}") from exc

    return found

  async def record(self, key: DedupKey, *, milestone_id: str, title: str, body: str, sent_at: datetime.datetime) -> bool:
    """Append the audit row for a delivered notification; duplicates are ignored."""
    entry = NotificationLog(
      subscription_id=key.subscription_id,
      person_name=key.person_name,
      milestone_id=milestone_id,
      milestone_at=to_storage(key.milestone_at),
      lead_minutes=key.lead_minutes,
      dedup_key=key.digest,
      title=title,
      body=body,
      sent_at=to_storage(sent_at),
    )
    try:
      async with self._sessions()() as session:
        session.add(entry)
        await session.commit()
        return True
    except IntegrityError:
      logger.warning("Notification already recorded dedup_key=%s", key.digest)
      return False
    except SQLAlchemyError as exc:
      raise StorageError(f"Notification log insert failed for subscription_id={key.subscription_id}: {exc}") from exc

  async def release(self, key: DedupKey) -> None:
    """Drop a claim whose delivery never completed so a later scan can retry it."""
    try:
      async with self._sessions()() as session:
        await session.execute(delete(NotificationClaim).where(NotificationClaim.dedup_key == key.digest))
        await session.commit()
    except SQLAlchemyError as exc:
      raise StorageError(f"Dedup release failed for subscription_id={key.subscription_id}: {exc}") from exc
