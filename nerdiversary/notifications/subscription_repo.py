"""Repository helpers for Web Push subscription persistence."""

from __future__ import annotations

import hashlib
import logging

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nerdiversary.core.database import get_session_factory
from nerdiversary.notifications.contracts import LeadTimes, SubscriptionRecord, ValidationError
from nerdiversary.schema.family_members import FamilyMember
from nerdiversary.schema.notification_claims import NotificationClaim
from nerdiversary.schema.notification_log import NotificationLog
from nerdiversary.schema.subscriptions import Subscription, storage_now
from nerdiversary.utils.time import ensure_utc

logger = logging.getLogger(__name__)


def subscription_id_for(endpoint: str) -> str:
  """Return the stable identity of a push endpoint."""
  return hashlib.sha256(endpoint.strip().encode("utf-8")).hexdigest()


def _to_record(row: Subscription) -> SubscriptionRecord:
  return SubscriptionRecord(
    id=row.id,
    endpoint=row.endpoint,
    p256dh=row.p256dh,
    auth=row.auth,
    lead_times=row.notification_times or LeadTimes(),
    created_at=ensure_utc(row.created_at) if row.created_at else None,
    updated_at=ensure_utc(row.updated_at) if row.updated_at else None,
  )


class SubscriptionRepository:
  """Persist and manage push subscriptions."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory

  def _sessions(self) -> async_sessionmaker[AsyncSession]:
    return self._session_factory or get_session_factory()

  async def create(self, *, endpoint: str, p256dh: str, auth: str, lead_times: LeadTimes | None = None) -> SubscriptionRecord:
    """Insert or update a subscription keyed by its endpoint hash."""
    endpoint = (endpoint or "").strip()
    p256dh = (p256dh or "").strip()
    auth = (auth or "").strip()
    if not endpoint:
      raise ValidationError("Push endpoint must not be empty.")

    if not p256dh or not auth:
      raise ValidationError("Push subscription keys must not be empty.")

    async with self._sessions()() as session:
      return await self._create_with_session(session=session, endpoint=endpoint, p256dh=p256dh, auth=auth, lead_times=lead_times or LeadTimes())

  async def _create_with_session(self, *, session: AsyncSession, endpoint: str, p256dh: str, auth: str, lead_times: LeadTimes) -> SubscriptionRecord:
    # Upsert by endpoint hash so a browser re-registering rotates keys without duplicating rows.
    subscription_id = subscription_id_for(endpoint)
    now = storage_now()
    insert = pg_insert if session.get_bind().dialect.name == "postgresql" else sqlite_insert
    stmt = insert(Subscription).values(id=subscription_id, endpoint=endpoint, p256dh=p256dh, auth=auth, notification_times=lead_times, created_at=now, updated_at=now)
    stmt = stmt.on_conflict_do_update(index_elements=["id"], set_={"endpoint": endpoint, "p256dh": p256dh, "auth": auth, "notification_times": lead_times, "updated_at": now})
    await session.execute(stmt)
    await session.commit()

    row = await session.get(Subscription, subscription_id, populate_existing=True)
    if row is None:
      raise RuntimeError(f"Subscription {subscription_id} vanished after upsert")

    logger.info("Push subscription saved subscription_id=%s lead_times=%s", subscription_id, list(lead_times))
    return _to_record(row)

  async def get(self, subscription_id: str) -> SubscriptionRecord | None:
    async with self._sessions()() as session:
      row = await session.get(Subscription, subscription_id)
      return _to_record(row) if row is not None else None

  async def get_by_endpoint(self, endpoint: str) -> SubscriptionRecord | None:
    return await self.get(subscription_id_for(endpoint))

  async def list_active(self) -> list[SubscriptionRecord]:
    """List every stored subscription; retired ones are deleted, so all rows are active."""
    async with self._sessions()() as session:
      result = await session.execute(select(Subscription).order_by(Subscription.created_at, Subscription.id))
      return [_to_record(row) for row in result.scalars().all()]

  async def update_lead_times(self, subscription_id: str, lead_times: LeadTimes) -> bool:
    """Replace the lead-time preferences; returns False when the subscription does not exist."""
    async with self._sessions()() as session:
      stmt = update(Subscription).where(Subscription.id == subscription_id).values(notification_times=lead_times, updated_at=storage_now())
      result = await session.execute(stmt)
      await session.commit()
      return bool(result.rowcount)

  async def delete(self, subscription_id: str) -> bool:
    """Delete a subscription and everything it owns in one transaction.

    Safe to call for an id that is already gone; returns whether a subscription row was removed.
    """
    async with self._sessions()() as session:
      return await self._delete_with_session(session=session, subscription_id=subscription_id)

  async def _delete_with_session(self, *, session: AsyncSession, subscription_id: str) -> bool:
    # Delete children explicitly so the cascade holds even where FK enforcement is off.
    await session.execute(delete(NotificationClaim).where(NotificationClaim.subscription_id == subscription_id))
    await session.execute(delete(NotificationLog).where(NotificationLog.subscription_id == subscription_id))
    await session.execute(delete(FamilyMember).where(FamilyMember.subscription_id == subscription_id))
    result = await session.execute(delete(Subscription).where(Subscription.id == subscription_id))
    await session.commit()

    removed = bool(result.rowcount)
    if removed:
      logger.info("Push subscription deleted subscription_id=%s", subscription_id)
    return removed

  async def delete_by_endpoint(self, endpoint: str) -> bool:
    return await self.delete(subscription_id_for(endpoint))
