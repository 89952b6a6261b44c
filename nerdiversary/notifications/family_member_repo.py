"""Repository helpers for family member birthdates."""

from __future__ import annotations

import logging
import urllib.parse
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nerdiversary.core.database import get_session_factory
from nerdiversary.notifications.contracts import FamilyMemberRecord, ValidationError
from nerdiversary.schema.family_members import FamilyMember
from nerdiversary.schema.subscriptions import Subscription
from nerdiversary.utils.time import DEFAULT_BIRTH_TIME, ensure_utc, normalize_birth_datetime

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100
MAX_MEMBERS_PER_SUBSCRIPTION = 20


@dataclass(frozen=True)
class FamilyMemberEntry:
  """Capture a single person to be stored for a subscription."""

  name: str
  birth_datetime: str


def parse_family_param(family_param: str | None) -> list[FamilyMemberEntry]:
  """Decode the front-end family deep link ``Name|YYYY-MM-DD|HH:MM,...``.

  Entries without a name or with an unparseable date are dropped, matching the results page.
  """
  if not family_param:
    return []

  entries: list[FamilyMemberEntry] = []
  for chunk in family_param.split(","):
    parts = chunk.split("|")
    name = urllib.parse.unquote(parts[0]).strip() if parts else ""
    date_str = parts[1].strip() if len(parts) > 1 else ""
    time_str = parts[2].strip() if len(parts) > 2 and parts[2].strip() else DEFAULT_BIRTH_TIME
    if not name:
      continue
    try:
      birth = normalize_birth_datetime(f"{date_str}T{time_str}")
    except ValueError:
      continue
    entries.append(FamilyMemberEntry(name=name, birth_datetime=birth))

  return entries


def build_family_param(members: Iterable[FamilyMemberRecord | FamilyMemberEntry]) -> str:
  """Encode members back into the deep-link format used by the results page."""
  chunks = []
  for member in members:
    date_part, _, time_part = member.birth_datetime.partition("T")
    chunks.append(f"{urllib.parse.quote(member.name, safe='')}|{date_part}|{time_part or DEFAULT_BIRTH_TIME}")
  return ",".join(chunks)


def _validate_entry(name: str, birth_datetime: str) -> FamilyMemberEntry:
  normalized_name = (name or "").strip()
  if not normalized_name:
    raise ValidationError("Family member name must not be empty.")

  if len(normalized_name) > MAX_NAME_LENGTH:
    raise ValidationError(f"Family member name must be at most {MAX_NAME_LENGTH} characters.")

  try:
    normalized_birth = normalize_birth_datetime(birth_datetime)
  except ValueError as exc:
    raise ValidationError(str(exc)) from exc

  return FamilyMemberEntry(name=normalized_name, birth_datetime=normalized_birth)


def _to_record(row: FamilyMember) -> FamilyMemberRecord:
  return FamilyMemberRecord(id=row.id, subscription_id=row.subscription_id, name=row.name, birth_datetime=row.birth_datetime, created_at=ensure_utc(row.created_at) if row.created_at else None)


class FamilyMemberRepository:
  """Persist birthdates owned by a subscription."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory

  def _sessions(self) -> async_sessionmaker[AsyncSession]:
    return self._session_factory or get_session_factory()

  async def add(self, subscription_id: str, name: str, birth_datetime: str) -> FamilyMemberRecord:
    """Store one person; the birth instant is validated before anything is written."""
    entry = _validate_entry(name, birth_datetime)
    async with self._sessions()() as session:
      await self._require_subscription(session=session, subscription_id=subscription_id)
      row = FamilyMember(subscription_id=subscription_id, name=entry.name, birth_datetime=entry.birth_datetime)
      session.add(row)
      await session.commit()
      return _to_record(row)

  async def list_for(self, subscription_id: str) -> list[FamilyMemberRecord]:
    """List a subscription's members in birth order."""
    async with self._sessions()() as session:
      stmt = select(FamilyMember).where(FamilyMember.subscription_id == subscription_id).order_by(FamilyMember.birth_datetime, FamilyMember.id)
      result = await session.execute(stmt)
      return [_to_record(row) for row in result.scalars().all()]

  async def remove(self, member_id: int) -> bool:
    async with self._sessions()() as session:
      result = await session.execute(delete(FamilyMember).where(FamilyMember.id == member_id))
      await session.commit()
      return bool(result.rowcount)

  async def replace_for(self, subscription_id: str, members: Iterable[FamilyMemberEntry]) -> list[FamilyMemberRecord]:
    """Atomically swap a subscription's members for the given set."""
    entries = [_validate_entry(member.name, member.birth_datetime) for member in members]
    if len(entries) > MAX_MEMBERS_PER_SUBSCRIPTION:
      raise ValidationError(f"At most {MAX_MEMBERS_PER_SUBSCRIPTION} family members are allowed per subscription.")

    async with self._sessions()() as session:
      await self._require_subscription(session=session, subscription_id=subscription_id)
      await session.execute(delete(FamilyMember).where(FamilyMember.subscription_id == subscription_id))
      rows = [FamilyMember(subscription_id=subscription_id, name=entry.name, birth_datetime=entry.birth_datetime) for entry in entries]
      session.add_all(rows)
      await session.commit()
      logger.info("Family members replaced subscription_id=%s count=%d", subscription_id, len(rows))
      return [_to_record(row) for row in rows]

  async def _require_subscription(self, *, session: AsyncSession, subscription_id: str) -> None:
    # Members must never exist without their subscription.
    if await session.get(Subscription, subscription_id) is None:
      raise ValidationError(f"Unknown subscription {subscription_id}")
