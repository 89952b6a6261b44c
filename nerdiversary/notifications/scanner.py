"""Find the notifications that became due in a scan window."""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass

from nerdiversary.notifications.contracts import FamilyMemberRecord, MilestoneSource, PendingNotification, SubscriptionRecord
from nerdiversary.notifications.family_member_repo import FamilyMemberRepository
from nerdiversary.notifications.ledger import DedupLedger
from nerdiversary.notifications.subscription_repo import SubscriptionRepository
from nerdiversary.utils.time import birth_instant, ensure_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanWindow:
  """Closed interval of fire instants covered by one scan."""

  lower: datetime.datetime
  upper: datetime.datetime

  def contains(self, instant: datetime.datetime) -> bool:
    return self.lower <= instant <= self.upper


def compute_window(now: datetime.datetime, *, since: datetime.datetime | None, tolerance: datetime.timedelta, max_catchup: datetime.timedelta) -> ScanWindow:
  """Resolve the window ``[lower, now]`` for a scan.

  With a watermark the window reaches back to it (minus tolerance) so a late tick does not
  drop anything, but never further than ``max_catchup`` after long downtime.
  """
  now = ensure_utc(now)
  if since is None:
    return ScanWindow(lower=now - tolerance, upper=now)

  lower = max(ensure_utc(since) - tolerance, now - max_catchup)
  return ScanWindow(lower=min(lower, now), upper=now)


class MilestoneScanner:
  """Join subscriptions, their family members and the milestone source into due notifications.

  Read-only: the scanner never claims or writes anything. When a ledger is supplied, keys
  that already hold a claim are dropped from the result.
  """

  def __init__(
    self,
    *,
    subscription_repo: SubscriptionRepository,
    family_repo: FamilyMemberRepository,
    milestone_source: MilestoneSource,
    tolerance: datetime.timedelta,
    max_catchup: datetime.timedelta,
    timezone_name: str = "UTC",
    ledger: DedupLedger | None = None,
  ) -> None:
    self._subscription_repo = subscription_repo
    self._family_repo = family_repo
    self._milestone_source = milestone_source
    self._tolerance = tolerance
    self._max_catchup = max_catchup
    self._timezone_name = timezone_name
    self._ledger = ledger

  async def scan(self, now: datetime.datetime, *, since: datetime.datetime | None = None) -> list[PendingNotification]:
    window = compute_window(now, since=since, tolerance=self._tolerance, max_catchup=self._max_catchup)
    subscriptions = await self._subscription_repo.list_active()

    pending: list[PendingNotification] = []
    for subscription in subscriptions:
      try:
        members = await self._family_repo.list_for(subscription.id)
      except Exception:  # noqa: BLE001
        logger.error("Failed to load family members subscription_id=%s", subscription.id, exc_info=True)
        continue

      for member in members:
        pending.extend(self._due_for_member(subscription=subscription, member=member, window=window))

    pending = _dedupe(pending)
    if self._ledger is not None and pending:
      claimed = await self._ledger.claimed_keys(item.key for item in pending)
      pending = [item for item in pending if item.key.digest not in claimed]

    pending.sort(key=lambda item: (item.fire_at, item.subscription_id, item.person_name, -item.lead_minutes))
    logger.info("Scan window lower=%s upper=%s subscriptions=%d due=%d", window.lower.isoformat(), window.upper.isoformat(), len(subscriptions), len(pending))
    return pending

  def _due_for_member(self, *, subscription: SubscriptionRecord, member: FamilyMemberRecord, window: ScanWindow) -> list[PendingNotification]:
    lead_times = subscription.lead_times
    horizon = (window.upper - window.lower) + datetime.timedelta(minutes=lead_times.largest)
    try:
      birth = birth_instant(member.birth_datetime, self._timezone_name)
      milestones = self._milestone_source(birth, window.lower, horizon)
    except Exception:  # noqa: BLE001
      logger.error("Milestone computation failed subscription_id=%s member_id=%s", subscription.id, member.id, exc_info=True)
      return []

    due: list[PendingNotification] = []
    for milestone in milestones:
      for lead in lead_times:
        candidate = PendingNotification(subscription_id=subscription.id, person_name=member.name, milestone=milestone, lead_minutes=lead)
        if window.contains(candidate.fire_at):
          due.append(candidate)
    return due


def _dedupe(pending: list[PendingNotification]) -> list[PendingNotification]:
  # Two milestones of one person at the same instant share a key; keep the first.
  seen: set[str] = set()
  unique: list[PendingNotification] = []
  for item in pending:
    digest = item.key.digest
    if digest in seen:
      continue
    seen.add(digest)
    unique.append(item)
  return unique
