"""One scan tick: lease, scan, claim, deliver, settle, advance."""

from __future__ import annotations

import asyncio
import datetime
import logging
import os
import socket
import uuid
from collections import defaultdict
from dataclasses import asdict, dataclass

from nerdiversary.notifications.contracts import DeliveryResult, PendingNotification, StorageError, SubscriptionRecord
from nerdiversary.notifications.dispatcher import PushDispatcher
from nerdiversary.notifications.family_member_repo import FamilyMemberRepository, build_family_param
from nerdiversary.notifications.ledger import DedupLedger
from nerdiversary.notifications.scan_state_repo import ScanStateRepository
from nerdiversary.notifications.scanner import MilestoneScanner
from nerdiversary.notifications.subscription_repo import SubscriptionRepository
from nerdiversary.notifications.templates import PayloadDefaults, render_payload
from nerdiversary.schema.scan_state import LEASE_OWNER_LENGTH
from nerdiversary.utils.time import ensure_utc, utc_now

logger = logging.getLogger(__name__)


@dataclass
class ScanReport:
  """Counters describing what one tick did."""

  now: datetime.datetime
  skipped: bool = False
  due: int = 0
  delivered: int = 0
  already_claimed: int = 0
  transient_failures: int = 0
  retired_subscriptions: int = 0
  failed: int = 0

  def to_dict(self) -> dict[str, object]:
    payload = asdict(self)
    payload["now"] = self.now.isoformat()
    return payload


def default_owner() -> str:
  """Identify this runner in the persisted lease."""
  suffix = f":{os.getpid()}:{uuid.uuid4().hex[:8]}"
  # FQDNs and pod names can be long; the column holds LEASE_OWNER_LENGTH characters.
  return socket.gethostname()[: LEASE_OWNER_LENGTH - len(suffix)] + suffix


class NotificationPipeline:
  """Run scan ticks without ever delivering the same notification twice."""

  def __init__(
    self,
    *,
    subscription_repo: SubscriptionRepository,
    family_repo: FamilyMemberRepository,
    scanner: MilestoneScanner,
    ledger: DedupLedger,
    dispatcher: PushDispatcher,
    scan_state_repo: ScanStateRepository,
    payload_defaults: PayloadDefaults,
    dispatch_concurrency: int = 8,
    lease_ttl: datetime.timedelta = datetime.timedelta(minutes=10),
    owner: str | None = None,
  ) -> None:
    self._subscription_repo = subscription_repo
    self._family_repo = family_repo
    self._scanner = scanner
    self._ledger = ledger
    self._dispatcher = dispatcher
    self._scan_state_repo = scan_state_repo
    self._payload_defaults = payload_defaults
    self._dispatch_concurrency = max(1, dispatch_concurrency)
    self._lease_ttl = lease_ttl
    self._owner = (owner or default_owner())[:LEASE_OWNER_LENGTH]
    self._lock = asyncio.Lock()

  async def run_scan(self, now: datetime.datetime | None = None) -> ScanReport:
    """Run one tick; returns a skipped report when another tick is already running."""
    now = ensure_utc(now) if now is not None else utc_now()
    report = ScanReport(now=now)

    # In-process overlap is refused outright; cross-process overlap is refused by the lease.
    if self._lock.locked():
      logger.info("Scan already running in this process; skipping now=%s", now.isoformat())
      report.skipped = True
      return report

    # Without a working sender nothing is claimed, so due items stay deliverable once push is configured.
    if not self._dispatcher.enabled:
      logger.warning("Push delivery is disabled; skipping scan now=%s", now.isoformat())
      report.skipped = True
      return report

    async with self._lock:
      if not await self._scan_state_repo.acquire_lease(owner=self._owner, now=now, ttl=self._lease_ttl):
        report.skipped = True
        return report

      completed = False
      try:
        since = await self._scan_state_repo.get_watermark()
        pending = await self._scanner.scan(now, since=since)
        report.due = len(pending)
        await self._dispatch_all(pending, report)
        completed = True
      finally:
        try:
          # Only a completed tick moves the watermark.
          if completed:
            await self._scan_state_repo.advance_watermark(to=now)
        finally:
          await self._scan_state_repo.release_lease(owner=self._owner)

    logger.info("Scan finished %s", report.to_dict())
    return report

  async def _dispatch_all(self, pending: list[PendingNotification], report: ScanReport) -> None:
    groups: dict[str, list[PendingNotification]] = defaultdict(list)
    for item in pending:
      groups[item.subscription_id].append(item)

    semaphore = asyncio.Semaphore(self._dispatch_concurrency)
    await asyncio.gather(*(self._run_group(semaphore, subscription_id, items, report) for subscription_id, items in groups.items()))

  async def _run_group(self, semaphore: asyncio.Semaphore, subscription_id: str, items: list[PendingNotification], report: ScanReport) -> None:
    async with semaphore:
      try:
        await self._process_subscription(subscription_id, items, report)
      except Exception:  # noqa: BLE001
        # One subscription's failure must never stop the others.
        logger.error("Dispatch failed subscription_id=%s", subscription_id, exc_info=True)
        report.failed += 1

  async def _process_subscription(self, subscription_id: str, items: list[PendingNotification], report: ScanReport) -> None:
    subscription = await self._subscription_repo.get(subscription_id)
    if subscription is None:
      logger.info("Subscription retired before dispatch subscription_id=%s", subscription_id)
      return

    family_param = build_family_param(await self._family_repo.list_for(subscription_id))
    # Notifications of one endpoint go out in order, one at a time.
    for item in items:
      result = await self._process_one(subscription, item, family_param, report)
      if result is DeliveryResult.PERMANENTLY_FAILED:
        break

  async def _process_one(self, subscription: SubscriptionRecord, item: PendingNotification, family_param: str, report: ScanReport) -> DeliveryResult | None:
    key = item.key
    try:
      claimed = await self._ledger.try_claim(key)
    except StorageError as exc:
      logger.error("Dedup claim failed subscription_id=%s: %s", subscription.id, exc)
      report.failed += 1
      return None

    if not claimed:
      report.already_claimed += 1
      return None

    payload = render_payload(item, defaults=self._payload_defaults, family_param=family_param)
    result = await self._dispatcher.deliver(subscription, payload)

    if result is DeliveryResult.DELIVERED:
      report.delivered += 1
      try:
        await self._ledger.record(key, milestone_id=item.milestone.id, title=payload.title, body=payload.body, sent_at=utc_now())
      except Exception as exc:  # noqa: BLE001
        # The claim already blocks a resend, so a missing audit row is only logged.
        logger.error("Notification log insert failed subscription_id=%s: %s", subscription.id, exc)

    elif result is DeliveryResult.PERMANENTLY_FAILED:
      try:
        await self._subscription_repo.delete(subscription.id)
        report.retired_subscriptions += 1
      except Exception as exc:  # noqa: BLE001
        logger.error("Failed retiring push subscription subscription_id=%s: %s", subscription.id, exc, exc_info=True)

    else:
      report.transient_failures += 1
      try:
        await self._ledger.release(key)
      except Exception as exc:  # noqa: BLE001
        logger.error("Dedup release failed subscription_id=%s: %s", subscription.id, exc)

    return result
