"""Factory helpers for the notification pipeline."""

from __future__ import annotations

import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nerdiversary.config import Settings
from nerdiversary.milestones.calculator import MilestoneCalculator
from nerdiversary.notifications.contracts import MilestoneSource, PushSender
from nerdiversary.notifications.dispatcher import PushDispatcher
from nerdiversary.notifications.family_member_repo import FamilyMemberRepository
from nerdiversary.notifications.ledger import DedupLedger
from nerdiversary.notifications.pipeline import NotificationPipeline
from nerdiversary.notifications.push_sender import NullPushSender, VapidConfig, WebPushSender
from nerdiversary.notifications.scan_state_repo import ScanStateRepository
from nerdiversary.notifications.scanner import MilestoneScanner
from nerdiversary.notifications.subscription_repo import SubscriptionRepository
from nerdiversary.notifications.templates import PayloadDefaults


def build_push_sender(settings: Settings) -> PushSender:
  """Return a real sender only when push is enabled and fully configured."""
  if settings.push_notifications_enabled and settings.push_vapid_public_key and settings.push_vapid_private_key and settings.push_vapid_sub:
    vapid_config = VapidConfig(public_key=settings.push_vapid_public_key, private_key=settings.push_vapid_private_key, sub=settings.push_vapid_sub)
    return WebPushSender(vapid_config=vapid_config, timeout_seconds=settings.push_timeout_seconds, max_attempts=settings.push_max_attempts, backoff_seconds=settings.push_backoff_seconds)

  return NullPushSender()


def build_pipeline(
  settings: Settings, *, session_factory: async_sessionmaker[AsyncSession] | None = None, push_sender: PushSender | None = None, milestone_source: MilestoneSource | None = None
) -> NotificationPipeline:
  """Wire stores, scanner and dispatcher from configuration."""
  subscription_repo = SubscriptionRepository(session_factory)
  family_repo = FamilyMemberRepository(session_factory)
  ledger = DedupLedger(session_factory)
  scanner = MilestoneScanner(
    subscription_repo=subscription_repo,
    family_repo=family_repo,
    milestone_source=milestone_source or MilestoneCalculator(timezone_name=settings.milestone_timezone),
    tolerance=datetime.timedelta(seconds=settings.scan_interval_seconds),
    max_catchup=datetime.timedelta(seconds=settings.scan_max_catchup_seconds),
    timezone_name=settings.milestone_timezone,
    ledger=ledger,
  )
  return NotificationPipeline(
    subscription_repo=subscription_repo,
    family_repo=family_repo,
    scanner=scanner,
    ledger=ledger,
    dispatcher=PushDispatcher(push_sender=push_sender or build_push_sender(settings)),
    scan_state_repo=ScanStateRepository(session_factory),
    payload_defaults=PayloadDefaults(app_base_url=settings.app_base_url, icon=settings.notification_icon, badge=settings.notification_badge),
    dispatch_concurrency=settings.dispatch_concurrency,
    lease_ttl=datetime.timedelta(seconds=settings.scan_lease_seconds),
  )
