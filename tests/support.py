"""Test doubles and builders shared by the unit and integration suites."""

from __future__ import annotations

import datetime

from nerdiversary.notifications.contracts import MilestoneEvent, PushNotification
from nerdiversary.notifications.dispatcher import PushDispatcher
from nerdiversary.notifications.family_member_repo import FamilyMemberRepository
from nerdiversary.notifications.ledger import DedupLedger
from nerdiversary.notifications.pipeline import NotificationPipeline
from nerdiversary.notifications.scan_state_repo import ScanStateRepository
from nerdiversary.notifications.scanner import MilestoneScanner
from nerdiversary.notifications.subscription_repo import SubscriptionRepository
from nerdiversary.notifications.templates import PayloadDefaults

VALID_ENDPOINT = "https://fcm.googleapis.com/fcm/send/abc"
VALID_P256DH = "BEl6f5Y8X5Y_u7d8mV_AbpZfXfTLT3s1O3L4wM1x8QY2_5qWQ-jxJq7uKjv8mQ4I"
VALID_AUTH = "gq8Yh5xA9l2mQ6pR"

TEST_DEFAULTS = PayloadDefaults(app_base_url="https://nerdiversary.com", icon="/assets/icon-192.png", badge="/assets/favicon-96x96.png")


def utc(*args: int) -> datetime.datetime:
  return datetime.datetime(*args, tzinfo=datetime.UTC)


def milestone(at: datetime.datetime, *, milestone_id: str = "days-10000", title: str = "10,000 Days", icon: str = "📆") -> MilestoneEvent:
  return MilestoneEvent(id=milestone_id, title=title, description=f"{title}!", icon=icon, category="decimal", at=at)


class FakeMilestoneSource:
  """Milestone source returning a fixed list, clipped to the requested horizon."""

  def __init__(self, events: list[MilestoneEvent]) -> None:
    self.events = events
    self.calls: list[tuple[datetime.datetime, datetime.datetime, datetime.timedelta]] = []

  def __call__(self, birth: datetime.datetime, as_of: datetime.datetime, horizon: datetime.timedelta) -> list[MilestoneEvent]:
    self.calls.append((birth, as_of, horizon))
    return [event for event in self.events if as_of <= event.at <= as_of + horizon]


class RecordingPushSender:
  """Push sender that records notifications and raises queued errors first."""

  enabled = True

  def __init__(self, errors: list[Exception] | None = None) -> None:
    self.sent: list[PushNotification] = []
    self.errors = list(errors or [])

  def send(self, notification: PushNotification) -> None:
    if self.errors:
      raise self.errors.pop(0)
    self.sent.append(notification)


def build_test_pipeline(
  session_factory,
  *,
  source,
  sender,
  tolerance: datetime.timedelta = datetime.timedelta(minutes=5),
  max_catchup: datetime.timedelta = datetime.timedelta(hours=1),
  owner: str = "test-runner",
) -> NotificationPipeline:
  subscription_repo = SubscriptionRepository(session_factory)
  family_repo = FamilyMemberRepository(session_factory)
  ledger = DedupLedger(session_factory)
  scanner = MilestoneScanner(subscription_repo=subscription_repo, family_repo=family_repo, milestone_source=source, tolerance=tolerance, max_catchup=max_catchup, ledger=ledger)
  return NotificationPipeline(
    subscription_repo=subscription_repo,
    family_repo=family_repo,
    scanner=scanner,
    ledger=ledger,
    dispatcher=PushDispatcher(push_sender=sender),
    scan_state_repo=ScanStateRepository(session_factory),
    payload_defaults=TEST_DEFAULTS,
    owner=owner,
  )
