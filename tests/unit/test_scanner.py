from __future__ import annotations

import datetime

import pytest

from nerdiversary.notifications.contracts import LeadTimes
from nerdiversary.notifications.scanner import MilestoneScanner, compute_window
from tests.support import VALID_AUTH, VALID_ENDPOINT, VALID_P256DH, FakeMilestoneSource, milestone, utc

TOLERANCE = datetime.timedelta(minutes=5)
MAX_CATCHUP = datetime.timedelta(hours=1)
MILESTONE_AT = utc(2030, 1, 1, 0, 0)


def test_window_without_watermark_covers_tolerance():
  window = compute_window(utc(2030, 1, 1), since=None, tolerance=TOLERANCE, max_catchup=MAX_CATCHUP)
  assert window.lower == utc(2029, 12, 31, 23, 55)
  assert window.upper == utc(2030, 1, 1)


def test_window_reaches_back_to_watermark():
  window = compute_window(utc(2030, 1, 1, 0, 20), since=utc(2030, 1, 1), tolerance=TOLERANCE, max_catchup=MAX_CATCHUP)
  assert window.lower == utc(2029, 12, 31, 23, 55)


def test_window_catch_up_is_bounded():
  window = compute_window(utc(2030, 1, 2), since=utc(2030, 1, 1), tolerance=TOLERANCE, max_catchup=MAX_CATCHUP)
  assert window.lower == utc(2030, 1, 1, 23)


def test_window_never_starts_after_now():
  now = utc(2030, 1, 1)
  window = compute_window(now, since=now + datetime.timedelta(hours=2), tolerance=TOLERANCE, max_catchup=MAX_CATCHUP)
  assert window.lower == now
  assert window.contains(now)


def test_window_is_closed_on_both_ends():
  window = compute_window(utc(2030, 1, 1), since=None, tolerance=TOLERANCE, max_catchup=MAX_CATCHUP)
  assert window.contains(window.lower)
  assert window.contains(window.upper)
  assert not window.contains(window.upper + datetime.timedelta(microseconds=1))


@pytest.fixture
async def ada_subscription(subscription_repo, family_repo):
  record = await subscription_repo.create(endpoint=VALID_ENDPOINT, p256dh=VALID_P256DH, auth=VALID_AUTH, lead_times=LeadTimes((60, 0)))
  await family_repo.add(record.id, "Ada", "1990-05-15T08:30")
  return record


def _scanner(subscription_repo, family_repo, source, ledger=None) -> MilestoneScanner:
  return MilestoneScanner(subscription_repo=subscription_repo, family_repo=family_repo, milestone_source=source, tolerance=TOLERANCE, max_catchup=MAX_CATCHUP, ledger=ledger)


@pytest.mark.anyio
async def test_scan_matches_each_lead_time_inside_window(subscription_repo, family_repo, ada_subscription):
  source = FakeMilestoneSource([milestone(MILESTONE_AT)])
  scanner = _scanner(subscription_repo, family_repo, source)

  hour_before = await scanner.scan(utc(2029, 12, 31, 23, 0))
  assert [(item.person_name, item.lead_minutes) for item in hour_before] == [("Ada", 60)]

  assert await scanner.scan(utc(2029, 12, 31, 23, 30)) == []

  at_milestone = await scanner.scan(MILESTONE_AT)
  assert [item.lead_minutes for item in at_milestone] == [0]


@pytest.mark.anyio
async def test_scan_horizon_reaches_largest_lead(subscription_repo, family_repo, ada_subscription):
  source = FakeMilestoneSource([milestone(MILESTONE_AT)])
  await _scanner(subscription_repo, family_repo, source).scan(utc(2029, 12, 31, 23, 0))

  _, as_of, horizon = source.calls[0]
  assert as_of == utc(2029, 12, 31, 22, 55)
  assert horizon == TOLERANCE + datetime.timedelta(minutes=60)


@pytest.mark.anyio
async def test_scan_collapses_coincident_milestones(subscription_repo, family_repo, ada_subscription):
  source = FakeMilestoneSource([milestone(MILESTONE_AT, milestone_id="days-10000"), milestone(MILESTONE_AT, milestone_id="fib-days-10946", title="Fibonacci Day")])
  due = await _scanner(subscription_repo, family_repo, source).scan(MILESTONE_AT)
  assert len(due) == 1
  assert due[0].milestone.id == "days-10000"


@pytest.mark.anyio
async def test_scan_drops_already_claimed_keys(subscription_repo, family_repo, ledger, ada_subscription):
  scanner = _scanner(subscription_repo, family_repo, FakeMilestoneSource([milestone(MILESTONE_AT)]), ledger=ledger)
  due = await scanner.scan(MILESTONE_AT)
  assert len(due) == 1

  await ledger.try_claim(due[0].key)
  assert await scanner.scan(MILESTONE_AT) == []


@pytest.mark.anyio
async def test_scan_skips_member_whose_milestones_fail(subscription_repo, family_repo, ada_subscription):
  await family_repo.add(ada_subscription.id, "Grace", "1992-01-01")

  class _FlakySource(FakeMilestoneSource):
    def __call__(self, birth, as_of, horizon):
      if birth.year == 1992:
        raise ArithmeticError("boom")
      return super().__call__(birth, as_of, horizon)

  due = await _scanner(subscription_repo, family_repo, _FlakySource([milestone(MILESTONE_AT)])).scan(MILESTONE_AT)
  assert [item.person_name for item in due] == ["Ada"]


@pytest.mark.anyio
async def test_scan_orders_by_fire_instant(subscription_repo, family_repo, ada_subscription):
  events = [milestone(MILESTONE_AT), milestone(MILESTONE_AT - datetime.timedelta(minutes=3), milestone_id="hours-100000", title="100,000 Hours")]
  due = await _scanner(subscription_repo, family_repo, FakeMilestoneSource(events)).scan(MILESTONE_AT)
  assert [item.milestone.id for item in due] == ["hours-100000", "days-10000"]


@pytest.mark.anyio
async def test_scan_without_subscriptions_is_empty(subscription_repo, family_repo):
  source = FakeMilestoneSource([milestone(MILESTONE_AT)])
  assert await _scanner(subscription_repo, family_repo, source).scan(MILESTONE_AT) == []
  assert source.calls == []
