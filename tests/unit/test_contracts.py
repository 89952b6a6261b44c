from __future__ import annotations

import datetime

import pytest

from nerdiversary.notifications.contracts import DEFAULT_LEAD_MINUTES, MAX_LEAD_MINUTES, DedupKey, LeadTimes, PendingNotification, PushPayload, ValidationError
from tests.support import milestone, utc


def test_lead_times_default_to_day_hour_and_now():
  assert LeadTimes().minutes == DEFAULT_LEAD_MINUTES == (1440, 60, 0)


def test_lead_times_are_deduplicated_and_sorted_descending():
  lead_times = LeadTimes((0, 60, 60, 15))
  assert lead_times.minutes == (60, 15, 0)
  assert lead_times.largest == 60
  assert list(lead_times) == [60, 15, 0]
  assert len(lead_times) == 3


@pytest.mark.parametrize("values", [(), (-1,), (MAX_LEAD_MINUTES + 1,), (True,), ("60",), (1.5,), tuple(range(9))])
def test_lead_times_reject_invalid_values(values):
  with pytest.raises(ValidationError):
    LeadTimes(values)


def test_lead_times_json_round_trip_and_defaults():
  assert LeadTimes.from_json("[0,60]").to_json() == "[60,0]"
  assert LeadTimes.from_json(None) == LeadTimes()
  assert LeadTimes.from_json("  ") == LeadTimes()


@pytest.mark.parametrize("raw", ["not json", '{"a": 1}', "[true]"])
def test_lead_times_from_json_rejects_garbage(raw):
  with pytest.raises(ValidationError):
    LeadTimes.from_json(raw)


def test_dedup_key_digest_ignores_timezone_representation():
  at_utc = utc(2030, 1, 1, 0, 0)
  at_offset = at_utc.astimezone(datetime.timezone(datetime.timedelta(hours=2)))
  first = DedupKey(subscription_id="sub", person_name="Ada", milestone_at=at_utc, lead_minutes=60)
  second = DedupKey(subscription_id="sub", person_name="Ada", milestone_at=at_offset, lead_minutes=60)
  assert first.digest == second.digest
  assert len(first.digest) == 64


def test_dedup_key_digest_changes_with_each_component():
  base = DedupKey(subscription_id="sub", person_name="Ada", milestone_at=utc(2030, 1, 1), lead_minutes=60)
  variants = [
    DedupKey(subscription_id="other", person_name="Ada", milestone_at=utc(2030, 1, 1), lead_minutes=60),
    DedupKey(subscription_id="sub", person_name="Grace", milestone_at=utc(2030, 1, 1), lead_minutes=60),
    DedupKey(subscription_id="sub", person_name="Ada", milestone_at=utc(2030, 1, 2), lead_minutes=60),
    DedupKey(subscription_id="sub", person_name="Ada", milestone_at=utc(2030, 1, 1), lead_minutes=0),
  ]
  assert all(variant.digest != base.digest for variant in variants)


def test_pending_notification_fire_at_subtracts_lead():
  pending = PendingNotification(subscription_id="sub", person_name="Ada", milestone=milestone(utc(2030, 1, 1)), lead_minutes=60)
  assert pending.fire_at == utc(2029, 12, 31, 23, 0)
  assert pending.key.lead_minutes == 60


def test_push_payload_to_dict_copies_data():
  payload = PushPayload(title="t", body="b", icon="i", badge="g", tag="x", data={"url": "/"})
  as_dict = payload.to_dict()
  as_dict["data"]["url"] = "changed"
  assert payload.data == {"url": "/"}
  assert set(as_dict) == {"title", "body", "icon", "badge", "tag", "data"}
