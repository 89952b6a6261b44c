from __future__ import annotations

import pytest
from sqlalchemy import func, select

from nerdiversary.notifications.contracts import DedupKey, LeadTimes, ValidationError
from nerdiversary.notifications.family_member_repo import MAX_MEMBERS_PER_SUBSCRIPTION, FamilyMemberEntry, build_family_param, parse_family_param
from nerdiversary.notifications.subscription_repo import subscription_id_for
from nerdiversary.schema.family_members import FamilyMember
from nerdiversary.schema.notification_claims import NotificationClaim
from nerdiversary.schema.notification_log import NotificationLog
from tests.support import VALID_AUTH, VALID_ENDPOINT, VALID_P256DH, utc


async def _count(session_factory, model) -> int:
  async with session_factory() as session:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


def test_subscription_id_is_stable_and_ignores_surrounding_whitespace():
  assert subscription_id_for(VALID_ENDPOINT) == subscription_id_for(f"  {VALID_ENDPOINT}\n")
  assert subscription_id_for(VALID_ENDPOINT) != subscription_id_for(VALID_ENDPOINT + "x")


@pytest.mark.anyio
async def test_create_upserts_by_endpoint(subscription_repo):
  first = await subscription_repo.create(endpoint=VALID_ENDPOINT, p256dh=VALID_P256DH, auth=VALID_AUTH)
  second = await subscription_repo.create(endpoint=VALID_ENDPOINT, p256dh=VALID_P256DH, auth="rotatedAuthKey123", lead_times=LeadTimes((30,)))

  assert first.id == second.id == subscription_id_for(VALID_ENDPOINT)
  assert first.lead_times == LeadTimes()
  assert second.auth == "rotatedAuthKey123"
  assert second.lead_times.minutes == (30,)
  assert len(await subscription_repo.list_active()) == 1


@pytest.mark.anyio
async def test_create_rejects_empty_fields(subscription_repo):
  with pytest.raises(ValidationError):
    await subscription_repo.create(endpoint="  ", p256dh=VALID_P256DH, auth=VALID_AUTH)

  with pytest.raises(ValidationError):
    await subscription_repo.create(endpoint=VALID_ENDPOINT, p256dh="", auth=VALID_AUTH)


@pytest.mark.anyio
async def test_update_lead_times_reports_missing_subscription(subscription_repo):
  assert await subscription_repo.update_lead_times("missing", LeadTimes((0,))) is False

  record = await subscription_repo.create(endpoint=VALID_ENDPOINT, p256dh=VALID_P256DH, auth=VALID_AUTH)
  assert await subscription_repo.update_lead_times(record.id, LeadTimes((0, 15))) is True
  refreshed = await subscription_repo.get_by_endpoint(VALID_ENDPOINT)
  assert refreshed is not None
  assert refreshed.lead_times.minutes == (15, 0)


@pytest.mark.anyio
async def test_delete_cascades_to_members_claims_and_log(session_factory, subscription_repo, family_repo, ledger):
  record = await subscription_repo.create(endpoint=VALID_ENDPOINT, p256dh=VALID_P256DH, auth=VALID_AUTH)
  await family_repo.add(record.id, "Ada", "1990-05-15T08:30")
  key = DedupKey(subscription_id=record.id, person_name="Ada", milestone_at=utc(2030, 1, 1), lead_minutes=0)
  assert await ledger.try_claim(key) is True
  assert await ledger.record(key, milestone_id="days-10000", title="t", body="b", sent_at=utc(2030, 1, 1)) is True

  assert await subscription_repo.delete(record.id) is True
  assert await subscription_repo.get(record.id) is None
  assert await _count(session_factory, FamilyMember) == 0
  assert await _count(session_factory, NotificationClaim) == 0
  assert await _count(session_factory, NotificationLog) == 0

  # Deleting again is a no-op.
  assert await subscription_repo.delete_by_endpoint(VALID_ENDPOINT) is False


@pytest.mark.anyio
async def test_family_members_are_listed_in_birth_order(subscription_repo, family_repo):
  record = await subscription_repo.create(endpoint=VALID_ENDPOINT, p256dh=VALID_P256DH, auth=VALID_AUTH)
  await family_repo.add(record.id, "Grace", "1992-01-01")
  await family_repo.add(record.id, " Ada ", "1990-05-15T08:30:45")

  members = await family_repo.list_for(record.id)
  assert [(member.name, member.birth_datetime) for member in members] == [("Ada", "1990-05-15T08:30"), ("Grace", "1992-01-01T00:00")]

  assert await family_repo.remove(members[0].id) is True
  assert [member.name for member in await family_repo.list_for(record.id)] == ["Grace"]


@pytest.mark.anyio
async def test_family_member_add_validates_before_writing(subscription_repo, family_repo):
  record = await subscription_repo.create(endpoint=VALID_ENDPOINT, p256dh=VALID_P256DH, auth=VALID_AUTH)

  with pytest.raises(ValidationError):
    await family_repo.add(record.id, "Ada", "2023-02-30")
  with pytest.raises(ValidationError):
    await family_repo.add(record.id, "", "1990-01-01")
  with pytest.raises(ValidationError):
    await family_repo.add(record.id, "x" * 101, "1990-01-01")
  with pytest.raises(ValidationError):
    await family_repo.add("unknown-subscription", "Ada", "1990-01-01")

  assert await family_repo.list_for(record.id) == []


@pytest.mark.anyio
async def test_replace_for_swaps_members_and_enforces_limit(subscription_repo, family_repo):
  record = await subscription_repo.create(endpoint=VALID_ENDPOINT, p256dh=VALID_P256DH, auth=VALID_AUTH)
  await family_repo.add(record.id, "Old", "1980-01-01")

  replaced = await family_repo.replace_for(record.id, [FamilyMemberEntry(name="Ada", birth_datetime="1990-05-15T08:30")])
  assert [member.name for member in replaced] == ["Ada"]
  assert [member.name for member in await family_repo.list_for(record.id)] == ["Ada"]

  too_many = [FamilyMemberEntry(name=f"P{i}", birth_datetime="2000-01-01") for i in range(MAX_MEMBERS_PER_SUBSCRIPTION + 1)]
  with pytest.raises(ValidationError):
    await family_repo.replace_for(record.id, too_many)
  assert [member.name for member in await family_repo.list_for(record.id)] == ["Ada"]


def test_parse_family_param_skips_bad_entries_and_defaults_time():
  entries = parse_family_param("Ada%20L|1990-05-15|08:30,|1991-01-01|00:00,Bob|not-a-date,Grace|1992-01-01")
  assert entries == [FamilyMemberEntry(name="Ada L", birth_datetime="1990-05-15T08:30"), FamilyMemberEntry(name="Grace", birth_datetime="1992-01-01T00:00")]
  assert parse_family_param(None) == []
  assert parse_family_param("") == []


def test_build_family_param_encodes_names():
  param = build_family_param([FamilyMemberEntry(name="Ada L", birth_datetime="1990-05-15T08:30"), FamilyMemberEntry(name="Grace", birth_datetime="1992-01-01T00:00")])
  assert param == "Ada%20L|1990-05-15|08:30,Grace|1992-01-01|00:00"
  assert parse_family_param(param)[0].name == "Ada L"
