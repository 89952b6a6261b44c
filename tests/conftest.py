"""Shared fixtures: a throwaway SQLite database per test and an ASGI client wired to it."""

from __future__ import annotations

import dataclasses

import pytest
from httpx import ASGITransport, AsyncClient

from nerdiversary.api.deps import get_family_repo, get_pipeline, get_subscription_repo
from nerdiversary.config import get_settings
from nerdiversary.core.database import build_engine, build_session_factory, create_schema
from nerdiversary.main import app
from nerdiversary.notifications.family_member_repo import FamilyMemberRepository
from nerdiversary.notifications.ledger import DedupLedger
from nerdiversary.notifications.scan_state_repo import ScanStateRepository
from nerdiversary.notifications.subscription_repo import SubscriptionRepository
from tests.support import FakeMilestoneSource, RecordingPushSender, build_test_pipeline


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
async def session_factory(tmp_path):
  engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'nerdiversary.db'}")
  await create_schema(engine)
  try:
    yield build_session_factory(engine)
  finally:
    await engine.dispose()


@pytest.fixture
def subscription_repo(session_factory):
  return SubscriptionRepository(session_factory)


@pytest.fixture
def family_repo(session_factory):
  return FamilyMemberRepository(session_factory)


@pytest.fixture
def ledger(session_factory):
  return DedupLedger(session_factory)


@pytest.fixture
def scan_state_repo(session_factory):
  return ScanStateRepository(session_factory)


@pytest.fixture
def test_settings():
  return dataclasses.replace(get_settings(), push_notifications_enabled=True, push_vapid_public_key="BPublicKeyForTests", push_vapid_private_key="private", push_vapid_sub="mailto:ops@nerdiversary.com", task_secret="s3cret")


@pytest.fixture
async def async_client(session_factory, test_settings):
  pipeline = build_test_pipeline(session_factory, source=FakeMilestoneSource([]), sender=RecordingPushSender())
  app.dependency_overrides[get_subscription_repo] = lambda: SubscriptionRepository(session_factory)
  app.dependency_overrides[get_family_repo] = lambda: FamilyMemberRepository(session_factory)
  app.dependency_overrides[get_pipeline] = lambda: pipeline
  app.dependency_overrides[get_settings] = lambda: test_settings
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client
  app.dependency_overrides.clear()
