"""FastAPI dependencies shared by the route modules."""

from __future__ import annotations

from nerdiversary.config import get_settings
from nerdiversary.notifications.factory import build_pipeline
from nerdiversary.notifications.family_member_repo import FamilyMemberRepository
from nerdiversary.notifications.pipeline import NotificationPipeline
from nerdiversary.notifications.subscription_repo import SubscriptionRepository

_pipeline: NotificationPipeline | None = None


def get_subscription_repo() -> SubscriptionRepository:
  return SubscriptionRepository()


def get_family_repo() -> FamilyMemberRepository:
  return FamilyMemberRepository()


def get_pipeline() -> NotificationPipeline:
  """Return the process-wide pipeline so its in-process scan lock is shared by every request."""
  global _pipeline
  if _pipeline is None:
    _pipeline = build_pipeline(get_settings())
  return _pipeline
