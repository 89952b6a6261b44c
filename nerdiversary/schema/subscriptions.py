"""SQLAlchemy model for browser Web Push subscriptions."""

from __future__ import annotations

import datetime
import logging
from typing import Any

from sqlalchemy import DateTime, String, Text
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from nerdiversary.core.database import Base
from nerdiversary.notifications.contracts import LeadTimes, ValidationError
from nerdiversary.utils.time import to_storage, utc_now

logger = logging.getLogger(__name__)


def storage_now() -> datetime.datetime:
  return to_storage(utc_now())


class LeadTimesType(TypeDecorator[LeadTimes]):
  """Store lead times as a JSON array while exposing a validated ``LeadTimes``."""

  impl = Text
  cache_ok = True

  def process_bind_param(self, value: Any, dialect: Dialect) -> str | None:
    if value is None:
      return None

    if not isinstance(value, LeadTimes):
      value = LeadTimes(tuple(value))

    return value.to_json()

  def process_result_value(self, value: Any, dialect: Dialect) -> LeadTimes | None:
    if value is None:
      return None

    try:
      return LeadTimes.from_json(value)
    except ValidationError as exc:
      # A corrupt row must not break scans for every other subscriber.
      logger.warning("Invalid notification_times in storage value=%r error=%s; using defaults", value, exc)
      return LeadTimes()


class Subscription(Base):
  """Persist a single browser push subscription, keyed by the hash of its endpoint."""

  __tablename__ = "subscriptions"

  id: Mapped[str] = mapped_column(String(64), primary_key=True)
  endpoint: Mapped[str] = mapped_column(Text, nullable=False)
  p256dh: Mapped[str] = mapped_column(Text, nullable=False)
  auth: Mapped[str] = mapped_column(Text, nullable=False)
  notification_times: Mapped[LeadTimes] = mapped_column(LeadTimesType(), nullable=False, default=LeadTimes, server_default="[1440,60,0]")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(), nullable=False, default=storage_now)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(), nullable=False, default=storage_now)
