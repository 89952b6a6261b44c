"""SQLAlchemy model for the append-only log of delivered notifications."""

from __future__ import annotations

import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from nerdiversary.core.database import Base
from nerdiversary.schema.subscriptions import storage_now


class NotificationLog(Base):
  """Record a push notification that was actually delivered."""

  __tablename__ = "notification_log"
  __table_args__ = (Index("ix_notification_log_subscription_id", "subscription_id"), Index("ux_notification_log_dedup_key", "dedup_key", unique=True))

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  subscription_id: Mapped[str] = mapped_column(String(64), ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=False)
  person_name: Mapped[str] = mapped_column(Text, nullable=False)
  milestone_id: Mapped[str] = mapped_column(String(128), nullable=False)
  milestone_at: Mapped[datetime.datetime] = mapped_column(DateTime(), nullable=False)
  lead_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
  dedup_key: Mapped[str] = mapped_column(String(64), nullable=False)
  title: Mapped[str] = mapped_column(Text, nullable=False)
  body: Mapped[str] = mapped_column(Text, nullable=False)
  sent_at: Mapped[datetime.datetime] = mapped_column(DateTime(), nullable=False, default=storage_now)
