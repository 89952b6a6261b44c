"""SQLAlchemy model for notification dedup reservations."""

from __future__ import annotations

import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from nerdiversary.core.database import Base
from nerdiversary.schema.subscriptions import storage_now


class NotificationClaim(Base):
  """Reserve a dedup key before delivery; the primary key makes the claim atomic."""

  __tablename__ = "notification_claims"

  dedup_key: Mapped[str] = mapped_column(String(64), primary_key=True)
  subscription_id: Mapped[str] = mapped_column(String(64), ForeignKey("subscriptions.id", ondelete="CASCADE"), index=True, nullable=False)
  claimed_at: Mapped[datetime.datetime] = mapped_column(DateTime(), nullable=False, default=storage_now)
