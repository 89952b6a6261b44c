"""SQLAlchemy model for birthdates tracked per subscription."""

from __future__ import annotations

import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from nerdiversary.core.database import Base
from nerdiversary.schema.subscriptions import storage_now


class FamilyMember(Base):
  """Persist one person whose milestones a subscription follows."""

  __tablename__ = "family_members"
  __table_args__ = (Index("ix_family_members_birth_datetime", "birth_datetime"), Index("ix_family_members_subscription_id", "subscription_id"))

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  subscription_id: Mapped[str] = mapped_column(String(64), ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=False)
  name: Mapped[str] = mapped_column(Text, nullable=False)
  # Wall-clock instant formatted as YYYY-MM-DDTHH:MM.
  birth_datetime: Mapped[str] = mapped_column(String(16), nullable=False)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(), nullable=False, default=storage_now)
