"""SQLAlchemy model for the scan watermark and run lease."""

from __future__ import annotations

import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from nerdiversary.core.database import Base
from nerdiversary.schema.subscriptions import storage_now

LEASE_OWNER_LENGTH = 255


class ScanState(Base):
  """One row per named scanner: where the last completed scan ended and who holds the run lease."""

  __tablename__ = "scan_state"

  name: Mapped[str] = mapped_column(String(64), primary_key=True)
  watermark: Mapped[datetime.datetime | None] = mapped_column(DateTime(), nullable=True)
  lease_owner: Mapped[str | None] = mapped_column(String(LEASE_OWNER_LENGTH), nullable=True)
  lease_expires_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(), nullable=True)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(), nullable=False, default=storage_now)
