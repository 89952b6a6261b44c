"""add dedup columns, notification claims and scan state

Revision ID: c4d81f3a2e57
Revises: b7e2a91c4d10
Create Date: 2026-10-18 09:40:51.602114

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "c4d81f3a2e57"
down_revision: str | Sequence[str] | None = "b7e2a91c4d10"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
  """Upgrade schema."""
  conn = op.get_bind()
  inspector = sa.inspect(conn)
  tables = inspector.get_table_names()
  log_columns = {column["name"] for column in inspector.get_columns("notification_log")}
  log_indexes = {index["name"] for index in inspector.get_indexes("notification_log")}

  if "dedup_key" not in log_columns:
    # Add as nullable, backfill existing rows, then tighten.
    with op.batch_alter_table("notification_log") as batch_op:
      batch_op.add_column(sa.Column("milestone_id", sa.String(length=128), server_default="legacy", nullable=False))
      batch_op.add_column(sa.Column("milestone_at", sa.DateTime(), nullable=True))
      batch_op.add_column(sa.Column("lead_minutes", sa.Integer(), server_default="0", nullable=False))
      batch_op.add_column(sa.Column("dedup_key", sa.String(length=64), nullable=True))

    # Rows written before dedup keys existed get a unique placeholder that no real digest can match.
    op.execute("UPDATE notification_log SET dedup_key = 'legacy-' || CAST(id AS VARCHAR), milestone_at = sent_at WHERE dedup_key IS NULL")

    with op.batch_alter_table("notification_log") as batch_op:
      batch_op.alter_column("milestone_at", existing_type=sa.DateTime(), nullable=False)
      batch_op.alter_column("dedup_key", existing_type=sa.String(length=64), nullable=False)

  if "ix_notification_log_subscription_id" not in log_indexes:
    op.create_index("ix_notification_log_subscription_id", "notification_log", ["subscription_id"], unique=False)
  if "ux_notification_log_dedup_key" not in log_indexes:
    op.create_index("ux_notification_log_dedup_key", "notification_log", ["dedup_key"], unique=True)

  if "notification_claims" not in tables:
    op.create_table(
      "notification_claims",
      sa.Column("dedup_key", sa.String(length=64), nullable=False),
      sa.Column("subscription_id", sa.String(length=64), nullable=False),
      sa.Column("claimed_at", sa.DateTime(), nullable=False),
      sa.ForeignKeyConstraint(["subscription_id"], ["subscriptions.id"], ondelete="CASCADE"),
      sa.PrimaryKeyConstraint("dedup_key"),
    )
    op.create_index("ix_notification_claims_subscription_id", "notification_claims", ["subscription_id"], unique=False)

  if "scan_state" not in tables:
    op.create_table(
      "scan_state",
      sa.Column("name", sa.String(length=64), nullable=False),
      sa.Column("watermark", sa.DateTime(), nullable=True),
      sa.Column("lease_owner", sa.String(length=255), nullable=True),
      sa.Column("lease_expires_at", sa.DateTime(), nullable=True),
      sa.Column("updated_at", sa.DateTime(), nullable=False),
      sa.PrimaryKeyConstraint("name"),
    )


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_table("scan_state")
  op.drop_index("ix_notification_claims_subscription_id", table_name="notification_claims")
  op.drop_table("notification_claims")
  op.drop_index("ux_notification_log_dedup_key", table_name="notification_log")
  op.drop_index("ix_notification_log_subscription_id", table_name="notification_log")
  with op.batch_alter_table("notification_log") as batch_op:
    batch_op.drop_column("dedup_key")
    batch_op.drop_column("lead_minutes")
    batch_op.drop_column("milestone_at")
    batch_op.drop_column("milestone_id")
