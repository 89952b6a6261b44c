"""baseline_schema

Revision ID: b7e2a91c4d10
Revises:
Create Date: 2026-10-18 09:12:04.118230

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "b7e2a91c4d10"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
  """Upgrade schema."""
  conn = op.get_bind()
  inspector = sa.inspect(conn)
  tables = inspector.get_table_names()

  # Databases created from the first push worker already hold these tables; keep their rows.
  if "subscriptions" not in tables:
    op.create_table(
      "subscriptions",
      sa.Column("id", sa.String(length=64), nullable=False),
      sa.Column("endpoint", sa.Text(), nullable=False),
      sa.Column("p256dh", sa.Text(), nullable=False),
      sa.Column("auth", sa.Text(), nullable=False),
      sa.Column("notification_times", sa.Text(), server_default="[1440,60,0]", nullable=False),
      sa.Column("created_at", sa.DateTime(), nullable=False),
      sa.Column("updated_at", sa.DateTime(), nullable=False),
      sa.PrimaryKeyConstraint("id"),
    )

  if "family_members" not in tables:
    op.create_table(
      "family_members",
      sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
      sa.Column("subscription_id", sa.String(length=64), nullable=False),
      sa.Column("name", sa.Text(), nullable=False),
      sa.Column("birth_datetime", sa.String(length=16), nullable=False),
      sa.Column("created_at", sa.DateTime(), nullable=False),
      sa.ForeignKeyConstraint(["subscription_id"], ["subscriptions.id"], ondelete="CASCADE"),
      sa.PrimaryKeyConstraint("id"),
    )

  family_indexes = {index["name"] for index in inspector.get_indexes("family_members")} if "family_members" in tables else set()
  if "ix_family_members_birth_datetime" not in family_indexes:
    op.create_index("ix_family_members_birth_datetime", "family_members", ["birth_datetime"], unique=False)
  if "ix_family_members_subscription_id" not in family_indexes:
    op.create_index("ix_family_members_subscription_id", "family_members", ["subscription_id"], unique=False)

  if "notification_log" not in tables:
    op.create_table(
      "notification_log",
      sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
      sa.Column("subscription_id", sa.String(length=64), nullable=False),
      sa.Column("person_name", sa.Text(), nullable=False),
      sa.Column("title", sa.Text(), nullable=False),
      sa.Column("body", sa.Text(), nullable=False),
      sa.Column("sent_at", sa.DateTime(), nullable=False),
      sa.ForeignKeyConstraint(["subscription_id"], ["subscriptions.id"], ondelete="CASCADE"),
      sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_table("notification_log")
  op.drop_index("ix_family_members_subscription_id", table_name="family_members")
  op.drop_index("ix_family_members_birth_datetime", table_name="family_members")
  op.drop_table("family_members")
  op.drop_table("subscriptions")
