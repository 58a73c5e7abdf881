"""create subsidies, notifications and notification read markers

Revision ID: 20261019_02
Revises: 20261019_01
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261019_02"
down_revision = "20261019_01"
branch_labels = None
depends_on = None


def _table_exists(table_name: str) -> bool:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    return table_name in set(inspector.get_table_names())


def _index_exists(table_name: str, index_name: str) -> bool:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    if table_name not in set(inspector.get_table_names()):
        return False
    return index_name in {idx["name"] for idx in inspector.get_indexes(table_name)}


def upgrade() -> None:
    if not _table_exists("subsidies"):
        op.create_table(
            "subsidies",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("amount", sa.Float(), nullable=False, server_default="0"),
            sa.Column("eligibility", sa.String(length=1000), nullable=False),
            sa.Column("category", sa.String(length=32), nullable=False, server_default="other"),
            sa.Column("state", sa.String(length=64), nullable=False, server_default="Karnataka"),
            sa.Column("deadline", sa.DateTime(timezone=True), nullable=False),
            sa.Column("application_link", sa.String(length=512), nullable=True),
            sa.Column("contact_info", sa.String(length=500), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("created_by_admin_id", sa.String(length=36), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
    if not _index_exists("subsidies", "ix_subsidies_category"):
        op.create_index("ix_subsidies_category", "subsidies", ["category"], unique=False)
    if not _index_exists("subsidies", "ix_subsidies_is_active"):
        op.create_index("ix_subsidies_is_active", "subsidies", ["is_active"], unique=False)

    if not _table_exists("notifications"):
        op.create_table(
            "notifications",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("type", sa.String(length=32), nullable=False, server_default="info"),
            sa.Column("priority", sa.String(length=16), nullable=False, server_default="medium"),
            sa.Column("target_audience", sa.String(length=16), nullable=False, server_default="all"),
            sa.Column("target_locations", sa.JSON(), nullable=False),
            sa.Column("target_crops", sa.JSON(), nullable=False),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("created_by_admin_id", sa.String(length=36), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
    if not _index_exists("notifications", "ix_notifications_target_audience"):
        op.create_index("ix_notifications_target_audience", "notifications", ["target_audience"], unique=False)
    if not _index_exists("notifications", "ix_notifications_created_at"):
        op.create_index("ix_notifications_created_at", "notifications", ["created_at"], unique=False)

    if not _table_exists("notification_reads"):
        op.create_table(
            "notification_reads",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("notification_id", sa.String(length=36), nullable=False),
            sa.Column("farmer_id", sa.String(length=36), nullable=False),
            sa.Column("read_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["notification_id"], ["notifications.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("notification_id", "farmer_id", name="uq_notification_reads_farmer"),
        )
    if not _index_exists("notification_reads", "ix_notification_reads_notification_id"):
        op.create_index(
            "ix_notification_reads_notification_id", "notification_reads", ["notification_id"], unique=False
        )
    if not _index_exists("notification_reads", "ix_notification_reads_farmer_id"):
        op.create_index("ix_notification_reads_farmer_id", "notification_reads", ["farmer_id"], unique=False)


def downgrade() -> None:
    for table_name in ("notification_reads", "notifications", "subsidies"):
        if _table_exists(table_name):
            op.drop_table(table_name)
