"""create farmers, admins and farmer status audits

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261019_01"
down_revision = None
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


def _create_index(table_name: str, column: str, *, unique: bool = False) -> None:
    name = f"ix_{table_name}_{column}"
    if not _index_exists(table_name, name):
        op.create_index(name, table_name, [column], unique=unique)


def upgrade() -> None:
    if not _table_exists("farmers"):
        op.create_table(
            "farmers",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("full_name", sa.String(length=100), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("mobile", sa.String(length=10), nullable=False),
            sa.Column("password_hash", sa.String(length=255), nullable=False),
            sa.Column("location", sa.String(length=128), nullable=False),
            sa.Column("crop_type", sa.String(length=32), nullable=False),
            sa.Column("language", sa.String(length=16), nullable=False, server_default="english"),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("registered_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("approved_by_admin_id", sa.String(length=36), nullable=True),
            sa.Column("rejection_reason", sa.String(length=500), nullable=True),
            sa.Column("suspension_reason", sa.String(length=500), nullable=True),
            sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("login_history", sa.JSON(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_index("farmers", "id")
    _create_index("farmers", "email", unique=True)
    _create_index("farmers", "mobile", unique=True)
    _create_index("farmers", "status")
    _create_index("farmers", "registered_at")

    if not _table_exists("admins"):
        op.create_table(
            "admins",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("username", sa.String(length=128), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("password_hash", sa.String(length=255), nullable=False),
            sa.Column("role", sa.String(length=32), nullable=False, server_default="admin"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_index("admins", "id")
    _create_index("admins", "username", unique=True)
    _create_index("admins", "email", unique=True)
    _create_index("admins", "role")

    if not _table_exists("farmer_status_audits"):
        op.create_table(
            "farmer_status_audits",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("farmer_id", sa.String(length=36), nullable=False),
            sa.Column("actor_admin_id", sa.String(length=36), nullable=True),
            sa.Column("from_status", sa.String(length=16), nullable=True),
            sa.Column("to_status", sa.String(length=16), nullable=False),
            sa.Column("reason", sa.String(length=500), nullable=True),
            sa.Column("is_override", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_index("farmer_status_audits", "farmer_id")


def downgrade() -> None:
    for table_name in ("farmer_status_audits", "admins", "farmers"):
        if _table_exists(table_name):
            op.drop_table(table_name)
