"""create admin-managed market price entries

Revision ID: 20261019_03
Revises: 20261019_02
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261019_03"
down_revision = "20261019_02"
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
    if not _table_exists("market_price_entries"):
        op.create_table(
            "market_price_entries",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("commodity", sa.String(length=100), nullable=False),
            sa.Column("price", sa.Float(), nullable=False),
            sa.Column("unit", sa.String(length=16), nullable=False, server_default="kg"),
            sa.Column("market", sa.String(length=128), nullable=False),
            sa.Column("state", sa.String(length=64), nullable=False, server_default="Karnataka"),
            sa.Column("district", sa.String(length=64), nullable=True),
            sa.Column("category", sa.String(length=16), nullable=False, server_default="vegetables"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("created_by_admin_id", sa.String(length=36), nullable=True),
            sa.Column("updated_by_admin_id", sa.String(length=36), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
    for index_name, columns in (
        ("ix_market_price_entries_commodity_market", ["commodity", "market"]),
        ("ix_market_price_entries_category", ["category"]),
        ("ix_market_price_entries_is_active", ["is_active"]),
        ("ix_market_price_entries_updated_at", ["updated_at"]),
    ):
        if not _index_exists("market_price_entries", index_name):
            op.create_index(index_name, "market_price_entries", columns, unique=False)


def downgrade() -> None:
    if _table_exists("market_price_entries"):
        op.drop_table("market_price_entries")
