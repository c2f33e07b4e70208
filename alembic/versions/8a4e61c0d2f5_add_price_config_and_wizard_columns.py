"""add price_config and purchase wizard columns

Revision ID: 8a4e61c0d2f5
Revises: 3f1c2a9d7b10
Create Date: 2026-09-20 18:41:27.004118

Tiered pricing moves into products.price_config; orders gain multi-file
columns, RUC, pending balance and final art. Also creates checkout_sessions.
Adds missing columns idempotently — databases built by create_all() may
already have them.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '8a4e61c0d2f5'
down_revision: Union[str, None] = '3f1c2a9d7b10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


PRODUCT_COLUMNS = [
    ("price_config", sa.JSON()),
    ("is_active", sa.Boolean()),
]

ORDER_COLUMNS = [
    ("customer_ruc", sa.String()),
    ("design_files", sa.JSON()),
    ("payment_proof_files", sa.JSON()),
    ("final_art_url", sa.String()),
    ("amount_pending", sa.Float()),
]


def _column_exists(table_name, column_name):
    bind = op.get_bind()
    insp = inspect(bind)
    columns = [c["name"] for c in insp.get_columns(table_name)]
    return column_name in columns


def _table_exists(table_name):
    bind = op.get_bind()
    insp = inspect(bind)
    return table_name in insp.get_table_names()


def upgrade() -> None:
    for table, columns in (("products", PRODUCT_COLUMNS), ("orders", ORDER_COLUMNS)):
        if not _table_exists(table):
            continue
        for col_name, col_type in columns:
            if not _column_exists(table, col_name):
                op.add_column(table, sa.Column(col_name, col_type, nullable=True))

    if not _table_exists("checkout_sessions"):
        op.create_table(
            "checkout_sessions",
            sa.Column("id", sa.String(), nullable=False),
            sa.Column("product_id", sa.String(), nullable=False),
            sa.Column("step", sa.Integer(), nullable=True),
            sa.Column("selected_quantity", sa.Integer(), nullable=True),
            sa.Column("selected_tier", sa.JSON(), nullable=True),
            sa.Column("customer", sa.JSON(), nullable=True),
            sa.Column("design_files", sa.JSON(), nullable=True),
            sa.Column("designs_done", sa.Boolean(), nullable=True),
            sa.Column("payment_method", sa.String(), nullable=True),
            sa.Column("order_code", sa.String(), nullable=True),
            sa.Column("status", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
            sa.PrimaryKeyConstraint("id"),
        )


def downgrade() -> None:
    if _table_exists("checkout_sessions"):
        op.drop_table("checkout_sessions")
    for table, columns in (("orders", ORDER_COLUMNS), ("products", PRODUCT_COLUMNS)):
        if not _table_exists(table):
            continue
        for col_name, _ in reversed(columns):
            if _column_exists(table, col_name):
                op.drop_column(table, col_name)
