"""create item price and item price schedule

Revision ID: 3f1a9c2d7e40
Revises:
Create Date: 2026-10-19 09:30:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3f1a9c2d7e40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column(
            "created_by",
            sa.String(length=255),
            nullable=False,
            server_default=sa.text("'system@local'"),
        ),
        sa.Column(
            "updated_by",
            sa.String(length=255),
            nullable=False,
            server_default=sa.text("'system@local'"),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "item_price",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("base_price", sa.Numeric(18, 2), nullable=False),
        sa.Column("discount1_pct", sa.Numeric(5, 2), nullable=True),
        sa.Column("discount2_pct", sa.Numeric(5, 2), nullable=True),
        sa.Column("tax_pct", sa.Numeric(5, 2), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_item_price_item_id", "item_price", ["item_id"], unique=True)

    op.create_table(
        "item_price_schedule",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("customer_scope", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("effective_date", sa.Date(), nullable=False),
        sa.Column("base_price", sa.Numeric(18, 2), nullable=False),
        sa.Column("discount1_pct", sa.Numeric(5, 2), nullable=True),
        sa.Column("price_after_discount1", sa.Numeric(18, 2), nullable=False),
        sa.Column("discount2_pct", sa.Numeric(5, 2), nullable=True),
        sa.Column("price_after_discount2", sa.Numeric(18, 2), nullable=False),
        sa.Column("tax_pct", sa.Numeric(5, 2), nullable=True),
        sa.Column(
            "status",
            sa.String(length=16),
            nullable=False,
            server_default=sa.text("'PENDING'"),
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("cancel_reason", sa.String(length=500), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_by", sa.String(length=255), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_item_price_schedule_item_id", "item_price_schedule", ["item_id"], unique=False
    )
    op.create_index(
        "ix_item_price_schedule_customer_id", "item_price_schedule", ["customer_id"], unique=False
    )
    op.create_index(
        "ix_item_price_schedule_status", "item_price_schedule", ["status"], unique=False
    )
    op.create_index(
        "ix_item_price_schedule_item_date",
        "item_price_schedule",
        ["item_id", "effective_date"],
        unique=False,
    )
    op.create_index(
        "uq_item_price_schedule_scope_date",
        "item_price_schedule",
        ["item_id", "customer_scope", "effective_date"],
        unique=True,
        postgresql_where=sa.text("status <> 'CANCELLED'"),
        sqlite_where=sa.text("status <> 'CANCELLED'"),
    )


def downgrade() -> None:
    op.drop_index("uq_item_price_schedule_scope_date", table_name="item_price_schedule")
    op.drop_index("ix_item_price_schedule_item_date", table_name="item_price_schedule")
    op.drop_index("ix_item_price_schedule_status", table_name="item_price_schedule")
    op.drop_index("ix_item_price_schedule_customer_id", table_name="item_price_schedule")
    op.drop_index("ix_item_price_schedule_item_id", table_name="item_price_schedule")
    op.drop_table("item_price_schedule")
    op.drop_index("ix_item_price_item_id", table_name="item_price")
    op.drop_table("item_price")
