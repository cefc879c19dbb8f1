"""create exchange_rates and admin_settings tables

Revision ID: 002
Revises: 001
Create Date: 2026-10-12
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "exchange_rates",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "from_currency", sa.String(10), sa.ForeignKey("currencies.code"), nullable=False,
        ),
        sa.Column(
            "to_currency", sa.String(10), sa.ForeignKey("currencies.code"), nullable=False,
        ),
        sa.Column("base_rate", sa.Numeric(precision=38, scale=18), nullable=False),
        sa.Column("buy_markup", sa.Numeric(precision=10, scale=6), nullable=False),
        sa.Column("sell_markup", sa.Numeric(precision=10, scale=6), nullable=False),
        sa.Column("final_buy_rate", sa.Numeric(precision=38, scale=18), nullable=False),
        sa.Column("final_sell_rate", sa.Numeric(precision=38, scale=18), nullable=False),
        sa.Column("custom_markup", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(
            "last_updated",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("from_currency", "to_currency", name="uq_exchange_rates_pair"),
        sa.CheckConstraint("base_rate > 0", name="ck_exchange_rates_base_positive"),
        sa.CheckConstraint(
            "buy_markup >= 0 AND sell_markup >= 0",
            name="ck_exchange_rates_markups_non_negative",
        ),
    )

    op.create_table(
        "admin_settings",
        sa.Column("setting_key", sa.String(64), primary_key=True),
        sa.Column("setting_value", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "updated_by", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )


def downgrade() -> None:
    op.drop_table("admin_settings")
    op.drop_table("exchange_rates")
