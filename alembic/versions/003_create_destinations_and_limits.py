"""create bank_accounts, crypto_wallets and trading_limits tables

Revision ID: 003
Revises: 002
Create Date: 2026-10-13
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM, UUID

revision = "003"
down_revision = "002"
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    ENUM("savings", "current", "transmission", name="bankaccounttype").create(
        bind, checkfirst=True,
    )
    ENUM("exchange", "personal", name="wallettype").create(bind, checkfirst=True)

    op.create_table(
        "bank_accounts",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), index=True, nullable=False,
        ),
        sa.Column("currency", sa.String(10), sa.ForeignKey("currencies.code"), nullable=False),
        sa.Column("account_holder_name", sa.String(200), nullable=False),
        sa.Column("bank_name", sa.String(100), nullable=False),
        sa.Column("account_number", sa.String(256), nullable=False),
        sa.Column("branch_code", sa.String(20), nullable=True),
        sa.Column(
            "account_type",
            ENUM(name="bankaccounttype", create_type=False),
            server_default="current",
            nullable=False,
        ),
        sa.Column("is_verified", sa.Boolean(), server_default=sa.false(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "crypto_wallets",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), index=True, nullable=False,
        ),
        sa.Column("currency", sa.String(10), sa.ForeignKey("currencies.code"), nullable=False),
        sa.Column("wallet_address", sa.String(128), nullable=False),
        sa.Column(
            "wallet_type",
            ENUM(name="wallettype", create_type=False),
            server_default="personal",
            nullable=False,
        ),
        sa.Column("exchange_name", sa.String(100), nullable=True),
        sa.Column("is_verified", sa.Boolean(), server_default=sa.false(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "trading_limits",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("currency", sa.String(10), sa.ForeignKey("currencies.code"), nullable=False),
        sa.Column("daily_limit", sa.Numeric(precision=38, scale=18), nullable=False),
        sa.Column("monthly_limit", sa.Numeric(precision=38, scale=18), nullable=False),
        sa.Column(
            "daily_used", sa.Numeric(precision=38, scale=18), server_default="0", nullable=False,
        ),
        sa.Column(
            "monthly_used", sa.Numeric(precision=38, scale=18), server_default="0", nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column(
            "last_reset_daily",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "last_reset_monthly",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("user_id", "currency", name="uq_trading_limits_user_currency"),
        sa.CheckConstraint(
            "daily_limit >= 0 AND monthly_limit >= 0",
            name="ck_trading_limits_non_negative",
        ),
    )


def downgrade() -> None:
    op.drop_table("trading_limits")
    op.drop_table("crypto_wallets")
    op.drop_table("bank_accounts")

    bind = op.get_bind()
    ENUM(name="wallettype").drop(bind, checkfirst=True)
    ENUM(name="bankaccounttype").drop(bind, checkfirst=True)
