"""create quotes and orders tables

Revision ID: 004
Revises: 003
Create Date: 2026-10-14
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM, UUID

revision = "004"
down_revision = "003"
branch_labels = None
depends_on = None

AMOUNT = sa.Numeric(precision=38, scale=18)
PRICED_COLUMNS = (
    "exchange_rate", "to_amount", "admin_fee", "withdrawal_fee", "total_fee", "net_amount",
)


def upgrade() -> None:
    bind = op.get_bind()
    ENUM("buy", "sell", "swap", name="tradetype").create(bind, checkfirst=True)
    ENUM("standard", "privileged", name="quoteorigin").create(bind, checkfirst=True)
    ENUM(
        "pending", "accepted", "rejected", "cancelled", "expired",
        name="quotestatus",
    ).create(bind, checkfirst=True)
    ENUM(
        "payment_pending", "payment_confirmed", "processing",
        "completed", "cancelled", "failed",
        name="orderstatus",
    ).create(bind, checkfirst=True)

    op.create_table(
        "quotes",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), index=True, nullable=False,
        ),
        sa.Column(
            "origin",
            ENUM(name="quoteorigin", create_type=False),
            server_default="standard",
            nullable=False,
        ),
        sa.Column("issued_by", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("quote_type", ENUM(name="tradetype", create_type=False), nullable=False),
        sa.Column("from_currency", sa.String(10), sa.ForeignKey("currencies.code"), nullable=False),
        sa.Column("to_currency", sa.String(10), sa.ForeignKey("currencies.code"), nullable=False),
        sa.Column("from_amount", AMOUNT, nullable=False),
        *[sa.Column(name, AMOUNT, nullable=False) for name in PRICED_COLUMNS],
        sa.Column(
            "status",
            ENUM(name="quotestatus", create_type=False),
            server_default="pending",
            index=True,
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("special_rate_reason", sa.Text(), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
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
        sa.CheckConstraint("from_amount > 0", name="ck_quotes_from_amount_positive"),
        sa.CheckConstraint("net_amount >= 0", name="ck_quotes_net_non_negative"),
        sa.CheckConstraint(
            "origin = 'standard' OR issued_by IS NOT NULL",
            name="ck_quotes_privileged_issuer",
        ),
    )

    op.create_table(
        "orders",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("transaction_id", sa.String(32), unique=True, index=True, nullable=False),
        sa.Column(
            "user_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), index=True, nullable=False,
        ),
        sa.Column(
            "quote_id", UUID(as_uuid=True), sa.ForeignKey("quotes.id"), unique=True, nullable=False,
        ),
        sa.Column("order_type", ENUM(name="tradetype", create_type=False), nullable=False),
        sa.Column("from_currency", sa.String(10), sa.ForeignKey("currencies.code"), nullable=False),
        sa.Column("to_currency", sa.String(10), sa.ForeignKey("currencies.code"), nullable=False),
        sa.Column("from_amount", AMOUNT, nullable=False),
        *[sa.Column(name, AMOUNT, nullable=False) for name in PRICED_COLUMNS],
        sa.Column(
            "bank_account_id", UUID(as_uuid=True), sa.ForeignKey("bank_accounts.id"), nullable=True,
        ),
        sa.Column(
            "crypto_wallet_id", UUID(as_uuid=True), sa.ForeignKey("crypto_wallets.id"), nullable=True,
        ),
        sa.Column("settlement_reference", sa.String(100), nullable=True),
        sa.Column(
            "status",
            ENUM(name="orderstatus", create_type=False),
            server_default="payment_pending",
            index=True,
            nullable=False,
        ),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("payment_confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
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
        sa.CheckConstraint("from_amount > 0", name="ck_orders_from_amount_positive"),
        sa.CheckConstraint(
            "(bank_account_id IS NOT NULL) <> (crypto_wallet_id IS NOT NULL)",
            name="ck_orders_single_destination",
        ),
    )


def downgrade() -> None:
    op.drop_table("orders")
    op.drop_table("quotes")

    bind = op.get_bind()
    for name in ("orderstatus", "quotestatus", "quoteorigin", "tradetype"):
        ENUM(name=name).drop(bind, checkfirst=True)
