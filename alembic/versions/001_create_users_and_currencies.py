"""create users and currencies tables

Revision ID: 001
Revises:
Create Date: 2026-10-12
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM, UUID

# revision identifiers, used by Alembic
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    ENUM("customer", "operator", name="userrole").create(bind, checkfirst=True)
    ENUM("active", "suspended", "blocked", name="userstatus").create(bind, checkfirst=True)
    ENUM("fiat", "crypto", name="assetclass").create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, index=True, nullable=False),
        sa.Column("full_name", sa.String(200), nullable=True),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column(
            "role",
            ENUM(name="userrole", create_type=False),
            server_default="customer",
            nullable=False,
        ),
        sa.Column(
            "status",
            ENUM(name="userstatus", create_type=False),
            server_default="active",
            nullable=False,
        ),
        sa.Column("is_privileged", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("privileged_notes", sa.Text(), nullable=True),
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
    )

    op.create_table(
        "currencies",
        sa.Column("code", sa.String(10), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("symbol", sa.String(10), nullable=True),
        sa.Column(
            "asset_class",
            ENUM(name="assetclass", create_type=False),
            nullable=False,
        ),
        sa.Column("decimals", sa.Integer(), server_default="2", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
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
        sa.CheckConstraint("decimals >= 0 AND decimals <= 18", name="ck_currencies_decimals"),
    )


def downgrade() -> None:
    op.drop_table("currencies")
    op.drop_table("users")

    bind = op.get_bind()
    for name in ("assetclass", "userstatus", "userrole"):
        ENUM(name=name).drop(bind, checkfirst=True)
