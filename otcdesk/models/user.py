"""
User model — the identity record the trading core trusts for ownership checks.

Authentication itself happens upstream; this table carries what the core
needs to authorize an action:
- an explicit role (customer / operator) instead of email-domain checks
- the operator-controlled privileged flag gating special-rate quotes
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, String, Text, event
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from otcdesk.database import Base, pg_enum

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class UserRole(str, enum.Enum):
    CUSTOMER = "customer"
    OPERATOR = "operator"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    BLOCKED = "blocked"


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    # Identity
    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    full_name: Mapped[str | None] = mapped_column(String(200))
    phone: Mapped[str | None] = mapped_column(String(20))

    # Authorization
    role: Mapped[UserRole] = mapped_column(
        pg_enum(UserRole, "userrole"), default=UserRole.CUSTOMER,
    )
    status: Mapped[UserStatus] = mapped_column(
        pg_enum(UserStatus, "userstatus"), default=UserStatus.ACTIVE,
    )

    # Privileged pricing eligibility (toggled by operators only)
    is_privileged: Mapped[bool] = mapped_column(Boolean, default=False)
    privileged_notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    quotes = relationship("Quote", back_populates="user", foreign_keys="Quote.user_id")
    orders = relationship("Order", back_populates="user")

    @property
    def is_operator(self) -> bool:
        return self.role == UserRole.OPERATOR

    def __repr__(self) -> str:
        return (
            f"<User {self.email} "
            f"role={self.role.value if self.role else 'N/A'} "
            f"privileged={self.is_privileged}>"
        )


@event.listens_for(User, "init")
def _set_user_defaults(target, args, kwargs):
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "role" not in kwargs:
        target.role = UserRole.CUSTOMER
    if "status" not in kwargs:
        target.status = UserStatus.ACTIVE
    if "is_privileged" not in kwargs:
        target.is_privileged = False
    if "created_at" not in kwargs:
        target.created_at = datetime.now(timezone.utc)
    if "updated_at" not in kwargs:
        target.updated_at = datetime.now(timezone.utc)
