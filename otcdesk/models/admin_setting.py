"""
AdminSetting model — operator-editable key/value configuration.

Holds the pricing knobs (admin fee, withdrawal fees, quote validity,
minimum trade floors, default markups) so they can change without a
redeploy. Values are stored as strings and parsed by the settings service.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, String, Text, event
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from otcdesk.database import Base


class AdminSetting(Base):
    __tablename__ = "admin_settings"

    setting_key: Mapped[str] = mapped_column(String(64), primary_key=True)
    setting_value: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)

    updated_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<AdminSetting {self.setting_key}={self.setting_value!r}>"


@event.listens_for(AdminSetting, "init")
def _set_setting_defaults(target, args, kwargs):
    if "updated_at" not in kwargs:
        target.updated_at = datetime.now(timezone.utc)
