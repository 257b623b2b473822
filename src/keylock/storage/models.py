"""SQLAlchemy models for the SQL record store."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from keylock.common.models import Base, TimestampMixin


class LicenseRow(Base, TimestampMixin):
    __tablename__ = "licenses"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    owner: Mapped[str] = mapped_column(String(255), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expiry_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    bound_environment_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True, index=True
    )
    bound_sub_resource_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    first_activation: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_verified: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    verification_count: Mapped[int] = mapped_column(Integer, default=0)
    notes: Mapped[str] = mapped_column(Text, default="")


class DistributionRow(Base, TimestampMixin):
    """Singleton row (id=1) holding the broadcast version."""

    __tablename__ = "distribution"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    current_version: Mapped[str] = mapped_column(String(64), nullable=False)
    force_update: Mapped[bool] = mapped_column(Boolean, default=False)
    update_message: Mapped[str] = mapped_column(Text, default="")
