"""
CommissionSettingsRecord model.

Append-only, versioned store of the business configuration.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from compensation.models.base import Base
from compensation.models.types import UTCDateTime


class CommissionSettingsRecord(Base):
    """One saved version of the commission settings."""

    __tablename__ = "commission_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    saved_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<CommissionSettingsRecord(version={self.version}, saved_by={self.saved_by})>"
