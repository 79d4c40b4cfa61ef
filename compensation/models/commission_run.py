"""
CommissionRun model.

Tracks one execution of a commission engine over a period.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, CheckConstraint, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from compensation.models.base import Base
from compensation.models.enums import RunStatus
from compensation.models.types import MoneyType, UTCDateTime


class CommissionRun(Base):
    """CommissionRun model - commission run tracking."""

    __tablename__ = "commission_runs"
    __table_args__ = (
        CheckConstraint("period_to >= period_from", name="period_ordered"),
        Index("idx_commission_runs_type_status", "commission_type", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    commission_type: Mapped[str] = mapped_column(String(20), nullable=False)
    period_from: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    period_to: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RunStatus.PENDING.value, index=True
    )

    # Aggregates (recomputed from the ledger after every attempt)
    affected_members: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    entries_posted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False, default=Decimal("0"))

    # Per-subject outcome of the latest attempt
    succeeded_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failures: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    settings_version: Mapped[int | None] = mapped_column(Integer, nullable=True)
    triggered_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)
    )
    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<CommissionRun(id={self.id}, type={self.commission_type}, "
            f"status={self.status}, total={self.total_amount})>"
        )

    @property
    def cycle_id(self) -> str:
        """Binary matching cycle identifier of this run."""
        return f"run-{self.id}"

    @property
    def is_finished(self) -> bool:
        return self.status in (
            RunStatus.COMPLETED.value,
            RunStatus.FAILED.value,
            RunStatus.PARTIALLY_FAILED.value,
        )
