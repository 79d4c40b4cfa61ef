"""
Package model.

Represents a member's investment package that accrues ROI.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from compensation.models.base import Base
from compensation.models.enums import AccrualSchedule, PackageStatus
from compensation.models.types import MoneyType, PercentType, UTCDateTime


if TYPE_CHECKING:
    from compensation.models.member import Member


class Package(Base):
    """Package model - investment packages."""

    __tablename__ = "packages"
    __table_args__ = (
        CheckConstraint("principal > 0", name="principal_positive"),
        CheckConstraint("rate_min >= 0 AND rate_max >= rate_min", name="rate_band_valid"),
        CheckConstraint("roi_cap_amount >= 0", name="roi_cap_non_negative"),
        CheckConstraint("roi_paid_amount >= 0", name="roi_paid_non_negative"),
        CheckConstraint(
            "roi_paid_amount <= roi_cap_amount", name="roi_paid_not_exceeds_cap"
        ),
        Index("idx_packages_member_status", "member_id", "status"),
        Index("idx_packages_start_at", "start_at"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Owner
    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    # Investment
    principal: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    # Rate band, percent of principal per accrual period
    rate_min: Mapped[Decimal] = mapped_column(PercentType, nullable=False)
    rate_max: Mapped[Decimal] = mapped_column(PercentType, nullable=False)
    # Extra rate granted by an achieved booster
    booster_rate: Mapped[Decimal] = mapped_column(
        PercentType, nullable=False, default=Decimal("0")
    )
    schedule: Mapped[str] = mapped_column(
        String(10), nullable=False, default=AccrualSchedule.DAILY.value
    )

    # Lifetime ROI cap
    roi_cap_percent: Mapped[Decimal] = mapped_column(PercentType, nullable=False)
    roi_cap_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    roi_paid_amount: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )

    # Lifecycle
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PackageStatus.ACTIVE.value, index=True
    )
    start_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    maturity_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_accrual_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    matured_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    # Relationships
    member: Mapped["Member"] = relationship(
        "Member", back_populates="packages", lazy="noload"
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Package(id={self.id}, member_id={self.member_id}, "
            f"principal={self.principal}, status={self.status})>"
        )

    @property
    def is_active(self) -> bool:
        """Check if package still accrues."""
        return self.status == PackageStatus.ACTIVE.value

    @property
    def roi_remaining(self) -> Decimal:
        """ROI that can still be paid before the cap."""
        return max(self.roi_cap_amount - self.roi_paid_amount, Decimal("0"))
