"""
Booster model.

Fast-start booster: a member who recruits enough qualifying direct
referrals within a window after their first investment earns a one-time
reward and a permanent ROI rate bonus on their active packages.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from compensation.models.base import Base
from compensation.models.enums import BoosterStatus
from compensation.models.types import MoneyType, PercentType, UTCDateTime


class Booster(Base):
    """Booster model - fast-start qualification window."""

    __tablename__ = "boosters"
    __table_args__ = (Index("idx_boosters_status_end", "status", "end_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    package_id: Mapped[int | None] = mapped_column(
        ForeignKey("packages.id", ondelete="SET NULL"), nullable=True
    )

    investment_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    start_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    target_directs: Mapped[int] = mapped_column(Integer, nullable=False)
    qualified_directs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    reward_amount: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )
    bonus_roi_percent: Mapped[Decimal] = mapped_column(
        PercentType, nullable=False, default=Decimal("0")
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BoosterStatus.ACTIVE.value
    )
    achieved_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    ledger_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("ledger_entries.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Booster(id={self.id}, member_id={self.member_id}, "
            f"directs={self.qualified_directs}/{self.target_directs}, status={self.status})>"
        )

    @property
    def is_active(self) -> bool:
        return self.status == BoosterStatus.ACTIVE.value
