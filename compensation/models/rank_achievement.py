"""
Rank models.

RankAchievement is the one-per-rank qualification record of a member;
RankAdjustment is the audit trail of manual rank changes.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from compensation.models.base import Base
from compensation.models.enums import RewardStatus
from compensation.models.types import MoneyType, UTCDateTime


class RankAchievement(Base):
    """
    RankAchievement entity.

    Created on first qualification for a rank and never re-created.
    Reward payment is a separate action that moves the status
    pending -> paid (or pending -> cancelled).
    """

    __tablename__ = "rank_achievements"
    __table_args__ = (
        UniqueConstraint("member_id", "rank_code", name="uq_rank_achievements_member_rank"),
        Index("idx_rank_achievements_status", "reward_status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True
    )
    rank_code: Mapped[str] = mapped_column(String(50), nullable=False)
    rank_order: Mapped[int] = mapped_column(Integer, nullable=False)
    reward_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    reward_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RewardStatus.PENDING.value
    )
    run_id: Mapped[int | None] = mapped_column(
        ForeignKey("commission_runs.id", ondelete="SET NULL"), nullable=True
    )
    ledger_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("ledger_entries.id", ondelete="SET NULL"), nullable=True
    )

    achieved_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)
    )
    paid_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<RankAchievement(id={self.id}, member_id={self.member_id}, "
            f"rank={self.rank_code}, status={self.reward_status})>"
        )


class RankAdjustment(Base):
    """Audit record of a manual rank change."""

    __tablename__ = "rank_adjustments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True
    )
    previous_rank: Mapped[str | None] = mapped_column(String(50), nullable=True)
    new_rank: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    admin_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)
    )
