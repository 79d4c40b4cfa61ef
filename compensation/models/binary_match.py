"""
Binary matching history models.

BinaryMatch records the outcome of one matching cycle for one member;
BinaryVolumeEvent records which investment events were already
accumulated into the tree.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from compensation.models.base import Base
from compensation.models.types import MoneyType, UTCDateTime


class BinaryMatch(Base):
    """Outcome of a matching cycle for one member."""

    __tablename__ = "binary_matches"
    __table_args__ = (
        UniqueConstraint("cycle_id", "member_id", name="uq_binary_matches_cycle_member"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cycle_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True
    )
    run_id: Mapped[int | None] = mapped_column(
        ForeignKey("commission_runs.id", ondelete="SET NULL"), nullable=True
    )

    left_before: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    right_before: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    matched_left: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    matched_right: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    pair_volume: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    raw_bonus: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    bonus: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    capped_amount: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )
    flushed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    left_after: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    right_after: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    cycle_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<BinaryMatch(cycle={self.cycle_id}, member_id={self.member_id}, "
            f"pair={self.pair_volume}, bonus={self.bonus})>"
        )


class BinaryVolumeEvent(Base):
    """Investment event already pushed up the binary path."""

    __tablename__ = "binary_volume_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True
    )
    volume: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    ancestors_credited: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)
    )
