"""
BinaryLegState model.

Per-member accumulated binary leg volumes and cap window counters.
"""

from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from compensation.models.base import Base
from compensation.models.types import MoneyType, UTCDateTime


class BinaryLegState(Base):
    """
    BinaryLegState entity.

    Attributes:
        member_id: Owner of the legs
        left_volume: Unmatched volume on the left leg
        right_volume: Unmatched volume on the right leg
        total_left: Lifetime volume credited to the left leg
        total_right: Lifetime volume credited to the right leg
        matched_to_date: Lifetime pair volume matched
        last_flush_at: Last time the legs were flushed
        last_matched_at: Last matching cycle that matched volume
        day_window / week_window / month_window: Start of the cap window
            the counter below belongs to
        day_paid / week_paid / month_paid: Bonus paid inside that window
    """

    __tablename__ = "binary_leg_states"
    __table_args__ = (
        CheckConstraint("left_volume >= 0", name="left_volume_non_negative"),
        CheckConstraint("right_volume >= 0", name="right_volume_non_negative"),
    )

    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"), primary_key=True
    )

    left_volume: Mapped[Decimal] = mapped_column(MoneyType, nullable=False, default=Decimal("0"))
    right_volume: Mapped[Decimal] = mapped_column(MoneyType, nullable=False, default=Decimal("0"))
    total_left: Mapped[Decimal] = mapped_column(MoneyType, nullable=False, default=Decimal("0"))
    total_right: Mapped[Decimal] = mapped_column(MoneyType, nullable=False, default=Decimal("0"))
    matched_to_date: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )

    # None until the first flushing cycle
    last_flush_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_matched_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Cap windows
    day_window: Mapped[date | None] = mapped_column(Date, nullable=True)
    day_paid: Mapped[Decimal] = mapped_column(MoneyType, nullable=False, default=Decimal("0"))
    week_window: Mapped[date | None] = mapped_column(Date, nullable=True)
    week_paid: Mapped[Decimal] = mapped_column(MoneyType, nullable=False, default=Decimal("0"))
    month_window: Mapped[date | None] = mapped_column(Date, nullable=True)
    month_paid: Mapped[Decimal] = mapped_column(MoneyType, nullable=False, default=Decimal("0"))

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<BinaryLegState(member_id={self.member_id}, "
            f"left={self.left_volume}, right={self.right_volume})>"
        )
