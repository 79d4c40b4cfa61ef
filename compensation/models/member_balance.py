"""
MemberBalance model.

Materialized wallet balance: the sum of all ledger entries of a member.
Only the ledger service writes it, in the same transaction as the entry.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from compensation.models.base import Base
from compensation.models.types import MoneyType, UTCDateTime


class MemberBalance(Base):
    """Cached balance per member."""

    __tablename__ = "member_balances"

    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"), primary_key=True
    )
    balance: Mapped[Decimal] = mapped_column(MoneyType, nullable=False, default=Decimal("0"))
    entry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<MemberBalance(member_id={self.member_id}, balance={self.balance})>"
