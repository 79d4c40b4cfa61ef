"""
Deposit and withdrawal request models.

Requests are created by members and reviewed by administrators. The KYC
status and available balance are snapshotted at request time for the
reviewer; approval always re-checks the live values.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from compensation.models.base import Base
from compensation.models.enums import RequestStatus
from compensation.models.types import MoneyType, UTCDateTime


class _WalletRequestMixin:
    """Columns shared by deposit and withdrawal requests."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    @declared_attr
    def member_id(cls) -> Mapped[int]:
        return mapped_column(
            ForeignKey("members.id", ondelete="RESTRICT"), nullable=False, index=True
        )

    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RequestStatus.PENDING.value
    )

    # Snapshots taken at request time
    kyc_status_snapshot: Mapped[str | None] = mapped_column(String(20), nullable=True)
    balance_snapshot: Mapped[Decimal | None] = mapped_column(MoneyType, nullable=True)

    # External reference (payment id, destination, ...)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Review
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    hold_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    @declared_attr
    def ledger_entry_id(cls) -> Mapped[int | None]:
        return mapped_column(
            ForeignKey("ledger_entries.id", ondelete="SET NULL"), nullable=True
        )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    @property
    def is_reviewable(self) -> bool:
        """Pending and on-hold requests can still be approved or rejected."""
        return self.status in (RequestStatus.PENDING.value, RequestStatus.ON_HOLD.value)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<{self.__class__.__name__}(id={self.id}, member_id={self.member_id}, "
            f"amount={self.amount}, status={self.status})>"
        )


class DepositRequest(_WalletRequestMixin, Base):
    """Deposit request."""

    __tablename__ = "deposit_requests"
    __table_args__ = (
        CheckConstraint("amount > 0", name="amount_positive"),
        Index("idx_deposit_requests_status", "status"),
    )


class WithdrawalRequest(_WalletRequestMixin, Base):
    """Withdrawal request."""

    __tablename__ = "withdrawal_requests"
    __table_args__ = (
        CheckConstraint("amount > 0", name="amount_positive"),
        Index("idx_withdrawal_requests_status", "status"),
    )
