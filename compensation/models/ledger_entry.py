"""
LedgerEntry model.

Immutable wallet postings. Entries are created once and never updated
or deleted; a reversal is a new, opposite-signed entry pointing at the
original.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from compensation.models.base import Base
from compensation.models.types import MoneyType, UTCDateTime


class LedgerEntry(Base):
    """LedgerEntry model - wallet postings."""

    __tablename__ = "ledger_entries"
    __table_args__ = (
        CheckConstraint("amount != 0", name="amount_non_zero"),
        Index("idx_ledger_member_kind", "member_id", "kind"),
        Index("idx_ledger_run", "run_id"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Owner
    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    # Signed amount: credits positive, debits negative
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)

    # Replays of the same posting collapse onto this key
    idempotency_key: Mapped[str] = mapped_column(String(191), nullable=False, unique=True)

    # Source
    run_id: Mapped[int | None] = mapped_column(
        ForeignKey("commission_runs.id", ondelete="SET NULL"), nullable=True
    )
    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    reversal_of_id: Mapped[int | None] = mapped_column(
        ForeignKey("ledger_entries.id", ondelete="RESTRICT"), nullable=True, unique=True
    )

    # Balance of the member right after this entry
    balance_after: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC), index=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<LedgerEntry(id={self.id}, member_id={self.member_id}, "
            f"kind={self.kind}, amount={self.amount}, key={self.idempotency_key})>"
        )

    @property
    def is_credit(self) -> bool:
        return self.amount > 0
