"""
Member model.

A participant of the referral network. Each member has a unilevel sponsor
(nullable for the root) and an optional placement in the binary tree.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from compensation.models.base import Base
from compensation.models.enums import KycStatus, MemberStatus
from compensation.models.types import UTCDateTime


if TYPE_CHECKING:
    from compensation.models.package import Package


class Member(Base):
    """Member model - network participants."""

    __tablename__ = "members"
    __table_args__ = (
        # Strict binary tree: at most one child per (parent, side)
        UniqueConstraint(
            "binary_parent_id", "binary_side", name="uq_members_binary_slot"
        ),
        CheckConstraint(
            "binary_side IN ('left', 'right') OR binary_side IS NULL",
            name="binary_side_valid",
        ),
        CheckConstraint(
            "(binary_parent_id IS NULL) = (binary_side IS NULL)",
            name="binary_placement_complete",
        ),
        CheckConstraint("sponsor_id IS NULL OR sponsor_id != id", name="no_self_sponsor"),
        Index("idx_members_status", "status"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Optional external reference (account id in the identity service)
    external_ref: Mapped[str | None] = mapped_column(
        String(64), nullable=True, unique=True
    )

    # Unilevel sponsor
    sponsor_id: Mapped[int | None] = mapped_column(
        ForeignKey("members.id", ondelete="RESTRICT"), nullable=True, index=True
    )

    # Binary placement
    binary_parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("members.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    binary_side: Mapped[str | None] = mapped_column(String(5), nullable=True)

    # Status
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MemberStatus.ACTIVE.value
    )
    kyc_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=KycStatus.PENDING.value
    )

    # Rank (code from the rank ladder)
    rank: Mapped[str | None] = mapped_column(String(50), nullable=True)
    # Set by manual adjustment; the evaluator leaves locked ranks alone
    rank_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Timestamps
    joined_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    # Relationships
    packages: Mapped[list["Package"]] = relationship(
        "Package", back_populates="member", lazy="noload"
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Member(id={self.id}, sponsor_id={self.sponsor_id}, "
            f"status={self.status}, rank={self.rank})>"
        )

    @property
    def is_active(self) -> bool:
        """Check if member can earn commissions."""
        return self.status == MemberStatus.ACTIVE.value

    @property
    def is_kyc_verified(self) -> bool:
        """Check if KYC is verified."""
        return self.kyc_status == KycStatus.VERIFIED.value
