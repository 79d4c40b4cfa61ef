"""Request bodies of the admin HTTP API."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from compensation.models.enums import (
    AccrualSchedule,
    AdjustmentDirection,
    CommissionType,
    KycStatus,
    LegSide,
    MemberStatus,
)


class _RequestModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class RunRequest(_RequestModel):
    """Preview or execute a commission run."""

    commission_type: CommissionType
    date_from: datetime
    date_to: datetime
    triggered_by: str | None = Field(default=None, max_length=64)


class SaveSettingsRequest(_RequestModel):
    """New settings version."""

    settings: dict[str, Any]
    saved_by: str | None = Field(default=None, max_length=64)
    comment: str | None = None


class AdjustmentRequest(_RequestModel):
    """Manual credit or debit."""

    member_id: int = Field(..., gt=0)
    amount: Decimal
    direction: AdjustmentDirection
    reason: str
    admin_id: str | None = Field(default=None, max_length=64)
    idempotency_key: str | None = Field(default=None, max_length=191)


class ReviewRequest(_RequestModel):
    """Approve / reject / hold a request, pay / cancel a reward."""

    admin_id: str | None = Field(default=None, max_length=64)
    reason: str | None = None


class BatchApproveRequest(_RequestModel):
    """Approve several requests."""

    ids: list[int]
    admin_id: str | None = Field(default=None, max_length=64)


class WalletRequestCreate(_RequestModel):
    """Deposit or withdrawal request of a member."""

    member_id: int = Field(..., gt=0)
    amount: Decimal
    reference: str | None = Field(default=None, max_length=255)


class RankAdjustRequest(_RequestModel):
    """Manual rank change."""

    new_rank: str | None
    reason: str
    admin_id: str | None = Field(default=None, max_length=64)


class BulkRankAdjustItem(_RequestModel):
    member_id: int = Field(..., gt=0)
    new_rank: str | None


class BulkRankAdjustRequest(_RequestModel):
    """Manual rank change of several members."""

    items: list[BulkRankAdjustItem]
    reason: str
    admin_id: str | None = Field(default=None, max_length=64)


class EnrollRequest(_RequestModel):
    """New member."""

    sponsor_id: int | None = None
    external_ref: str | None = Field(default=None, max_length=64)
    binary_parent_id: int | None = None
    binary_side: LegSide | None = None
    kyc_status: KycStatus = KycStatus.PENDING
    status: MemberStatus = MemberStatus.ACTIVE


class PlacementRequest(_RequestModel):
    """Binary placement of an existing member."""

    parent_id: int = Field(..., gt=0)
    side: LegSide
    spillover: bool = False


class PackageRequest(_RequestModel):
    """Package purchase."""

    member_id: int = Field(..., gt=0)
    principal: Decimal
    rate_min: Decimal
    rate_max: Decimal
    schedule: AccrualSchedule | None = None
    start_at: datetime | None = None
    maturity_at: datetime | None = None
    cap_percent: Decimal | None = None
