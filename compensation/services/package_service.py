"""
Investment package service.

Records purchases and cancellations of investment packages. A purchase
stores the principal only (funding is a payment-gateway concern and
posts nothing); it adds the investment volume to the binary legs of the
buyer's upline and opens the fast-start booster on a first investment.
Level commissions on investments are paid by level runs.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.enums import AccrualSchedule, PackageStatus
from compensation.models.package import Package
from compensation.repositories.package_repository import PackageRepository
from compensation.schemas.commission_settings import CommissionSettings
from compensation.services.base_service import BaseService, transaction
from compensation.services.binary.engine import BinaryEngine
from compensation.services.booster.booster_service import BoosterService
from compensation.services.graph.graph_store import GraphStore
from compensation.utils.datetime_utils import ensure_utc, utc_now
from compensation.utils.exceptions import (
    BusinessRuleViolation,
    NotFoundError,
    ReasonCode,
    ValidationError,
)
from compensation.utils.money import percent_of
from compensation.validators.common import require, validate_amount, validate_reason


class PackageService(BaseService):
    """Package purchase and cancellation."""

    def __init__(self, session: AsyncSession, settings: CommissionSettings) -> None:
        super().__init__(session)
        self.settings = settings
        self.package_repo = PackageRepository(session)
        self.graph = GraphStore(session)

    @transaction
    async def purchase(
        self,
        member_id: int,
        principal: Decimal | str,
        rate_min: Decimal | str,
        rate_max: Decimal | str,
        schedule: AccrualSchedule | str | None = None,
        start_at: datetime | None = None,
        maturity_at: datetime | None = None,
        cap_percent: Decimal | str | None = None,
    ) -> Package:
        """
        Record a package purchase.

        Args:
            member_id: Buyer
            principal: Invested amount
            rate_min: Lower bound of the ROI band (percent per period)
            rate_max: Upper bound of the ROI band
            schedule: Accrual frequency, settings default when omitted
            start_at: Accrual start, now when omitted
            maturity_at: Optional fixed maturity
            cap_percent: Lifetime ROI cap as percent of principal

        Returns:
            Created package

        Raises:
            ValidationError: Bad amount, rate band, schedule or dates
            NotFoundError: Unknown member
            BusinessRuleViolation: Member is not active
        """
        principal = require(validate_amount(principal))
        rate_min, rate_max = _parse_band(rate_min, rate_max)
        roi_config = self.settings.roi
        try:
            schedule = AccrualSchedule(schedule or roi_config.default_schedule)
        except ValueError as e:
            raise ValidationError(f"Unknown accrual schedule: {schedule}") from e

        cap_percent = (
            require(validate_amount(cap_percent))
            if cap_percent is not None
            else roi_config.default_cap_percent
        )
        start_at = ensure_utc(start_at) if start_at else utc_now()
        if maturity_at is not None:
            maturity_at = ensure_utc(maturity_at)
            if maturity_at <= start_at:
                raise ValidationError("Maturity must be after the start")

        member = await self.graph.get_member(member_id)
        if not member.is_active:
            raise BusinessRuleViolation(
                ReasonCode.MEMBER_INACTIVE, f"Member {member_id} is {member.status}"
            )

        is_first = await self.package_repo.count_by_member(member_id) == 0
        package = await self.package_repo.create(
            member_id=member_id,
            principal=principal,
            rate_min=rate_min,
            rate_max=rate_max,
            schedule=schedule.value,
            roi_cap_percent=cap_percent,
            roi_cap_amount=percent_of(principal, cap_percent),
            roi_paid_amount=Decimal("0"),
            status=PackageStatus.ACTIVE.value,
            start_at=start_at,
            maturity_at=maturity_at,
        )

        if self.settings.binary.enabled:
            await BinaryEngine(self.session, self.settings.binary).accumulate(
                member_id, principal, f"investment:{package.id}"
            )
        if is_first:
            await BoosterService(self.session, self.settings.booster).start(package)

        self.logger.info(
            f"Package {package.id} purchased by member {member_id}",
            extra={
                "package_id": package.id,
                "principal": str(principal),
                "schedule": schedule.value,
                "cap": str(package.roi_cap_amount),
            },
        )
        return package

    @transaction
    async def cancel(self, package_id: int, reason: str, admin_id: str | None = None) -> Package:
        """
        Cancel an active package; ROI stops, posted entries stay.

        Raises:
            ValidationError: Empty reason
            NotFoundError: Unknown package
            BusinessRuleViolation: Package is not active
        """
        reason = require(validate_reason(reason))
        package = await self.package_repo.get_by_id(package_id, for_update=True)
        if package is None:
            raise NotFoundError("Package", package_id)
        if not package.is_active:
            raise BusinessRuleViolation(
                ReasonCode.INVALID_STATUS, f"Package {package_id} is {package.status}"
            )

        package.status = PackageStatus.CANCELLED.value
        package.cancelled_at = utc_now()
        await self.flush()

        self.logger.info(
            f"Package {package_id} cancelled",
            extra={"package_id": package_id, "admin_id": admin_id, "reason": reason},
        )
        return package


def _parse_band(rate_min: Decimal | str, rate_max: Decimal | str) -> tuple[Decimal, Decimal]:
    try:
        low, high = Decimal(str(rate_min)), Decimal(str(rate_max))
    except ArithmeticError as e:
        raise ValidationError("Rate band must be numeric") from e
    if not (low.is_finite() and high.is_finite()) or low < 0 or high < low:
        raise ValidationError("Rate band must satisfy 0 <= rate_min <= rate_max")
    return low, high
