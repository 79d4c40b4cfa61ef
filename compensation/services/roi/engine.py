"""
ROI accrual engine.

Accrues every due schedule instant of an active package up to the run's
upper bound, clamps to the lifetime cap, matures the package and feeds
each accrual to the level distributor when ROI contributes to upline
commissions.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.enums import LedgerKind, PackageStatus
from compensation.models.package import Package
from compensation.repositories.package_repository import PackageRepository
from compensation.schemas.commission_settings import CommissionSettings
from compensation.services.base_service import BaseService
from compensation.services.ledger.ledger_service import LedgerService, Posting
from compensation.services.level.distributor import LevelDistribution, LevelDistributor
from compensation.services.roi.calculator import AccrualPlan, plan_accruals, select_rate
from compensation.services.roi.schedule import iter_due_instants, next_instant
from compensation.utils.exceptions import NotFoundError
from compensation.utils.member_locks import lock_scope


@dataclass
class RoiPackagePlan:
    """Planned accruals (and derived level commissions) of one package."""

    package_id: int
    member_id: int
    accruals: AccrualPlan
    distributions: list[LevelDistribution] = field(default_factory=list)

    def postings(self) -> list[Posting]:
        postings = []
        # One distribution per step when ROI contributes to level commissions
        distributions: list[LevelDistribution | None] = (
            list(self.distributions) or [None] * len(self.accruals.steps)
        )
        for step, distribution in zip(self.accruals.steps, distributions):
            postings.append(
                Posting(
                    member_id=self.member_id,
                    amount=step.amount,
                    kind=LedgerKind.ROI,
                    idempotency_key=roi_event_id(self.package_id, step.instant),
                    reference_type="package",
                    reference_id=str(self.package_id),
                    description=f"ROI accrual at {step.rate}%",
                )
            )
            if distribution is not None:
                postings.extend(distribution.postings())
        return postings


def instant_token(instant: datetime) -> str:
    return instant.strftime("%Y-%m-%dT%H:%M:%SZ")


def roi_event_id(package_id: int, instant: datetime) -> str:
    """Event id (and ledger key) of one accrual."""
    return f"roi:{package_id}:{instant_token(instant)}"


class RoiEngine(BaseService):
    """Plans and posts ROI accruals."""

    def __init__(self, session: AsyncSession, config: CommissionSettings) -> None:
        super().__init__(session)
        self.config = config
        self.package_repo = PackageRepository(session)
        self.ledger = LedgerService(session)
        self.distributor = LevelDistributor(session, config.level_commissions)

    async def lock(self, package_id: int) -> None:
        await lock_scope(self.session).acquire(f"package:{package_id}")

    async def get_package(self, package_id: int, for_update: bool = False) -> Package:
        package = await self.package_repo.get_by_id(package_id, for_update=for_update)
        if package is None:
            raise NotFoundError("Package", package_id)
        return package

    async def plan(
        self, package_id: int, until: datetime, for_update: bool = False
    ) -> RoiPackagePlan | None:
        """
        Plan accruals of a package for instants up to `until`.

        Returns:
            Plan, or None when the package is not active
        """
        package = await self.get_package(package_id, for_update=for_update)
        if not package.is_active:
            return None

        rate = select_rate(
            package.rate_min, package.rate_max, self.config.roi.rate_policy, package.booster_rate
        )
        instants = list(
            iter_due_instants(package.start_at, package.schedule, package.last_accrual_at, until)
        )
        accruals = plan_accruals(
            principal=package.principal,
            rate=rate,
            cap_amount=package.roi_cap_amount,
            roi_paid=package.roi_paid_amount,
            instants=instants,
            maturity_at=package.maturity_at,
        )
        plan = RoiPackagePlan(package_id=package.id, member_id=package.member_id, accruals=accruals)

        level_config = self.config.level_commissions
        if accruals.steps and level_config.enabled and level_config.roi_contributes:
            chain = await self.distributor.graph.sponsor_chain(
                package.member_id, level_config.max_levels
            )
            for step in accruals.steps:
                plan.distributions.append(
                    await self.distributor.plan(
                        package.member_id,
                        step.amount,
                        roi_event_id(package.id, step.instant),
                        chain=chain,
                    )
                )
        return plan

    async def apply(self, plan: RoiPackagePlan, run_id: int | None = None) -> int:
        """
        Post a planned accrual set and advance the package.

        Returns:
            Number of accepted postings
        """
        package = await self.get_package(plan.package_id, for_update=True)
        accepted = 0
        for posting in plan.postings():
            result = await self.ledger.post_posting(posting, run_id=run_id)
            accepted += int(result.accepted)

        accruals = plan.accruals
        package.roi_paid_amount = accruals.roi_paid_after
        if accruals.last_instant is not None:
            package.last_accrual_at = accruals.last_instant
        if accruals.matures:
            package.status = PackageStatus.MATURED.value
            package.matured_at = accruals.matured_at
            self.logger.info(
                f"Package {package.id} matured ({accruals.maturity_reason})",
                extra={
                    "package_id": package.id,
                    "roi_paid": str(package.roi_paid_amount),
                    "cap": str(package.roi_cap_amount),
                },
            )
        await self.flush()
        return accepted

    async def roi_progress(self, package_id: int) -> dict:
        """Paid / cap / remaining and next accrual of a package."""
        package = await self.get_package(package_id)
        percent = (
            package.roi_paid_amount / package.roi_cap_amount * Decimal("100")
            if package.roi_cap_amount > 0
            else Decimal("0")
        )
        return {
            "package_id": package.id,
            "status": package.status,
            "principal": package.principal,
            "roi_paid": package.roi_paid_amount,
            "roi_cap": package.roi_cap_amount,
            "roi_remaining": package.roi_remaining,
            "progress_percent": percent.quantize(Decimal("0.01")),
            "rate": select_rate(
                package.rate_min, package.rate_max, self.config.roi.rate_policy, package.booster_rate
            ),
            "next_accrual_at": (
                next_instant(package.start_at, package.schedule, package.last_accrual_at)
                if package.is_active
                else None
            ),
        }
