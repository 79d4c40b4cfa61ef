"""
Fast-start booster service.

A booster opens on a member's first investment. When enough direct
referrals hold an active package at least as large as that investment
before the window closes, the member receives a one-time reward and a
permanent ROI rate bonus on all active packages. Otherwise the booster
expires at the end of the window.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum

from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.booster import Booster
from compensation.models.enums import BoosterStatus, LedgerKind
from compensation.models.package import Package
from compensation.repositories.booster_repository import BoosterRepository
from compensation.repositories.package_repository import PackageRepository
from compensation.schemas.commission_settings import BoosterConfig
from compensation.services.base_service import BaseService
from compensation.services.ledger.ledger_service import LedgerService, Posting
from compensation.utils.exceptions import NotFoundError
from compensation.utils.member_locks import lock_scope
from compensation.utils.money import percent_of


class BoosterOutcome(StrEnum):
    """What an evaluation does to a booster."""

    PROGRESS = "progress"
    ACHIEVED = "achieved"
    EXPIRED = "expired"


@dataclass
class BoosterPlan:
    """Planned evaluation of one booster."""

    booster_id: int
    member_id: int
    qualified_directs: int
    outcome: BoosterOutcome
    evaluated_at: datetime
    posting: Posting | None = None


def booster_key(booster_id: int) -> str:
    return f"booster:{booster_id}"


class BoosterService(BaseService):
    """Booster lifecycle: start, evaluate, achieve or expire."""

    def __init__(self, session: AsyncSession, config: BoosterConfig) -> None:
        super().__init__(session)
        self.config = config
        self.booster_repo = BoosterRepository(session)
        self.package_repo = PackageRepository(session)
        self.ledger = LedgerService(session)

    async def start(self, package: Package) -> Booster | None:
        """
        Open a booster for the owner of a first investment (caller commits).

        Returns:
            New booster, or None when boosters are disabled or the member
            already had one
        """
        if not self.config.enabled:
            return None
        if await self.booster_repo.get_by_member(package.member_id):
            return None

        booster = await self.booster_repo.create(
            member_id=package.member_id,
            package_id=package.id,
            investment_amount=package.principal,
            start_at=package.start_at,
            end_at=package.start_at + timedelta(days=self.config.window_days),
            target_directs=self.config.required_directs,
            qualified_directs=0,
            reward_amount=percent_of(package.principal, self.config.reward_percent),
            bonus_roi_percent=self.config.bonus_roi_percent,
            status=BoosterStatus.ACTIVE.value,
        )
        self.logger.info(
            f"Booster started for member {package.member_id}",
            extra={"booster_id": booster.id, "end_at": booster.end_at.isoformat()},
        )
        return booster

    async def lock(self, member_id: int) -> None:
        await lock_scope(self.session).acquire(f"booster:{member_id}")

    async def plan(
        self, member_id: int, at: datetime, for_update: bool = False
    ) -> BoosterPlan | None:
        """
        Plan the evaluation of a member's booster at a moment.

        Returns:
            Plan, or None when the member has no active booster
        """
        booster = await self.booster_repo.get_by_member(member_id)
        if booster is None or not booster.is_active:
            return None
        if for_update:
            booster = await self.booster_repo.get_by_id(booster.id, for_update=True)

        qualified = await self.package_repo.count_qualified_directs(
            member_id, booster.investment_amount, min(at, booster.end_at)
        )

        outcome = BoosterOutcome.PROGRESS
        posting = None
        if qualified >= booster.target_directs:
            outcome = BoosterOutcome.ACHIEVED
            if booster.reward_amount > 0:
                posting = Posting(
                    member_id=member_id,
                    amount=booster.reward_amount,
                    kind=LedgerKind.BOOSTER,
                    idempotency_key=booster_key(booster.id),
                    reference_type="booster",
                    reference_id=str(booster.id),
                    description=f"Booster reward, {qualified} qualified directs",
                )
        elif at > booster.end_at:
            outcome = BoosterOutcome.EXPIRED

        return BoosterPlan(
            booster_id=booster.id,
            member_id=member_id,
            qualified_directs=qualified,
            outcome=outcome,
            evaluated_at=at,
            posting=posting,
        )

    async def apply(self, plan: BoosterPlan, run_id: int | None = None) -> Booster:
        """Record progress, or achieve / expire the booster."""
        booster = await self.booster_repo.get_by_id(plan.booster_id, for_update=True)
        booster.qualified_directs = plan.qualified_directs

        if plan.outcome == BoosterOutcome.ACHIEVED:
            if plan.posting is not None:
                result = await self.ledger.post_posting(plan.posting, run_id=run_id)
                booster.ledger_entry_id = result.entry.id if result.entry else None
            boosted = await self._apply_rate_bonus(booster)
            booster.status = BoosterStatus.ACHIEVED.value
            booster.achieved_at = plan.evaluated_at
            self.logger.info(
                f"Booster achieved by member {booster.member_id}",
                extra={
                    "booster_id": booster.id,
                    "reward": str(booster.reward_amount),
                    "packages_boosted": boosted,
                },
            )
        elif plan.outcome == BoosterOutcome.EXPIRED:
            booster.status = BoosterStatus.EXPIRED.value
            self.logger.info(
                f"Booster expired for member {booster.member_id}",
                extra={
                    "booster_id": booster.id,
                    "qualified_directs": plan.qualified_directs,
                    "target_directs": booster.target_directs,
                },
            )

        await self.flush()
        return booster

    async def evaluate(
        self, member_id: int, at: datetime, run_id: int | None = None
    ) -> Booster | None:
        """Evaluate a member's booster (caller commits)."""
        await self.lock(member_id)
        plan = await self.plan(member_id, at, for_update=True)
        if plan is None:
            return None
        return await self.apply(plan, run_id=run_id)

    async def _apply_rate_bonus(self, booster: Booster) -> int:
        if booster.bonus_roi_percent <= 0:
            return 0
        packages = await self.package_repo.get_active_by_member(booster.member_id)
        for package in packages:
            package.booster_rate += booster.bonus_roi_percent
        return len(packages)

    async def booster_status(self, member_id: int) -> dict:
        """
        Raises:
            NotFoundError: Member never had a booster
        """
        booster = await self.booster_repo.get_by_member(member_id)
        if booster is None:
            raise NotFoundError("Booster", member_id)
        return {
            "booster_id": booster.id,
            "member_id": member_id,
            "status": booster.status,
            "start_at": booster.start_at,
            "end_at": booster.end_at,
            "qualified_directs": booster.qualified_directs,
            "target_directs": booster.target_directs,
            "reward_amount": booster.reward_amount,
            "bonus_roi_percent": booster.bonus_roi_percent,
        }
