"""
Commission run engines.

One engine per CommissionType adapts a compensation service to the
orchestrator's unit of work: list the subjects of a run, lock a subject,
plan its postings without writing, apply the plan. Preview and execute
call the same plan method, so a preview shows exactly what an execute
would post.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.enums import CommissionType, LedgerKind, MemberStatus
from compensation.repositories.binary_repository import BinaryLegRepository
from compensation.repositories.booster_repository import BoosterRepository
from compensation.repositories.member_repository import MemberRepository
from compensation.repositories.package_repository import PackageRepository
from compensation.schemas.commission_settings import CommissionSettings
from compensation.services.binary.engine import BinaryEngine
from compensation.services.booster.booster_service import BoosterService
from compensation.services.graph.downline import GraphSnapshot
from compensation.services.ledger.ledger_service import Posting
from compensation.services.level.distributor import LevelDistributor
from compensation.services.rank.evaluator import RankEvaluator
from compensation.services.rank.rewards import RankRewardService
from compensation.services.roi.engine import RoiEngine
from compensation.utils.member_locks import lock_scope


@dataclass
class RunContext:
    """Everything an engine needs to know about the run it serves."""

    commission_type: CommissionType
    period_from: datetime
    period_to: datetime
    settings: CommissionSettings
    settings_version: int
    run_id: int | None = None
    snapshot: GraphSnapshot | None = None

    @property
    def cycle_id(self) -> str:
        return f"run-{self.run_id}" if self.run_id is not None else "preview"

    @property
    def is_preview(self) -> bool:
        return self.run_id is None


@dataclass
class WorkPlan:
    """Planned work of one subject (member or package)."""

    subject_id: int
    postings: list[Posting] = field(default_factory=list)
    payload: Any = None


class RunEngine(ABC):
    """Adapter between one commission service and the orchestrator."""

    commission_type: CommissionType

    def __init__(self, context: RunContext) -> None:
        self.context = context

    @property
    def settings(self) -> CommissionSettings:
        return self.context.settings

    async def prepare(self, session: AsyncSession) -> None:
        """Load run-wide state shared by all subjects."""

    @abstractmethod
    async def subjects(self, session: AsyncSession) -> list[int]:
        """Ids of the subjects this run processes."""

    @abstractmethod
    async def lock(self, session: AsyncSession, subject_id: int) -> None:
        """Take the subject's lock in the session's unit of work."""

    @abstractmethod
    async def plan(
        self, session: AsyncSession, subject_id: int, for_update: bool = False
    ) -> WorkPlan | None:
        """Plan a subject without writing; None when there is nothing to do."""

    @abstractmethod
    async def apply(self, session: AsyncSession, plan: WorkPlan) -> None:
        """Apply a plan (the caller commits)."""


class LevelRunEngine(RunEngine):
    """Level commissions on investments made inside the period."""

    commission_type = CommissionType.LEVEL

    def _distributor(self, session: AsyncSession) -> LevelDistributor:
        return LevelDistributor(session, self.settings.level_commissions)

    async def subjects(self, session: AsyncSession) -> list[int]:
        config = self.settings.level_commissions
        if not config.enabled or not config.investment_contributes:
            return []
        packages = await PackageRepository(session).get_created_between(
            self.context.period_from, self.context.period_to
        )
        return [package.id for package in packages]

    async def lock(self, session: AsyncSession, subject_id: int) -> None:
        await lock_scope(session).acquire(f"package:{subject_id}")

    async def plan(
        self, session: AsyncSession, subject_id: int, for_update: bool = False
    ) -> WorkPlan | None:
        package = await PackageRepository(session).get_by_id(subject_id)
        if package is None:
            return None
        distribution = await self._distributor(session).plan(
            package.member_id, package.principal, f"investment:{package.id}"
        )
        return WorkPlan(subject_id, distribution.postings(), distribution)

    async def apply(self, session: AsyncSession, plan: WorkPlan) -> None:
        await self._distributor(session).apply(plan.payload, run_id=self.context.run_id)


class RoiRunEngine(RunEngine):
    """ROI accruals of every active package up to the period end."""

    commission_type = CommissionType.ROI

    def _engine(self, session: AsyncSession) -> RoiEngine:
        return RoiEngine(session, self.settings)

    async def subjects(self, session: AsyncSession) -> list[int]:
        if not self.settings.roi.enabled:
            return []
        return await PackageRepository(session).get_accruing_ids(self.context.period_to)

    async def lock(self, session: AsyncSession, subject_id: int) -> None:
        await self._engine(session).lock(subject_id)

    async def plan(
        self, session: AsyncSession, subject_id: int, for_update: bool = False
    ) -> WorkPlan | None:
        plan = await self._engine(session).plan(
            subject_id, self.context.period_to, for_update=for_update
        )
        if plan is None:
            return None
        return WorkPlan(subject_id, plan.postings(), plan)

    async def apply(self, session: AsyncSession, plan: WorkPlan) -> None:
        await self._engine(session).apply(plan.payload, run_id=self.context.run_id)


class BinaryRunEngine(RunEngine):
    """One matching cycle over every member holding leg volume."""

    commission_type = CommissionType.BINARY

    def _engine(self, session: AsyncSession) -> BinaryEngine:
        return BinaryEngine(session, self.settings.binary)

    async def subjects(self, session: AsyncSession) -> list[int]:
        if not self.settings.binary.enabled:
            return []
        return await BinaryLegRepository(session).get_member_ids_with_volume()

    async def lock(self, session: AsyncSession, subject_id: int) -> None:
        await self._engine(session).lock(subject_id)

    async def plan(
        self, session: AsyncSession, subject_id: int, for_update: bool = False
    ) -> WorkPlan | None:
        plan = await self._engine(session).plan_cycle(
            subject_id,
            self.context.cycle_id,
            self.context.period_to,
            for_update=for_update,
        )
        if plan is None:
            return None
        postings = [plan.posting] if plan.posting is not None else []
        return WorkPlan(subject_id, postings, plan)

    async def apply(self, session: AsyncSession, plan: WorkPlan) -> None:
        await self._engine(session).apply_cycle(plan.payload, run_id=self.context.run_id)


class RankRunEngine(RunEngine):
    """Rank sweep over all active members, on one graph snapshot."""

    commission_type = CommissionType.RANK

    def _evaluator(self, session: AsyncSession) -> RankEvaluator:
        return RankEvaluator(session, self.settings.ranks)

    async def prepare(self, session: AsyncSession) -> None:
        self.context.snapshot = await GraphSnapshot.load(session)

    async def subjects(self, session: AsyncSession) -> list[int]:
        if not self.settings.ranks.ranks:
            return []
        return await MemberRepository(session).get_ids(MemberStatus.ACTIVE.value)

    async def lock(self, session: AsyncSession, subject_id: int) -> None:
        await self._evaluator(session).lock(subject_id)

    async def plan(
        self, session: AsyncSession, subject_id: int, for_update: bool = False
    ) -> WorkPlan | None:
        evaluation = await self._evaluator(session).plan(subject_id, self.context.snapshot)
        postings = []
        if self.settings.ranks.auto_pay_rewards:
            # Achievement ids do not exist yet; preview keys only need to be unique
            postings = [
                Posting(
                    member_id=subject_id,
                    amount=rank.reward_amount,
                    kind=LedgerKind.RANK,
                    idempotency_key=f"rank:new:{subject_id}:{rank.code}",
                )
                for rank in evaluation.missing
                if rank.reward_amount > 0
            ]
        return WorkPlan(subject_id, postings, evaluation)

    async def apply(self, session: AsyncSession, plan: WorkPlan) -> None:
        evaluation = await self._evaluator(session).apply(
            plan.payload, run_id=self.context.run_id
        )
        if self.settings.ranks.auto_pay_rewards:
            rewards = RankRewardService(session)
            for achievement in evaluation.achievements:
                await rewards._pay(achievement, run_id=self.context.run_id)


class BoosterRunEngine(RunEngine):
    """Evaluation of every active booster at the period end."""

    commission_type = CommissionType.BOOSTER

    def _service(self, session: AsyncSession) -> BoosterService:
        return BoosterService(session, self.settings.booster)

    async def subjects(self, session: AsyncSession) -> list[int]:
        if not self.settings.booster.enabled:
            return []
        return await BoosterRepository(session).get_active_member_ids(self.context.period_to)

    async def lock(self, session: AsyncSession, subject_id: int) -> None:
        await self._service(session).lock(subject_id)

    async def plan(
        self, session: AsyncSession, subject_id: int, for_update: bool = False
    ) -> WorkPlan | None:
        plan = await self._service(session).plan(
            subject_id, self.context.period_to, for_update=for_update
        )
        if plan is None:
            return None
        postings = [plan.posting] if plan.posting is not None else []
        return WorkPlan(subject_id, postings, plan)

    async def apply(self, session: AsyncSession, plan: WorkPlan) -> None:
        await self._service(session).apply(plan.payload, run_id=self.context.run_id)


ENGINES: dict[CommissionType, type[RunEngine]] = {
    engine.commission_type: engine
    for engine in (
        LevelRunEngine,
        RoiRunEngine,
        BinaryRunEngine,
        RankRunEngine,
        BoosterRunEngine,
    )
}


def engine_for(context: RunContext) -> RunEngine:
    return ENGINES[CommissionType(context.commission_type)](context)
