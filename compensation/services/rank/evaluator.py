"""
Rank qualification evaluator.

A member qualifies for a rank when all four thresholds hold at once:
personal investment, team volume, direct referrals and active team size.
The member's rank is the highest qualified rank. Every qualified rank
without an achievement record gets one (reward pending); nothing is
posted to the ledger here.

The evaluator never lowers a rank and never touches a rank that was set
manually (rank_locked). Manual adjustments are recorded separately and
never create or cancel achievements.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.enums import RewardStatus
from compensation.models.rank_achievement import RankAchievement, RankAdjustment
from compensation.repositories.rank_repository import (
    RankAchievementRepository,
    RankAdjustmentRepository,
)
from compensation.schemas.commission_settings import RankConfig, RankDefinition
from compensation.services.base_service import BaseService, BatchResult
from compensation.services.graph.downline import DownlineVolume, GraphSnapshot
from compensation.services.graph.graph_store import GraphStore
from compensation.utils.datetime_utils import utc_now
from compensation.utils.exceptions import CompensationError, ValidationError, reason_of
from compensation.utils.member_locks import lock_scope
from compensation.validators.common import require, validate_reason


@dataclass
class RankEvaluation:
    """Result of evaluating one member."""

    member_id: int
    volume: DownlineVolume
    qualified: list[RankDefinition]
    previous_rank: str | None
    new_rank: str | None
    missing: list[RankDefinition] = field(default_factory=list)
    achievements: list[RankAchievement] = field(default_factory=list)

    @property
    def highest(self) -> RankDefinition | None:
        return self.qualified[-1] if self.qualified else None

    @property
    def rank_changed(self) -> bool:
        return self.new_rank != self.previous_rank


def meets(rank: RankDefinition, volume: DownlineVolume) -> bool:
    """Check all four thresholds of a rank."""
    return (
        volume.personal_investment >= rank.min_personal_investment
        and volume.team_volume >= rank.min_team_volume
        and volume.direct_count >= rank.min_direct_referrals
        and volume.active_team_count >= rank.min_active_team
    )


def qualified_ranks(config: RankConfig, volume: DownlineVolume) -> list[RankDefinition]:
    """All ranks whose thresholds hold, in rank order."""
    return [rank for rank in config.ranks if meets(rank, volume)]


class RankEvaluator(BaseService):
    """Rank qualification and manual rank adjustment."""

    def __init__(self, session: AsyncSession, config: RankConfig) -> None:
        super().__init__(session)
        self.config = config
        self.graph = GraphStore(session)
        self.achievement_repo = RankAchievementRepository(session)
        self.adjustment_repo = RankAdjustmentRepository(session)

    async def lock(self, member_id: int) -> None:
        await lock_scope(self.session).acquire(f"rank:{member_id}")

    async def plan(
        self, member_id: int, snapshot: GraphSnapshot | None = None
    ) -> RankEvaluation:
        """
        Evaluate a member without writing.

        Args:
            member_id: Member ID
            snapshot: Run-wide graph snapshot
        """
        member = await self.graph.get_member(member_id)
        volume = await self.graph.downline_volume(member_id, snapshot)
        qualified = qualified_ranks(self.config, volume)
        achieved = await self.achievement_repo.get_achieved_codes(member_id)

        new_rank = member.rank
        highest = qualified[-1] if qualified else None
        if (
            highest is not None
            and not member.rank_locked
            and highest.order > self.config.order_of(member.rank)
        ):
            new_rank = highest.code

        return RankEvaluation(
            member_id=member_id,
            volume=volume,
            qualified=qualified,
            previous_rank=member.rank,
            new_rank=new_rank,
            missing=[rank for rank in qualified if rank.code not in achieved],
        )

    async def apply(self, evaluation: RankEvaluation, run_id: int | None = None) -> RankEvaluation:
        """Create missing achievements and raise the member's rank."""
        for rank in evaluation.missing:
            achievement = RankAchievement(
                member_id=evaluation.member_id,
                rank_code=rank.code,
                rank_order=rank.order,
                reward_amount=rank.reward_amount,
                reward_status=RewardStatus.PENDING.value,
                run_id=run_id,
                achieved_at=utc_now(),
            )
            self.session.add(achievement)
            evaluation.achievements.append(achievement)

        if evaluation.rank_changed:
            member = await self.graph.get_member(evaluation.member_id)
            member.rank = evaluation.new_rank

        await self.flush()

        if evaluation.achievements or evaluation.rank_changed:
            self.logger.info(
                f"Member {evaluation.member_id} rank evaluated",
                extra={
                    "member_id": evaluation.member_id,
                    "previous_rank": evaluation.previous_rank,
                    "new_rank": evaluation.new_rank,
                    "new_achievements": [a.rank_code for a in evaluation.achievements],
                },
            )
        return evaluation

    async def evaluate(
        self,
        member_id: int,
        snapshot: GraphSnapshot | None = None,
        run_id: int | None = None,
    ) -> RankEvaluation:
        """Evaluate a member and record new qualifications (caller commits)."""
        await self.lock(member_id)
        evaluation = await self.plan(member_id, snapshot)
        return await self.apply(evaluation, run_id=run_id)

    async def rank_progress(self, member_id: int) -> dict:
        """Current rank, next rank and per-threshold progress towards it."""
        member = await self.graph.get_member(member_id)
        volume = await self.graph.downline_volume(member_id)
        current_order = self.config.order_of(member.rank)
        next_rank = next(
            (rank for rank in self.config.ranks if rank.order > current_order), None
        )

        progress = None
        if next_rank is not None:
            progress = {
                "personal_investment": _threshold(
                    volume.personal_investment, next_rank.min_personal_investment
                ),
                "team_volume": _threshold(volume.team_volume, next_rank.min_team_volume),
                "direct_referrals": _threshold(
                    volume.direct_count, next_rank.min_direct_referrals
                ),
                "active_team": _threshold(volume.active_team_count, next_rank.min_active_team),
            }

        return {
            "member_id": member_id,
            "rank": member.rank,
            "rank_locked": member.rank_locked,
            "next_rank": next_rank.code if next_rank else None,
            "eligible": bool(next_rank and meets(next_rank, volume)),
            "progress": progress,
        }

    async def adjust_rank(
        self,
        member_id: int,
        new_rank: str | None,
        reason: str,
        admin_id: str | None = None,
    ) -> RankAdjustment:
        """
        Set a member's rank manually (caller commits).

        The rank is locked against automatic evaluation and an audit
        record is written. Achievements and the ledger are not touched.

        Raises:
            ValidationError: Empty reason or unknown rank code
            NotFoundError: Unknown member
        """
        reason = require(validate_reason(reason))
        if new_rank is not None and self.config.by_code(new_rank) is None:
            raise ValidationError(f"Unknown rank: {new_rank}")

        member = await self.graph.get_member(member_id)
        adjustment = await self.adjustment_repo.create(
            member_id=member_id,
            previous_rank=member.rank,
            new_rank=new_rank,
            reason=reason,
            admin_id=admin_id,
        )
        member.rank = new_rank
        member.rank_locked = True
        await self.flush()

        self.logger.info(
            f"Rank of member {member_id} adjusted manually",
            extra={
                "member_id": member_id,
                "previous_rank": adjustment.previous_rank,
                "new_rank": new_rank,
                "admin_id": admin_id,
            },
        )
        return adjustment

    async def bulk_adjust_rank(
        self,
        items: list[tuple[int, str | None]],
        reason: str,
        admin_id: str | None = None,
    ) -> BatchResult:
        """
        Adjust several ranks, each in its own transaction.

        Args:
            items: (member_id, new_rank) pairs

        Returns:
            BatchResult with per-member outcome
        """
        result = BatchResult()
        for member_id, new_rank in items:
            try:
                await self.adjust_rank(member_id, new_rank, reason, admin_id)
                await self.commit()
                result.succeeded.append(member_id)
            except CompensationError as e:
                await self.rollback()
                result.failed.append((member_id, reason_of(e)))

        self.logger.info(
            "Bulk rank adjustment finished",
            extra={"succeeded": result.success_count, "failed": result.failure_count},
        )
        return result


def _threshold(current: Decimal | int, required: Decimal | int) -> dict:
    return {"current": current, "required": required, "met": current >= required}
