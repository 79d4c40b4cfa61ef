"""
Binary matching engine.

Accumulates investment volume up the binary placement path and runs the
per-cycle match / cap / flush step. Both sides of a member's leg state
are only touched while holding that member's leg lock (plus a row lock
on PostgreSQL), so an accumulation can never interleave with a match of
the same member.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.binary_leg_state import BinaryLegState
from compensation.models.binary_match import BinaryMatch, BinaryVolumeEvent
from compensation.models.enums import LedgerKind, LegSide
from compensation.repositories.binary_repository import (
    BinaryLegRepository,
    BinaryMatchRepository,
    BinaryVolumeEventRepository,
)
from compensation.schemas.commission_settings import BinaryConfig
from compensation.services.base_service import BaseService
from compensation.services.binary.matching import (
    MatchResult,
    cap_remaining,
    compute_match,
    consume_caps,
    flush_due,
    flushed_volume,
)
from compensation.services.graph.graph_store import GraphStore
from compensation.services.ledger.ledger_service import LedgerService, Posting
from compensation.utils.member_locks import leg_key, lock_scope
from compensation.utils.money import ZERO, quantize_money


@dataclass
class BinaryCyclePlan:
    """Planned match of one member in one cycle."""

    member_id: int
    cycle_id: str
    cycle_at: datetime
    match: MatchResult
    flush: bool
    left_final: Decimal
    right_final: Decimal

    @property
    def posting(self) -> Posting | None:
        if self.match.bonus <= 0:
            return None
        return Posting(
            member_id=self.member_id,
            amount=self.match.bonus,
            kind=LedgerKind.BINARY,
            idempotency_key=binary_key(self.cycle_id, self.member_id),
            reference_type="binary_cycle",
            reference_id=self.cycle_id,
            description=f"Binary matching bonus, pair volume {self.match.pair_volume}",
        )


def binary_key(cycle_id: str, member_id: int) -> str:
    return f"binary:{cycle_id}:{member_id}"


class BinaryEngine(BaseService):
    """Leg accumulation and matching cycles."""

    def __init__(self, session: AsyncSession, config: BinaryConfig) -> None:
        super().__init__(session)
        self.config = config
        self.graph = GraphStore(session)
        self.ledger = LedgerService(session)
        self.leg_repo = BinaryLegRepository(session)
        self.match_repo = BinaryMatchRepository(session)
        self.event_repo = BinaryVolumeEventRepository(session)

    async def accumulate(self, member_id: int, volume: Decimal, event_id: str) -> int:
        """
        Add investment volume to every binary ancestor of a member.

        Idempotent per event id. Leg locks are taken closest ancestor first.

        Args:
            member_id: Investing member
            volume: Investment volume
            event_id: Stable event id (investment:{package_id})

        Returns:
            Number of ancestors credited (0 for a replayed event)
        """
        if volume <= 0:
            return 0
        if await self.event_repo.get_by_event_id(event_id):
            self.logger.debug(f"Binary volume event {event_id} already accumulated")
            return 0

        volume = quantize_money(volume)
        path = await self.graph.binary_path(member_id)
        scope = lock_scope(self.session)

        for ancestor_id, side in path:
            await scope.acquire(leg_key(ancestor_id))
            state = await self.leg_repo.get_or_create_for_update(ancestor_id)
            if side == LegSide.LEFT:
                state.left_volume += volume
                state.total_left += volume
            else:
                state.right_volume += volume
                state.total_right += volume

        self.session.add(
            BinaryVolumeEvent(
                event_id=event_id,
                member_id=member_id,
                volume=volume,
                ancestors_credited=len(path),
            )
        )
        await self.flush()

        self.logger.info(
            f"Binary volume {volume} accumulated for {len(path)} ancestors",
            extra={"event_id": event_id, "member_id": member_id},
        )
        return len(path)

    async def lock(self, member_id: int) -> None:
        await lock_scope(self.session).acquire(leg_key(member_id))

    async def plan_cycle(
        self,
        member_id: int,
        cycle_id: str,
        cycle_at: datetime,
        for_update: bool = False,
    ) -> BinaryCyclePlan | None:
        """
        Plan the match of one member in one cycle without writing.

        Returns:
            Plan, or None when the member was already processed in this cycle
            or has no leg state
        """
        if await self.match_repo.get_for_cycle(cycle_id, member_id):
            return None

        state = await self.leg_repo.get_by_id(member_id, for_update=for_update)
        if state is None:
            return None

        match = compute_match(
            state.left_volume,
            state.right_volume,
            self.config,
            cap_remaining(state, self.config, cycle_at),
        )

        flush = flush_due(state.last_flush_at, cycle_at, self.config.flush_period)
        left_final, right_final = match.left_after, match.right_after
        if flush:
            left_final = flushed_volume(left_final, self.config.flush_carry_limit)
            right_final = flushed_volume(right_final, self.config.flush_carry_limit)

        return BinaryCyclePlan(
            member_id=member_id,
            cycle_id=cycle_id,
            cycle_at=cycle_at,
            match=match,
            flush=flush,
            left_final=left_final,
            right_final=right_final,
        )

    async def apply_cycle(self, plan: BinaryCyclePlan, run_id: int | None = None) -> BinaryMatch:
        """
        Apply a planned cycle: post the bonus, update legs and caps, record the match.

        Must run in the same transaction (and under the same leg lock) as
        plan_cycle(for_update=True).
        """
        state: BinaryLegState = await self.leg_repo.get_or_create_for_update(plan.member_id)
        match = plan.match

        posting = plan.posting
        if posting is not None:
            await self.ledger.post_posting(posting, run_id=run_id)

        if match.matched:
            state.matched_to_date += match.pair_volume
            state.last_matched_at = plan.cycle_at
            consume_caps(state, match.bonus, plan.cycle_at)

        if plan.flush:
            forfeited = (match.left_after - plan.left_final) + (match.right_after - plan.right_final)
            if forfeited > 0:
                self.logger.info(
                    f"Binary flush forfeited {forfeited} for member {plan.member_id}",
                    extra={"member_id": plan.member_id, "cycle_id": plan.cycle_id},
                )
            state.last_flush_at = plan.cycle_at

        state.left_volume = plan.left_final
        state.right_volume = plan.right_final

        record = BinaryMatch(
            cycle_id=plan.cycle_id,
            member_id=plan.member_id,
            run_id=run_id,
            left_before=match.left_before,
            right_before=match.right_before,
            matched_left=match.matched_left,
            matched_right=match.matched_right,
            pair_volume=match.pair_volume,
            raw_bonus=match.raw_bonus,
            bonus=match.bonus,
            capped_amount=match.capped_amount,
            flushed=plan.flush,
            left_after=plan.left_final,
            right_after=plan.right_final,
            cycle_at=plan.cycle_at,
        )
        self.session.add(record)
        await self.flush()

        if match.capped_amount > 0:
            self.logger.info(
                f"Binary bonus capped for member {plan.member_id}",
                extra={
                    "raw_bonus": str(match.raw_bonus),
                    "paid": str(match.bonus),
                    "capped": str(match.capped_amount),
                },
            )
        return record

    async def binary_stats(self, member_id: int, at: datetime) -> dict:
        """Leg volumes, matchable pair volume and potential (uncapped) bonus."""
        await self.graph.get_member(member_id)
        state = await self.leg_repo.get_by_id(member_id)
        if state is None:
            return {
                "member_id": member_id,
                "left_volume": ZERO,
                "right_volume": ZERO,
                "total_left": ZERO,
                "total_right": ZERO,
                "matched_to_date": ZERO,
                "matchable_volume": ZERO,
                "potential_bonus": ZERO,
                "cap_remaining": cap_remaining_empty(self.config),
            }

        match = compute_match(state.left_volume, state.right_volume, self.config)
        return {
            "member_id": member_id,
            "left_volume": state.left_volume,
            "right_volume": state.right_volume,
            "total_left": state.total_left,
            "total_right": state.total_right,
            "matched_to_date": state.matched_to_date,
            "matchable_volume": match.pair_volume,
            "potential_bonus": match.raw_bonus,
            "cap_remaining": cap_remaining(state, self.config, at),
        }


def cap_remaining_empty(config: BinaryConfig) -> Decimal | None:
    caps = [cap for cap in (config.daily_cap, config.weekly_cap, config.monthly_cap) if cap is not None]
    return min(caps) if caps else None
