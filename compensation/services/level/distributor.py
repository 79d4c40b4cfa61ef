"""
Level commission distributor.

Walks the sponsor chain of a qualifying event (new investment or ROI
accrual) and pays each eligible ancestor its level percentage of the
event amount.

An ancestor is eligible at level L when the level-L rate is active, the
ancestor's status is active and, when unlock rules are configured, the
ancestor has enough direct referrals to have unlocked level L. The share
of an ineligible level is handled by the configured compression policy:

- skip: nobody receives it.
- roll_up: it is added to the next eligible ancestor inside the
  configured level window; the level counter keeps counting chain
  positions. Shares still carried after the last level are forfeited.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.enums import CompressionPolicy, LedgerKind
from compensation.schemas.commission_settings import LevelCommissionConfig
from compensation.services.base_service import BaseService
from compensation.services.graph.graph_store import ChainLink, GraphStore
from compensation.services.ledger.ledger_service import LedgerService, Posting, PostResult
from compensation.utils.money import percent_of


@dataclass(frozen=True)
class LevelShare:
    """Commission of one ancestor for one event."""

    ancestor_id: int
    level: int
    own_percentage: Decimal
    carried_percentage: Decimal
    amount: Decimal

    @property
    def percentage(self) -> Decimal:
        return self.own_percentage + self.carried_percentage


@dataclass
class LevelDistribution:
    """Planned distribution of one event."""

    event_id: str
    source_member_id: int
    amount: Decimal
    shares: list[LevelShare] = field(default_factory=list)
    compressed_levels: list[int] = field(default_factory=list)
    forfeited_percentage: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        return sum((share.amount for share in self.shares), Decimal("0"))

    def postings(self) -> list[Posting]:
        return [
            Posting(
                member_id=share.ancestor_id,
                amount=share.amount,
                kind=LedgerKind.LEVEL,
                idempotency_key=level_key(self.event_id, share.ancestor_id),
                reference_type="event",
                reference_id=self.event_id,
                description=(
                    f"Level {share.level} commission from member {self.source_member_id}"
                ),
            )
            for share in self.shares
        ]


def level_key(event_id: str, ancestor_id: int) -> str:
    return f"level:{event_id}:{ancestor_id}"


def compute_level_shares(
    chain: list[ChainLink],
    amount: Decimal,
    config: LevelCommissionConfig,
) -> tuple[list[LevelShare], list[int], Decimal]:
    """
    Apply the level table and compression policy to a sponsor chain.

    Args:
        chain: Upline, closest ancestor first (level 1 = direct sponsor)
        amount: Event amount
        config: Level commission configuration

    Returns:
        Tuple of (shares, compressed level numbers, forfeited percentage)
    """
    shares: list[LevelShare] = []
    compressed: list[int] = []
    forfeited = Decimal("0")
    carried = Decimal("0")

    for link in chain:
        rate = config.rate_for(link.level)
        if rate is None:
            break

        unlocked = link.level <= config.unlocked_depth(link.direct_count)
        if rate.is_active and link.is_active and unlocked:
            percentage = rate.percentage + carried
            share_amount = percent_of(amount, percentage)
            if share_amount > 0:
                shares.append(
                    LevelShare(
                        ancestor_id=link.ancestor_id,
                        level=link.level,
                        own_percentage=rate.percentage,
                        carried_percentage=carried,
                        amount=share_amount,
                    )
                )
            carried = Decimal("0")
            continue

        compressed.append(link.level)
        if config.compression == CompressionPolicy.ROLL_UP:
            carried += rate.percentage
        else:
            forfeited += rate.percentage

    return shares, compressed, forfeited + carried


class LevelDistributor(BaseService):
    """Plans and posts level commissions."""

    def __init__(self, session: AsyncSession, config: LevelCommissionConfig) -> None:
        super().__init__(session)
        self.config = config
        self.graph = GraphStore(session)
        self.ledger = LedgerService(session)

    async def plan(
        self,
        member_id: int,
        amount: Decimal,
        event_id: str,
        chain: list[ChainLink] | None = None,
    ) -> LevelDistribution:
        """
        Plan the distribution of one event without writing anything.

        Args:
            member_id: Member whose investment / accrual triggered the event
            amount: Event amount
            event_id: Stable event identifier (investment:{id}, roi:{id}:{instant})
            chain: Pre-fetched sponsor chain of member_id
        """
        distribution = LevelDistribution(
            event_id=event_id, source_member_id=member_id, amount=amount
        )
        if not self.config.enabled or amount <= 0 or self.config.max_levels == 0:
            return distribution

        if chain is None:
            chain = await self.graph.sponsor_chain(member_id, self.config.max_levels)

        shares, compressed, forfeited = compute_level_shares(chain, amount, self.config)
        distribution.shares = shares
        distribution.compressed_levels = compressed
        distribution.forfeited_percentage = forfeited

        if forfeited > 0:
            self.logger.info(
                f"Level shares forfeited for event {event_id}",
                extra={
                    "event_id": event_id,
                    "forfeited_percentage": str(forfeited),
                    "compressed_levels": compressed,
                    "policy": self.config.compression.value,
                },
            )
        return distribution

    async def apply(
        self, distribution: LevelDistribution, run_id: int | None = None
    ) -> list[PostResult]:
        """Post a planned distribution, closest ancestor first."""
        return [
            await self.ledger.post_posting(posting, run_id=run_id)
            for posting in distribution.postings()
        ]

    async def distribute(
        self,
        member_id: int,
        amount: Decimal,
        event_id: str,
        run_id: int | None = None,
    ) -> list[PostResult]:
        """Plan and post one event."""
        distribution = await self.plan(member_id, amount, event_id)
        return await self.apply(distribution, run_id=run_id)
