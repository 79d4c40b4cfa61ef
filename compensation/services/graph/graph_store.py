"""
Referral graph store.

Read access to the sponsor (unilevel) tree and the binary placement tree,
and the only mutations of either: enrollment and binary placement.
"""

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.enums import KycStatus, LegSide, MemberStatus
from compensation.models.member import Member
from compensation.repositories.binary_repository import BinaryLegRepository
from compensation.repositories.member_repository import MemberRepository
from compensation.services.base_service import BaseService, transaction
from compensation.services.graph.downline import DownlineVolume, GraphSnapshot
from compensation.utils.exceptions import (
    BusinessRuleViolation,
    ConcurrencyConflict,
    NotFoundError,
    ReasonCode,
    ValidationError,
)


@dataclass(frozen=True)
class ChainLink:
    """One ancestor of a sponsor chain."""

    ancestor_id: int
    level: int
    status: str
    direct_count: int = 0

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE.value


class GraphStore(BaseService):
    """Sponsor tree and binary tree access."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.member_repo = MemberRepository(session)
        self.leg_repo = BinaryLegRepository(session)

    async def get_member(self, member_id: int) -> Member:
        """
        Raises:
            NotFoundError: If the member does not exist
        """
        member = await self.member_repo.get_by_id(member_id)
        if member is None:
            raise NotFoundError("Member", member_id)
        return member

    async def sponsor_chain(self, member_id: int, max_depth: int) -> list[ChainLink]:
        """
        Ordered upline of a member, closest ancestor first.

        Args:
            member_id: Member ID
            max_depth: Maximum number of levels

        Returns:
            List of ChainLink (level 1 = direct sponsor)
        """
        rows = await self.member_repo.get_sponsor_chain(member_id, max_depth)
        return [ChainLink(*row) for row in rows]

    async def binary_path(self, member_id: int) -> list[tuple[int, LegSide]]:
        """Binary ancestors with the leg containing the member, closest first."""
        rows = await self.member_repo.get_binary_path(member_id)
        return [(ancestor_id, LegSide(side)) for ancestor_id, side in rows]

    async def leg_volumes(self, member_id: int) -> tuple[Decimal, Decimal]:
        """Current unmatched (left, right) volume of a member."""
        state = await self.leg_repo.get_by_id(member_id)
        if state is None:
            return Decimal("0"), Decimal("0")
        return state.left_volume, state.right_volume

    async def downline_volume(
        self, member_id: int, snapshot: GraphSnapshot | None = None
    ) -> DownlineVolume:
        """
        Aggregated personal and team investment of a member.

        Args:
            member_id: Member ID
            snapshot: Run-wide snapshot to reuse; a subtree snapshot is
                loaded when omitted
        """
        if snapshot is None or member_id not in snapshot:
            await self.get_member(member_id)
            snapshot = await GraphSnapshot.load(self.session, root_id=member_id)
        return snapshot.downline_volume(member_id)

    @transaction
    async def enroll(
        self,
        sponsor_id: int | None,
        external_ref: str | None = None,
        binary_parent_id: int | None = None,
        binary_side: LegSide | str | None = None,
        kyc_status: KycStatus | str = KycStatus.PENDING,
        status: MemberStatus | str = MemberStatus.ACTIVE,
    ) -> Member:
        """
        Create a member under an existing sponsor and optionally place it.

        A member without sponsor is a network root.

        Raises:
            NotFoundError: Unknown sponsor or binary parent
            BusinessRuleViolation(SlotOccupied): Binary slot taken
        """
        if sponsor_id is not None:
            await self.get_member(sponsor_id)
        if (binary_parent_id is None) != (binary_side is None):
            raise ValidationError("Binary parent and side must be given together")

        member = await self.member_repo.create(
            sponsor_id=sponsor_id,
            external_ref=external_ref,
            status=MemberStatus(status).value,
            kyc_status=KycStatus(kyc_status).value,
        )

        if binary_parent_id is not None:
            await self._place(member, binary_parent_id, LegSide(binary_side))

        self.logger.info(
            f"Member {member.id} enrolled",
            extra={
                "member_id": member.id,
                "sponsor_id": sponsor_id,
                "binary_parent_id": binary_parent_id,
                "binary_side": binary_side,
            },
        )
        return member

    @transaction
    async def place(self, member_id: int, parent_id: int, side: LegSide | str) -> Member:
        """
        Place a member into a binary slot.

        Raises:
            ValidationError: Member already placed, or placement would form a cycle
            BusinessRuleViolation(SlotOccupied): Slot taken
        """
        member = await self.get_member(member_id)
        return await self._place(member, parent_id, LegSide(side))

    @transaction
    async def place_spillover(
        self, member_id: int, under_id: int, side: LegSide | str
    ) -> Member:
        """
        Place a member at the first open slot down the outer edge of a leg.

        Starting at `under_id`, follows the `side` child until a node with
        an empty `side` slot is found.
        """
        side = LegSide(side)
        member = await self.get_member(member_id)
        node = await self.get_member(under_id)

        while True:
            child = await self.member_repo.get_binary_child(node.id, side.value)
            if child is None:
                return await self._place(member, node.id, side)
            if child.id == member.id:
                raise ValidationError(f"Member {member_id} is already placed")
            node = child

    async def _place(self, member: Member, parent_id: int, side: LegSide) -> Member:
        if member.binary_parent_id is not None:
            raise ValidationError(f"Member {member.id} is already placed")
        if parent_id == member.id:
            raise ValidationError("A member cannot be placed under itself")

        await self.get_member(parent_id)

        # Parent must not be inside the member's own binary subtree
        ancestors = {ancestor_id for ancestor_id, _ in await self.binary_path(parent_id)}
        if member.id in ancestors:
            raise ValidationError(
                f"Placing {member.id} under {parent_id} would create a cycle"
            )

        occupant = await self.member_repo.get_binary_child(parent_id, side.value)
        if occupant is not None:
            raise BusinessRuleViolation(
                ReasonCode.SLOT_OCCUPIED,
                f"{side.value} slot of member {parent_id} is taken by {occupant.id}",
            )

        member.binary_parent_id = parent_id
        member.binary_side = side.value
        try:
            await self.flush()
        except ConcurrencyConflict as e:
            # Unique (parent, side) constraint: another placement won the slot
            raise BusinessRuleViolation(
                ReasonCode.SLOT_OCCUPIED, f"{side.value} slot of member {parent_id} is taken"
            ) from e

        self.logger.info(
            f"Member {member.id} placed under {parent_id} ({side.value})",
            extra={"member_id": member.id, "parent_id": parent_id, "side": side.value},
        )
        return member
