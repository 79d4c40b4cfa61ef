"""
Downline aggregation.

GraphSnapshot loads the sponsor tree and per-member investment once and
memoizes the recursive aggregation, so a run that evaluates every member
walks each subtree only once.
"""

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.enums import MemberStatus
from compensation.repositories.member_repository import MemberRepository
from compensation.repositories.package_repository import PackageRepository


@dataclass(frozen=True)
class DownlineVolume:
    """
    Aggregated volume of a member.

    Attributes:
        personal_investment: Principal of the member's own non-cancelled packages
        team_volume: Personal investment summed over the whole sponsor subtree
        direct_count: Number of direct referrals
        active_team_count: Subtree members that are active and hold an active package
    """

    member_id: int
    personal_investment: Decimal
    team_volume: Decimal
    direct_count: int
    active_team_count: int


class GraphSnapshot:
    """Read-only, memoized view of the sponsor tree."""

    def __init__(
        self,
        members: list[tuple[int, int | None, str]],
        investments: list[tuple[int, Decimal, bool]],
    ) -> None:
        """
        Args:
            members: (member_id, sponsor_id, status) rows
            investments: (member_id, principal, has_active_package) rows
        """
        self._status: dict[int, str] = {}
        self._children: dict[int, list[int]] = defaultdict(list)
        for member_id, sponsor_id, status in members:
            self._status[member_id] = status
            if sponsor_id is not None:
                self._children[sponsor_id].append(member_id)

        self._principal: dict[int, Decimal] = {}
        self._has_active: dict[int, bool] = {}
        for member_id, principal, has_active in investments:
            self._principal[member_id] = principal
            self._has_active[member_id] = has_active

        self._memo: dict[int, DownlineVolume] = {}

    @classmethod
    async def load(cls, session: AsyncSession, root_id: int | None = None) -> "GraphSnapshot":
        """
        Load a snapshot of the whole network or of one sponsor subtree.

        Args:
            session: Async database session
            root_id: Restrict to this member and its downline
        """
        member_repo = MemberRepository(session)
        package_repo = PackageRepository(session)

        member_ids = None
        if root_id is not None:
            member_ids = [root_id, *await member_repo.get_downline_ids(root_id)]

        members = await member_repo.get_network_rows(member_ids)
        investments = await package_repo.get_investment_rows(member_ids)
        return cls(members, investments)

    def __contains__(self, member_id: int) -> bool:
        return member_id in self._status

    @property
    def member_ids(self) -> list[int]:
        return sorted(self._status)

    def is_active_investor(self, member_id: int) -> bool:
        return (
            self._status.get(member_id) == MemberStatus.ACTIVE.value
            and self._has_active.get(member_id, False)
        )

    def downline_volume(self, member_id: int) -> DownlineVolume:
        """
        Aggregate a member's subtree.

        Iterative post-order walk; results of every visited subtree are
        memoized for later calls.

        Raises:
            KeyError: If the member is not part of the snapshot
        """
        if member_id not in self._status:
            raise KeyError(member_id)

        stack: list[tuple[int, bool]] = [(member_id, False)]
        while stack:
            node, expanded = stack.pop()
            if node in self._memo:
                continue
            children = self._children.get(node, [])
            if not expanded:
                stack.append((node, True))
                stack.extend((child, False) for child in children if child not in self._memo)
                continue

            team_volume = Decimal("0")
            active_team = 0
            for child in children:
                child_volume = self._memo[child]
                team_volume += child_volume.personal_investment + child_volume.team_volume
                active_team += child_volume.active_team_count
                if self.is_active_investor(child):
                    active_team += 1

            self._memo[node] = DownlineVolume(
                member_id=node,
                personal_investment=self._principal.get(node, Decimal("0")),
                team_volume=team_volume,
                direct_count=len(children),
                active_team_count=active_team,
            )

        return self._memo[member_id]
