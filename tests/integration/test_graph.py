"""Integration tests for the referral graph store."""

from decimal import Decimal

import pytest

from compensation.models.enums import LegSide
from compensation.services.graph.downline import GraphSnapshot
from compensation.services.graph.graph_store import GraphStore
from compensation.utils.exceptions import (
    BusinessRuleViolation,
    NotFoundError,
    ReasonCode,
    ValidationError,
)
from tests.helpers import enroll_chain, settings_document


class TestEnrollment:
    """Test member enrollment."""

    @pytest.mark.asyncio
    async def test_enroll_under_sponsor(self, admin):
        root = await admin.enroll_member(None, external_ref="root")
        child = await admin.enroll_member(root.id, external_ref="child")

        assert child.sponsor_id == root.id
        assert child.status == "active"
        assert child.kyc_status == "pending"

    @pytest.mark.asyncio
    async def test_unknown_sponsor(self, admin):
        with pytest.raises(NotFoundError):
            await admin.enroll_member(999)

    @pytest.mark.asyncio
    async def test_parent_and_side_go_together(self, admin):
        root = await admin.enroll_member(None)

        with pytest.raises(ValidationError):
            await admin.enroll_member(root.id, binary_parent_id=root.id)

    @pytest.mark.asyncio
    async def test_sponsor_chain(self, admin, session):
        """The chain lists ancestors closest first with their level."""
        ids = await enroll_chain(admin, 4)

        chain = await GraphStore(session).sponsor_chain(ids[-1], max_depth=2)

        assert [(link.ancestor_id, link.level) for link in chain] == [(ids[2], 1), (ids[1], 2)]
        assert [link.direct_count for link in chain] == [1, 1]
        assert all(link.is_active for link in chain)


class TestPlacement:
    """Test binary placement."""

    @pytest.mark.asyncio
    async def test_enroll_with_placement(self, admin, session):
        root = await admin.enroll_member(None)
        left = await admin.enroll_member(root.id, binary_parent_id=root.id, binary_side="left")
        below = await admin.enroll_member(left.id, binary_parent_id=left.id, binary_side="right")

        path = await GraphStore(session).binary_path(below.id)

        assert path == [(left.id, LegSide.RIGHT), (root.id, LegSide.LEFT)]

    @pytest.mark.asyncio
    async def test_occupied_slot(self, admin):
        """A second member cannot take a slot; nothing is created."""
        root = await admin.enroll_member(None)
        await admin.enroll_member(root.id, binary_parent_id=root.id, binary_side="left")
        late = await admin.enroll_member(root.id)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await admin.place_member(late.id, root.id, "left")

        assert exc_info.value.code == ReasonCode.SLOT_OCCUPIED

    @pytest.mark.asyncio
    async def test_spillover_follows_outer_edge(self, admin):
        """Spillover places under the deepest node of the leg's outer edge."""
        root = await admin.enroll_member(None)
        first = await admin.enroll_member(root.id, binary_parent_id=root.id, binary_side="left")
        second = await admin.enroll_member(first.id, binary_parent_id=first.id, binary_side="left")
        newcomer = await admin.enroll_member(root.id)

        placed = await admin.place_member(newcomer.id, root.id, "left", spillover=True)

        assert placed.binary_parent_id == second.id
        assert placed.binary_side == "left"

    @pytest.mark.asyncio
    async def test_already_placed(self, admin):
        root = await admin.enroll_member(None)
        child = await admin.enroll_member(root.id, binary_parent_id=root.id, binary_side="left")

        with pytest.raises(ValidationError):
            await admin.place_member(child.id, root.id, "right")

    @pytest.mark.asyncio
    async def test_cycle_rejected(self, admin):
        """A member cannot be placed inside its own binary subtree."""
        root = await admin.enroll_member(None)
        top = await admin.enroll_member(root.id)
        below = await admin.enroll_member(top.id, binary_parent_id=top.id, binary_side="left")

        with pytest.raises(ValidationError, match="cycle"):
            await admin.place_member(top.id, below.id, "left")


class TestDownlineVolume:
    """Test downline aggregation."""

    @pytest.mark.asyncio
    async def test_team_volume_and_active_team(self, admin, session):
        await admin.save_commission_settings(settings_document())
        root = await admin.enroll_member(None)
        a = await admin.enroll_member(root.id)
        b = await admin.enroll_member(root.id)
        c = await admin.enroll_member(a.id)
        await admin.purchase_package(root.id, "100", rate_min="1", rate_max="1")
        await admin.purchase_package(a.id, "200", rate_min="1", rate_max="1")
        await admin.purchase_package(c.id, "300", rate_min="1", rate_max="1")

        snapshot = await GraphSnapshot.load(session)
        volume = snapshot.downline_volume(root.id)

        assert volume.personal_investment == Decimal("100")
        assert volume.team_volume == Decimal("500")
        assert volume.direct_count == 2
        # b has no package
        assert volume.active_team_count == 2
        assert snapshot.downline_volume(b.id).team_volume == Decimal("0")

    @pytest.mark.asyncio
    async def test_subtree_snapshot_matches_full(self, admin, session):
        await admin.save_commission_settings(settings_document())
        ids = await enroll_chain(admin, 3)
        await admin.purchase_package(ids[2], "250", rate_min="1", rate_max="1")

        volume = await GraphStore(session).downline_volume(ids[1])

        assert volume.team_volume == Decimal("250")
        assert volume.direct_count == 1
