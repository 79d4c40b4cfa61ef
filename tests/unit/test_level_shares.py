"""
Unit tests for level commission shares.

Tests cover:
- Level table application
- Compression policies (skip / roll_up)
- Forfeited shares
- Levels locked by direct referrals
"""

from decimal import Decimal

from compensation.models.enums import CompressionPolicy
from compensation.schemas.commission_settings import LevelCommissionConfig, LevelRate
from compensation.services.graph.graph_store import ChainLink
from compensation.services.level.distributor import compute_level_shares, level_key


def level_config(policy: CompressionPolicy, *rates: tuple[str, bool]) -> LevelCommissionConfig:
    return LevelCommissionConfig(
        compression=policy,
        levels=[
            LevelRate(level=index, percentage=Decimal(percentage), is_active=active)
            for index, (percentage, active) in enumerate(rates, start=1)
        ],
    )


TEN_FIVE_TWO = (("10", True), ("5", True), ("2", True))


class TestLevelShares:
    """Test the level table without compression."""

    def test_all_active_chain(self):
        """Each ancestor receives its own level percentage."""
        config = level_config(CompressionPolicy.ROLL_UP, *TEN_FIVE_TWO)
        chain = [ChainLink(3, 1, "active"), ChainLink(2, 2, "active"), ChainLink(1, 3, "active")]

        shares, compressed, forfeited = compute_level_shares(chain, Decimal("1000"), config)

        assert [(s.ancestor_id, s.amount) for s in shares] == [
            (3, Decimal("100")),
            (2, Decimal("50")),
            (1, Decimal("20")),
        ]
        assert compressed == []
        assert forfeited == Decimal("0")

    def test_chain_longer_than_table_stops_at_last_level(self):
        """Ancestors beyond the configured depth receive nothing."""
        config = level_config(CompressionPolicy.ROLL_UP, ("10", True))
        chain = [ChainLink(3, 1, "active"), ChainLink(2, 2, "active")]

        shares, _, _ = compute_level_shares(chain, Decimal("1000"), config)

        assert [s.ancestor_id for s in shares] == [3]

    def test_short_chain_pays_existing_levels_only(self):
        """A root's direct referral only pays level 1."""
        config = level_config(CompressionPolicy.SKIP, *TEN_FIVE_TWO)

        shares, compressed, forfeited = compute_level_shares(
            [ChainLink(1, 1, "active")], Decimal("1000"), config
        )

        assert len(shares) == 1
        assert compressed == []
        assert forfeited == Decimal("0")

    def test_level_key(self):
        assert level_key("investment:7", 3) == "level:investment:7:3"


class TestCompression:
    """Test skip and roll_up policies."""

    chain = [ChainLink(3, 1, "active"), ChainLink(2, 2, "suspended"), ChainLink(1, 3, "active")]

    def test_skip_forfeits_inactive_level(self):
        """With skip the level-2 share of a suspended ancestor is lost."""
        config = level_config(CompressionPolicy.SKIP, *TEN_FIVE_TWO)

        shares, compressed, forfeited = compute_level_shares(self.chain, Decimal("1000"), config)

        assert [(s.ancestor_id, s.amount) for s in shares] == [
            (3, Decimal("100")),
            (1, Decimal("20")),
        ]
        assert compressed == [2]
        assert forfeited == Decimal("5")

    def test_roll_up_passes_share_to_next_eligible(self):
        """With roll_up the level-2 share is added to the level-3 ancestor."""
        config = level_config(CompressionPolicy.ROLL_UP, *TEN_FIVE_TWO)

        shares, compressed, forfeited = compute_level_shares(self.chain, Decimal("1000"), config)

        top = shares[-1]
        assert top.ancestor_id == 1
        assert top.own_percentage == Decimal("2")
        assert top.carried_percentage == Decimal("5")
        assert top.amount == Decimal("70")
        assert compressed == [2]
        assert forfeited == Decimal("0")

    def test_roll_up_past_last_level_is_forfeited(self):
        """A share still carried at the end of the window is forfeited."""
        config = level_config(CompressionPolicy.ROLL_UP, *TEN_FIVE_TWO)
        chain = [ChainLink(3, 1, "active"), ChainLink(2, 2, "active"), ChainLink(1, 3, "banned")]

        shares, compressed, forfeited = compute_level_shares(chain, Decimal("1000"), config)

        assert sum(s.amount for s in shares) == Decimal("150")
        assert compressed == [3]
        assert forfeited == Decimal("2")

    def test_disabled_level_is_compressed(self):
        """An inactive level rate is compressed like an inactive member."""
        config = level_config(CompressionPolicy.ROLL_UP, ("10", True), ("5", False), ("2", True))
        chain = [ChainLink(3, 1, "active"), ChainLink(2, 2, "active"), ChainLink(1, 3, "active")]

        shares, compressed, _ = compute_level_shares(chain, Decimal("1000"), config)

        assert [s.ancestor_id for s in shares] == [3, 1]
        assert shares[-1].amount == Decimal("70")
        assert compressed == [2]

    def test_total_never_exceeds_table_sum(self):
        """Compression redistributes, it never creates commission."""
        config = level_config(CompressionPolicy.ROLL_UP, *TEN_FIVE_TWO)

        shares, _, forfeited = compute_level_shares(self.chain, Decimal("1000"), config)

        paid_percentage = sum(s.percentage for s in shares)
        assert paid_percentage + forfeited == Decimal("17")



class TestLevelUnlock:
    """Test levels gated by the ancestor's direct referrals."""

    # Level-2 ancestor has one direct, so only level 1 is open to them
    chain = [
        ChainLink(3, 1, "active", 1),
        ChainLink(2, 2, "active", 1),
        ChainLink(1, 3, "active", 3),
    ]

    def unlock_config(self, policy: CompressionPolicy) -> LevelCommissionConfig:
        config = level_config(policy, *TEN_FIVE_TWO)
        config.unlock_rules = [
            {"min_direct_referrals": 1, "max_level": 1},
            {"min_direct_referrals": 3, "max_level": 3},
        ]
        return config

    def test_locked_level_is_skipped(self):
        config = self.unlock_config(CompressionPolicy.SKIP)

        shares, compressed, forfeited = compute_level_shares(self.chain, Decimal("1000"), config)

        assert [(s.ancestor_id, s.amount) for s in shares] == [
            (3, Decimal("100")),
            (1, Decimal("20")),
        ]
        assert compressed == [2]
        assert forfeited == Decimal("5")

    def test_locked_level_rolls_up(self):
        """With roll_up the locked share moves to the next unlocked ancestor."""
        config = self.unlock_config(CompressionPolicy.ROLL_UP)

        shares, compressed, forfeited = compute_level_shares(self.chain, Decimal("1000"), config)

        assert shares[-1].ancestor_id == 1
        assert shares[-1].amount == Decimal("70")
        assert compressed == [2]
        assert forfeited == Decimal("0")

    def test_no_directs_earns_nothing(self):
        """Without direct referrals no level is unlocked."""
        config = self.unlock_config(CompressionPolicy.SKIP)

        shares, compressed, _ = compute_level_shares(
            [ChainLink(1, 1, "active", 0)], Decimal("1000"), config
        )

        assert shares == []
        assert compressed == [1]
