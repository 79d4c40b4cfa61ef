"""
Unit tests for the commission settings document.

Tests cover:
- Default compensation plan
- Section validation (levels, unlock rules, ranks, wallet)
- parse_settings error mapping
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from compensation.config.business_constants import default_commission_settings
from compensation.models.enums import CompressionPolicy, FlushPeriod, RatePolicy
from compensation.schemas.commission_settings import (
    CommissionSettings,
    LevelCommissionConfig,
    RankConfig,
    WalletConfig,
)
from compensation.services.settings_service import parse_settings
from compensation.utils.exceptions import ValidationError
from tests.helpers import settings_document


class TestDefaultSettings:
    """Test the built-in default plan."""

    def test_thirty_levels(self):
        settings = default_commission_settings()

        assert settings.level_commissions.max_levels == 30
        assert settings.level_commissions.rate_for(1).percentage == Decimal("10")
        assert settings.level_commissions.rate_for(30).percentage == Decimal("0.5")
        assert settings.level_commissions.rate_for(31) is None

    def test_defaults_of_other_sections(self):
        settings = default_commission_settings()

        assert settings.level_commissions.compression == CompressionPolicy.ROLL_UP
        assert settings.binary.daily_cap == Decimal("1000")
        assert settings.binary.flush_period == FlushPeriod.DAILY
        assert settings.roi.rate_policy == RatePolicy.MIDPOINT
        assert settings.roi.default_cap_percent == Decimal("300")
        assert [rank.code for rank in settings.ranks.ranks] == [
            "bronze",
            "silver",
            "gold",
            "platinum",
            "diamond",
        ]
        assert settings.wallet.min_withdrawal == Decimal("10")

    def test_defaults_survive_json_round_trip(self):
        """The stored JSON form parses back to the same document."""
        settings = default_commission_settings()

        assert parse_settings(settings.model_dump(mode="json")) == settings


class TestLevelValidation:
    """Test level table validation."""

    def test_levels_sorted(self):
        config = LevelCommissionConfig(
            levels=[{"level": 2, "percentage": "5"}, {"level": 1, "percentage": "10"}]
        )

        assert [rate.level for rate in config.levels] == [1, 2]

    @pytest.mark.parametrize(
        "levels",
        [
            [{"level": 1, "percentage": "10"}, {"level": 3, "percentage": "5"}],
            [{"level": 1, "percentage": "10"}, {"level": 1, "percentage": "5"}],
        ],
    )
    def test_gaps_and_duplicates_rejected(self, levels):
        with pytest.raises(PydanticValidationError):
            LevelCommissionConfig(levels=levels)

    def test_percentage_above_hundred_rejected(self):
        with pytest.raises(PydanticValidationError):
            LevelCommissionConfig(levels=[{"level": 1, "percentage": "101"}])


class TestLevelUnlock:
    """Test direct-referral level unlocking."""

    @pytest.mark.parametrize(
        "directs,depth",
        [(0, 0), (1, 1), (8, 8), (9, 10), (10, 15), (14, 15), (24, 25), (25, 30), (90, 30)],
    )
    def test_default_unlock_table(self, directs, depth):
        config = default_commission_settings().level_commissions

        assert config.unlocked_depth(directs) == depth

    def test_no_rules_opens_every_level(self):
        config = LevelCommissionConfig(levels=[{"level": 1, "percentage": "10"}])

        assert config.unlocked_depth(0) == 1

    def test_rules_sorted_by_threshold(self):
        config = LevelCommissionConfig(
            unlock_rules=[
                {"min_direct_referrals": 5, "max_level": 10},
                {"min_direct_referrals": 1, "max_level": 2},
            ]
        )

        assert [rule.min_direct_referrals for rule in config.unlock_rules] == [1, 5]

    @pytest.mark.parametrize(
        "rules",
        [
            [
                {"min_direct_referrals": 1, "max_level": 5},
                {"min_direct_referrals": 3, "max_level": 5},
            ],
            [
                {"min_direct_referrals": 2, "max_level": 1},
                {"min_direct_referrals": 2, "max_level": 3},
            ],
        ],
    )
    def test_non_increasing_rules_rejected(self, rules):
        with pytest.raises(PydanticValidationError, match="unlock_rules"):
            LevelCommissionConfig(unlock_rules=rules)


class TestRankValidation:
    """Test rank ladder validation."""

    def rank(self, code: str, order: int, team: str = "0") -> dict:
        return {"code": code, "name": code.title(), "order": order, "min_team_volume": team}

    def test_ranks_sorted_by_order(self):
        config = RankConfig(ranks=[self.rank("silver", 2, "10"), self.rank("bronze", 1, "5")])

        assert [rank.code for rank in config.ranks] == ["bronze", "silver"]
        assert config.order_of("silver") == 2
        assert config.order_of(None) == 0
        assert config.order_of("unknown") == 0

    def test_duplicate_codes_rejected(self):
        with pytest.raises(PydanticValidationError, match="unique"):
            RankConfig(ranks=[self.rank("bronze", 1), self.rank("bronze", 2)])

    def test_shared_order_rejected(self):
        with pytest.raises(PydanticValidationError):
            RankConfig(ranks=[self.rank("bronze", 1), self.rank("silver", 1)])

    def test_decreasing_threshold_rejected(self):
        with pytest.raises(PydanticValidationError, match="must not be lower"):
            RankConfig(ranks=[self.rank("bronze", 1, "100"), self.rank("silver", 2, "50")])


class TestWalletValidation:
    """Test wallet bounds."""

    def test_max_below_min_rejected(self):
        with pytest.raises(PydanticValidationError):
            WalletConfig(min_withdrawal=Decimal("100"), max_withdrawal=Decimal("50"))


class TestParseSettings:
    """Test parse_settings."""

    def test_valid_document(self):
        settings = parse_settings(settings_document())

        assert isinstance(settings, CommissionSettings)
        assert settings.level_commissions.max_levels == 3
        assert settings.booster.enabled is False

    def test_unknown_field_rejected(self):
        document = settings_document(binary={"enabled": True, "bogus": 1})

        with pytest.raises(ValidationError, match="binary.bogus"):
            parse_settings(document)

    def test_unknown_policy_rejected(self):
        document = settings_document(roi={"rate_policy": "random"})

        with pytest.raises(ValidationError, match="roi.rate_policy"):
            parse_settings(document)
