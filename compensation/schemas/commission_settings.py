"""Pydantic models for the versioned commission settings record."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from compensation.models.enums import (
    AccrualSchedule,
    CompressionPolicy,
    FlushPeriod,
    RatePolicy,
)


class _SettingsModel(BaseModel):
    model_config = ConfigDict(
        frozen=False,
        validate_assignment=True,
        extra="forbid",
    )


class LevelRate(_SettingsModel):
    """Commission percentage paid to the ancestor at one sponsor level."""

    level: int = Field(..., ge=1, description="Sponsor level (1 = direct sponsor)")
    percentage: Decimal = Field(..., ge=0, le=100, description="Percent of the event amount")
    is_active: bool = Field(default=True, description="Inactive levels are compressed")


class LevelUnlockRule(_SettingsModel):
    """Deepest sponsor level earned once a sponsor has enough direct referrals."""

    min_direct_referrals: int = Field(..., ge=1)
    max_level: int = Field(..., ge=1)


class LevelCommissionConfig(_SettingsModel):
    """Unilevel commission table and compression policy."""

    enabled: bool = True
    compression: CompressionPolicy = Field(
        default=CompressionPolicy.ROLL_UP,
        description="skip: ineligible share is not paid; roll_up: passed to next eligible ancestor",
    )
    investment_contributes: bool = Field(
        default=True, description="New investments trigger level commissions"
    )
    roi_contributes: bool = Field(
        default=True, description="ROI accruals trigger level commissions"
    )
    levels: list[LevelRate] = Field(default_factory=list)
    unlock_rules: list[LevelUnlockRule] = Field(
        default_factory=list,
        description="Direct referrals needed to earn deeper levels; empty = every level open",
    )

    @field_validator("levels")
    @classmethod
    def validate_levels(cls, v: list[LevelRate]) -> list[LevelRate]:
        """Levels must be numbered 1..N without gaps."""
        numbers = sorted(rate.level for rate in v)
        if numbers != list(range(1, len(v) + 1)):
            raise ValueError("levels must be numbered 1..N without gaps or duplicates")
        return sorted(v, key=lambda rate: rate.level)

    @field_validator("unlock_rules")
    @classmethod
    def validate_unlock_rules(cls, v: list[LevelUnlockRule]) -> list[LevelUnlockRule]:
        """Every higher direct-referral threshold must open a deeper level."""
        ordered = sorted(v, key=lambda rule: rule.min_direct_referrals)
        for lower, higher in zip(ordered, ordered[1:]):
            if (
                higher.min_direct_referrals == lower.min_direct_referrals
                or higher.max_level <= lower.max_level
            ):
                raise ValueError("unlock_rules must open deeper levels at higher thresholds")
        return ordered

    @property
    def max_levels(self) -> int:
        return len(self.levels)

    def rate_for(self, level: int) -> LevelRate | None:
        if 1 <= level <= len(self.levels):
            return self.levels[level - 1]
        return None

    def unlocked_depth(self, direct_count: int) -> int:
        """Deepest level a sponsor with direct_count direct referrals earns."""
        if not self.unlock_rules:
            return self.max_levels
        return max(
            (
                rule.max_level
                for rule in self.unlock_rules
                if direct_count >= rule.min_direct_referrals
            ),
            default=0,
        )


class BinaryConfig(_SettingsModel):
    """Binary matching bonus configuration."""

    enabled: bool = True
    matching_percentage: Decimal = Field(default=Decimal("10"), ge=0, le=100)
    ratio_weak: int = Field(default=1, ge=1, description="Weaker-leg units per match")
    ratio_strong: int = Field(default=1, ge=1, description="Stronger-leg units per match")
    min_match_volume: Decimal = Field(default=Decimal("0"), ge=0)
    daily_cap: Decimal | None = Field(default=None, ge=0)
    weekly_cap: Decimal | None = Field(default=None, ge=0)
    monthly_cap: Decimal | None = Field(default=None, ge=0)
    flush_period: FlushPeriod = FlushPeriod.DAILY
    flush_carry_limit: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Volume each leg may keep across a flush (0 = forfeit all)",
    )


class RoiConfig(_SettingsModel):
    """ROI accrual configuration."""

    enabled: bool = True
    rate_policy: RatePolicy = Field(
        default=RatePolicy.MIDPOINT,
        description="Deterministic rate selection inside a package's band",
    )
    default_schedule: AccrualSchedule = AccrualSchedule.DAILY
    default_cap_percent: Decimal = Field(
        default=Decimal("300"), gt=0, description="Lifetime ROI cap as % of principal"
    )


class RankDefinition(_SettingsModel):
    """One rank of the rank ladder."""

    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=100)
    order: int = Field(..., ge=1)
    min_personal_investment: Decimal = Field(default=Decimal("0"), ge=0)
    min_team_volume: Decimal = Field(default=Decimal("0"), ge=0)
    min_direct_referrals: int = Field(default=0, ge=0)
    min_active_team: int = Field(default=0, ge=0)
    reward_amount: Decimal = Field(default=Decimal("0"), ge=0)


class RankConfig(_SettingsModel):
    """Rank ladder; ranks are kept sorted by order."""

    auto_pay_rewards: bool = False
    ranks: list[RankDefinition] = Field(default_factory=list)

    @field_validator("ranks")
    @classmethod
    def validate_ranks(cls, v: list[RankDefinition]) -> list[RankDefinition]:
        """Strict order, unique codes, thresholds non-decreasing."""
        ranks = sorted(v, key=lambda rank: rank.order)
        codes = [rank.code for rank in ranks]
        if len(set(codes)) != len(codes):
            raise ValueError("rank codes must be unique")

        for lower, higher in zip(ranks, ranks[1:]):
            if higher.order == lower.order:
                raise ValueError(f"ranks {lower.code} and {higher.code} share order {lower.order}")
            if (
                higher.min_personal_investment < lower.min_personal_investment
                or higher.min_team_volume < lower.min_team_volume
                or higher.min_direct_referrals < lower.min_direct_referrals
                or higher.min_active_team < lower.min_active_team
            ):
                raise ValueError(
                    f"thresholds of {higher.code} must not be lower than {lower.code}"
                )
        return ranks

    def by_code(self, code: str) -> RankDefinition | None:
        for rank in self.ranks:
            if rank.code == code:
                return rank
        return None

    def order_of(self, code: str | None) -> int:
        """Order of a rank code, 0 for no rank or an unknown code."""
        rank = self.by_code(code) if code else None
        return rank.order if rank else 0


class BoosterConfig(_SettingsModel):
    """Fast-start booster configuration."""

    enabled: bool = True
    window_days: int = Field(default=30, ge=1)
    required_directs: int = Field(default=3, ge=1)
    reward_percent: Decimal = Field(
        default=Decimal("10"), ge=0, le=100, description="Reward as % of the investment"
    )
    bonus_roi_percent: Decimal = Field(
        default=Decimal("0.10"), ge=0, description="Added to the ROI rate of active packages"
    )


class WalletConfig(_SettingsModel):
    """Deposit and withdrawal rules."""

    min_deposit: Decimal = Field(default=Decimal("1"), gt=0)
    min_withdrawal: Decimal = Field(default=Decimal("10"), gt=0)
    max_withdrawal: Decimal | None = Field(default=None, gt=0)
    daily_withdrawal_limit: Decimal | None = Field(default=None, gt=0)
    require_kyc_for_withdrawals: bool = True
    require_kyc_for_deposits: bool = False

    @model_validator(mode="after")
    def validate_bounds(self) -> "WalletConfig":
        if self.max_withdrawal is not None and self.max_withdrawal < self.min_withdrawal:
            raise ValueError("max_withdrawal must not be below min_withdrawal")
        return self


class CommissionSettings(_SettingsModel):
    """Complete business configuration of the engine."""

    level_commissions: LevelCommissionConfig = Field(default_factory=LevelCommissionConfig)
    binary: BinaryConfig = Field(default_factory=BinaryConfig)
    roi: RoiConfig = Field(default_factory=RoiConfig)
    ranks: RankConfig = Field(default_factory=RankConfig)
    booster: BoosterConfig = Field(default_factory=BoosterConfig)
    wallet: WalletConfig = Field(default_factory=WalletConfig)
