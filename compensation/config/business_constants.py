"""
Business logic constants.

Default compensation plan used until an administrator saves the first
settings version. Values follow the production plan: 30 unilevel levels
unlocked by direct referrals, 1:1 binary at 10%, ROI capped at 300% of
principal, five ranks.
"""

from decimal import Decimal

from compensation.schemas.commission_settings import (
    BinaryConfig,
    BoosterConfig,
    CommissionSettings,
    LevelCommissionConfig,
    LevelRate,
    LevelUnlockRule,
    RankConfig,
    RankDefinition,
    RoiConfig,
    WalletConfig,
)

# Level -> percent of the triggering amount
LEVEL_COMMISSION_PERCENTAGES: dict[int, Decimal] = {
    1: Decimal("10"),
    2: Decimal("9"),
    3: Decimal("8"),
    4: Decimal("7"),
    5: Decimal("6"),
    6: Decimal("5"),
    7: Decimal("4"),
    8: Decimal("4"),
    9: Decimal("3"),
    10: Decimal("3"),
    11: Decimal("3"),
    **{level: Decimal("2") for level in range(12, 17)},
    **{level: Decimal("1") for level in range(17, 26)},
    **{level: Decimal("0.5") for level in range(26, 31)},
}

# (direct referrals, deepest level earned)
LEVEL_UNLOCK_RULES: list[tuple[int, int]] = [
    *((directs, directs) for directs in range(1, 9)),
    (9, 10),
    (10, 15),
    (15, 20),
    (20, 25),
    (25, 30),
]

BINARY_MATCHING_PERCENTAGE = Decimal("10")
BINARY_DAILY_CAP = Decimal("1000")
BINARY_WEEKLY_CAP = Decimal("5000")
BINARY_MONTHLY_CAP = Decimal("15000")

ROI_DEFAULT_CAP_PERCENT = Decimal("300")

# (code, name, order, personal investment, team volume, directs, active team, reward)
RANK_LADDER: list[tuple[str, str, int, Decimal, Decimal, int, int, Decimal]] = [
    ("bronze", "Bronze", 1, Decimal("1000"), Decimal("5000"), 5, 3, Decimal("500")),
    ("silver", "Silver", 2, Decimal("3000"), Decimal("15000"), 10, 7, Decimal("1500")),
    ("gold", "Gold", 3, Decimal("10000"), Decimal("50000"), 20, 15, Decimal("5000")),
    ("platinum", "Platinum", 4, Decimal("30000"), Decimal("200000"), 50, 30, Decimal("15000")),
    ("diamond", "Diamond", 5, Decimal("100000"), Decimal("1000000"), 100, 60, Decimal("50000")),
]

BOOSTER_WINDOW_DAYS = 30
BOOSTER_REQUIRED_DIRECTS = 3

MIN_WITHDRAWAL_AMOUNT = Decimal("10")


def default_commission_settings() -> CommissionSettings:
    """Build the default compensation plan."""
    return CommissionSettings(
        level_commissions=LevelCommissionConfig(
            levels=[
                LevelRate(level=level, percentage=percentage)
                for level, percentage in LEVEL_COMMISSION_PERCENTAGES.items()
            ],
            unlock_rules=[
                LevelUnlockRule(min_direct_referrals=directs, max_level=depth)
                for directs, depth in LEVEL_UNLOCK_RULES
            ],
        ),
        binary=BinaryConfig(
            matching_percentage=BINARY_MATCHING_PERCENTAGE,
            daily_cap=BINARY_DAILY_CAP,
            weekly_cap=BINARY_WEEKLY_CAP,
            monthly_cap=BINARY_MONTHLY_CAP,
        ),
        roi=RoiConfig(default_cap_percent=ROI_DEFAULT_CAP_PERCENT),
        ranks=RankConfig(
            ranks=[
                RankDefinition(
                    code=code,
                    name=name,
                    order=order,
                    min_personal_investment=personal,
                    min_team_volume=team,
                    min_direct_referrals=directs,
                    min_active_team=active,
                    reward_amount=reward,
                )
                for code, name, order, personal, team, directs, active, reward in RANK_LADDER
            ],
        ),
        booster=BoosterConfig(
            window_days=BOOSTER_WINDOW_DAYS,
            required_directs=BOOSTER_REQUIRED_DIRECTS,
        ),
        wallet=WalletConfig(min_withdrawal=MIN_WITHDRAWAL_AMOUNT),
    )
