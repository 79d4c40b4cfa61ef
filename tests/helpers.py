"""Test data builders shared by the integration tests."""

from datetime import UTC, datetime
from typing import Any

from compensation.models.enums import KycStatus
from compensation.services.admin_service import CompensationAdminService


def utc(year: int, month: int, day: int, hour: int = 0) -> datetime:
    return datetime(year, month, day, hour, tzinfo=UTC)


def settings_document(**sections: Any) -> dict[str, Any]:
    """
    Small settings document for tests.

    Three levels (10/5/2), binary without caps or flush, one rank,
    booster off. Keyword arguments replace whole sections.
    """
    document: dict[str, Any] = {
        "level_commissions": {
            "enabled": True,
            "compression": "roll_up",
            "investment_contributes": True,
            "roi_contributes": False,
            "levels": [
                {"level": 1, "percentage": "10"},
                {"level": 2, "percentage": "5"},
                {"level": 3, "percentage": "2"},
            ],
        },
        "binary": {
            "enabled": True,
            "matching_percentage": "10",
            "flush_period": "never",
        },
        "roi": {"enabled": True, "rate_policy": "midpoint", "default_cap_percent": "300"},
        "ranks": {
            "auto_pay_rewards": False,
            "ranks": [
                {
                    "code": "bronze",
                    "name": "Bronze",
                    "order": 1,
                    "min_personal_investment": "100",
                    "min_team_volume": "200",
                    "min_direct_referrals": 2,
                    "min_active_team": 2,
                    "reward_amount": "50",
                }
            ],
        },
        "booster": {"enabled": False},
        "wallet": {"min_deposit": "1", "min_withdrawal": "10", "require_kyc_for_withdrawals": True},
    }
    document.update(sections)
    return document


async def enroll_chain(
    admin: CompensationAdminService, length: int, kyc_status: str = KycStatus.VERIFIED.value
) -> list[int]:
    """
    Enroll a straight sponsor line root -> m1 -> m2 ...

    Returns:
        Member ids, root first
    """
    ids: list[int] = []
    sponsor_id = None
    for index in range(length):
        member = await admin.enroll_member(
            sponsor_id, external_ref=f"m{index}", kyc_status=kyc_status
        )
        ids.append(member.id)
        sponsor_id = member.id
    return ids


async def fund(admin: CompensationAdminService, member_id: int, amount: str) -> None:
    """Credit a wallet through a manual adjustment."""
    await admin.manual_adjustment(member_id, amount, "credit", "test funding", admin_id="tests")
