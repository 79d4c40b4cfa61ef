"""Integration tests for package purchase and cancellation."""

from datetime import timedelta
from decimal import Decimal

import pytest
import pytest_asyncio

from compensation.utils.exceptions import (
    BusinessRuleViolation,
    NotFoundError,
    ReasonCode,
    ValidationError,
)
from tests.helpers import settings_document, utc


@pytest_asyncio.fixture
async def configured(admin):
    await admin.save_commission_settings(settings_document())
    return admin


class TestPurchase:
    """Test package purchase."""

    @pytest.mark.asyncio
    async def test_purchase_records_cap(self, configured):
        """The ROI cap amount is derived from principal and cap percent."""
        member = await configured.enroll_member(None)

        package = await configured.purchase_package(
            member.id, "1000", rate_min="5", rate_max="7", cap_percent="150", start_at=utc(2024, 1, 1)
        )

        assert package.principal == Decimal("1000")
        assert package.roi_cap_amount == Decimal("1500")
        assert package.roi_paid_amount == Decimal("0")
        assert package.status == "active"
        assert package.schedule == "daily"

    @pytest.mark.asyncio
    async def test_default_cap_percent(self, configured):
        member = await configured.enroll_member(None)

        package = await configured.purchase_package(member.id, "200", rate_min="1", rate_max="2")

        assert package.roi_cap_amount == Decimal("600")

    @pytest.mark.asyncio
    async def test_purchase_accumulates_binary_volume(self, configured):
        root = await configured.enroll_member(None)
        left = await configured.enroll_member(root.id, binary_parent_id=root.id, binary_side="left")

        await configured.purchase_package(left.id, "300", rate_min="1", rate_max="1")

        stats = await configured.binary_stats(root.id)
        assert stats["left_volume"] == Decimal("300")
        assert stats["right_volume"] == Decimal("0")
        assert stats["total_left"] == Decimal("300")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "options",
        [
            {"rate_min": "7", "rate_max": "5"},
            {"rate_min": "-1", "rate_max": "5"},
            {"rate_min": "1", "rate_max": "2", "schedule": "hourly"},
            {
                "rate_min": "1",
                "rate_max": "2",
                "start_at": utc(2024, 2, 1),
                "maturity_at": utc(2024, 1, 1),
            },
        ],
    )
    async def test_invalid_terms(self, configured, options):
        member = await configured.enroll_member(None)

        with pytest.raises(ValidationError):
            await configured.purchase_package(member.id, "100", **options)

    @pytest.mark.asyncio
    async def test_non_positive_principal(self, configured):
        member = await configured.enroll_member(None)

        with pytest.raises(ValidationError):
            await configured.purchase_package(member.id, "0", rate_min="1", rate_max="2")

    @pytest.mark.asyncio
    async def test_inactive_member(self, configured):
        member = await configured.enroll_member(None, status="suspended")

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await configured.purchase_package(member.id, "100", rate_min="1", rate_max="2")

        assert exc_info.value.code == ReasonCode.MEMBER_INACTIVE

    @pytest.mark.asyncio
    async def test_unknown_member(self, configured):
        with pytest.raises(NotFoundError):
            await configured.purchase_package(404, "100", rate_min="1", rate_max="2")


class TestCancel:
    """Test package cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_stops_roi(self, configured):
        member = await configured.enroll_member(None)
        package = await configured.purchase_package(
            member.id, "1000", rate_min="1", rate_max="1", start_at=utc(2024, 1, 1)
        )

        cancelled = await configured.cancel_package(package.id, "requested by member")
        run = await configured.execute_commission_run(
            "roi", utc(2024, 1, 1), utc(2024, 1, 1) + timedelta(days=5)
        )

        assert cancelled.status == "cancelled"
        assert cancelled.cancelled_at is not None
        assert run.entries_posted == 0
        assert await configured.balance_of(member.id) == Decimal("0")

    @pytest.mark.asyncio
    async def test_cancel_twice(self, configured):
        member = await configured.enroll_member(None)
        package = await configured.purchase_package(member.id, "100", rate_min="1", rate_max="1")
        await configured.cancel_package(package.id, "first")

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await configured.cancel_package(package.id, "second")

        assert exc_info.value.code == ReasonCode.INVALID_STATUS

    @pytest.mark.asyncio
    async def test_cancel_requires_reason(self, configured):
        member = await configured.enroll_member(None)
        package = await configured.purchase_package(member.id, "100", rate_min="1", rate_max="1")

        with pytest.raises(ValidationError):
            await configured.cancel_package(package.id, "")
