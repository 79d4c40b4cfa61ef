"""
Integration tests for deposit and withdrawal approval.

Tests cover:
- Batch approval with per-request outcome
- Live re-validation on approval (balance, KYC, daily limit)
- Rejection and hold workflows
- Request statistics
"""

from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.exc import IntegrityError

from compensation.services.approval.withdrawal_approval import WithdrawalApprovalService
from compensation.utils.exceptions import (
    BusinessRuleViolation,
    NotFoundError,
    ReasonCode,
    ValidationError,
)
from tests.helpers import fund, settings_document


@pytest_asyncio.fixture
async def configured(admin):
    await admin.save_commission_settings(settings_document())
    return admin


async def funded_member(admin, amount: str = "100", kyc_status: str = "verified") -> int:
    member = await admin.enroll_member(None, kyc_status=kyc_status)
    await fund(admin, member.id, amount)
    return member.id


class TestBatchWithdrawals:
    """Test batch approval of withdrawals."""

    @pytest.mark.asyncio
    async def test_drained_balance_fails_alone(self, configured):
        """Five requests where the third member was drained: four approved, one reported."""
        members = [await funded_member(configured) for _ in range(5)]
        requests = [await configured.request_withdrawal(m, "50") for m in members]
        await configured.manual_adjustment(members[2], "80", "debit", "chargeback")

        result = await configured.batch_approve_withdrawals(
            [request.id for request in requests], admin_id="admin"
        )

        assert result.success_count == 4
        assert result.failed == [(requests[2].id, "InsufficientBalance")]
        withdrawals = [
            entry
            for member_id in members
            for entry in await configured.ledger_history(member_id, kind="withdrawal")
        ]
        assert len(withdrawals) == 4
        assert await configured.balance_of(members[2]) == Decimal("20")
        assert await configured.balance_of(members[0]) == Decimal("50")

    @pytest.mark.asyncio
    async def test_database_error_fails_alone(self, configured, monkeypatch):
        """A raw database error on one request is reported and the batch goes on."""
        members = [await funded_member(configured) for _ in range(3)]
        requests = [await configured.request_withdrawal(m, "50") for m in members]
        broken_id = requests[1].id
        original = WithdrawalApprovalService._post_approval

        async def post_approval(self, request, member):
            if request.id == broken_id:
                raise IntegrityError("INSERT INTO ledger_entries", {}, Exception("duplicate key"))
            return await original(self, request, member)

        monkeypatch.setattr(WithdrawalApprovalService, "_post_approval", post_approval)

        result = await configured.batch_approve_withdrawals([r.id for r in requests])

        assert result.succeeded == [requests[0].id, requests[2].id]
        assert result.failed == [(broken_id, "ConcurrencyConflict")]
        pending = await configured.list_withdrawals("pending")
        assert [request.id for request in pending] == [broken_id]
        assert await configured.balance_of(members[1]) == Decimal("100")
        assert await configured.balance_of(members[2]) == Decimal("50")
        pending = await configured.list_withdrawals("pending")
        assert [request.id for request in pending] == [requests[2].id]

    @pytest.mark.asyncio
    async def test_unknown_and_reviewed_requests(self, configured):
        member_id = await funded_member(configured)
        request = await configured.request_withdrawal(member_id, "20")
        await configured.approve_withdrawal(request.id)

        result = await configured.batch_approve_withdrawals([request.id, 999])

        assert result.succeeded == []
        assert result.failed == [(request.id, "InvalidStatus"), (999, "NotFound")]

    @pytest.mark.asyncio
    async def test_empty_batch(self, configured):
        with pytest.raises(ValidationError):
            await configured.batch_approve_withdrawals([])


class TestWithdrawalRules:
    """Test withdrawal request and approval checks."""

    @pytest.mark.asyncio
    async def test_approval_posts_debit(self, configured):
        member_id = await funded_member(configured)
        request = await configured.request_withdrawal(member_id, "40", reference="bank-1")

        approved = await configured.approve_withdrawal(request.id, admin_id="admin")

        assert approved.status == "approved"
        assert approved.reviewed_by == "admin"
        assert approved.ledger_entry_id is not None
        assert await configured.balance_of(member_id) == Decimal("60")

    @pytest.mark.asyncio
    async def test_below_minimum(self, configured):
        member_id = await funded_member(configured)

        with pytest.raises(ValidationError):
            await configured.request_withdrawal(member_id, "5")

    @pytest.mark.asyncio
    async def test_above_balance_at_request(self, configured):
        member_id = await funded_member(configured, "30")

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await configured.request_withdrawal(member_id, "50")

        assert exc_info.value.code == ReasonCode.INSUFFICIENT_BALANCE

    @pytest.mark.asyncio
    async def test_above_maximum(self, admin):
        await admin.save_commission_settings(
            settings_document(wallet={"min_withdrawal": "10", "max_withdrawal": "40"})
        )
        member_id = await funded_member(admin)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await admin.request_withdrawal(member_id, "50")

        assert exc_info.value.code == ReasonCode.LIMIT_EXCEEDED

    @pytest.mark.asyncio
    async def test_kyc_checked_on_approval(self, configured):
        """KYC is checked live when the request is approved."""
        member_id = await funded_member(configured, kyc_status="pending")
        request = await configured.request_withdrawal(member_id, "20")

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await configured.approve_withdrawal(request.id)

        assert exc_info.value.code == ReasonCode.KYC_NOT_VERIFIED
        assert await configured.balance_of(member_id) == Decimal("100")

    @pytest.mark.asyncio
    async def test_kyc_not_required(self, admin):
        await admin.save_commission_settings(
            settings_document(wallet={"require_kyc_for_withdrawals": False})
        )
        member_id = await funded_member(admin, kyc_status="pending")
        request = await admin.request_withdrawal(member_id, "20")

        approved = await admin.approve_withdrawal(request.id)

        assert approved.status == "approved"

    @pytest.mark.asyncio
    async def test_daily_limit(self, admin):
        await admin.save_commission_settings(
            settings_document(wallet={"min_withdrawal": "10", "daily_withdrawal_limit": "60"})
        )
        member_id = await funded_member(admin)
        first = await admin.request_withdrawal(member_id, "40")
        second = await admin.request_withdrawal(member_id, "30")
        await admin.approve_withdrawal(first.id)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await admin.approve_withdrawal(second.id)

        assert exc_info.value.code == ReasonCode.LIMIT_EXCEEDED
        assert await admin.balance_of(member_id) == Decimal("60")


class TestReviewWorkflow:
    """Test reject and hold."""

    @pytest.mark.asyncio
    async def test_reject_without_reason(self, configured):
        member_id = await funded_member(configured)
        request = await configured.request_withdrawal(member_id, "20")

        rejected = await configured.reject_withdrawal(request.id)

        assert rejected.status == "rejected"
        assert rejected.rejection_reason is None
        assert await configured.balance_of(member_id) == Decimal("100")

    @pytest.mark.asyncio
    async def test_hold_then_approve(self, configured):
        member_id = await funded_member(configured)
        request = await configured.request_withdrawal(member_id, "20")

        held = await configured.hold_withdrawal(request.id, "manual review")
        approved = await configured.approve_withdrawal(request.id)

        assert held.status == "on_hold"
        assert held.hold_reason == "manual review"
        assert approved.status == "approved"

    @pytest.mark.asyncio
    async def test_hold_needs_pending(self, configured):
        member_id = await funded_member(configured)
        request = await configured.request_withdrawal(member_id, "20")
        await configured.reject_withdrawal(request.id, "duplicate")

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await configured.hold_withdrawal(request.id, "late")

        assert exc_info.value.code == ReasonCode.INVALID_STATUS


class TestDeposits:
    """Test deposit requests."""

    @pytest.mark.asyncio
    async def test_approve_credits_wallet(self, configured):
        member = await configured.enroll_member(None)
        request = await configured.request_deposit(member.id, "250", reference="tx-1")

        approved = await configured.approve_deposit(request.id, admin_id="admin")

        assert approved.status == "approved"
        assert await configured.balance_of(member.id) == Decimal("250")

    @pytest.mark.asyncio
    async def test_reject_requires_reason(self, configured):
        member = await configured.enroll_member(None)
        request = await configured.request_deposit(member.id, "250")

        with pytest.raises(ValidationError):
            await configured.reject_deposit(request.id, "")

        rejected = await configured.reject_deposit(request.id, "no funds received")
        assert rejected.rejection_reason == "no funds received"

    @pytest.mark.asyncio
    async def test_batch_approve_deposits(self, configured):
        member = await configured.enroll_member(None)
        first = await configured.request_deposit(member.id, "10")
        second = await configured.request_deposit(member.id, "15")

        result = await configured.batch_approve_deposits([first.id, second.id])

        assert result.succeeded == [first.id, second.id]
        assert await configured.balance_of(member.id) == Decimal("25")

    @pytest.mark.asyncio
    async def test_unknown_member(self, configured):
        with pytest.raises(NotFoundError):
            await configured.request_deposit(404, "10")


class TestFinancialStats:
    """Test request statistics."""

    @pytest.mark.asyncio
    async def test_totals_per_status(self, configured):
        member_id = await funded_member(configured)
        approved = await configured.request_withdrawal(member_id, "20")
        await configured.request_withdrawal(member_id, "30")
        held = await configured.request_withdrawal(member_id, "10")
        await configured.approve_withdrawal(approved.id)
        await configured.hold_withdrawal(held.id, "review")
        deposit = await configured.request_deposit(member_id, "5")
        await configured.reject_deposit(deposit.id, "duplicate")

        stats = await configured.financial_stats()

        assert stats["withdrawals"]["approved_count"] == 1
        assert stats["withdrawals"]["approved_amount"] == Decimal("20")
        assert stats["withdrawals"]["pending_count"] == 1
        assert stats["withdrawals"]["pending_amount"] == Decimal("30")
        assert stats["withdrawals"]["on_hold_count"] == 1
        assert stats["deposits"]["rejected_count"] == 1
