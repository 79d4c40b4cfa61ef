"""Integration tests for the wallet ledger."""

from decimal import Decimal

import pytest

from compensation.models.enums import LedgerKind
from compensation.models.member_balance import MemberBalance
from compensation.services.graph.graph_store import GraphStore
from compensation.services.ledger.ledger_service import LedgerService, PostStatus
from compensation.utils.exceptions import (
    BusinessRuleViolation,
    NotFoundError,
    ReasonCode,
    ValidationError,
)


@pytest.fixture
def ledger(session) -> LedgerService:
    return LedgerService(session)


async def new_member(session) -> int:
    member = await GraphStore(session).enroll(None)
    return member.id


class TestPosting:
    """Test idempotent posting."""

    @pytest.mark.asyncio
    async def test_credit_updates_balance(self, session, ledger):
        """An accepted credit is reflected in the cached balance."""
        member_id = await new_member(session)

        result = await ledger.post(member_id, Decimal("100"), LedgerKind.DEPOSIT, "deposit:1")
        await session.commit()

        assert result.status == PostStatus.ACCEPTED
        assert result.entry.balance_after == Decimal("100")
        assert await ledger.balance_of(member_id) == Decimal("100")

    @pytest.mark.asyncio
    async def test_replayed_key_is_duplicate(self, session, ledger):
        """Posting the same key twice creates one entry."""
        member_id = await new_member(session)

        first = await ledger.post(member_id, Decimal("100"), "deposit", "deposit:1")
        await session.commit()
        second = await ledger.post(member_id, Decimal("100"), "deposit", "deposit:1")
        await session.commit()

        assert second.status == PostStatus.DUPLICATE
        assert second.entry.id == first.entry.id
        assert await ledger.balance_of(member_id) == Decimal("100")
        assert len(await ledger.history(member_id)) == 1

    @pytest.mark.asyncio
    async def test_withdrawal_needs_funds(self, session, ledger):
        """A withdrawal that would overdraw the wallet is rejected without an entry."""
        member_id = await new_member(session)
        await ledger.post(member_id, Decimal("50"), "deposit", "deposit:1")
        await session.commit()

        result = await ledger.post(member_id, Decimal("-80"), "withdrawal", "withdrawal:1")
        await session.commit()

        assert result.status == PostStatus.REJECTED
        assert result.reason == ReasonCode.INSUFFICIENT_BALANCE
        assert await ledger.balance_of(member_id) == Decimal("50")
        assert len(await ledger.history(member_id)) == 1

    @pytest.mark.asyncio
    async def test_zero_amount_rejected(self, session, ledger):
        member_id = await new_member(session)

        with pytest.raises(ValidationError):
            await ledger.post(member_id, Decimal("0"), "manual", "manual:zero")

    @pytest.mark.asyncio
    async def test_unknown_kind_rejected(self, session, ledger):
        member_id = await new_member(session)

        with pytest.raises(ValueError):
            await ledger.post(member_id, Decimal("1"), "bonus", "bonus:1")

    @pytest.mark.asyncio
    async def test_history_newest_first(self, session, ledger):
        member_id = await new_member(session)
        for index in range(3):
            await ledger.post(member_id, Decimal("10"), "deposit", f"deposit:{index}")
        await session.commit()

        entries = await ledger.history(member_id, kind="deposit", limit=2)

        assert [entry.idempotency_key for entry in entries] == ["deposit:2", "deposit:1"]


class TestReversal:
    """Test entry reversal."""

    @pytest.mark.asyncio
    async def test_reverse_credit(self, session, ledger):
        """A reversal posts the opposite amount and references the original."""
        member_id = await new_member(session)
        original = (await ledger.post(member_id, Decimal("100"), "level", "level:e:1")).entry
        await session.commit()

        result = await ledger.reverse(original.id, "paid in error", admin_id="admin")
        await session.commit()

        assert result.accepted
        assert result.entry.amount == Decimal("-100")
        assert result.entry.kind == LedgerKind.LEVEL.value
        assert result.entry.reversal_of_id == original.id
        assert await ledger.balance_of(member_id) == Decimal("0")

    @pytest.mark.asyncio
    async def test_reverse_twice_is_duplicate(self, session, ledger):
        member_id = await new_member(session)
        original = (await ledger.post(member_id, Decimal("100"), "level", "level:e:1")).entry
        await session.commit()
        await ledger.reverse(original.id, "paid in error")
        await session.commit()

        again = await ledger.reverse(original.id, "paid in error")

        assert again.duplicate
        assert await ledger.balance_of(member_id) == Decimal("0")

    @pytest.mark.asyncio
    async def test_reversal_cannot_be_reversed(self, session, ledger):
        member_id = await new_member(session)
        original = (await ledger.post(member_id, Decimal("100"), "level", "level:e:1")).entry
        await session.commit()
        reversal = (await ledger.reverse(original.id, "paid in error")).entry
        await session.commit()

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await ledger.reverse(reversal.id, "undo")

        assert exc_info.value.code == ReasonCode.INVALID_STATUS

    @pytest.mark.asyncio
    async def test_reversal_needs_funds(self, session, ledger):
        """A credit already spent cannot be reversed into a negative balance."""
        member_id = await new_member(session)
        original = (await ledger.post(member_id, Decimal("100"), "deposit", "deposit:1")).entry
        await ledger.post(member_id, Decimal("-80"), "withdrawal", "withdrawal:1")
        await session.commit()

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await ledger.reverse(original.id, "chargeback")

        assert exc_info.value.code == ReasonCode.INSUFFICIENT_BALANCE

    @pytest.mark.asyncio
    async def test_reason_required(self, session, ledger):
        with pytest.raises(ValidationError):
            await ledger.reverse(1, "  ")

    @pytest.mark.asyncio
    async def test_unknown_entry(self, session, ledger):
        with pytest.raises(NotFoundError):
            await ledger.reverse(999, "missing")


class TestAudit:
    """Test balance audit."""

    @pytest.mark.asyncio
    async def test_consistent_ledger(self, session, ledger):
        member_id = await new_member(session)
        await ledger.post(member_id, Decimal("100"), "deposit", "deposit:1")
        await ledger.post(member_id, Decimal("-40"), "withdrawal", "withdrawal:1")
        await session.commit()

        assert await ledger.audit_balances() == []
        assert await ledger.recompute_balance(member_id) == Decimal("60")

    @pytest.mark.asyncio
    async def test_tampered_balance_detected(self, session, ledger):
        """A cached balance edited outside the ledger is reported."""
        member_id = await new_member(session)
        await ledger.post(member_id, Decimal("100"), "deposit", "deposit:1")
        await session.commit()

        balance = await session.get(MemberBalance, member_id)
        balance.balance = Decimal("150")
        await session.commit()

        mismatches = await ledger.audit_balances()

        assert len(mismatches) == 1
        assert mismatches[0].member_id == member_id
        assert mismatches[0].cached == Decimal("150")
        assert mismatches[0].computed == Decimal("100")
