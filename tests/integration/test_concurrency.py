"""
Integration tests for concurrent writers and run time budgets.

Tests cover:
- Credits and debits racing on one balance
- Volume accumulation interleaved with a binary cycle
- Runs processing several subjects at once
- Timed out runs and their retry
"""

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from compensation.services.admin_service import CompensationAdminService
from compensation.services.runs.engines import LevelRunEngine
from compensation.utils.datetime_utils import utc_now
from tests.helpers import enroll_chain, settings_document


def around_now() -> tuple:
    now = utc_now()
    return now - timedelta(hours=1), now


class TestConcurrentPostings:
    """Test postings racing on the same member."""

    @pytest.mark.asyncio
    async def test_credits_and_debits_settle(self, admin):
        member = await admin.enroll_member(None)
        await admin.manual_adjustment(member.id, "1000", "credit", "funding", idempotency_key="fund")

        credits = [
            admin.manual_adjustment(member.id, "10", "credit", "bonus", idempotency_key=f"credit-{i}")
            for i in range(10)
        ]
        debits = [
            admin.manual_adjustment(member.id, "5", "debit", "fee", idempotency_key=f"debit-{i}")
            for i in range(10)
        ]
        # Resubmissions of keys already in flight
        resubmitted = [
            admin.manual_adjustment(member.id, "10", "credit", "bonus", idempotency_key=f"credit-{i}")
            for i in range(5)
        ]
        await asyncio.gather(*credits, *debits, *resubmitted)

        history = await admin.ledger_history(member.id, limit=100)
        keys = [entry.idempotency_key for entry in history]
        assert await admin.balance_of(member.id) == Decimal("1050")
        assert len(history) == 21
        assert len(set(keys)) == len(keys)
        assert await admin.audit_balances() == []


class TestConcurrentBinary:
    """Test leg volume arriving while a binary cycle runs."""

    @pytest.mark.asyncio
    async def test_accumulate_during_cycle(self, admin):
        """Every unit of volume is either matched or still carried."""
        await admin.save_commission_settings(settings_document())
        root = await admin.enroll_member(None)
        left = await admin.enroll_member(root.id, binary_parent_id=root.id, binary_side="left")
        right = await admin.enroll_member(root.id, binary_parent_id=root.id, binary_side="right")
        await admin.purchase_package(left.id, "300", rate_min="1", rate_max="1")
        await admin.purchase_package(right.id, "100", rate_min="1", rate_max="1")

        run, *_ = await asyncio.gather(
            admin.execute_commission_run("binary", *around_now()),
            admin.purchase_package(left.id, "200", rate_min="1", rate_max="1"),
            admin.purchase_package(right.id, "400", rate_min="1", rate_max="1"),
        )

        stats = await admin.binary_stats(root.id)
        assert run.status == "completed"
        assert stats["total_left"] == Decimal("500")
        assert stats["total_right"] == Decimal("500")
        assert stats["left_volume"] + stats["matched_to_date"] == stats["total_left"]
        assert stats["right_volume"] + stats["matched_to_date"] == stats["total_right"]
        assert await admin.balance_of(root.id) == stats["matched_to_date"] / 10
        assert await admin.audit_balances() == []


class TestParallelRun:
    """Test runs processing subjects concurrently."""

    @pytest.mark.asyncio
    async def test_shared_upline_is_paid_once_per_subject(self, session_maker):
        admin = CompensationAdminService(session_maker, run_concurrency=4, run_timeout=60)
        await admin.save_commission_settings(settings_document())
        root, m1 = await enroll_chain(admin, 2)
        for principal in ("100", "200", "300", "400"):
            investor = await admin.enroll_member(m1)
            await admin.purchase_package(investor.id, principal, rate_min="1", rate_max="1")

        run = await admin.execute_commission_run("level", *around_now())

        assert run.status == "completed"
        assert run.succeeded_count == 4
        assert run.entries_posted == 8
        assert run.affected_members == 2
        assert run.total_amount == Decimal("150")
        assert await admin.balance_of(m1) == Decimal("100")
        assert await admin.balance_of(root) == Decimal("50")
        assert await admin.audit_balances() == []


class TestRunTimeout:
    """Test the run time budget."""

    @pytest.mark.asyncio
    async def test_timed_out_run_retries_cleanly(self, session_maker, monkeypatch):
        admin = CompensationAdminService(session_maker, run_concurrency=1, run_timeout=1)
        await admin.save_commission_settings(settings_document())
        root = await admin.enroll_member(None)
        packages = []
        for principal in ("100", "200", "300"):
            investor = await admin.enroll_member(root.id)
            packages.append(
                await admin.purchase_package(investor.id, principal, rate_min="1", rate_max="1")
            )

        stalled = {packages[1].id}
        plan = LevelRunEngine.plan

        async def stalling_plan(self, session, subject_id, for_update=False):
            if for_update and subject_id in stalled:
                await asyncio.sleep(30)
            return await plan(self, session, subject_id, for_update)

        monkeypatch.setattr(LevelRunEngine, "plan", stalling_plan)

        run = await admin.execute_commission_run("level", *around_now())

        assert run.status == "failed"
        assert run.error.startswith("Run timed out")
        assert run.entries_posted == 1
        assert await admin.balance_of(root.id) == Decimal("10")

        stalled.clear()
        retried = await admin.retry_commission_run(run.id)

        history = await admin.ledger_history(root.id)
        assert retried.status == "completed"
        assert retried.attempts == 2
        assert retried.error is None
        assert retried.entries_posted == 3
        assert len(history) == 3
        assert await admin.balance_of(root.id) == Decimal("60")
