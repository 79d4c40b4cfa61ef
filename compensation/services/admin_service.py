"""
Compensation admin service.

Single entry point for the administrative operations of the engine,
used by the HTTP API and the operational scripts. Every call runs in its
own session and transaction; write operations that lose a lock race are
retried a bounded number of times before the conflict is surfaced.
"""

from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, TypeVar
from uuid import uuid4

import redis.asyncio as redis
from loguru import logger
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from compensation.models.commission_run import CommissionRun
from compensation.models.commission_settings_record import CommissionSettingsRecord
from compensation.models.enums import (
    AdjustmentDirection,
    CommissionType,
    KycStatus,
    LegSide,
    MemberStatus,
    RequestStatus,
    RewardStatus,
)
from compensation.models.ledger_entry import LedgerEntry
from compensation.models.member import Member
from compensation.models.package import Package
from compensation.models.rank_achievement import RankAchievement, RankAdjustment
from compensation.models.wallet_request import DepositRequest, WithdrawalRequest
from compensation.services.adjustment_service import AdjustmentService
from compensation.services.approval.deposit_approval import DepositApprovalService
from compensation.services.approval.statistics import FinancialStatsService
from compensation.services.approval.withdrawal_approval import WithdrawalApprovalService
from compensation.services.base_service import BatchResult
from compensation.services.binary.engine import BinaryEngine
from compensation.services.booster.booster_service import BoosterService
from compensation.services.graph.graph_store import GraphStore
from compensation.services.ledger.ledger_service import (
    BalanceMismatch,
    LedgerService,
    PostResult,
)
from compensation.services.package_service import PackageService
from compensation.services.rank.evaluator import RankEvaluator
from compensation.services.rank.rewards import RankRewardService
from compensation.services.roi.engine import RoiEngine
from compensation.services.runs.orchestrator import CommissionRunOrchestrator, RunPreview
from compensation.services.settings_service import SettingsService, VersionedSettings
from compensation.utils.datetime_utils import utc_now
from compensation.utils.exceptions import ConcurrencyConflict, InfrastructureError
from compensation.utils.member_locks import release_session_locks
from compensation.utils.retry import retry_async


T = TypeVar("T")


class CompensationAdminService:
    """Administrative operations over the compensation engine."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        redis_client: redis.Redis | None = None,
        run_timeout: float | None = None,
        run_concurrency: int | None = None,
    ) -> None:
        """
        Initialize admin service.

        Args:
            session_maker: Database session factory
            redis_client: Redis client for commission run locks
            run_timeout: Commission run time budget (settings default when None)
            run_concurrency: Parallel subjects per run (settings default when None)
        """
        self.session_maker = session_maker
        self.orchestrator = CommissionRunOrchestrator(
            session_maker,
            run_timeout=run_timeout,
            concurrency=run_concurrency,
            redis_client=redis_client,
        )
        self.logger = logger.bind(service=self.__class__.__name__)

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Session committed on success, rolled back on error."""
        async with self.session_maker() as session:
            try:
                yield session
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ConcurrencyConflict(f"Concurrent write detected: {e.orig}") from e
            except OperationalError as e:
                await session.rollback()
                raise InfrastructureError(f"Database unavailable: {e.orig}") from e
            except BaseException:
                await session.rollback()
                raise
            finally:
                release_session_locks(session)

    async def _write(
        self, operation: Callable[[AsyncSession], Awaitable[T]], description: str
    ) -> T:
        async def attempt() -> T:
            async with self._session() as session:
                return await operation(session)

        return await retry_async(attempt, description=description)

    async def _read(self, operation: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async with self.session_maker() as session:
            return await operation(session)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_commission_settings(self, version: int | None = None) -> VersionedSettings:
        return await self._read(lambda s: SettingsService(s).get_settings(version))

    async def save_commission_settings(
        self,
        data: dict[str, Any],
        saved_by: str | None = None,
        comment: str | None = None,
    ) -> CommissionSettingsRecord:
        return await self._write(
            lambda s: SettingsService(s).save_settings(data, saved_by, comment),
            "save settings",
        )

    # ------------------------------------------------------------------
    # Commission runs
    # ------------------------------------------------------------------

    async def preview_commission_run(
        self, commission_type: CommissionType | str, date_from: datetime, date_to: datetime
    ) -> RunPreview:
        return await self.orchestrator.preview(commission_type, date_from, date_to)

    async def execute_commission_run(
        self,
        commission_type: CommissionType | str,
        date_from: datetime,
        date_to: datetime,
        triggered_by: str | None = None,
    ) -> CommissionRun:
        return await self.orchestrator.execute(
            commission_type, date_from, date_to, triggered_by=triggered_by
        )

    async def retry_commission_run(self, run_id: int) -> CommissionRun:
        return await self.orchestrator.retry(run_id)

    async def get_commission_run(self, run_id: int) -> CommissionRun:
        return await self.orchestrator.get_run(run_id)

    async def get_commission_history(
        self,
        commission_type: CommissionType | str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CommissionRun]:
        return await self.orchestrator.history(commission_type, limit, offset)

    async def fail_stale_runs(self, older_than: timedelta) -> list[int]:
        return await self.orchestrator.fail_stale_runs(older_than)

    # ------------------------------------------------------------------
    # Network and packages
    # ------------------------------------------------------------------

    async def enroll_member(
        self,
        sponsor_id: int | None,
        external_ref: str | None = None,
        binary_parent_id: int | None = None,
        binary_side: LegSide | str | None = None,
        kyc_status: KycStatus | str = KycStatus.PENDING,
        status: MemberStatus | str = MemberStatus.ACTIVE,
    ) -> Member:
        return await self._write(
            lambda s: GraphStore(s).enroll(
                sponsor_id,
                external_ref=external_ref,
                binary_parent_id=binary_parent_id,
                binary_side=binary_side,
                kyc_status=kyc_status,
                status=status,
            ),
            "enroll member",
        )

    async def place_member(
        self, member_id: int, parent_id: int, side: LegSide | str, spillover: bool = False
    ) -> Member:
        async def operation(session: AsyncSession) -> Member:
            graph = GraphStore(session)
            if spillover:
                return await graph.place_spillover(member_id, parent_id, side)
            return await graph.place(member_id, parent_id, side)

        return await self._write(operation, f"place member {member_id}")

    async def purchase_package(self, member_id: int, principal: Decimal | str, **options: Any) -> Package:
        async def operation(session: AsyncSession) -> Package:
            loaded = await SettingsService(session).get_settings()
            return await PackageService(session, loaded.settings).purchase(
                member_id, principal, **options
            )

        return await self._write(operation, f"purchase package for {member_id}")

    async def cancel_package(
        self, package_id: int, reason: str, admin_id: str | None = None
    ) -> Package:
        async def operation(session: AsyncSession) -> Package:
            loaded = await SettingsService(session).get_settings()
            return await PackageService(session, loaded.settings).cancel(
                package_id, reason, admin_id
            )

        return await self._write(operation, f"cancel package {package_id}")

    # ------------------------------------------------------------------
    # Wallet
    # ------------------------------------------------------------------

    async def balance_of(self, member_id: int) -> Decimal:
        async def operation(session: AsyncSession) -> Decimal:
            ledger = LedgerService(session)
            await ledger.ensure_member(member_id)
            return await ledger.balance_of(member_id)

        return await self._read(operation)

    async def ledger_history(
        self, member_id: int, kind: str | None = None, limit: int = 50, offset: int = 0
    ) -> list[LedgerEntry]:
        return await self._read(lambda s: LedgerService(s).history(member_id, kind, limit, offset))

    async def audit_balances(self) -> list[BalanceMismatch]:
        return await self._read(lambda s: LedgerService(s).audit_balances())

    async def reverse_entry(
        self, entry_id: int, reason: str, admin_id: str | None = None
    ) -> PostResult:
        return await self._write(
            lambda s: LedgerService(s).reverse(entry_id, reason, admin_id),
            f"reverse entry {entry_id}",
        )

    async def manual_adjustment(
        self,
        member_id: int,
        amount: Decimal | str,
        direction: AdjustmentDirection | str,
        reason: str,
        admin_id: str | None = None,
        idempotency_key: str | None = None,
    ) -> PostResult:
        # One key for all attempts, so a retry cannot post twice
        key = idempotency_key or f"manual:{uuid4()}"
        return await self._write(
            lambda s: AdjustmentService(s).manual_adjustment(
                member_id, amount, direction, reason, admin_id, idempotency_key=key
            ),
            f"manual adjustment for {member_id}",
        )

    # ------------------------------------------------------------------
    # Deposits and withdrawals
    # ------------------------------------------------------------------

    async def _deposits(self, session: AsyncSession) -> DepositApprovalService:
        loaded = await SettingsService(session).get_settings()
        return DepositApprovalService(session, loaded.settings.wallet)

    async def _withdrawals(self, session: AsyncSession) -> WithdrawalApprovalService:
        loaded = await SettingsService(session).get_settings()
        return WithdrawalApprovalService(session, loaded.settings.wallet)

    async def request_deposit(
        self, member_id: int, amount: Decimal | str, reference: str | None = None
    ) -> DepositRequest:
        async def operation(session: AsyncSession) -> DepositRequest:
            return await (await self._deposits(session)).request_deposit(
                member_id, amount, reference
            )

        return await self._write(operation, "request deposit")

    async def approve_deposit(self, request_id: int, admin_id: str | None = None) -> DepositRequest:
        async def operation(session: AsyncSession) -> DepositRequest:
            return await (await self._deposits(session)).approve(request_id, admin_id)

        return await self._write(operation, f"approve deposit {request_id}")

    async def reject_deposit(
        self, request_id: int, reason: str, admin_id: str | None = None
    ) -> DepositRequest:
        async def operation(session: AsyncSession) -> DepositRequest:
            return await (await self._deposits(session)).reject(request_id, reason, admin_id)

        return await self._write(operation, f"reject deposit {request_id}")

    async def batch_approve_deposits(
        self, request_ids: Sequence[int], admin_id: str | None = None
    ) -> BatchResult:
        async with self._session() as session:
            return await (await self._deposits(session)).batch_approve(request_ids, admin_id)

    async def request_withdrawal(
        self, member_id: int, amount: Decimal | str, reference: str | None = None
    ) -> WithdrawalRequest:
        async def operation(session: AsyncSession) -> WithdrawalRequest:
            return await (await self._withdrawals(session)).request_withdrawal(
                member_id, amount, reference
            )

        return await self._write(operation, "request withdrawal")

    async def approve_withdrawal(
        self, request_id: int, admin_id: str | None = None
    ) -> WithdrawalRequest:
        async def operation(session: AsyncSession) -> WithdrawalRequest:
            return await (await self._withdrawals(session)).approve(request_id, admin_id)

        return await self._write(operation, f"approve withdrawal {request_id}")

    async def reject_withdrawal(
        self, request_id: int, reason: str | None = None, admin_id: str | None = None
    ) -> WithdrawalRequest:
        async def operation(session: AsyncSession) -> WithdrawalRequest:
            return await (await self._withdrawals(session)).reject(request_id, reason, admin_id)

        return await self._write(operation, f"reject withdrawal {request_id}")

    async def hold_withdrawal(
        self, request_id: int, reason: str, admin_id: str | None = None
    ) -> WithdrawalRequest:
        async def operation(session: AsyncSession) -> WithdrawalRequest:
            return await (await self._withdrawals(session)).hold(request_id, reason, admin_id)

        return await self._write(operation, f"hold withdrawal {request_id}")

    async def batch_approve_withdrawals(
        self, request_ids: Sequence[int], admin_id: str | None = None
    ) -> BatchResult:
        async with self._session() as session:
            return await (await self._withdrawals(session)).batch_approve(request_ids, admin_id)

    async def list_withdrawals(
        self, status: RequestStatus | str = RequestStatus.PENDING, limit: int = 100, offset: int = 0
    ) -> list[WithdrawalRequest]:
        async def operation(session: AsyncSession) -> list[WithdrawalRequest]:
            return await (await self._withdrawals(session)).get_by_status(status, limit, offset)

        return await self._read(operation)

    async def financial_stats(self) -> dict:
        return await self._read(lambda s: FinancialStatsService(s).financial_stats())

    # ------------------------------------------------------------------
    # Ranks
    # ------------------------------------------------------------------

    async def _evaluator(self, session: AsyncSession) -> RankEvaluator:
        loaded = await SettingsService(session).get_settings()
        return RankEvaluator(session, loaded.settings.ranks)

    async def get_rank_achievements(
        self,
        member_id: int | None = None,
        reward_status: RewardStatus | str | None = None,
        rank_code: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[RankAchievement]:
        return await self._read(
            lambda s: RankRewardService(s).get_achievements(
                member_id, reward_status, rank_code, limit, offset
            )
        )

    async def pay_reward(self, achievement_id: int, admin_id: str | None = None) -> RankAchievement:
        return await self._write(
            lambda s: RankRewardService(s).pay_reward(achievement_id, admin_id=admin_id),
            f"pay reward {achievement_id}",
        )

    async def cancel_reward(
        self, achievement_id: int, reason: str, admin_id: str | None = None
    ) -> RankAchievement:
        return await self._write(
            lambda s: RankRewardService(s).cancel_reward(achievement_id, reason, admin_id),
            f"cancel reward {achievement_id}",
        )

    async def adjust_user_rank(
        self,
        member_id: int,
        new_rank: str | None,
        reason: str,
        admin_id: str | None = None,
    ) -> RankAdjustment:
        async def operation(session: AsyncSession) -> RankAdjustment:
            return await (await self._evaluator(session)).adjust_rank(
                member_id, new_rank, reason, admin_id
            )

        return await self._write(operation, f"adjust rank of {member_id}")

    async def bulk_adjust_rank(
        self,
        items: list[tuple[int, str | None]],
        reason: str,
        admin_id: str | None = None,
    ) -> BatchResult:
        async with self._session() as session:
            return await (await self._evaluator(session)).bulk_adjust_rank(items, reason, admin_id)

    async def evaluate_rank(self, member_id: int) -> dict:
        async def operation(session: AsyncSession) -> dict:
            evaluation = await (await self._evaluator(session)).evaluate(member_id)
            return {
                "member_id": member_id,
                "previous_rank": evaluation.previous_rank,
                "rank": evaluation.new_rank,
                "new_achievements": [a.rank_code for a in evaluation.achievements],
            }

        return await self._write(operation, f"evaluate rank of {member_id}")

    # ------------------------------------------------------------------
    # Progress views
    # ------------------------------------------------------------------

    async def rank_progress(self, member_id: int) -> dict:
        async def operation(session: AsyncSession) -> dict:
            return await (await self._evaluator(session)).rank_progress(member_id)

        return await self._read(operation)

    async def binary_stats(self, member_id: int) -> dict:
        async def operation(session: AsyncSession) -> dict:
            loaded = await SettingsService(session).get_settings()
            return await BinaryEngine(session, loaded.settings.binary).binary_stats(
                member_id, utc_now()
            )

        return await self._read(operation)

    async def roi_progress(self, package_id: int) -> dict:
        async def operation(session: AsyncSession) -> dict:
            loaded = await SettingsService(session).get_settings()
            return await RoiEngine(session, loaded.settings).roi_progress(package_id)

        return await self._read(operation)

    async def booster_status(self, member_id: int) -> dict:
        async def operation(session: AsyncSession) -> dict:
            loaded = await SettingsService(session).get_settings()
            return await BoosterService(session, loaded.settings.booster).booster_status(member_id)

        return await self._read(operation)
