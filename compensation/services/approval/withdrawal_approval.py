"""
Withdrawal approval service.

Approval re-checks everything against live state, never against the
snapshots taken at request time: KYC (unless disabled), the daily
per-member limit and the current balance. The debit is posted with the
funds guard, so a balance drained between request and approval rejects
the approval with InsufficientBalance.
"""

from datetime import UTC, datetime, time
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.enums import LedgerKind, RequestStatus
from compensation.models.member import Member
from compensation.models.wallet_request import WithdrawalRequest
from compensation.repositories.ledger_repository import LedgerRepository
from compensation.repositories.request_repository import WithdrawalRequestRepository
from compensation.schemas.commission_settings import WalletConfig
from compensation.services.approval.base import RequestApprovalService
from compensation.utils.datetime_utils import day_window, utc_now
from compensation.utils.exceptions import BusinessRuleViolation, ReasonCode
from compensation.utils.member_locks import balance_key, lock_scope
from compensation.validators.common import require, validate_amount, validate_reason


class WithdrawalApprovalService(RequestApprovalService[WithdrawalRequest]):
    """Withdrawal requests: create, approve, reject, hold."""

    entity_name = "WithdrawalRequest"
    reject_reason_required = False

    def __init__(self, session: AsyncSession, config: WalletConfig) -> None:
        super().__init__(session, config, WithdrawalRequestRepository(session))
        self.ledger_repo = LedgerRepository(session)

    async def request_withdrawal(
        self, member_id: int, amount: Decimal | str, reference: str | None = None
    ) -> WithdrawalRequest:
        """
        Record a pending withdrawal request (caller commits).

        Raises:
            ValidationError: Amount not positive or below the minimum
            NotFoundError: Unknown member
            BusinessRuleViolation: Above the per-request maximum or the
                current balance
        """
        amount = require(validate_amount(amount, self.config.min_withdrawal))
        if self.config.max_withdrawal is not None and amount > self.config.max_withdrawal:
            raise BusinessRuleViolation(
                ReasonCode.LIMIT_EXCEEDED,
                f"Amount exceeds the maximum withdrawal of {self.config.max_withdrawal}",
            )

        member = await self.graph.get_member(member_id)
        balance = await self.ledger.balance_of(member_id)
        if amount > balance:
            raise BusinessRuleViolation(ReasonCode.INSUFFICIENT_BALANCE)

        request = await self.repo.create(
            member_id=member_id,
            amount=amount,
            reference=reference,
            kyc_status_snapshot=member.kyc_status,
            balance_snapshot=balance,
        )
        self.logger.info(
            f"Withdrawal request {request.id} created",
            extra={"member_id": member_id, "amount": str(amount), "balance": str(balance)},
        )
        return request

    async def _post_approval(self, request: WithdrawalRequest, member: Member) -> int | None:
        if self.config.require_kyc_for_withdrawals:
            self._require_kyc(member)

        # The limit check and the debit must see the same balance state
        await lock_scope(self.session).acquire(balance_key(member.id))
        await self._check_daily_limit(member.id, request.amount)

        result = await self.ledger.post(
            member_id=request.member_id,
            amount=-request.amount,
            kind=LedgerKind.WITHDRAWAL,
            idempotency_key=f"withdrawal:{request.id}",
            reference_type="withdrawal_request",
            reference_id=str(request.id),
            description=request.reference,
            require_funds=True,
        )
        if result.rejected:
            raise BusinessRuleViolation(result.reason or ReasonCode.INSUFFICIENT_BALANCE)
        return result.entry.id if result.entry else None

    async def _check_daily_limit(self, member_id: int, amount: Decimal) -> None:
        limit = self.config.daily_withdrawal_limit
        if limit is None:
            return
        day_start = datetime.combine(day_window(utc_now()), time.min, tzinfo=UTC)
        withdrawn = await self.ledger_repo.sum_debits_since(
            member_id, LedgerKind.WITHDRAWAL.value, day_start
        )
        if withdrawn + amount > limit:
            raise BusinessRuleViolation(
                ReasonCode.LIMIT_EXCEEDED,
                f"Daily withdrawal limit {limit} exceeded ({withdrawn} already withdrawn today)",
            )

    async def hold(
        self, request_id: int, reason: str, admin_id: str | None = None
    ) -> WithdrawalRequest:
        """
        Put a pending withdrawal on hold; it can be approved or rejected later.

        Raises:
            ValidationError: Empty reason
            NotFoundError: Unknown request
            BusinessRuleViolation: Request is not pending
        """
        reason = require(validate_reason(reason))
        request = await self.get_request(request_id, for_update=True)
        if request.status != RequestStatus.PENDING.value:
            raise BusinessRuleViolation(
                ReasonCode.INVALID_STATUS,
                f"Only pending withdrawals can be held, {request_id} is {request.status}",
            )
        request.status = RequestStatus.ON_HOLD.value
        request.hold_reason = reason
        request.reviewed_by = admin_id
        request.reviewed_at = utc_now()
        await self.flush()

        self.logger.info(
            f"Withdrawal request {request_id} put on hold",
            extra={"request_id": request_id, "admin_id": admin_id, "reason": reason},
        )
        return request
