"""
Deposit approval service.

A deposit request credits the member's wallet once approved. KYC is
only required when the wallet settings say so.
"""

from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.enums import LedgerKind
from compensation.models.member import Member
from compensation.models.wallet_request import DepositRequest
from compensation.repositories.request_repository import DepositRequestRepository
from compensation.schemas.commission_settings import WalletConfig
from compensation.services.approval.base import RequestApprovalService
from compensation.validators.common import require, validate_amount


class DepositApprovalService(RequestApprovalService[DepositRequest]):
    """Deposit requests: create, approve, reject."""

    entity_name = "DepositRequest"
    # Admins must always explain a rejected deposit
    reject_reason_required = True

    def __init__(self, session: AsyncSession, config: WalletConfig) -> None:
        super().__init__(session, config, DepositRequestRepository(session))

    async def request_deposit(
        self, member_id: int, amount: Decimal | str, reference: str | None = None
    ) -> DepositRequest:
        """
        Record a pending deposit request (caller commits).

        Raises:
            ValidationError: Amount not positive or below the minimum
            NotFoundError: Unknown member
        """
        amount = require(validate_amount(amount, self.config.min_deposit))
        member = await self.graph.get_member(member_id)

        request = await self.repo.create(
            member_id=member_id,
            amount=amount,
            reference=reference,
            kyc_status_snapshot=member.kyc_status,
            balance_snapshot=await self.ledger.balance_of(member_id),
        )
        self.logger.info(
            f"Deposit request {request.id} created",
            extra={"member_id": member_id, "amount": str(amount)},
        )
        return request

    async def _post_approval(self, request: DepositRequest, member: Member) -> int | None:
        if self.config.require_kyc_for_deposits:
            self._require_kyc(member)

        result = await self.ledger.post(
            member_id=request.member_id,
            amount=request.amount,
            kind=LedgerKind.DEPOSIT,
            idempotency_key=f"deposit:{request.id}",
            reference_type="deposit_request",
            reference_id=str(request.id),
            description=request.reference,
        )
        return result.entry.id if result.entry else None
