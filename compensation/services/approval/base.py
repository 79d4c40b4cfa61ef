"""
Shared review flow of deposit and withdrawal requests.

Subclasses implement the checks and the ledger posting of an approval;
loading, status transitions, rejection and batch handling live here.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from decimal import Decimal
from typing import Generic, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.enums import KycStatus, RequestStatus
from compensation.models.member import Member
from compensation.models.wallet_request import DepositRequest, WithdrawalRequest
from compensation.repositories.request_repository import _WalletRequestRepository
from compensation.schemas.commission_settings import WalletConfig
from compensation.services.base_service import BaseService, BatchResult
from compensation.services.graph.graph_store import GraphStore
from compensation.services.ledger.ledger_service import LedgerService
from compensation.utils.datetime_utils import utc_now
from compensation.utils.exceptions import (
    BusinessRuleViolation,
    CompensationError,
    NotFoundError,
    ReasonCode,
    reason_of,
)
from compensation.validators.common import require, validate_ids, validate_reason


RequestType = TypeVar("RequestType", DepositRequest, WithdrawalRequest)


class RequestApprovalService(BaseService, ABC, Generic[RequestType]):
    """Review workflow of one request type."""

    entity_name: str
    reject_reason_required: bool = True

    def __init__(
        self,
        session: AsyncSession,
        config: WalletConfig,
        repo: _WalletRequestRepository[RequestType],
    ) -> None:
        super().__init__(session)
        self.config = config
        self.repo = repo
        self.graph = GraphStore(session)
        self.ledger = LedgerService(session)

    async def get_request(self, request_id: int, for_update: bool = False) -> RequestType:
        """
        Raises:
            NotFoundError: Unknown request
        """
        request = await self.repo.get_by_id(request_id, for_update=for_update)
        if request is None:
            raise NotFoundError(self.entity_name, request_id)
        return request

    async def _get_reviewable(self, request_id: int) -> RequestType:
        request = await self.get_request(request_id, for_update=True)
        if not request.is_reviewable:
            raise BusinessRuleViolation(
                ReasonCode.INVALID_STATUS,
                f"{self.entity_name} {request_id} is {request.status}",
            )
        return request

    def _require_kyc(self, member: Member) -> None:
        if member.kyc_status != KycStatus.VERIFIED.value:
            raise BusinessRuleViolation(
                ReasonCode.KYC_NOT_VERIFIED, f"KYC of member {member.id} is not verified"
            )

    def _mark_reviewed(
        self, request: RequestType, status: RequestStatus, admin_id: str | None
    ) -> None:
        request.status = status.value
        request.reviewed_by = admin_id
        request.reviewed_at = utc_now()

    async def approve(self, request_id: int, admin_id: str | None = None) -> RequestType:
        """
        Re-validate and approve a request, posting its ledger entry (caller commits).

        Raises:
            NotFoundError: Unknown request
            BusinessRuleViolation: Not reviewable, or a live check failed
        """
        request = await self._get_reviewable(request_id)
        member = await self.graph.get_member(request.member_id)
        entry_id = await self._post_approval(request, member)

        request.ledger_entry_id = entry_id
        self._mark_reviewed(request, RequestStatus.APPROVED, admin_id)
        await self.flush()

        self.logger.info(
            f"{self.entity_name} {request_id} approved",
            extra={
                "request_id": request_id,
                "member_id": request.member_id,
                "amount": str(request.amount),
                "admin_id": admin_id,
            },
        )
        return request

    @abstractmethod
    async def _post_approval(self, request: RequestType, member: Member) -> int | None:
        """Run the live checks of an approval and post it, returning the entry id."""

    async def reject(
        self, request_id: int, reason: str | None = None, admin_id: str | None = None
    ) -> RequestType:
        """
        Reject a request. Nothing is posted (caller commits).

        Raises:
            ValidationError: Missing reason where one is required
            NotFoundError: Unknown request
            BusinessRuleViolation: Not reviewable
        """
        reason = require(validate_reason(reason, required=self.reject_reason_required))
        request = await self._get_reviewable(request_id)
        request.rejection_reason = reason
        self._mark_reviewed(request, RequestStatus.REJECTED, admin_id)
        await self.flush()

        self.logger.info(
            f"{self.entity_name} {request_id} rejected",
            extra={"request_id": request_id, "admin_id": admin_id, "reason": reason},
        )
        return request

    async def batch_approve(
        self, request_ids: Sequence[int], admin_id: str | None = None
    ) -> BatchResult:
        """
        Approve several requests, each in its own transaction.

        A failing request, including one hitting a raw database error, is
        rolled back alone and reported with its reason; the others are
        committed.

        Raises:
            ValidationError: Empty or malformed id list
        """
        ids = require(validate_ids(list(request_ids)))
        result = BatchResult()

        for request_id in ids:
            try:
                await self.approve(request_id, admin_id=admin_id)
                await self.commit()
                result.succeeded.append(request_id)
            except (CompensationError, SQLAlchemyError) as e:
                await self.rollback()
                reason = reason_of(e)
                result.failed.append((request_id, reason))
                self.logger.warning(
                    f"{self.entity_name} {request_id} not approved: {e}",
                    extra={"request_id": request_id, "reason": reason},
                )

        self.logger.info(
            f"Batch approval of {len(ids)} {self.entity_name} finished",
            extra={
                "succeeded": result.success_count,
                "failed": result.failure_count,
                "admin_id": admin_id,
            },
        )
        return result

    async def get_by_status(
        self, status: RequestStatus | str = RequestStatus.PENDING, limit: int = 100, offset: int = 0
    ) -> list[RequestType]:
        return await self.repo.get_by_status(RequestStatus(status).value, limit, offset)

    async def status_totals(self) -> dict[str, tuple[int, Decimal]]:
        return await self.repo.get_status_totals()
