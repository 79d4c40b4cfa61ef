"""
Manual balance adjustment service.

Administrator credits and debits posted as `manual` ledger entries. A
debit never takes the balance below zero.
"""

from decimal import Decimal
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.enums import AdjustmentDirection, LedgerKind
from compensation.services.base_service import BaseService
from compensation.services.ledger.ledger_service import LedgerService, PostResult
from compensation.utils.exceptions import BusinessRuleViolation, ReasonCode, ValidationError
from compensation.validators.common import require, validate_amount, validate_reason


class AdjustmentService(BaseService):
    """Manual credits and debits."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.ledger = LedgerService(session)

    async def manual_adjustment(
        self,
        member_id: int,
        amount: Decimal | str,
        direction: AdjustmentDirection | str,
        reason: str,
        admin_id: str | None = None,
        idempotency_key: str | None = None,
    ) -> PostResult:
        """
        Post a manual adjustment (caller commits).

        Args:
            member_id: Wallet owner
            amount: Positive amount
            direction: credit or debit
            reason: Mandatory explanation, stored on the entry
            admin_id: Acting administrator
            idempotency_key: Client key for safe resubmission (generated when omitted)

        Raises:
            ValidationError: Bad amount, direction or empty reason
            NotFoundError: Unknown member
            BusinessRuleViolation: Debit exceeds the balance
        """
        amount = require(validate_amount(amount))
        reason = require(validate_reason(reason))
        try:
            direction = AdjustmentDirection(direction)
        except ValueError as e:
            raise ValidationError(f"Unknown adjustment direction: {direction}") from e

        await self.ledger.ensure_member(member_id)
        is_debit = direction == AdjustmentDirection.DEBIT

        result = await self.ledger.post(
            member_id=member_id,
            amount=-amount if is_debit else amount,
            kind=LedgerKind.MANUAL,
            idempotency_key=idempotency_key or f"manual:{uuid4()}",
            reference_type="admin",
            reference_id=admin_id,
            description=reason,
            require_funds=is_debit,
        )
        if result.rejected:
            raise BusinessRuleViolation(result.reason or ReasonCode.INSUFFICIENT_BALANCE)

        if result.accepted:
            self.logger.info(
                f"Manual {direction.value} of {amount} for member {member_id}",
                extra={"member_id": member_id, "admin_id": admin_id, "reason": reason},
            )
        return result
