"""
Wallet ledger service.

The only writer of ledger entries and materialized balances. Every
posting is idempotent on its key, serialized per member through the
balance lock, and updates the cached balance in the same transaction as
the entry insert. The service flushes but never commits: the caller owns
the transaction.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum

from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.enums import LedgerKind
from compensation.models.ledger_entry import LedgerEntry
from compensation.repositories.ledger_repository import BalanceRepository, LedgerRepository
from compensation.repositories.member_repository import MemberRepository
from compensation.services.base_service import BaseService
from compensation.utils.exceptions import (
    BusinessRuleViolation,
    NotFoundError,
    ReasonCode,
    ValidationError,
)
from compensation.utils.member_locks import balance_key, lock_scope
from compensation.utils.money import quantize_money
from compensation.validators.common import require, validate_reason

MAX_KEY_LENGTH = 191


class PostStatus(StrEnum):
    """Outcome of a posting."""

    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Posting:
    """A ledger entry to be posted (output of engine planning)."""

    member_id: int
    amount: Decimal
    kind: LedgerKind
    idempotency_key: str
    reference_type: str | None = None
    reference_id: str | None = None
    description: str | None = None


@dataclass
class PostResult:
    """Result of LedgerService.post."""

    status: PostStatus
    entry: LedgerEntry | None = None
    reason: ReasonCode | None = None

    @property
    def accepted(self) -> bool:
        return self.status == PostStatus.ACCEPTED

    @property
    def duplicate(self) -> bool:
        return self.status == PostStatus.DUPLICATE

    @property
    def rejected(self) -> bool:
        return self.status == PostStatus.REJECTED


@dataclass(frozen=True)
class BalanceMismatch:
    """Member whose cached balance differs from the ledger fold."""

    member_id: int
    cached: Decimal
    computed: Decimal


class LedgerService(BaseService):
    """Append-only wallet ledger."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.ledger_repo = LedgerRepository(session)
        self.balance_repo = BalanceRepository(session)

    async def post(
        self,
        member_id: int,
        amount: Decimal,
        kind: LedgerKind | str,
        idempotency_key: str,
        run_id: int | None = None,
        reference_type: str | None = None,
        reference_id: str | None = None,
        description: str | None = None,
        reversal_of_id: int | None = None,
        require_funds: bool | None = None,
    ) -> PostResult:
        """
        Post an entry to a member's wallet.

        Args:
            member_id: Wallet owner
            amount: Signed amount (credits positive, debits negative)
            kind: Ledger kind
            idempotency_key: Unique key; replays return the original entry
            run_id: Commission run that produced the entry
            reference_type: Source entity type (package, request, ...)
            reference_id: Source entity id
            description: Free text
            reversal_of_id: Entry this one reverses
            require_funds: Reject when the balance would go negative.
                Defaults to True for withdrawal entries only.

        Returns:
            PostResult accepted / duplicate / rejected(reason)

        Raises:
            ValidationError: Zero amount or malformed key
            ConcurrencyConflict: Balance lock timeout or lost insert race
        """
        kind = LedgerKind(kind)
        amount = quantize_money(Decimal(amount))
        if amount == 0:
            raise ValidationError("Ledger amount must not be zero")
        if not idempotency_key or len(idempotency_key) > MAX_KEY_LENGTH:
            raise ValidationError("Idempotency key is empty or too long")
        if require_funds is None:
            require_funds = kind == LedgerKind.WITHDRAWAL

        existing = await self.ledger_repo.get_by_key(idempotency_key)
        if existing:
            return self._duplicate(existing)

        await lock_scope(self.session).acquire(balance_key(member_id))

        # Re-check under the lock: a concurrent poster may have won
        existing = await self.ledger_repo.get_by_key(idempotency_key)
        if existing:
            return self._duplicate(existing)

        balance = await self.balance_repo.get_for_update(member_id)
        new_balance = quantize_money(balance.balance + amount)

        if require_funds and amount < 0 and new_balance < 0:
            self.logger.warning(
                "Posting rejected: insufficient balance",
                extra={
                    "member_id": member_id,
                    "amount": str(amount),
                    "balance": str(balance.balance),
                    "kind": kind.value,
                    "key": idempotency_key,
                },
            )
            return PostResult(PostStatus.REJECTED, reason=ReasonCode.INSUFFICIENT_BALANCE)

        entry = LedgerEntry(
            member_id=member_id,
            amount=amount,
            kind=kind.value,
            idempotency_key=idempotency_key,
            run_id=run_id,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
            reversal_of_id=reversal_of_id,
            balance_after=new_balance,
        )
        self.session.add(entry)
        balance.balance = new_balance
        balance.entry_count += 1
        await self.flush()

        self.logger.info(
            f"Posted {kind.value} {amount} to member {member_id}",
            extra={
                "entry_id": entry.id,
                "member_id": member_id,
                "key": idempotency_key,
                "run_id": run_id,
                "balance_after": str(new_balance),
            },
        )
        return PostResult(PostStatus.ACCEPTED, entry=entry)

    async def post_posting(self, posting: Posting, run_id: int | None = None) -> PostResult:
        """Post a planned Posting."""
        return await self.post(
            member_id=posting.member_id,
            amount=posting.amount,
            kind=posting.kind,
            idempotency_key=posting.idempotency_key,
            run_id=run_id,
            reference_type=posting.reference_type,
            reference_id=posting.reference_id,
            description=posting.description,
        )

    def _duplicate(self, entry: LedgerEntry) -> PostResult:
        self.logger.debug(
            "Duplicate posting ignored",
            extra={"key": entry.idempotency_key, "entry_id": entry.id},
        )
        return PostResult(PostStatus.DUPLICATE, entry=entry)

    async def balance_of(self, member_id: int) -> Decimal:
        """Cached balance of a member (0 for a member without entries)."""
        return await self.balance_repo.get_balance(member_id)

    async def recompute_balance(self, member_id: int) -> Decimal:
        """Balance folded from the member's entries."""
        total, _ = await self.ledger_repo.sum_for_member(member_id)
        return quantize_money(total)

    async def audit_balances(self) -> list[BalanceMismatch]:
        """
        Compare every cached balance with the ledger fold.

        Returns:
            Members whose cached balance differs (empty when consistent)
        """
        folded = await self.ledger_repo.get_member_sums()
        cached = await self.balance_repo.get_all_balances()

        mismatches = []
        for member_id in sorted(set(folded) | set(cached)):
            computed = quantize_money(folded.get(member_id, Decimal("0")))
            cached_value = quantize_money(cached.get(member_id, Decimal("0")))
            if computed != cached_value:
                mismatches.append(BalanceMismatch(member_id, cached_value, computed))

        if mismatches:
            self.logger.error(
                f"Balance audit found {len(mismatches)} mismatches",
                extra={"members": [m.member_id for m in mismatches]},
            )
        return mismatches

    async def reverse(
        self, entry_id: int, reason: str, admin_id: str | None = None
    ) -> PostResult:
        """
        Reverse an entry with an opposite-signed entry of the same kind.

        Debit reversals (reversing a credit) require funds.

        Raises:
            ValidationError: Empty reason
            NotFoundError: Unknown entry
            BusinessRuleViolation: Entry is itself a reversal
        """
        reason = require(validate_reason(reason))
        original = await self.ledger_repo.get_by_id(entry_id)
        if original is None:
            raise NotFoundError("LedgerEntry", entry_id)
        if original.reversal_of_id is not None:
            raise BusinessRuleViolation(
                ReasonCode.INVALID_STATUS, "A reversal entry cannot be reversed"
            )

        result = await self.post(
            member_id=original.member_id,
            amount=-original.amount,
            kind=original.kind,
            idempotency_key=f"reversal:{original.id}",
            reference_type="ledger_entry",
            reference_id=str(original.id),
            description=f"Reversal by {admin_id or 'system'}: {reason}",
            reversal_of_id=original.id,
            require_funds=original.amount > 0,
        )
        if result.rejected:
            raise BusinessRuleViolation(result.reason or ReasonCode.INSUFFICIENT_BALANCE)
        return result

    async def history(
        self,
        member_id: int,
        kind: LedgerKind | str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[LedgerEntry]:
        """Entries of a member, newest first."""
        return await self.ledger_repo.get_history(
            member_id, LedgerKind(kind).value if kind else None, limit, offset
        )

    async def existing_keys(self, keys: list[str]) -> set[str]:
        """Which of the keys are already posted."""
        return await self.ledger_repo.get_existing_keys(keys)

    async def ensure_member(self, member_id: int) -> None:
        """
        Raises:
            NotFoundError: If the member does not exist
        """
        if await MemberRepository(self.session).get_by_id(member_id) is None:
            raise NotFoundError("Member", member_id)
