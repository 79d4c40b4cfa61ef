"""
Commission run orchestrator.

Drives one commission engine over a period:

    pending -> running -> completed | partially_failed | failed

Every subject (member or package) is processed in its own session and
transaction, under its own lock, with bounded concurrency and bounded
conflict retries. A failing subject is recorded and counted; it never
stops the others. Infrastructure failures and the run timeout abort the
run as failed, keeping whatever was already committed: every posting is
idempotent, so retrying the run finishes the work without paying twice.

Run totals are read back from the ledger entries carrying the run id,
so a retried run reports the same totals as long as nothing new was due.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

import redis.asyncio as redis
from loguru import logger
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from compensation.config.operational_constants import MAX_RECORDED_FAILURES
from compensation.config.settings import settings as app_settings
from compensation.models.commission_run import CommissionRun
from compensation.models.enums import CommissionType, RunStatus
from compensation.repositories.commission_run_repository import CommissionRunRepository
from compensation.repositories.ledger_repository import LedgerRepository
from compensation.services.ledger.ledger_service import Posting
from compensation.services.runs.engines import RunContext, RunEngine, engine_for
from compensation.services.settings_service import SettingsService
from compensation.utils.datetime_utils import utc_now
from compensation.utils.distributed_lock import DistributedLock
from compensation.utils.exceptions import (
    BusinessRuleViolation,
    ConcurrencyConflict,
    InfrastructureError,
    NotFoundError,
    ReasonCode,
    ValidationError,
    reason_of,
)
from compensation.utils.member_locks import release_session_locks
from compensation.utils.money import ZERO, quantize_money
from compensation.utils.retry import retry_async
from compensation.validators.common import require, validate_period


@dataclass
class RunPreview:
    """Dry-run result: what execute would post right now."""

    commission_type: CommissionType
    period_from: datetime
    period_to: datetime
    settings_version: int
    subjects: int = 0
    postings_count: int = 0
    affected_members: int = 0
    total_amount: Decimal = ZERO
    by_member: dict[int, Decimal] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "commission_type": self.commission_type.value,
            "period_from": self.period_from,
            "period_to": self.period_to,
            "settings_version": self.settings_version,
            "subjects": self.subjects,
            "postings_count": self.postings_count,
            "affected_members": self.affected_members,
            "total_amount": self.total_amount,
        }


@dataclass
class _SubjectOutcomes:
    succeeded: int = 0
    failures: list[dict[str, Any]] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)


class CommissionRunOrchestrator:
    """Preview, execute and retry commission runs."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        run_timeout: float | None = None,
        concurrency: int | None = None,
        redis_client: redis.Redis | None = None,
    ) -> None:
        """
        Initialize orchestrator.

        Args:
            session_maker: Factory of database sessions (one per subject)
            run_timeout: Time budget of one run in seconds
            concurrency: Subjects processed in parallel
            redis_client: Redis client for the run lock (in-process lock when None)
        """
        self.session_maker = session_maker
        self.run_timeout = run_timeout or app_settings.run_timeout_seconds
        self.concurrency = concurrency or app_settings.run_concurrency
        self.distributed_lock = DistributedLock(redis_client=redis_client)
        self.logger = logger.bind(service=self.__class__.__name__)

    async def _context(
        self,
        session: AsyncSession,
        commission_type: CommissionType,
        period_from: datetime,
        period_to: datetime,
        run_id: int | None = None,
        settings_version: int | None = None,
    ) -> RunContext:
        loaded = await SettingsService(session).get_settings(settings_version)
        return RunContext(
            commission_type=commission_type,
            period_from=period_from,
            period_to=period_to,
            settings=loaded.settings,
            settings_version=loaded.version,
            run_id=run_id,
        )

    async def preview(
        self,
        commission_type: CommissionType | str,
        period_from: datetime,
        period_to: datetime,
    ) -> RunPreview:
        """
        Plan a run without writing anything.

        Postings whose idempotency keys already exist are left out, so the
        preview reports exactly what an execute would add.

        Raises:
            ValidationError: Unknown type or malformed period
        """
        commission_type = _parse_type(commission_type)
        period_from, period_to = require(validate_period(period_from, period_to))

        async with self.session_maker() as session:
            context = await self._context(session, commission_type, period_from, period_to)
            engine = engine_for(context)
            await engine.prepare(session)
            subjects = await engine.subjects(session)

            postings: list[Posting] = []
            for subject_id in subjects:
                plan = await engine.plan(session, subject_id, for_update=False)
                if plan is not None:
                    postings.extend(plan.postings)

            existing = await LedgerRepository(session).get_existing_keys(
                [posting.idempotency_key for posting in postings]
            )

        preview = RunPreview(
            commission_type=commission_type,
            period_from=period_from,
            period_to=period_to,
            settings_version=context.settings_version,
            subjects=len(subjects),
        )
        for posting in postings:
            if posting.idempotency_key in existing:
                continue
            preview.postings_count += 1
            preview.total_amount += posting.amount
            preview.by_member[posting.member_id] = (
                preview.by_member.get(posting.member_id, ZERO) + posting.amount
            )
        preview.affected_members = len(preview.by_member)
        preview.total_amount = quantize_money(preview.total_amount)

        self.logger.info(
            f"Previewed {commission_type.value} run",
            extra={
                "subjects": preview.subjects,
                "postings": preview.postings_count,
                "total": str(preview.total_amount),
            },
        )
        return preview

    async def create_run(
        self,
        commission_type: CommissionType | str,
        period_from: datetime,
        period_to: datetime,
        triggered_by: str | None = None,
    ) -> CommissionRun:
        """
        Record a pending run pinned to the current settings version.

        Raises:
            ValidationError: Unknown type or malformed period
        """
        commission_type = _parse_type(commission_type)
        period_from, period_to = require(validate_period(period_from, period_to))

        async with self.session_maker() as session:
            loaded = await SettingsService(session).get_settings()
            run = await CommissionRunRepository(session).create(
                commission_type=commission_type.value,
                period_from=period_from,
                period_to=period_to,
                status=RunStatus.PENDING.value,
                settings_version=loaded.version,
                triggered_by=triggered_by,
            )
            await session.commit()

        self.logger.info(
            f"Commission run {run.id} created",
            extra={
                "run_id": run.id,
                "type": commission_type.value,
                "period_from": period_from.isoformat(),
                "period_to": period_to.isoformat(),
                "triggered_by": triggered_by,
            },
        )
        return run

    async def execute(
        self,
        commission_type: CommissionType | str,
        period_from: datetime,
        period_to: datetime,
        triggered_by: str | None = None,
    ) -> CommissionRun:
        """Create a run and process it to a final status."""
        run = await self.create_run(commission_type, period_from, period_to, triggered_by)
        return await self.process_run(run.id)

    async def retry(self, run_id: int) -> CommissionRun:
        """
        Re-execute a run with its original period and settings version.

        Safe on any finished run: postings already made are skipped by
        their idempotency keys.

        Raises:
            NotFoundError: Unknown run
            BusinessRuleViolation: Run is still running
        """
        self.logger.info(f"Retrying commission run {run_id}", extra={"run_id": run_id})
        return await self.process_run(run_id)

    async def process_run(self, run_id: int) -> CommissionRun:
        """
        Process a pending or finished run.

        Raises:
            NotFoundError: Unknown run
            BusinessRuleViolation: Run is already running
            ConcurrencyConflict: Another worker holds the run lock
        """
        async with self.distributed_lock.lock(f"commission_run:{run_id}"):
            context = await self._start(run_id)
            outcomes = _SubjectOutcomes()
            error: str | None = None

            try:
                async with asyncio.timeout(self.run_timeout):
                    await self._process_subjects(context, outcomes)
            except TimeoutError:
                error = f"Run timed out after {self.run_timeout}s"
                self.logger.error(error, extra={"run_id": run_id})
            except (InfrastructureError, DBAPIError) as e:
                error = f"Infrastructure failure: {e}"
                self.logger.error(
                    f"Commission run {run_id} aborted: {e}", extra={"run_id": run_id}
                )

            return await self._finish(run_id, outcomes, error)

    async def _start(self, run_id: int) -> RunContext:
        async with self.session_maker() as session:
            repo = CommissionRunRepository(session)
            run = await repo.get_by_id(run_id, for_update=True)
            if run is None:
                raise NotFoundError("CommissionRun", run_id)
            if run.status == RunStatus.RUNNING.value:
                raise BusinessRuleViolation(
                    ReasonCode.INVALID_STATUS, f"Commission run {run_id} is already running"
                )

            run.status = RunStatus.RUNNING.value
            run.attempts += 1
            run.started_at = utc_now()
            run.completed_at = None
            run.error = None

            context = await self._context(
                session,
                CommissionType(run.commission_type),
                run.period_from,
                run.period_to,
                run_id=run.id,
                settings_version=run.settings_version,
            )
            run.settings_version = context.settings_version
            await session.commit()

        self.logger.info(
            f"Commission run {run_id} started",
            extra={
                "run_id": run_id,
                "type": context.commission_type.value,
                "attempt": run.attempts,
                "settings_version": context.settings_version,
            },
        )
        return context

    async def _process_subjects(self, context: RunContext, outcomes: _SubjectOutcomes) -> None:
        engine = engine_for(context)
        async with self.session_maker() as session:
            await engine.prepare(session)
            subjects = await engine.subjects(session)

        self.logger.info(
            f"Commission run {context.run_id}: {len(subjects)} subjects",
            extra={"run_id": context.run_id},
        )
        semaphore = asyncio.Semaphore(self.concurrency)

        async def worker(subject_id: int) -> None:
            async with semaphore:
                try:
                    await retry_async(
                        lambda: self._process_subject(engine, subject_id),
                        description=f"run {context.run_id} subject {subject_id}",
                    )
                    outcomes.succeeded += 1
                except (InfrastructureError, DBAPIError):
                    raise
                except Exception as e:
                    reason = reason_of(e)
                    if not isinstance(e, BusinessRuleViolation):
                        self.logger.exception(
                            f"Subject {subject_id} failed in run {context.run_id}"
                        )
                    outcomes.failures.append({"subject_id": subject_id, "reason": reason})

        try:
            async with asyncio.TaskGroup() as group:
                for subject_id in subjects:
                    group.create_task(worker(subject_id))
        except ExceptionGroup as group_error:
            # Workers only let infrastructure failures escape
            raise group_error.exceptions[0] from group_error

    async def _process_subject(self, engine: RunEngine, subject_id: int) -> None:
        async with self.session_maker() as session:
            try:
                await engine.lock(session, subject_id)
                plan = await engine.plan(session, subject_id, for_update=True)
                if plan is not None:
                    await engine.apply(session, plan)
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ConcurrencyConflict(f"Concurrent write detected: {e.orig}") from e
            except OperationalError as e:
                await session.rollback()
                raise InfrastructureError(f"Database unavailable: {e.orig}") from e
            except Exception:
                await session.rollback()
                raise
            finally:
                release_session_locks(session)

    async def _finish(
        self, run_id: int, outcomes: _SubjectOutcomes, error: str | None
    ) -> CommissionRun:
        async with self.session_maker() as session:
            run = await CommissionRunRepository(session).get_by_id(run_id, for_update=True)
            entries, members, total = await LedgerRepository(session).get_run_totals(run_id)

            run.entries_posted = entries
            run.affected_members = members
            run.total_amount = quantize_money(total)
            run.succeeded_count = outcomes.succeeded
            run.failed_count = outcomes.failed
            run.failures = outcomes.failures[:MAX_RECORDED_FAILURES] or None
            run.error = error
            run.status = _final_status(outcomes, error).value
            run.completed_at = utc_now()
            await session.commit()

        log = self.logger.warning if run.status != RunStatus.COMPLETED.value else self.logger.info
        log(
            f"Commission run {run_id} finished: {run.status}",
            extra={
                "run_id": run_id,
                "succeeded": run.succeeded_count,
                "failed": run.failed_count,
                "entries": run.entries_posted,
                "affected_members": run.affected_members,
                "total": str(run.total_amount),
            },
        )
        return run

    async def fail_stale_runs(self, older_than: timedelta) -> list[int]:
        """
        Mark runs stuck in running (crashed worker) as failed.

        Failed runs can be retried safely.

        Returns:
            Ids of the runs marked failed
        """
        cutoff = utc_now() - older_than
        async with self.session_maker() as session:
            stale = await CommissionRunRepository(session).get_stale_running(cutoff)
            for run in stale:
                run.status = RunStatus.FAILED.value
                run.error = f"Stale: running since {run.started_at.isoformat()}"
                run.completed_at = utc_now()
            await session.commit()

        if stale:
            self.logger.warning(
                f"Marked {len(stale)} stale commission runs as failed",
                extra={"run_ids": [run.id for run in stale]},
            )
        return [run.id for run in stale]

    async def get_run(self, run_id: int) -> CommissionRun:
        """
        Raises:
            NotFoundError: Unknown run
        """
        async with self.session_maker() as session:
            run = await CommissionRunRepository(session).get_by_id(run_id)
        if run is None:
            raise NotFoundError("CommissionRun", run_id)
        return run

    async def history(
        self,
        commission_type: CommissionType | str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CommissionRun]:
        """Runs, newest first."""
        type_value = _parse_type(commission_type).value if commission_type else None
        async with self.session_maker() as session:
            return await CommissionRunRepository(session).get_history(type_value, limit, offset)


def _parse_type(value: CommissionType | str) -> CommissionType:
    try:
        return CommissionType(value)
    except ValueError as e:
        raise ValidationError(f"Unknown commission type: {value}") from e


def _final_status(outcomes: _SubjectOutcomes, error: str | None) -> RunStatus:
    if error is not None:
        return RunStatus.FAILED
    if outcomes.failed == 0:
        return RunStatus.COMPLETED
    if outcomes.succeeded == 0:
        return RunStatus.FAILED
    return RunStatus.PARTIALLY_FAILED
