"""
Execution driver: one polling pass over due enrollments.

Each due enrollment runs through its own StepExecutor, session and
transaction, so a failure is isolated to that enrollment and leaves it due
for the next pass. Concurrency across enrollments is bounded by a semaphore.
"""

import asyncio
from collections import OrderedDict
from typing import Any, Dict, List, Optional
from uuid import uuid4

import structlog

from app.features.core.sqlalchemy_imports import *
from app.features.core.enhanced_base_service import BaseService
from app.features.business_automations.outreach_sequences.exceptions import NotFoundError
from app.features.business_automations.outreach_sequences.models import Sequence, SequenceEnrollment
from app.features.business_automations.outreach_sequences.schemas import (
    ExecutionError,
    ExecutionSummary,
    StepResult,
)
from app.features.business_automations.outreach_sequences.services.events import EventRecorder
from .step_executor import ConditionHook, StepExecutor

logger = get_logger(__name__)


class SequenceExecutionDriver:
    """Runs the step executor for every due enrollment."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        content_provider,
        tenant_id: Optional[str] = None,
        condition_hook: Optional[ConditionHook] = None,
        max_concurrency: Optional[int] = None,
        max_error_details: int = 5,
    ):
        self.session_factory = session_factory
        self.content_provider = content_provider
        self.tenant_id = None if tenant_id == "global" else tenant_id
        self.condition_hook = condition_hook
        self.max_concurrency = max(1, max_concurrency or 1)
        self.max_error_details = max_error_details

    def _due_query(self, scope: BaseService, sequence_id: Optional[str], now: datetime) -> Select:
        stmt = (
            select(
                SequenceEnrollment.id,
                SequenceEnrollment.sequence_id,
                Sequence.campaign_id,
                Sequence.tenant_id,
            )
            .join(Sequence, Sequence.id == SequenceEnrollment.sequence_id)
            .where(
                SequenceEnrollment.status == "active",
                Sequence.status == "active",
                or_(
                    SequenceEnrollment.next_eligible_at.is_(None),
                    SequenceEnrollment.next_eligible_at <= now,
                ),
            )
            .order_by(
                nulls_first(SequenceEnrollment.next_eligible_at.asc()),
                SequenceEnrollment.created_at.asc(),
            )
        )
        if sequence_id:
            stmt = stmt.where(SequenceEnrollment.sequence_id == sequence_id)
        return scope.apply_tenant_filter(stmt, SequenceEnrollment)

    async def find_due(self, sequence_id: Optional[str] = None, now: Optional[datetime] = None) -> List[Any]:
        """
        Select due enrollments.

        Returns:
            Rows of (enrollment id, sequence id, campaign id, tenant id)
        """
        now = now or utc_now()
        async with self.session_factory() as db:
            scope = BaseService(db, self.tenant_id)
            result = await scope.execute(self._due_query(scope, sequence_id, now), SequenceEnrollment)
            return list(result.all())

    async def execute(self, sequence_id: Optional[str] = None, now: Optional[datetime] = None) -> ExecutionSummary:
        """
        Execute every due enrollment of one sequence, or of all sequences.

        Per-enrollment failures are reported in the summary, never raised.

        Raises:
            NotFoundError: If sequence_id is given and does not exist for the tenant
        """
        now = now or utc_now()
        started_at = utc_now()
        run_id = uuid4().hex[:12]

        with structlog.contextvars.bound_contextvars(
            run_id=run_id,
            sequence_id=sequence_id,
            tenant_id=self.tenant_id or "global",
        ):
            target = None
            if sequence_id:
                async with self.session_factory() as db:
                    target = await BaseService(db, self.tenant_id).get_by_id(Sequence, sequence_id)
                    if not target:
                        raise NotFoundError(f"Sequence {sequence_id} not found")

            due = await self.find_due(sequence_id, now)
            logger.info("Sequence execution started", due=len(due), now=now.isoformat())

            semaphore = asyncio.Semaphore(self.max_concurrency)

            async def run_one(enrollment_id: str) -> StepResult:
                async with semaphore:
                    async with self.session_factory() as db:
                        executor = StepExecutor(
                            db,
                            self.content_provider,
                            condition_hook=self.condition_hook,
                            tenant_id=self.tenant_id,
                        )
                        try:
                            return await executor.execute_step(enrollment_id, now)
                        except Exception as e:
                            logger.error("Step executor raised", enrollment_id=enrollment_id, error=str(e))
                            return StepResult(status="failed", enrollment_id=enrollment_id, reason=str(e))

            results = await asyncio.gather(*(run_one(row[0]) for row in due))

            summary = ExecutionSummary(
                sequence_id=sequence_id,
                total_considered=len(due),
                started_at=started_at,
            )
            for result in results:
                if result.status == "executed":
                    summary.executed += 1
                elif result.status == "skipped":
                    summary.skipped += 1
                elif result.status == "deferred":
                    summary.deferred += 1
                else:
                    summary.failed += 1
                    if len(summary.error_details) < self.max_error_details:
                        summary.error_details.append(ExecutionError(
                            enrollment_id=result.enrollment_id,
                            prospect_id=result.prospect_id,
                            sequence_id=result.sequence_id,
                            error=result.reason or "Unknown error",
                        ))

            await self._record_events(sequence_id, target, due, results)

            summary.finished_at = utc_now()
            logger.info(
                "Sequence execution finished",
                executed=summary.executed,
                failed=summary.failed,
                skipped=summary.skipped,
                deferred=summary.deferred,
                total_considered=summary.total_considered,
            )
            return summary

    async def _record_events(self, sequence_id, target, due, results) -> None:
        """One sequence_executed event per campaign touched by this pass."""
        campaigns: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        if target is not None:
            campaigns[target.campaign_id] = {
                "tenant_id": target.tenant_id, "executed": 0, "errors": 0, "total_ready": 0,
            }

        for row, result in zip(due, results):
            stats = campaigns.setdefault(row[2], {
                "tenant_id": row[3], "executed": 0, "errors": 0, "total_ready": 0,
            })
            stats["total_ready"] += 1
            if result.status == "executed":
                stats["executed"] += 1
            elif result.status == "failed":
                stats["errors"] += 1

        if not campaigns:
            return

        async with self.session_factory() as db:
            recorder = EventRecorder(db, self.tenant_id)
            for campaign_id, stats in campaigns.items():
                tenant_id = stats.pop("tenant_id")
                await recorder.record(
                    "sequence_executed",
                    campaign_id=campaign_id,
                    sequence_id=sequence_id,
                    payload={"sequence_id": sequence_id, **stats},
                    tenant_id=tenant_id,
                )
            try:
                await db.commit()
            except Exception as e:
                await db.rollback()
                logger.warning("Failed to commit execution events", error=str(e))
