"""
Step executor: advances one enrollment by exactly one step.

Everything happens in one transaction on the executor's session:
lock and re-check the enrollment, render content, write the Message and
move the enrollment forward. The enrollment's ``version`` column turns a
concurrent advancement into a failed flush, so a step is never executed
twice for the same ``current_step``.
"""

import inspect
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from app.features.core.sqlalchemy_imports import *
from app.features.core.enhanced_base_service import BaseService
from app.features.business_automations.outreach_sequences.exceptions import ExecutionFailure
from app.features.business_automations.outreach_sequences.models import (
    Campaign,
    Message,
    Prospect,
    Sequence,
    SequenceEnrollment,
    SequenceStep,
)
from app.features.business_automations.outreach_sequences.schemas import StepResult

logger = get_logger(__name__)

ConditionHook = Callable[[SequenceStep, SequenceEnrollment, Dict[str, Any]], Union[bool, Awaitable[bool]]]


def allow_all(step, enrollment, prospect_context) -> bool:
    """Default condition hook: every step is allowed."""
    return True


def message_type_for(action_type: str) -> str:
    """Messages only distinguish connection requests from everything else."""
    return "connection_request" if action_type == "connection_request" else "follow_up"


class StepExecutor(BaseService[SequenceEnrollment]):
    """Executes the current step of a single enrollment."""

    def __init__(
        self,
        db_session: AsyncSession,
        content_provider,
        condition_hook: Optional[ConditionHook] = None,
        tenant_id: Optional[str] = None,
    ):
        super().__init__(db_session, tenant_id)
        self.content_provider = content_provider
        self.condition_hook = condition_hook or allow_all

    async def _lock_enrollment(self, enrollment_id: str) -> Optional[SequenceEnrollment]:
        stmt = (
            self.create_base_query(SequenceEnrollment)
            .where(SequenceEnrollment.id == enrollment_id)
            .with_for_update(skip_locked=True)
            .execution_options(populate_existing=True)
        )
        result = await self.execute(stmt, SequenceEnrollment)
        return result.scalar_one_or_none()

    async def _get_step(self, sequence_id: str, step_order: int) -> Optional[SequenceStep]:
        stmt = self.create_base_query(SequenceStep).where(
            SequenceStep.sequence_id == sequence_id,
            SequenceStep.step_order == step_order,
        )
        result = await self.execute(stmt, SequenceStep)
        return result.scalar_one_or_none()

    async def _check_conditions(self, step, enrollment, prospect_context) -> bool:
        allowed = self.condition_hook(step, enrollment, prospect_context)
        if inspect.isawaitable(allowed):
            allowed = await allowed
        return bool(allowed)

    async def execute_step(self, enrollment_id: str, now: Optional[datetime] = None) -> StepResult:
        """
        Execute the enrollment's current step if it is still due.

        Returns:
            StepResult with status executed, skipped (no longer due or locked
            elsewhere), deferred (condition hook declined) or failed
        """
        now = now or utc_now()
        sequence_id = prospect_id = step_order = None

        try:
            enrollment = await self._lock_enrollment(enrollment_id)
            if enrollment is None:
                await self.db.rollback()
                return StepResult(status="skipped", enrollment_id=enrollment_id,
                                  reason="Enrollment not found or locked by another worker")

            sequence = await self.db.get(Sequence, enrollment.sequence_id)

            reason = None
            if enrollment.status != "active":
                reason = f"Enrollment is {enrollment.status}"
            elif sequence is None or sequence.status != "active":
                reason = f"Sequence is {sequence.status if sequence else 'missing'}"
            elif enrollment.next_eligible_at is not None and enrollment.next_eligible_at > now:
                reason = "Enrollment is not due yet"

            if reason:
                result = StepResult(
                    status="skipped",
                    enrollment_id=enrollment.id,
                    prospect_id=enrollment.prospect_id,
                    sequence_id=enrollment.sequence_id,
                    step_order=enrollment.current_step,
                    reason=reason,
                )
                await self.db.rollback()
                return result

            sequence_id, prospect_id = sequence.id, enrollment.prospect_id
            step_order = enrollment.current_step

            step = await self._get_step(sequence.id, enrollment.current_step)
            if step is None:
                raise ExecutionFailure(
                    f"Step {enrollment.current_step} does not exist",
                    sequence_id=sequence.id,
                    prospect_id=enrollment.prospect_id,
                    enrollment_id=enrollment.id,
                )
            next_step = await self._get_step(sequence.id, enrollment.current_step + 1)

            prospect = await self.db.get(Prospect, enrollment.prospect_id)
            campaign = await self.db.get(Campaign, sequence.campaign_id)
            prospect_context = prospect.to_context()
            prospect_context["campaign_name"] = campaign.name if campaign else ""

            if not await self._check_conditions(step, enrollment, prospect_context):
                logger.info(
                    "Step deferred by condition hook",
                    enrollment_id=enrollment_id,
                    sequence_id=sequence_id,
                    step_order=step_order,
                )
                await self.db.rollback()
                return StepResult(
                    status="deferred",
                    enrollment_id=enrollment_id,
                    prospect_id=prospect_id,
                    sequence_id=sequence_id,
                    step_order=step_order,
                    reason="Step conditions not met",
                )

            rendered = await self.content_provider.render(step, prospect_context)

            message = Message(
                tenant_id=enrollment.tenant_id,
                campaign_id=sequence.campaign_id,
                prospect_id=prospect.id,
                message_type=message_type_for(step.action_type),
                subject=rendered.subject,
                content=rendered.content,
                status="scheduled",
                scheduled_at=now,
                sequence_id=sequence.id,
                step_order=step.step_order,
                action_type=step.action_type,
            )
            self.db.add(message)

            if next_step is not None:
                enrollment.current_step = next_step.step_order
                enrollment.next_eligible_at = now + timedelta(days=step.delay_days)
            else:
                enrollment.status = "completed"
                enrollment.completed_at = now
                enrollment.next_eligible_at = None

            await self.db.flush()
            result = StepResult(
                status="executed",
                enrollment_id=enrollment_id,
                prospect_id=prospect_id,
                sequence_id=sequence_id,
                step_order=step_order,
                message_id=message.id,
                completed=next_step is None,
            )
            await self.db.commit()

            logger.info(
                "Sequence step executed",
                enrollment_id=enrollment_id,
                sequence_id=sequence_id,
                prospect_id=prospect_id,
                step_order=step_order,
                message_id=result.message_id,
                completed=result.completed,
            )
            return result

        except Exception as e:
            await self.db.rollback()

            failure = e if isinstance(e, ExecutionFailure) else ExecutionFailure(
                f"{type(e).__name__}: {e}",
                sequence_id=sequence_id,
                prospect_id=prospect_id,
                enrollment_id=enrollment_id,
            )

            logger.error(
                "Sequence step failed",
                enrollment_id=enrollment_id,
                sequence_id=sequence_id,
                prospect_id=prospect_id,
                step_order=step_order,
                error=str(failure),
            )

            return StepResult(
                status="failed",
                enrollment_id=enrollment_id,
                prospect_id=prospect_id,
                sequence_id=sequence_id,
                step_order=step_order,
                reason=str(failure),
            )
