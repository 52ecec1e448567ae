"""
Enrollment service for Outreach Sequences.

Enrolls prospects into sequences, removes them, and reports their progress.
Step advancement is owned by the step executor; this service only creates,
deletes and (for admins) pauses enrollments.
"""

from typing import Any, Dict, List, Optional

from app.features.core.sqlalchemy_imports import *
from app.features.core.enhanced_base_service import BaseService
from app.features.business_automations.outreach_sequences.exceptions import (
    NotFoundError,
    SequenceEngineError,
    ValidationError,
)
from app.features.business_automations.outreach_sequences.models import (
    Prospect,
    Sequence,
    SequenceEnrollment,
    SequenceStep,
)
from app.features.business_automations.outreach_sequences.schemas import (
    EnrollmentResult,
    EnrollmentState,
)
from app.features.business_automations.outreach_sequences.services.events import EventRecorder

logger = get_logger(__name__)


class EnrollmentService(BaseService[SequenceEnrollment]):
    """Service for managing prospect enrollments in sequences."""

    def __init__(self, db_session: AsyncSession, tenant_id: Optional[str] = None):
        super().__init__(db_session, tenant_id)
        self.events = EventRecorder(db_session, tenant_id)

    async def _get_sequence(self, sequence_id: str) -> Sequence:
        sequence = await self.get_by_id(Sequence, sequence_id)
        if not sequence:
            raise NotFoundError(f"Sequence {sequence_id} not found")
        return sequence

    async def _get_enrollment(self, sequence_id: str, prospect_id: str) -> Optional[SequenceEnrollment]:
        stmt = self.create_base_query(SequenceEnrollment).where(
            SequenceEnrollment.sequence_id == sequence_id,
            SequenceEnrollment.prospect_id == prospect_id,
        ).execution_options(populate_existing=True)
        result = await self.execute(stmt, SequenceEnrollment)
        return result.scalar_one_or_none()

    async def enroll_prospects(self, sequence_id: str, prospect_ids: List[str]) -> EnrollmentResult:
        """
        Enroll prospects into a sequence.

        Prospects already enrolled are skipped. Either every prospect belongs
        to the sequence's campaign or nothing is enrolled.

        Raises:
            ValidationError: If no prospect ids are given
            NotFoundError: If the sequence or any prospect is missing or belongs elsewhere
        """
        if not prospect_ids:
            raise ValidationError("At least one prospect id is required")

        unique_ids = list(dict.fromkeys(prospect_ids))

        try:
            sequence = await self._get_sequence(sequence_id)

            stmt = self.create_base_query(Prospect).where(
                Prospect.campaign_id == sequence.campaign_id,
                Prospect.id.in_(unique_ids),
            )
            found = set((await self.execute(stmt, Prospect)).scalars().all())
            found_ids = {prospect.id for prospect in found}
            missing = [pid for pid in unique_ids if pid not in found_ids]
            if missing:
                raise NotFoundError(
                    f"Prospects not found in campaign {sequence.campaign_id}: {', '.join(missing)}"
                )

            stmt = select(SequenceEnrollment.prospect_id).where(
                SequenceEnrollment.sequence_id == sequence.id,
                SequenceEnrollment.prospect_id.in_(unique_ids),
            )
            stmt = self.apply_tenant_filter(stmt, SequenceEnrollment)
            existing = set((await self.execute(stmt, SequenceEnrollment)).scalars().all())

            added_ids = []
            for prospect_id in unique_ids:
                if prospect_id in existing:
                    continue
                self.db.add(SequenceEnrollment(
                    tenant_id=sequence.tenant_id,
                    sequence_id=sequence.id,
                    prospect_id=prospect_id,
                    status="active",
                    current_step=1,
                    next_eligible_at=None,
                ))
                added_ids.append(prospect_id)

            await self.db.flush()

            result = EnrollmentResult(
                added=len(added_ids),
                skipped=len(unique_ids) - len(added_ids),
                total=len(unique_ids),
            )

            await self.events.record(
                "prospects_added_to_sequence",
                campaign_id=sequence.campaign_id,
                sequence_id=sequence.id,
                payload={"sequence_id": sequence.id, **result.model_dump(), "prospect_ids": added_ids},
                tenant_id=sequence.tenant_id,
            )

            await self.db.commit()

            self.log_operation("prospects_enrollment", {
                "sequence_id": sequence.id,
                "added": result.added,
                "skipped": result.skipped,
            })

            return result

        except SequenceEngineError:
            await self.db.rollback()
            raise
        except Exception as e:
            await self.handle_error("enroll_prospects", e, sequence_id=sequence_id, count=len(unique_ids))
            raise

    async def unenroll(self, sequence_id: str, prospect_id: str, missing_ok: bool = True) -> bool:
        """
        Remove a prospect from a sequence.

        Returns:
            True if an enrollment was removed, False if there was none

        Raises:
            NotFoundError: If nothing is enrolled and missing_ok is False
        """
        try:
            enrollment = await self._get_enrollment(sequence_id, prospect_id)
            if not enrollment:
                if not missing_ok:
                    raise NotFoundError(f"Prospect {prospect_id} is not enrolled in sequence {sequence_id}")
                logger.info("Unenroll skipped, no enrollment", sequence_id=sequence_id, prospect_id=prospect_id)
                return False

            sequence = await self._get_sequence(sequence_id)
            previous_step = enrollment.current_step

            await self.db.delete(enrollment)
            await self.db.flush()

            await self.events.record(
                "prospect_removed_from_sequence",
                campaign_id=sequence.campaign_id,
                sequence_id=sequence_id,
                prospect_id=prospect_id,
                payload={"sequence_id": sequence_id, "prospect_id": prospect_id, "current_step": previous_step},
                tenant_id=sequence.tenant_id,
            )

            await self.db.commit()

            self.log_operation("prospect_unenrollment", {
                "sequence_id": sequence_id,
                "prospect_id": prospect_id,
            })
            return True

        except SequenceEngineError:
            await self.db.rollback()
            raise
        except Exception as e:
            await self.handle_error("unenroll", e, sequence_id=sequence_id, prospect_id=prospect_id)
            raise

    async def get_enrollment_state(
        self,
        sequence_id: str,
        prospect_id: str,
        now: Optional[datetime] = None,
    ) -> EnrollmentState:
        """
        Report a prospect's progress through a sequence.

        Raises:
            NotFoundError: If the prospect is not enrolled
        """
        enrollment = await self._get_enrollment(sequence_id, prospect_id)
        if not enrollment:
            raise NotFoundError(f"Prospect {prospect_id} is not enrolled in sequence {sequence_id}")

        sequence = await self._get_sequence(sequence_id)

        stmt = select(func.count(SequenceStep.id)).where(SequenceStep.sequence_id == sequence_id)
        stmt = self.apply_tenant_filter(stmt, SequenceStep)
        total_steps = (await self.execute(stmt, SequenceStep)).scalar_one()

        now = now or utc_now()
        is_due = (
            enrollment.status == "active"
            and sequence.status == "active"
            and (enrollment.next_eligible_at is None or enrollment.next_eligible_at <= now)
        )

        return EnrollmentState(
            enrollment_id=enrollment.id,
            sequence_id=enrollment.sequence_id,
            prospect_id=enrollment.prospect_id,
            status=enrollment.status,
            current_step=enrollment.current_step,
            total_steps=int(total_steps or 0),
            next_eligible_at=enrollment.next_eligible_at,
            completed_at=enrollment.completed_at,
            is_due=is_due,
        )

    async def pause_enrollment(self, sequence_id: str, prospect_id: str) -> Dict[str, Any]:
        """Pause one prospect's progress (admin action)."""
        return await self._set_status(sequence_id, prospect_id, "paused")

    async def resume_enrollment(self, sequence_id: str, prospect_id: str) -> Dict[str, Any]:
        """Resume one prospect's progress (admin action)."""
        return await self._set_status(sequence_id, prospect_id, "active")

    async def _set_status(self, sequence_id: str, prospect_id: str, status: str) -> Dict[str, Any]:
        try:
            enrollment = await self._get_enrollment(sequence_id, prospect_id)
            if not enrollment:
                raise NotFoundError(f"Prospect {prospect_id} is not enrolled in sequence {sequence_id}")

            if enrollment.status == "completed":
                raise ValidationError("Completed enrollments cannot change status")

            previous = enrollment.status
            if previous != status:
                enrollment.status = status
                await self.db.commit()

            logger.info(
                "Enrollment status changed",
                sequence_id=sequence_id,
                prospect_id=prospect_id,
                previous_status=previous,
                status=status,
            )
            return enrollment.to_dict()

        except SequenceEngineError:
            await self.db.rollback()
            raise
        except Exception as e:
            await self.handle_error("set_enrollment_status", e, sequence_id=sequence_id, prospect_id=prospect_id)
            raise
