"""
Sequence CRUD service for Outreach Sequences.

Follows platform practices:
- Inherits from BaseService for automatic tenant filtering
- Uses centralized imports from sqlalchemy_imports
- Structured logging with get_logger
- Domain errors surface unchanged; anything else goes through handle_error()
"""

from typing import Any, Dict, List, Optional, Sequence as SequenceType, Tuple

from pydantic import ValidationError as PydanticValidationError

from app.features.core.sqlalchemy_imports import *
from app.features.core.enhanced_base_service import BaseService
from app.features.core.audit_mixin import AuditContext
from app.features.business_automations.outreach_sequences.exceptions import (
    NotFoundError,
    SequenceEngineError,
    ValidationError,
)
from app.features.business_automations.outreach_sequences.models import (
    Campaign,
    Sequence,
    SequenceEnrollment,
    SequenceStep,
)
from app.features.business_automations.outreach_sequences.schemas import (
    SequenceCreate,
    SequenceUpdate,
)
from app.features.business_automations.outreach_sequences.services.events import EventRecorder

logger = get_logger(__name__)


def _format_validation_error(error: PydanticValidationError) -> str:
    """Flatten pydantic errors, naming steps by their 1-indexed position."""
    messages = []
    for item in error.errors():
        loc = list(item.get("loc", ()))
        if len(loc) >= 2 and loc[0] == "steps" and isinstance(loc[1], int):
            field = ".".join(str(part) for part in loc[2:]) or "step"
            messages.append(f"Step {loc[1] + 1}: {field}: {item['msg']}")
        else:
            field = ".".join(str(part) for part in loc) or "sequence"
            messages.append(f"{field}: {item['msg']}")
    return "; ".join(messages)


class SequenceCrudService(BaseService[Sequence]):
    """Service for defining and administering outreach sequences."""

    def __init__(self, db_session: AsyncSession, tenant_id: Optional[str] = None):
        super().__init__(db_session, tenant_id)
        self.events = EventRecorder(db_session, tenant_id)

    async def create_sequence(
        self,
        campaign_id: str,
        name: str,
        steps: SequenceType[Any],
        description: Optional[str] = None,
        prospect_filters: Optional[Dict[str, Any]] = None,
        user=None,
    ) -> Sequence:
        """
        Create a sequence and all of its steps in one transaction.

        Args:
            campaign_id: Owning campaign
            name: Sequence name
            steps: Step definitions (dicts or StepCreate), in execution order
            description: Optional description
            prospect_filters: Opaque filter stored for the dashboard
            user: Current user for audit trail

        Returns:
            Created Sequence with steps loaded

        Raises:
            ValidationError: If the definition is malformed
            NotFoundError: If the campaign does not exist for this tenant
        """
        try:
            data = SequenceCreate(
                campaign_id=campaign_id,
                name=name,
                description=description,
                steps=list(steps) if steps is not None else [],
                prospect_filters=prospect_filters or {},
            )
        except PydanticValidationError as e:
            raise ValidationError(_format_validation_error(e)) from e

        try:
            campaign = await self.get_by_id(Campaign, data.campaign_id)
            if not campaign:
                raise NotFoundError(f"Campaign {data.campaign_id} not found")

            sequence = Sequence(
                tenant_id=campaign.tenant_id,
                campaign_id=campaign.id,
                name=data.name,
                description=data.description,
                status="active",
                prospect_filters=data.prospect_filters,
            )
            sequence.set_created_by(AuditContext.from_user(user))

            sequence.steps = [
                SequenceStep(
                    tenant_id=campaign.tenant_id,
                    step_order=index,
                    action_type=step.action_type,
                    content=step.content,
                    subject=step.subject,
                    delay_days=step.delay_days,
                    conditions=step.conditions,
                )
                for index, step in enumerate(data.steps, start=1)
            ]

            self.db.add(sequence)
            await self.db.flush()

            await self.events.record(
                "sequence_created",
                campaign_id=campaign.id,
                sequence_id=sequence.id,
                payload={"sequence_id": sequence.id, "name": sequence.name, "steps_count": len(sequence.steps)},
                tenant_id=campaign.tenant_id,
            )

            await self.db.commit()

            self.log_operation("sequence_creation", {
                "sequence_id": sequence.id,
                "campaign_id": campaign.id,
                "steps_count": len(data.steps),
            })

            return await self.get_sequence(sequence.id)

        except SequenceEngineError:
            await self.db.rollback()
            raise
        except Exception as e:
            await self.handle_error("create_sequence", e, campaign_id=campaign_id, name=name)
            raise

    async def get_sequence(self, sequence_id: str) -> Sequence:
        """
        Get a sequence with its steps (tenant-scoped).

        Raises:
            NotFoundError: If the sequence does not exist for this tenant
        """
        sequence = await self.get_by_id(Sequence, sequence_id, load_relationships=["steps"])
        if not sequence:
            raise NotFoundError(f"Sequence {sequence_id} not found")
        return sequence

    async def list_sequences(
        self,
        campaign_id: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        List sequences with enrollment counts.

        Returns:
            Tuple of (sequence dicts, total count)
        """
        try:
            stmt = self.create_base_query(Sequence)

            if campaign_id:
                stmt = stmt.where(Sequence.campaign_id == campaign_id)
            if status:
                stmt = stmt.where(Sequence.status == status)
            if search:
                stmt = self.apply_search_filters(stmt, Sequence, search, ['name', 'description'])

            count_stmt = select(func.count()).select_from(stmt.subquery())
            total = (await self.db.execute(count_stmt)).scalar_one()

            stmt = stmt.order_by(Sequence.created_at.desc()).offset(offset).limit(limit)
            result = await self.execute(stmt, Sequence)
            sequences = list(result.scalars().all())

            counts = await self._enrollment_counts([s.id for s in sequences])

            items = []
            for sequence in sequences:
                item = sequence.to_dict()
                item.update(counts.get(sequence.id, {
                    "total_prospects": 0,
                    "active_prospects": 0,
                    "completed_prospects": 0,
                }))
                items.append(item)

            logger.info("Listed sequences", count=len(items), total=total, tenant_id=self.tenant_id)
            return items, int(total or 0)

        except Exception as e:
            await self.handle_error("list_sequences", e, campaign_id=campaign_id, status=status)
            raise

    async def _enrollment_counts(self, sequence_ids: List[str]) -> Dict[str, Dict[str, int]]:
        if not sequence_ids:
            return {}

        stmt = (
            select(
                SequenceEnrollment.sequence_id,
                func.count(SequenceEnrollment.id),
                func.sum(case((SequenceEnrollment.status == "active", 1), else_=0)),
                func.sum(case((SequenceEnrollment.status == "completed", 1), else_=0)),
            )
            .where(SequenceEnrollment.sequence_id.in_(sequence_ids))
            .group_by(SequenceEnrollment.sequence_id)
        )
        stmt = self.apply_tenant_filter(stmt, SequenceEnrollment)
        result = await self.execute(stmt, SequenceEnrollment)

        return {
            row[0]: {
                "total_prospects": int(row[1] or 0),
                "active_prospects": int(row[2] or 0),
                "completed_prospects": int(row[3] or 0),
            }
            for row in result.all()
        }

    async def update_sequence(self, sequence_id: str, data: Dict[str, Any], user=None) -> Sequence:
        """
        Update sequence metadata. Steps are immutable.

        Raises:
            ValidationError: If the update is empty or not allowed
            NotFoundError: If the sequence does not exist
        """
        try:
            update = SequenceUpdate(**(data or {}))
        except PydanticValidationError as e:
            raise ValidationError(_format_validation_error(e)) from e

        fields = update.model_dump(exclude_unset=True)
        if not fields:
            raise ValidationError("No fields to update")

        try:
            sequence = await self.get_sequence(sequence_id)

            new_status = fields.get("status")
            if new_status and sequence.status == "completed" and new_status != "completed":
                raise ValidationError("Completed sequences cannot be reactivated")

            for field, value in fields.items():
                setattr(sequence, field, value)
            sequence.set_updated_by(AuditContext.from_user(user))

            await self.db.commit()

            self.log_operation("sequence_update", {
                "sequence_id": sequence.id,
                "fields": sorted(fields),
            })

            return await self.get_sequence(sequence.id)

        except SequenceEngineError:
            await self.db.rollback()
            raise
        except Exception as e:
            await self.handle_error("update_sequence", e, sequence_id=sequence_id)
            raise

    async def pause(self, sequence_id: str, user=None) -> Sequence:
        """Pause a sequence; its enrollments stop being due."""
        return await self._set_status(sequence_id, "paused", "sequence_paused", user)

    async def resume(self, sequence_id: str, user=None) -> Sequence:
        """Resume a paused sequence."""
        return await self._set_status(sequence_id, "active", "sequence_resumed", user)

    async def _set_status(self, sequence_id: str, status: str, event_kind: str, user=None) -> Sequence:
        try:
            sequence = await self.get_sequence(sequence_id)

            if sequence.status == "completed":
                raise ValidationError(f"Sequence {sequence_id} is completed and cannot be {status}")

            previous = sequence.status
            sequence.status = status
            sequence.set_updated_by(AuditContext.from_user(user))

            await self.events.record(
                event_kind,
                campaign_id=sequence.campaign_id,
                sequence_id=sequence.id,
                payload={"sequence_id": sequence.id, "previous_status": previous},
                tenant_id=sequence.tenant_id,
            )

            await self.db.commit()

            logger.info(
                "Sequence status changed",
                sequence_id=sequence.id,
                previous_status=previous,
                status=status,
                tenant_id=self.tenant_id,
            )
            return await self.get_sequence(sequence.id)

        except SequenceEngineError:
            await self.db.rollback()
            raise
        except Exception as e:
            await self.handle_error("set_sequence_status", e, sequence_id=sequence_id, status=status)
            raise

    async def delete_sequence(self, sequence_id: str) -> bool:
        """
        Delete a sequence with its steps and enrollments.

        Messages produced by the sequence are kept.
        """
        try:
            sequence = await self.get_by_id(Sequence, sequence_id)
            if not sequence:
                raise NotFoundError(f"Sequence {sequence_id} not found")

            campaign_id = sequence.campaign_id
            tenant_id = sequence.tenant_id
            name = sequence.name

            await self.db.delete(sequence)
            await self.db.flush()

            await self.events.record(
                "sequence_deleted",
                campaign_id=campaign_id,
                sequence_id=sequence_id,
                payload={"sequence_id": sequence_id, "name": name},
                tenant_id=tenant_id,
            )

            await self.db.commit()

            self.log_operation("sequence_deletion", {"sequence_id": sequence_id})
            return True

        except SequenceEngineError:
            await self.db.rollback()
            raise
        except Exception as e:
            await self.handle_error("delete_sequence", e, sequence_id=sequence_id)
            raise
