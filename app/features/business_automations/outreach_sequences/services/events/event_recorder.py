"""
Best-effort audit trail for sequence activity.

Events are written inside a SAVEPOINT on the caller's session, so a failed
insert never poisons the caller's transaction. Failures are logged and
reported as ``False``; they are never raised.
"""

from typing import Any, Dict, List, Optional

from app.features.core.sqlalchemy_imports import *
from app.features.core.enhanced_base_service import BaseService
from app.features.business_automations.outreach_sequences.models import Campaign, OutreachEvent

logger = get_logger(__name__)

EVENT_KINDS = (
    "sequence_created",
    "sequence_paused",
    "sequence_resumed",
    "sequence_deleted",
    "prospects_added_to_sequence",
    "prospect_removed_from_sequence",
    "sequence_executed",
)


class EventRecorder(BaseService[OutreachEvent]):
    """Append-only event log for the sequence engine."""

    def __init__(self, db_session: AsyncSession, tenant_id: Optional[str] = None):
        super().__init__(db_session, tenant_id)

    async def record(
        self,
        kind: str,
        campaign_id: str,
        sequence_id: Optional[str] = None,
        prospect_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
        tenant_id: Optional[str] = None,
    ) -> bool:
        """
        Append one event.

        The row is flushed, not committed; it becomes durable with the
        caller's commit.

        Returns:
            True if the event was written, False if recording failed
        """
        try:
            async with self.db.begin_nested():
                owner = tenant_id or self.tenant_id
                if owner is None:
                    owner = (await self.db.execute(
                        select(Campaign.tenant_id).where(Campaign.id == campaign_id)
                    )).scalar_one_or_none()
                    if owner is None:
                        raise LookupError(f"Campaign {campaign_id} not found")

                self.db.add(OutreachEvent(
                    tenant_id=owner,
                    kind=kind,
                    campaign_id=campaign_id,
                    sequence_id=sequence_id,
                    prospect_id=prospect_id,
                    payload=payload or {},
                ))
            return True

        except Exception as e:
            logger.warning(
                "Failed to record outreach event",
                kind=kind,
                campaign_id=campaign_id,
                sequence_id=sequence_id,
                prospect_id=prospect_id,
                error=str(e),
            )
            return False

    async def list_events(
        self,
        campaign_id: Optional[str] = None,
        sequence_id: Optional[str] = None,
        kind: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[OutreachEvent]:
        """List events newest first, optionally filtered."""
        try:
            stmt = self.create_base_query(OutreachEvent)

            if campaign_id:
                stmt = stmt.where(OutreachEvent.campaign_id == campaign_id)
            if sequence_id:
                stmt = stmt.where(OutreachEvent.sequence_id == sequence_id)
            if kind:
                stmt = stmt.where(OutreachEvent.kind == kind)

            stmt = stmt.order_by(OutreachEvent.created_at.desc()).offset(offset).limit(limit)
            result = await self.execute(stmt, OutreachEvent)
            return list(result.scalars().all())

        except Exception as e:
            await self.handle_error("list_events", e, campaign_id=campaign_id, sequence_id=sequence_id)
            raise
