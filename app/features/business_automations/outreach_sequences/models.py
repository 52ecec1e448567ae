"""
Database models for the Outreach Sequences feature.

- Campaign, Prospect and Message are owned by the dashboard's CRUD slices;
  only the columns the sequence engine reads or writes are mapped here.
- Sequence, SequenceStep, SequenceEnrollment and OutreachEvent belong to the
  sequence engine.
- All models carry tenant_id for multi-tenancy.
- Timezone-naive datetimes (PostgreSQL TIMESTAMP WITHOUT TIME ZONE), UTC.
"""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint, Column, String, Integer, Text, JSON, DateTime, ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from app.features.core.database import Base
from app.features.core.audit_mixin import AuditMixin
from app.features.core.sqlalchemy_imports import get_logger, utc_now

logger = get_logger(__name__)


ACTION_TYPES = ("connection_request", "message", "follow_up", "email")
SEQUENCE_STATUSES = ("active", "paused", "completed")
ENROLLMENT_STATUSES = ("active", "paused", "completed")


class Campaign(Base, AuditMixin):
    """Outreach campaign that owns prospects, sequences and messages."""

    __tablename__ = "outreach_campaigns"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    tenant_id = Column(String(64), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(50), default="draft", nullable=False)
    # Values: draft, active, paused, completed

    prospects = relationship("Prospect", back_populates="campaign", cascade="all, delete-orphan")
    sequences = relationship("Sequence", back_populates="campaign", cascade="all, delete-orphan")

    def to_dict(self):
        """Convert to dictionary for JSON responses."""
        base_dict = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
        }
        base_dict.update(self.get_audit_info())
        return base_dict


class Prospect(Base, AuditMixin):
    """Individual contact targeted by a campaign."""

    __tablename__ = "outreach_prospects"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    tenant_id = Column(String(64), nullable=False, index=True)

    campaign_id = Column(String(36), ForeignKey("outreach_campaigns.id", ondelete="CASCADE"), nullable=False)

    full_name = Column(String(255), nullable=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    title = Column(String(255), nullable=True)
    company = Column(String(255), nullable=True)
    location = Column(String(255), nullable=True)
    industry = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    linkedin_url = Column(String(500), nullable=True)

    status = Column(String(50), default="new", nullable=False)
    # Values: new, contacted, replied, qualified, unqualified

    campaign = relationship("Campaign", back_populates="prospects")
    enrollments = relationship("SequenceEnrollment", back_populates="prospect", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_outreach_prospects_campaign', 'campaign_id'),
        Index('idx_outreach_prospects_tenant_campaign', 'tenant_id', 'campaign_id'),
    )

    def to_context(self) -> dict:
        """Variables available to message templates for this prospect."""
        first_name = self.first_name
        if not first_name and self.full_name:
            first_name = self.full_name.split()[0]

        return {
            "prospect_id": self.id,
            "name": self.full_name or "there",
            "full_name": self.full_name or "",
            "first_name": first_name or "",
            "last_name": self.last_name or "",
            "title": self.title or "",
            "company": self.company or "",
            "location": self.location or "",
            "industry": self.industry or "",
            "email": self.email or "",
            "linkedin_url": self.linkedin_url or "",
        }


class Message(Base, AuditMixin):
    """
    Outbound communication for a prospect.

    The sequence engine creates messages in status "scheduled"; delivery is
    handled elsewhere. Messages belong to the campaign/prospect, so deleting a
    sequence keeps its messages and clears sequence_id.
    """

    __tablename__ = "outreach_messages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    tenant_id = Column(String(64), nullable=False, index=True)

    campaign_id = Column(String(36), ForeignKey("outreach_campaigns.id", ondelete="CASCADE"), nullable=False)
    prospect_id = Column(String(36), ForeignKey("outreach_prospects.id", ondelete="CASCADE"), nullable=False)

    message_type = Column(String(50), nullable=False)
    # Values: connection_request, follow_up
    subject = Column(String(255), nullable=True)
    content = Column(Text, nullable=False)
    status = Column(String(50), default="draft", nullable=False)
    # Values: draft, scheduled, sent, failed
    scheduled_at = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)

    # Provenance when produced by a sequence step
    sequence_id = Column(String(36), ForeignKey("outreach_sequences.id", ondelete="SET NULL"), nullable=True)
    step_order = Column(Integer, nullable=True)
    action_type = Column(String(50), nullable=True)

    __table_args__ = (
        Index('idx_outreach_messages_campaign', 'campaign_id'),
        Index('idx_outreach_messages_prospect', 'prospect_id'),
        Index('idx_outreach_messages_status', 'status'),
    )

    def to_dict(self):
        """Convert to dictionary for JSON responses."""
        base_dict = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "campaign_id": self.campaign_id,
            "prospect_id": self.prospect_id,
            "message_type": self.message_type,
            "subject": self.subject,
            "content": self.content,
            "status": self.status,
            "scheduled_at": self.scheduled_at.isoformat() if self.scheduled_at else None,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "sequence_id": self.sequence_id,
            "step_order": self.step_order,
            "action_type": self.action_type,
        }
        base_dict.update(self.get_audit_info())
        return base_dict


class Sequence(Base, AuditMixin):
    """
    Reusable ordered definition of outreach steps for a campaign.

    Steps are created together with the sequence and never modified.
    """

    __tablename__ = "outreach_sequences"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    tenant_id = Column(String(64), nullable=False, index=True)

    campaign_id = Column(String(36), ForeignKey("outreach_campaigns.id", ondelete="CASCADE"), nullable=False)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(50), default="active", nullable=False)
    # Values: active, paused, completed

    prospect_filters = Column(JSON, default=dict)
    # Opaque prospect-selection filter, stored for the dashboard

    campaign = relationship("Campaign", back_populates="sequences")
    steps = relationship(
        "SequenceStep",
        back_populates="sequence",
        cascade="all, delete-orphan",
        order_by="SequenceStep.step_order",
        passive_deletes=True,
    )
    enrollments = relationship(
        "SequenceEnrollment",
        back_populates="sequence",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index('idx_outreach_sequences_campaign', 'campaign_id'),
        Index('idx_outreach_sequences_tenant_status', 'tenant_id', 'status'),
    )

    def to_dict(self, include_steps: bool = False):
        """Convert to dictionary for JSON responses."""
        base_dict = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "campaign_id": self.campaign_id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "prospect_filters": self.prospect_filters or {},
        }
        if include_steps:
            base_dict["steps"] = [step.to_dict() for step in self.steps]
        base_dict.update(self.get_audit_info())
        return base_dict


class SequenceStep(Base):
    """One action unit (content, delay, type) within a sequence."""

    __tablename__ = "outreach_sequence_steps"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    tenant_id = Column(String(64), nullable=False, index=True)

    sequence_id = Column(String(36), ForeignKey("outreach_sequences.id", ondelete="CASCADE"), nullable=False)

    step_order = Column(Integer, nullable=False)  # 1-indexed, contiguous
    action_type = Column(String(50), nullable=False)
    # Values: connection_request, message, follow_up, email
    content = Column(Text, nullable=False)
    subject = Column(String(255), nullable=True)
    delay_days = Column(Integer, default=1, nullable=False)
    conditions = Column(JSON, default=dict)
    # Opaque; passed to the condition hook, never interpreted by the engine

    created_at = Column(DateTime, default=utc_now, nullable=False)

    sequence = relationship("Sequence", back_populates="steps")

    __table_args__ = (
        UniqueConstraint('sequence_id', 'step_order', name='uq_outreach_sequence_steps_order'),
        CheckConstraint("step_order >= 1", name="ck_outreach_sequence_steps_order_positive"),
        CheckConstraint("delay_days >= 0", name="ck_outreach_sequence_steps_delay_non_negative"),
        Index('idx_outreach_sequence_steps_sequence', 'sequence_id'),
    )

    def to_dict(self):
        """Convert to dictionary for JSON responses."""
        return {
            "id": self.id,
            "sequence_id": self.sequence_id,
            "step_order": self.step_order,
            "action_type": self.action_type,
            "content": self.content,
            "subject": self.subject,
            "delay_days": self.delay_days,
            "conditions": self.conditions or {},
        }


class SequenceEnrollment(Base):
    """
    Progress of one prospect through one sequence.

    The version column is an optimistic lock: every UPDATE is issued as
    ``WHERE id = ? AND version = ?`` and fails if another writer got there first.
    """

    __tablename__ = "outreach_sequence_enrollments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    tenant_id = Column(String(64), nullable=False, index=True)

    sequence_id = Column(String(36), ForeignKey("outreach_sequences.id", ondelete="CASCADE"), nullable=False)
    prospect_id = Column(String(36), ForeignKey("outreach_prospects.id", ondelete="CASCADE"), nullable=False)

    status = Column(String(50), default="active", nullable=False)
    # Values: active, paused, completed
    current_step = Column(Integer, default=1, nullable=False)
    next_eligible_at = Column(DateTime, nullable=True)  # NULL = eligible now
    completed_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=True)

    sequence = relationship("Sequence", back_populates="enrollments")
    prospect = relationship("Prospect", back_populates="enrollments")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint('sequence_id', 'prospect_id', name='uq_outreach_enrollments_sequence_prospect'),
        Index('idx_outreach_enrollments_due', 'status', 'next_eligible_at'),
        Index('idx_outreach_enrollments_prospect', 'prospect_id'),
    )

    def to_dict(self):
        """Convert to dictionary for JSON responses."""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "sequence_id": self.sequence_id,
            "prospect_id": self.prospect_id,
            "status": self.status,
            "current_step": self.current_step,
            "next_eligible_at": self.next_eligible_at.isoformat() if self.next_eligible_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "version": self.version,
        }


class OutreachEvent(Base):
    """
    Append-only audit record of sequence activity.

    Note: Does NOT inherit from AuditMixin since it's a log table.
    """

    __tablename__ = "outreach_events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    tenant_id = Column(String(64), nullable=False, index=True)

    kind = Column(String(100), nullable=False)
    campaign_id = Column(String(36), ForeignKey("outreach_campaigns.id", ondelete="CASCADE"), nullable=False)
    # Plain references: events outlive the sequences and prospects they describe
    sequence_id = Column(String(36), nullable=True)
    prospect_id = Column(String(36), nullable=True)
    payload = Column(JSON, default=dict)

    created_at = Column(DateTime, default=utc_now, nullable=False)

    __table_args__ = (
        Index('idx_outreach_events_campaign', 'campaign_id'),
        Index('idx_outreach_events_kind', 'kind'),
        Index('idx_outreach_events_created', 'created_at'),
    )

    def to_dict(self):
        """Convert to dictionary for JSON responses."""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "kind": self.kind,
            "campaign_id": self.campaign_id,
            "sequence_id": self.sequence_id,
            "prospect_id": self.prospect_id,
            "payload": self.payload or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
