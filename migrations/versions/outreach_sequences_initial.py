"""Create outreach sequence engine tables.

Revision ID: outreach_sequences_initial
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "outreach_sequences_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _audit_columns():
    return [
        sa.Column("created_by_email", sa.String(length=255), nullable=True),
        sa.Column("created_by_name", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_by_email", sa.String(length=255), nullable=True),
        sa.Column("updated_by_name", sa.String(length=255), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "outreach_campaigns",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="draft"),
        *_audit_columns(),
    )
    op.create_index("ix_outreach_campaigns_tenant_id", "outreach_campaigns", ["tenant_id"])

    op.create_table(
        "outreach_prospects",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("campaign_id", sa.String(length=36),
                  sa.ForeignKey("outreach_campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("company", sa.String(length=255), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("industry", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("linkedin_url", sa.String(length=500), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="new"),
        *_audit_columns(),
    )
    op.create_index("ix_outreach_prospects_tenant_id", "outreach_prospects", ["tenant_id"])
    op.create_index("idx_outreach_prospects_campaign", "outreach_prospects", ["campaign_id"])
    op.create_index("idx_outreach_prospects_tenant_campaign", "outreach_prospects", ["tenant_id", "campaign_id"])

    op.create_table(
        "outreach_sequences",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("campaign_id", sa.String(length=36),
                  sa.ForeignKey("outreach_campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="active"),
        sa.Column("prospect_filters", sa.JSON(), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_outreach_sequences_tenant_id", "outreach_sequences", ["tenant_id"])
    op.create_index("idx_outreach_sequences_campaign", "outreach_sequences", ["campaign_id"])
    op.create_index("idx_outreach_sequences_tenant_status", "outreach_sequences", ["tenant_id", "status"])

    op.create_table(
        "outreach_sequence_steps",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("sequence_id", sa.String(length=36),
                  sa.ForeignKey("outreach_sequences.id", ondelete="CASCADE"), nullable=False),
        sa.Column("step_order", sa.Integer(), nullable=False),
        sa.Column("action_type", sa.String(length=50), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=True),
        sa.Column("delay_days", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("conditions", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("sequence_id", "step_order", name="uq_outreach_sequence_steps_order"),
        sa.CheckConstraint("step_order >= 1", name="ck_outreach_sequence_steps_order_positive"),
        sa.CheckConstraint("delay_days >= 0", name="ck_outreach_sequence_steps_delay_non_negative"),
    )
    op.create_index("ix_outreach_sequence_steps_tenant_id", "outreach_sequence_steps", ["tenant_id"])
    op.create_index("idx_outreach_sequence_steps_sequence", "outreach_sequence_steps", ["sequence_id"])

    op.create_table(
        "outreach_sequence_enrollments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("sequence_id", sa.String(length=36),
                  sa.ForeignKey("outreach_sequences.id", ondelete="CASCADE"), nullable=False),
        sa.Column("prospect_id", sa.String(length=36),
                  sa.ForeignKey("outreach_prospects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="active"),
        sa.Column("current_step", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("next_eligible_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("sequence_id", "prospect_id", name="uq_outreach_enrollments_sequence_prospect"),
    )
    op.create_index("ix_outreach_sequence_enrollments_tenant_id", "outreach_sequence_enrollments", ["tenant_id"])
    op.create_index("idx_outreach_enrollments_due", "outreach_sequence_enrollments", ["status", "next_eligible_at"])
    op.create_index("idx_outreach_enrollments_prospect", "outreach_sequence_enrollments", ["prospect_id"])

    op.create_table(
        "outreach_messages",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("campaign_id", sa.String(length=36),
                  sa.ForeignKey("outreach_campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("prospect_id", sa.String(length=36),
                  sa.ForeignKey("outreach_prospects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("message_type", sa.String(length=50), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="draft"),
        sa.Column("scheduled_at", sa.DateTime(), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("sequence_id", sa.String(length=36),
                  sa.ForeignKey("outreach_sequences.id", ondelete="SET NULL"), nullable=True),
        sa.Column("step_order", sa.Integer(), nullable=True),
        sa.Column("action_type", sa.String(length=50), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_outreach_messages_tenant_id", "outreach_messages", ["tenant_id"])
    op.create_index("idx_outreach_messages_campaign", "outreach_messages", ["campaign_id"])
    op.create_index("idx_outreach_messages_prospect", "outreach_messages", ["prospect_id"])
    op.create_index("idx_outreach_messages_status", "outreach_messages", ["status"])

    op.create_table(
        "outreach_events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("kind", sa.String(length=100), nullable=False),
        sa.Column("campaign_id", sa.String(length=36),
                  sa.ForeignKey("outreach_campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sequence_id", sa.String(length=36), nullable=True),
        sa.Column("prospect_id", sa.String(length=36), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_outreach_events_tenant_id", "outreach_events", ["tenant_id"])
    op.create_index("idx_outreach_events_campaign", "outreach_events", ["campaign_id"])
    op.create_index("idx_outreach_events_kind", "outreach_events", ["kind"])
    op.create_index("idx_outreach_events_created", "outreach_events", ["created_at"])


def downgrade() -> None:
    op.drop_table("outreach_events")
    op.drop_table("outreach_messages")
    op.drop_table("outreach_sequence_enrollments")
    op.drop_table("outreach_sequence_steps")
    op.drop_table("outreach_sequences")
    op.drop_table("outreach_prospects")
    op.drop_table("outreach_campaigns")
