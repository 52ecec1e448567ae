"""
Pydantic schemas for the Outreach Sequences feature.

Provides validation and result contracts for:
- Sequence and step definitions
- Enrollment results and state
- Step execution results and driver summaries
"""

from datetime import datetime
from typing import Optional, List, Literal, Dict, Any
from pydantic import BaseModel, Field, field_validator, ConfigDict


ActionType = Literal["connection_request", "message", "follow_up", "email"]
SequenceStatus = Literal["active", "paused", "completed"]
EnrollmentStatus = Literal["active", "paused", "completed"]


# ===== Sequence Schemas =====

class StepCreate(BaseModel):
    """One step of a new sequence. Order is taken from the position in the list."""
    action_type: ActionType = Field(..., description="connection_request, message, follow_up or email")
    content: str = Field(..., description="Message template (Jinja2 syntax)")
    subject: Optional[str] = Field(None, max_length=255, description="Optional subject template")
    delay_days: int = Field(..., ge=0, strict=True, description="Days to wait after this step before the next one")
    conditions: Dict[str, Any] = Field(default_factory=dict, description="Opaque conditions for the condition hook")

    @field_validator('content')
    @classmethod
    def content_not_blank(cls, v):
        """Content is stored stripped and must not be empty."""
        v = v.strip()
        if not v:
            raise ValueError("Content must not be empty")
        return v

    @field_validator('subject')
    @classmethod
    def blank_subject_to_none(cls, v):
        if v is None:
            return None
        return v.strip() or None


class SequenceCreate(BaseModel):
    """Schema for creating a sequence with its steps."""
    campaign_id: str = Field(..., min_length=1)
    name: str = Field(..., max_length=255, description="Sequence name")
    description: Optional[str] = None
    steps: List[StepCreate] = Field(..., min_length=1, description="Ordered steps, at least one")
    prospect_filters: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Name must not be empty")
        return v

    @field_validator('description')
    @classmethod
    def blank_description_to_none(cls, v):
        if v is None:
            return None
        return v.strip() or None


class SequenceUpdate(BaseModel):
    """Schema for updating a sequence. Steps cannot be changed."""
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    status: Optional[SequenceStatus] = None
    prospect_filters: Optional[Dict[str, Any]] = None

    # Validators only see None when it was passed explicitly
    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v):
        if v is None:
            raise ValueError("Name must not be null")
        v = v.strip()
        if not v:
            raise ValueError("Name must not be empty")
        return v

    @field_validator('status')
    @classmethod
    def status_not_null(cls, v):
        if v is None:
            raise ValueError("Status must not be null")
        return v


# ===== Enrollment Schemas =====

class EnrollmentResult(BaseModel):
    """Outcome of a bulk enroll call."""
    added: int = 0
    skipped: int = 0
    total: int = 0


class EnrollmentState(BaseModel):
    """Progress of one prospect through one sequence."""
    model_config = ConfigDict(from_attributes=True)

    enrollment_id: str
    sequence_id: str
    prospect_id: str
    status: EnrollmentStatus
    current_step: int
    total_steps: int
    next_eligible_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    is_due: bool = False


# ===== Execution Schemas =====

class StepResult(BaseModel):
    """Outcome of executing one enrollment's current step."""
    status: Literal["executed", "skipped", "deferred", "failed"]
    enrollment_id: str
    prospect_id: Optional[str] = None
    sequence_id: Optional[str] = None
    step_order: Optional[int] = None
    message_id: Optional[str] = None
    completed: bool = False
    reason: Optional[str] = None


class ExecutionError(BaseModel):
    """Failure detail reported in a driver summary."""
    enrollment_id: str
    prospect_id: Optional[str] = None
    sequence_id: Optional[str] = None
    error: str


class ExecutionSummary(BaseModel):
    """Aggregate result of one driver invocation."""
    sequence_id: Optional[str] = None
    executed: int = 0
    failed: int = 0
    skipped: int = 0
    deferred: int = 0
    total_considered: int = 0
    error_details: List[ExecutionError] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
