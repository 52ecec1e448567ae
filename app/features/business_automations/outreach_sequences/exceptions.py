"""Errors raised by the outreach sequence engine."""

from typing import Optional


class SequenceEngineError(Exception):
    """Base class for sequence engine errors."""


class ValidationError(SequenceEngineError):
    """Malformed sequence/step definition or a disallowed status change. Nothing is persisted."""


class NotFoundError(SequenceEngineError):
    """Referenced sequence, enrollment, campaign or prospect is absent, or belongs elsewhere."""


class ExecutionFailure(SequenceEngineError):
    """
    One enrollment's step could not be executed.

    The enrollment's transaction is rolled back, so it stays due and is
    retried on the next driver pass.
    """

    def __init__(self, message: str, sequence_id: Optional[str] = None,
                 prospect_id: Optional[str] = None, enrollment_id: Optional[str] = None):
        super().__init__(message)
        self.sequence_id = sequence_id
        self.prospect_id = prospect_id
        self.enrollment_id = enrollment_id


class ContentRenderError(ExecutionFailure):
    """The content provider could not produce message content for a step."""
