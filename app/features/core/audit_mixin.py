"""
Base audit mixin for consistent audit fields across models.
Stores who created/last changed a record in human-readable form.
"""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from typing import Dict, Any, Optional


class AuditMixin:
    """
    Mixin class that provides standardized audit fields.

    Human-readable audit information (email/name) is stored rather than just
    user IDs so records stay traceable after users are removed.
    """

    # Creation audit
    created_by_email = Column(String(255), nullable=True, index=True)
    created_by_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)

    # Update audit
    updated_by_email = Column(String(255), nullable=True)
    updated_by_name = Column(String(255), nullable=True)
    updated_at = Column(DateTime, onupdate=func.now(), server_default=func.now())

    def get_audit_info(self) -> Dict[str, Any]:
        """Get human-readable audit information for this record."""
        return {
            "created_by": {
                "email": self.created_by_email,
                "name": self.created_by_name,
                "timestamp": self.created_at.isoformat() if self.created_at else None
            },
            "updated_by": {
                "email": self.updated_by_email,
                "name": self.updated_by_name,
                "timestamp": self.updated_at.isoformat() if self.updated_at else None
            },
        }

    def set_created_by(self, context: "AuditContext"):
        """Set creation audit information."""
        self.created_by_email = context.user_email
        self.created_by_name = context.user_name

    def set_updated_by(self, context: "AuditContext"):
        """Set update audit information."""
        self.updated_by_email = context.user_email
        self.updated_by_name = context.user_name


class AuditContext:
    """
    Who is performing an operation.
    Built from User-like objects, dicts, plain ids or the system itself.
    """

    def __init__(self, user_email: str, user_name: str, user_id: Optional[str] = None):
        self.user_email = user_email
        self.user_name = user_name
        self.user_id = user_id

    @classmethod
    def from_user(cls, user) -> "AuditContext":
        """Create audit context from a user object, dict or id."""
        if user is None:
            return cls.system()

        if isinstance(user, AuditContext):
            return user

        if hasattr(user, 'email'):
            return cls(
                user_email=user.email,
                user_name=getattr(user, 'name', None) or user.email,
                user_id=getattr(user, 'id', None)
            )
        elif isinstance(user, dict):
            return cls(
                user_email=user.get('email', 'unknown'),
                user_name=user.get('name', user.get('email', 'unknown')),
                user_id=user.get('id')
            )
        else:
            return cls(f"user-{user}", f"User {user}", str(user))

    @classmethod
    def system(cls) -> "AuditContext":
        """Audit context for automated operations (scheduler, CLI)."""
        return cls("system", "System", "system")

    def __str__(self) -> str:
        return f"{self.user_name} ({self.user_email})"
