"""
Core package.
"""

from .database import get_db, get_async_session, create_tables

__all__ = ["get_db", "get_async_session", "create_tables"]
