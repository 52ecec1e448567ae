"""
Centralized SQLAlchemy imports and utilities.
Services import from here so query code reads the same everywhere.
"""

# Core SQLAlchemy imports
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select, func, case, and_, or_, nulls_first
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import Select

# Common type imports
from typing import List, Optional, Dict, Any, TypeVar, Generic, Tuple
from datetime import datetime, timedelta, timezone
import structlog

__all__ = [
    # Sessions
    'AsyncSession', 'async_sessionmaker',

    # Query building
    'select', 'func', 'case', 'and_', 'or_', 'nulls_first', 'Select',

    # Loading strategies
    'selectinload',

    # Python typing
    'List', 'Optional', 'Dict', 'Any', 'TypeVar', 'Generic', 'Tuple',
    'datetime', 'timedelta', 'timezone', 'structlog',

    # Utilities
    'get_logger', 'utc_now'
]


def get_logger(name: str):
    """Standardized logger creation."""
    return structlog.get_logger(name)


def utc_now() -> datetime:
    """
    Current UTC time as a naive datetime.

    Columns are TIMESTAMP WITHOUT TIME ZONE, so all stored times are naive UTC.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)
