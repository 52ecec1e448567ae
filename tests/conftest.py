"""
Global pytest configuration and fixtures for the outreach sequence engine.

Provides a throwaway SQLite database per test (file-backed so that several
sessions can see each other's commits), a session factory, and seeded
campaigns/prospects for two tenants.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SEQUENCE_CONTENT_PROVIDER", "template")

from datetime import datetime
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.features.core.database import Base
from app.features.business_automations.outreach_sequences.models import Campaign, Prospect
from app.features.business_automations.outreach_sequences.utils import TemplateContentProvider


NOW = datetime(2026, 1, 5, 9, 0, 0)


@pytest_asyncio.fixture(scope="function")
async def test_db_engine(tmp_path):
    """Create a test database engine backed by a temporary SQLite file."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'outreach.db'}",
        echo=False,  # Set to True for SQL debugging
        poolclass=NullPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_db_engine) -> async_sessionmaker:
    """Session factory bound to the test engine."""
    return async_sessionmaker(test_db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def test_db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def now() -> datetime:
    """Fixed 'current time' for execution tests."""
    return NOW


@pytest.fixture
def content_provider() -> TemplateContentProvider:
    return TemplateContentProvider()


@pytest.fixture
def step_definitions():
    """Two-step plan: connection request, then a follow-up two days later."""
    return [
        {
            "action_type": "connection_request",
            "content": "Hi {{ first_name }}, let's connect!",
            "delay_days": 2,
        },
        {
            "action_type": "follow_up",
            "content": "Thanks for connecting, {{ name }}. How are things at {{ company }}?",
            "subject": "Following up",
            "delay_days": 0,
        },
    ]


@pytest_asyncio.fixture
async def seeded(session_factory):
    """
    Seed two tenants.

    tenant-a: campaign "Q1 Outreach" with three prospects, plus a second
    campaign with one prospect. tenant-b: one campaign with one prospect.
    """
    async with session_factory() as session:
        campaign = Campaign(tenant_id="tenant-a", name="Q1 Outreach", status="active")
        other_campaign = Campaign(tenant_id="tenant-a", name="Q2 Outreach", status="active")
        foreign_campaign = Campaign(tenant_id="tenant-b", name="Tenant B Outreach", status="active")
        session.add_all([campaign, other_campaign, foreign_campaign])
        await session.flush()

        prospects = [
            Prospect(tenant_id="tenant-a", campaign_id=campaign.id, full_name="Jane Doe",
                     title="CTO", company="Acme"),
            Prospect(tenant_id="tenant-a", campaign_id=campaign.id, full_name="John Smith",
                     first_name="Johnny", company="Globex"),
            Prospect(tenant_id="tenant-a", campaign_id=campaign.id, full_name=None, company="Initech"),
        ]
        other_prospect = Prospect(tenant_id="tenant-a", campaign_id=other_campaign.id, full_name="Ada Other")
        foreign_prospect = Prospect(tenant_id="tenant-b", campaign_id=foreign_campaign.id, full_name="Bea Foreign")
        session.add_all(prospects + [other_prospect, foreign_prospect])
        await session.commit()

        return {
            "tenant_id": "tenant-a",
            "campaign_id": campaign.id,
            "prospect_ids": [p.id for p in prospects],
            "other_campaign_id": other_campaign.id,
            "other_prospect_id": other_prospect.id,
            "foreign_campaign_id": foreign_campaign.id,
            "foreign_prospect_id": foreign_prospect.id,
        }


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "tenant_isolation: Tenant isolation tests")
