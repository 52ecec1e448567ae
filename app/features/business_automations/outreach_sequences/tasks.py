"""
Celery background tasks for Outreach Sequences.

Handles:
- Periodic sweep over all due enrollments (beat schedule)
- On-demand execution of a single sequence
"""

import asyncio
from typing import Any, Dict, Optional

from app.features.core.celery_app import celery_app
from app.features.core.config import get_settings
from app.features.core.database import async_session
from app.features.core.sqlalchemy_imports import get_logger
from app.features.core.structured_logging import log_performance

from app.features.business_automations.outreach_sequences.exceptions import NotFoundError
from app.features.business_automations.outreach_sequences.services.execution import SequenceExecutionDriver
from app.features.business_automations.outreach_sequences.utils import get_content_provider

logger = get_logger(__name__)


def build_driver(tenant_id: Optional[str] = None, session_factory=None) -> SequenceExecutionDriver:
    """Driver wired from settings."""
    settings = get_settings()
    return SequenceExecutionDriver(
        session_factory or async_session,
        get_content_provider(settings),
        tenant_id=tenant_id,
        max_concurrency=settings.SEQUENCE_EXECUTION_CONCURRENCY,
        max_error_details=settings.SEQUENCE_MAX_ERROR_DETAILS,
    )


async def _execute_async(sequence_id: Optional[str], tenant_id: Optional[str]) -> Dict[str, Any]:
    driver = build_driver(tenant_id)
    try:
        with log_performance("sequence_execution", logger, sequence_id=sequence_id, tenant_id=tenant_id):
            summary = await driver.execute(sequence_id=sequence_id)
    except NotFoundError as e:
        logger.warning("Sequence not found for execution", sequence_id=sequence_id, tenant_id=tenant_id)
        return {"success": False, "error": str(e)}

    return {"success": True, **summary.model_dump(mode="json")}


@celery_app.task(name="outreach_sequences.execute_sequence")
def execute_sequence_task(sequence_id: str, tenant_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Execute every due enrollment of one sequence.

    Args:
        sequence_id: Sequence to execute
        tenant_id: Tenant owning the sequence (None for system-wide lookup)

    Returns:
        Execution summary dict
    """
    logger.info("Executing sequence", sequence_id=sequence_id, tenant_id=tenant_id)
    return asyncio.run(_execute_async(sequence_id, tenant_id))


@celery_app.task(name="outreach_sequences.run_due_sequences")
def run_due_sequences_task() -> Dict[str, Any]:
    """
    System-wide sweep over all due enrollments.

    Scheduled by celery beat every SEQUENCE_SWEEP_INTERVAL_SECONDS.
    """
    logger.info("Running due sequences sweep")
    return asyncio.run(_execute_async(None, "global"))
