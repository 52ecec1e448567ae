"""
Celery application configuration for background tasks.

The beat schedule is the polling trigger for the sequence execution driver.
"""
from celery import Celery
from celery.signals import setup_logging as celery_setup_logging
from kombu import Queue

from .config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery(
    "outreach_sequences",
    broker=settings.broker_url,
    backend=settings.result_backend,
    include=[
        "app.features.business_automations.outreach_sequences.tasks",
    ]
)

# Celery configuration
celery_app.conf.update(
    # Task routing
    task_routes={
        "outreach_sequences.*": {"queue": "outreach_sequences"},
    },

    # Queue definitions
    task_default_queue="default",
    task_queues=(
        Queue("default"),
        Queue("outreach_sequences"),
    ),

    # Task execution settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task result settings
    result_expires=3600,  # 1 hour

    # Worker settings
    worker_prefetch_multiplier=1,
    task_acks_late=True,

    # Retry settings
    task_reject_on_worker_lost=True,
    task_default_retry_delay=60,  # 1 minute
    task_max_retries=3,

    # Monitoring
    worker_send_task_events=True,
    task_send_sent_event=True,

    # Beat schedule (for periodic tasks)
    beat_schedule={
        "run-due-sequences": {
            "task": "outreach_sequences.run_due_sequences",
            "schedule": settings.SEQUENCE_SWEEP_INTERVAL_SECONDS,
            # A sweep that outlives its interval must not pile up behind the next one
            "options": {"expires": settings.SEQUENCE_SWEEP_INTERVAL_SECONDS},
        },
    },
)


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    """Route worker logs through structlog instead of Celery's default handlers."""
    from .logging import setup_logging
    setup_logging()


if __name__ == "__main__":
    celery_app.start()
