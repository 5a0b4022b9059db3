"""
Celery application configuration for background task processing.

This module configures Celery for the crawl-and-audit pipeline:
- Website crawls (traversal plus analysis) on the ``crawling`` queue
- Generic jobs (research, clustering, batches) on the ``jobs`` queue
- Periodic cleanup of jobs and crawls abandoned by dead workers
"""

import logging

from celery import Celery
from celery.signals import after_setup_logger, after_setup_task_logger
from kombu import Exchange, Queue

from app.core.config import settings
from app.observability import StructuredJsonFormatter, configure_logging
from app.services.task_queue import CRAWL_QUEUE, JOB_QUEUE

configure_logging()

# Create Celery app
celery_app = Celery(
    "seo_audit",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

# Configure Celery
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution
    task_acks_late=True,  # Tasks acknowledged after execution
    task_reject_on_worker_lost=False,  # A lost run is failed by the stale sweep, not replayed
    task_track_started=True,
    task_soft_time_limit=settings.CELERY_TASK_SOFT_TIME_LIMIT,
    task_time_limit=settings.CELERY_TASK_TIME_LIMIT,

    # Result backend settings
    result_expires=86400,  # Results expire after 24 hours

    # Worker settings
    worker_prefetch_multiplier=1,  # One task at a time per worker
    worker_max_tasks_per_child=100,

    # Broker connection settings
    broker_connection_retry_on_startup=True,
    broker_connection_max_retries=10,

    # Task routes - direct tasks to appropriate queues
    task_routes={
        "app.tasks.crawling.*": {"queue": CRAWL_QUEUE},
        "app.tasks.jobs.*": {"queue": JOB_QUEUE},
    },

    # Beat schedule for periodic tasks
    beat_schedule={
        "cleanup-stale-jobs": {
            "task": "app.tasks.jobs.cleanup_stale_jobs",
            "schedule": 3600.0,  # Every hour
        },
    },
)

# Define queues
celery_app.conf.task_queues = (
    Queue(CRAWL_QUEUE, Exchange(CRAWL_QUEUE), routing_key=CRAWL_QUEUE),
    Queue(JOB_QUEUE, Exchange(JOB_QUEUE), routing_key=JOB_QUEUE),
)

# Default queue
celery_app.conf.task_default_queue = JOB_QUEUE

# Autodiscover tasks from these modules
celery_app.autodiscover_tasks([
    "app.tasks.crawling",
    "app.tasks.jobs",
])


# =============================================================================
# Celery Logging Configuration
# =============================================================================

def _setup_celery_json_logging(logger: logging.Logger, **kwargs) -> None:
    """
    Replace Celery's default handlers with the structured JSON formatter so
    worker and API logs share one format.
    """
    if settings.TESTING:
        return

    logger.handlers.clear()
    handler = logging.StreamHandler()
    handler.setLevel(logging.INFO)
    handler.setFormatter(StructuredJsonFormatter())
    logger.addHandler(handler)


@after_setup_logger.connect
def setup_celery_logger(logger: logging.Logger, **kwargs) -> None:
    """Configure the main Celery logger."""
    _setup_celery_json_logging(logger, **kwargs)


@after_setup_task_logger.connect
def setup_celery_task_logger(logger: logging.Logger, **kwargs) -> None:
    """Configure the Celery task logger."""
    _setup_celery_json_logging(logger, **kwargs)
