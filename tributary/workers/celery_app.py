"""
Celery Application Configuration
================================

Configures Celery as the workflow runtime of connector syncs.
"""

import logging

from celery import Celery
from celery.signals import worker_init, worker_process_init

from tributary.api.config import settings

logger = logging.getLogger(__name__)

ZENDESK_SYNC = "tributary.workers.tasks.zendesk_sync"
ZENDESK_FULL_SYNC = "tributary.workers.tasks.zendesk_full_sync"
ZENDESK_GARBAGE_COLLECT = "tributary.workers.tasks.zendesk_garbage_collect"
SNOWFLAKE_SYNC = "tributary.workers.tasks.snowflake_sync"

CONNECTOR_TASKS = (ZENDESK_SYNC, ZENDESK_FULL_SYNC, ZENDESK_GARBAGE_COLLECT, SNOWFLAKE_SYNC)

celery_app = Celery(
    "tributary",
    broker=settings.celery.broker_url,
    backend=settings.celery.result_backend,
    include=["tributary.workers.tasks"],
)

celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Worker settings
    worker_prefetch_multiplier=1,
    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_track_started=True,
    # One workflow run is bounded like a start-to-close timeout
    task_time_limit=settings.sync.activity_time_limit_seconds,
    task_soft_time_limit=max(settings.sync.activity_time_limit_seconds - 60, 60),
    # Result settings
    result_expires=3600,
    # Retry settings
    task_default_retry_delay=60,
    task_max_retries=5,
    # EAGER MODE: Execute tasks synchronously (for testing)
    task_always_eager=settings.celery.always_eager,
    task_eager_propagates=True,
)

celery_app.conf.task_routes = {
    ZENDESK_SYNC: {"queue": "zendesk"},
    ZENDESK_FULL_SYNC: {"queue": "zendesk"},
    ZENDESK_GARBAGE_COLLECT: {"queue": "zendesk"},
    SNOWFLAKE_SYNC: {"queue": "snowflake"},
}


@worker_init.connect
@worker_process_init.connect
def init_worker_process(**kwargs):
    """
    Configure logging, settings and the database in the worker and in every
    forked pool process.
    """
    from tributary.core.observability.logging import configure_logging
    from tributary.platform.composition_root import bootstrap

    configure_logging(settings.log_level, json_format=settings.log_json)
    bootstrap(settings)
    logger.info("Worker process initialized")
