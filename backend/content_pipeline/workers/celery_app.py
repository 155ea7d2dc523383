"""
Celery Application Factory

Runs the ingestion trigger for storage events.
Broker: RabbitMQ (amqp://) in production; Redis (redis://) for local dev.
Result backend: Redis (optional — the outcome lives on the content record).

Queue topology:
  content.extract  — one message per new object in the content namespace
  system.health    — internal health-check tasks

Task payloads carry only the object name, bucket and content type — never
file bytes. Workers download from storage themselves.
"""

from __future__ import annotations

import logging

from celery import Celery
from celery.signals import task_failure, task_postrun, task_prerun
from kombu import Exchange, Queue

from content_pipeline.core.config import settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Queue and exchange definitions
# ---------------------------------------------------------------------------

CONTENT_EXCHANGE = Exchange("content", type="direct", durable=True)

TASK_QUEUES = (
    Queue(
        "content.extract",
        exchange=CONTENT_EXCHANGE,
        routing_key="content.extract",
        durable=True,
    ),
    Queue(
        "system.health",
        Exchange("system", type="direct"),
        routing_key="system.health",
        durable=True,
    ),
)

TASK_ROUTES = {
    "content_pipeline.workers.tasks.process_storage_event": {"queue": "content.extract"},
    "content_pipeline.workers.tasks.health_check":          {"queue": "system.health"},
}

# ---------------------------------------------------------------------------
# Celery app factory
# ---------------------------------------------------------------------------

def create_celery_app() -> Celery:
    app = Celery("content_pipeline")

    app.conf.update(
        # --- Broker / Backend ---
        broker_url=settings.celery_broker_url,
        result_backend=settings.celery_result_backend,

        # --- Serialization (security: reject non-JSON messages) ---
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        event_serializer="json",

        # --- Queues ---
        task_queues=TASK_QUEUES,
        task_routes=TASK_ROUTES,
        task_default_queue="content.extract",
        task_default_exchange="content",
        task_default_routing_key="content.extract",

        # --- Reliability (at-least-once; handlers are idempotent) ---
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,   # OCR is CPU heavy; one task per worker slot

        # --- Timeouts ---
        task_soft_time_limit=300,
        task_time_limit=360,

        result_expires=3600,

        timezone="UTC",
        enable_utc=True,

        worker_max_tasks_per_child=200,   # recycle workers to cap Tesseract/Pillow memory
    )

    app.autodiscover_tasks(["content_pipeline.workers"])

    return app


celery_app = create_celery_app()


# ---------------------------------------------------------------------------
# Celery signals — task lifecycle logging
# ---------------------------------------------------------------------------

@task_prerun.connect
def on_task_prerun(task_id, task, args, kwargs, **_):
    logger.info(
        "Task start | task_id=%s task=%s object=%s",
        task_id, task.name, kwargs.get("name", "?"),
    )


@task_postrun.connect
def on_task_postrun(task_id, task, args, kwargs, retval, state, **_):
    logger.info(
        "Task end | task_id=%s task=%s state=%s object=%s",
        task_id, task.name, state, kwargs.get("name", "?"),
    )


@task_failure.connect
def on_task_failure(task_id, exception, args, kwargs, traceback, einfo, **_):
    logger.error(
        "Task failed | task_id=%s object=%s error=%s",
        task_id, (kwargs or {}).get("name", "?"), exception,
        exc_info=True,
    )
