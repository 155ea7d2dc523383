"""
Celery Tasks — Storage Event Handling

Task: process_storage_event
  Registered handler for new objects in storage. Builds the ingestion
  trigger from settings and runs it for one event:
    validate path → route by type → extract → write text or diagnostics

  Extraction failures are recorded on the content record by the trigger and
  do not fail the task. Infrastructure failures (database unreachable while
  writing) propagate; with acks_late the broker redelivers the message,
  which is safe because every write is an overwrite.

Task: health_check
  Liveness ping for the worker pool.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from celery import Task

from content_pipeline.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


def run_async(coro):
    """Execute an async coroutine from a synchronous Celery task."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    import concurrent.futures
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, coro).result()


@celery_app.task(
    name="content_pipeline.workers.tasks.process_storage_event",
    bind=True,
    acks_late=True,
    reject_on_worker_lost=True,
    soft_time_limit=270,
    time_limit=330,
)
def process_storage_event(
    self: Task,
    *,
    name:         str | None,
    bucket:       str | None,
    content_type: str | None,
) -> dict[str, Any]:
    """Run the ingestion trigger for one storage event."""
    return run_async(
        _process_storage_event_async(name=name, bucket=bucket, content_type=content_type)
    )


async def _process_storage_event_async(
    name:         str | None,
    bucket:       str | None,
    content_type: str | None,
) -> dict[str, Any]:
    from content_pipeline.core.config import settings
    from content_pipeline.db.session import engine
    from content_pipeline.processing.factory import get_extraction_router
    from content_pipeline.services.records import SqlDocumentStore
    from content_pipeline.services.trigger import IngestionTrigger, StorageEvent

    trigger = IngestionTrigger(
        router=get_extraction_router(settings),
        records=SqlDocumentStore(),
        content_prefix=settings.content_prefix,
    )
    try:
        result = await trigger.handle(
            StorageEvent(name=name, bucket=bucket, content_type=content_type)
        )
    finally:
        # Each task runs in a fresh event loop; pooled asyncpg connections
        # are bound to the loop that opened them.
        await engine.dispose()

    return result.as_dict()


@celery_app.task(name="content_pipeline.workers.tasks.health_check")
def health_check() -> dict[str, str]:
    return {"status": "ok", "worker": "healthy"}
