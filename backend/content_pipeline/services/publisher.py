"""
Task publisher — thin abstraction over Celery apply_async().
Injected into the event intake route so it can be mocked in tests.
"""

from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)


class TaskPublisher:
    """
    Sends storage events to the extraction queue.
    Import is deferred so the broker connection is not required at module load time.
    """

    async def publish_storage_event(
        self,
        name:         str | None,
        bucket:       str | None,
        content_type: str | None,
    ) -> str:
        """
        Dispatch process_storage_event to the worker pool and return the task id.
        Runs in a thread executor to avoid blocking the event loop on broker I/O.
        """
        from content_pipeline.workers.tasks import process_storage_event

        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None,
            lambda: process_storage_event.apply_async(
                kwargs={
                    "name":         name,
                    "bucket":       bucket,
                    "content_type": content_type,
                },
            ),
        )
        logger.info("Storage event queued | object=%s task_id=%s", name, result.id)
        return result.id
