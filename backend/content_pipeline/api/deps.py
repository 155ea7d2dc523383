"""
Composed FastAPI Dependencies

Route handlers import their collaborators from here; tests replace them
through app.dependency_overrides.
"""

from __future__ import annotations

import secrets
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from content_pipeline.core.config import settings
from content_pipeline.processing.extractor import ExtractionRouter
from content_pipeline.processing.factory import get_extraction_router
from content_pipeline.services.publisher import TaskPublisher
from content_pipeline.services.reextraction import ReextractionService
from content_pipeline.services.records import DocumentStore, SqlDocumentStore


@lru_cache(maxsize=1)
def get_router() -> ExtractionRouter:
    """Routers are stateless; one per process."""
    return get_extraction_router(settings)


def get_document_store() -> DocumentStore:
    return SqlDocumentStore()


def get_reextraction_service(
    router:  Annotated[ExtractionRouter, Depends(get_router)],
    records: Annotated[DocumentStore, Depends(get_document_store)],
) -> ReextractionService:
    return ReextractionService(router=router, records=records)


def get_task_publisher() -> TaskPublisher:
    return TaskPublisher()


async def verify_event_token(
    x_event_token: Annotated[str | None, Header()] = None,
) -> None:
    """Shared-secret check for the storage notification bridge (skipped when unset)."""
    expected = settings.event_intake_token
    if not expected:
        return
    if not x_event_token or not secrets.compare_digest(x_event_token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid event token",
        )


Reextraction = Annotated[ReextractionService, Depends(get_reextraction_service)]
Publisher    = Annotated[TaskPublisher, Depends(get_task_publisher)]
