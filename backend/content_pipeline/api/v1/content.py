"""
Content Extraction API Router

POST /api/v1/content/extract-text
  Admin-only RPC that re-runs extraction over every file of a content
  record and stores the combined text.

  Request:  { "contentId": "<id>" }
  Response: { "success": true, "extractedLength": 11, "message": "...",
              "filesTotal": 2, "filesExtracted": 2, "filesFailed": 0, "filesSkipped": 0 }

  Errors (ErrorResponse envelope):
    401 UNAUTHENTICATED     missing / invalid Bearer token
    403 PERMISSION_DENIED   caller is not an admin
    400 INVALID_ARGUMENT    missing contentId, or record has no files
    404 NOT_FOUND           no such record
    500 INTERNAL            unexpected failure

POST /api/v1/events/storage
  Intake for new-object notifications; queues the ingestion trigger and
  returns 202.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status

from content_pipeline.api.deps import Publisher, Reextraction, verify_event_token
from content_pipeline.auth.token import CurrentUser
from content_pipeline.schemas.content import (
    ErrorResponse,
    ExtractTextRequest,
    ExtractTextResponse,
    StorageEventAccepted,
    StorageEventPayload,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Content Extraction"])


@router.post(
    "/content/extract-text",
    response_model=ExtractTextResponse,
    summary="Re-extract text for every file of a content record",
    responses={
        400: {"model": ErrorResponse, "description": "Missing content id or record has no files"},
        401: {"model": ErrorResponse, "description": "Missing or invalid JWT"},
        403: {"model": ErrorResponse, "description": "Caller is not an admin"},
        404: {"model": ErrorResponse, "description": "Content record not found"},
        500: {"model": ErrorResponse, "description": "Internal error"},
    },
)
async def extract_text(
    body:    ExtractTextRequest,
    user:    CurrentUser,
    service: Reextraction,
) -> ExtractTextResponse:
    result = await service.reextract(body.content_id, user)
    return ExtractTextResponse(
        success=result.success,
        extracted_length=result.extracted_length,
        message="Text extraction completed successfully",
        files_total=result.files_total,
        files_extracted=result.files_extracted,
        files_failed=result.files_failed,
        files_skipped=result.files_skipped,
    )


@router.post(
    "/events/storage",
    response_model=StorageEventAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue text extraction for a new storage object",
    dependencies=[Depends(verify_event_token)],
)
async def storage_event(
    event:     StorageEventPayload,
    publisher: Publisher,
) -> StorageEventAccepted:
    task_id = await publisher.publish_storage_event(
        name=event.name,
        bucket=event.bucket,
        content_type=event.content_type,
    )
    return StorageEventAccepted(task_id=task_id)
