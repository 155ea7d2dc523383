"""
Pydantic Request/Response Schemas

Wire names follow the admin panel's camelCase convention (contentId,
extractedLength, contentType); Python attributes stay snake_case through
field aliases.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Manual re-extraction RPC
# ---------------------------------------------------------------------------

class ExtractTextRequest(_CamelModel):
    content_id: str | None = Field(None, alias="contentId", description="Content record to re-extract")


class ExtractTextResponse(_CamelModel):
    success:          bool
    extracted_length: int = Field(..., alias="extractedLength", description="Length of the stored text")
    message:          str
    files_total:      int = Field(0, alias="filesTotal")
    files_extracted:  int = Field(0, alias="filesExtracted", description="Files whose text was read, possibly empty")
    files_failed:     int = Field(0, alias="filesFailed", description="Files whose URL or extraction failed")
    files_skipped:    int = Field(0, alias="filesSkipped", description="Files with an unsupported extension")


# ---------------------------------------------------------------------------
# Storage event intake
# ---------------------------------------------------------------------------

class StorageEventPayload(_CamelModel):
    """New-object notification forwarded by the storage bridge."""
    name:         str | None = Field(None, description="Object key, e.g. content/<id>/<file>")
    bucket:       str | None = None
    content_type: str | None = Field(None, alias="contentType")


class StorageEventAccepted(_CamelModel):
    status:  str = "queued"
    task_id: str | None = Field(None, alias="taskId")


# ---------------------------------------------------------------------------
# Structured error bodies
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    """Single structured error — may appear in a list."""
    field:   str | None = Field(None, description="Request field that caused the error, if applicable")
    message: str
    code:    str         = Field(..., description="Machine-readable error code for client handling")


class ErrorResponse(BaseModel):
    """
    Uniform error envelope for all 4xx/5xx responses.
    Clients should check `error_code` for programmatic handling.
    """
    error_code: str               = Field(..., description="Stable machine-readable code")
    message:    str               = Field(..., description="Human-readable summary")
    details:    list[ErrorDetail] = Field(default_factory=list)
    request_id: str | None        = Field(None, description="Trace ID for log correlation")
