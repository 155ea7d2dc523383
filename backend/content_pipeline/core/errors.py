"""
Pipeline error taxonomy.

    PipelineError
    ├── ExtractionError          per-file failure, recorded on the content record
    │   ├── NetworkError         text-detection API or blob download failed
    │   └── OcrError             local engine failure
    │       └── PreprocessingError
    ├── PathIgnored              object is outside the content namespace
    ├── UnsupportedType          content type is neither PDF nor image
    └── RequestError             manual re-extraction preconditions
        ├── PermissionDenied
        ├── InvalidArgument
        └── NotFound

Adapters wrap library exceptions (botocore, pytesseract, Pillow) into this
hierarchy with ``raise ... from exc`` so the original cause stays attached.
"""

from __future__ import annotations

from fastapi import status


class PipelineError(Exception):
    """Base class for every error raised by the extraction pipeline."""


# ---------------------------------------------------------------------------
# Extraction failures
# ---------------------------------------------------------------------------

class ExtractionError(PipelineError):
    pass


class NetworkError(ExtractionError):
    pass


class OcrError(ExtractionError):
    pass


class PreprocessingError(OcrError):
    pass


# ---------------------------------------------------------------------------
# Silently dropped events
# ---------------------------------------------------------------------------

class PathIgnored(PipelineError):
    pass


class UnsupportedType(PipelineError):
    pass


# ---------------------------------------------------------------------------
# Request errors — surfaced to the RPC caller
# ---------------------------------------------------------------------------

class RequestError(PipelineError):
    """Precondition failure of a caller-initiated operation."""

    error_code:  str = "INTERNAL"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR


class PermissionDenied(RequestError):
    error_code  = "PERMISSION_DENIED"
    status_code = status.HTTP_403_FORBIDDEN


class InvalidArgument(RequestError):
    error_code  = "INVALID_ARGUMENT"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(RequestError):
    error_code  = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
