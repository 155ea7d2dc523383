"""
Manual Re-extraction

Admin-triggered re-run of text extraction over every file already attached
to a content record.

Steps:
  1. Require admin claims (PermissionDenied — before any I/O)
  2. Validate the content id (InvalidArgument)
  3. Load the record (NotFound) and its file URLs (InvalidArgument if none)
  4. For each URL, in stored order:
       parse bucket/key   → on failure log and continue
       classify by suffix → unknown suffix is skipped silently
       extract            → on failure log and continue
       append text + blank line
  5. Trim, then write content_text + text_extracted_at in one update

A bad file never aborts the batch and nothing is written before the loop
finishes. Only precondition failures or an unexpected error outside the
per-file loop fail the whole operation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from content_pipeline.auth.token import TokenPayload
from content_pipeline.core.errors import InvalidArgument, NotFound, PermissionDenied
from content_pipeline.processing.extractor import PDF_CONTENT_TYPE, ExtractionRouter
from content_pipeline.services.records import DocumentStore
from content_pipeline.storage.s3 import parse_storage_url

logger = logging.getLogger(__name__)

# Suffix → declared content type fed to the router
_SUFFIX_CONTENT_TYPES: dict[str, str] = {
    ".pdf":  PDF_CONTENT_TYPE,
    ".jpg":  "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png":  "image/png",
    ".gif":  "image/gif",
    ".bmp":  "image/bmp",
    ".tiff": "image/tiff",
}

FILE_SEPARATOR = "\n\n"


def content_type_for(key: str) -> str | None:
    """Classify a storage key by its suffix (case-insensitive)."""
    lowered = key.lower()
    for suffix, content_type in _SUFFIX_CONTENT_TYPES.items():
        if lowered.endswith(suffix):
            return content_type
    return None


@dataclass(frozen=True)
class ReextractionResult:
    success:          bool
    extracted_length: int
    files_total:      int = 0
    files_extracted:  int = 0
    files_failed:     int = 0
    files_skipped:    int = 0


class ReextractionService:
    """Stateless service object — dependencies are injected per request."""

    def __init__(self, router: ExtractionRouter, records: DocumentStore) -> None:
        self._router  = router
        self._records = records

    async def reextract(
        self,
        content_id: str | None,
        claims:     TokenPayload | None,
    ) -> ReextractionResult:
        if claims is None or not claims.admin:
            raise PermissionDenied("Only admins can trigger text extraction")

        content_id = (content_id or "").strip()
        if not content_id:
            raise InvalidArgument("Content ID is required")

        record = await self._records.get(content_id)
        if record is None:
            raise NotFound(f"Content not found: {content_id}")
        if not record.file_urls:
            raise InvalidArgument("No files found for content")

        logger.info(
            "Re-extraction start | content=%s files=%d requested_by=%s",
            content_id, len(record.file_urls), claims.sub,
        )

        accumulated = ""
        extracted = failed = skipped = 0

        for file_url in record.file_urls:
            try:
                location = parse_storage_url(file_url)
            except ValueError as exc:
                logger.warning("Skipping unparseable file URL | content=%s error=%s", content_id, exc)
                failed += 1
                continue

            content_type = content_type_for(location.key)
            if content_type is None:
                logger.debug("Skipping unsupported file | content=%s key=%s", content_id, location.key)
                skipped += 1
                continue

            try:
                text = await self._router.extract(location.bucket, location.key, content_type)
            except Exception:
                logger.exception(
                    "File extraction failed, continuing | content=%s file=%s",
                    content_id, location.uri,
                )
                failed += 1
                continue

            extracted += 1
            if text:
                accumulated += text + FILE_SEPARATOR

        final_text = accumulated.strip()
        await self._records.save_extracted_text(content_id, final_text)

        logger.info(
            "Re-extraction complete | content=%s chars=%d extracted=%d failed=%d skipped=%d",
            content_id, len(final_text), extracted, failed, skipped,
        )
        return ReextractionResult(
            success=True,
            extracted_length=len(final_text),
            files_total=len(record.file_urls),
            files_extracted=extracted,
            files_failed=failed,
            files_skipped=skipped,
        )
