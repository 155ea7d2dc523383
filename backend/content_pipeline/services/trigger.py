"""
Ingestion Trigger — one storage event in, at most one record write out.

Flow for a single event:

    received ──► path-validated ──► type-dispatched ──► extracted ──► persisted
                      │                    │                 │
                      ▼                    ▼                 ▼
                   IGNORED            UNSUPPORTED          FAILED

  received        name or content type missing       → IGNORED, no write
  path-validated  not content/<id>/<file>            → IGNORED, no write
  type-dispatched neither PDF nor image              → UNSUPPORTED, no write
  extracted       any exception from the router      → FAILED, error written
  persisted       text (possibly "") written         → EXTRACTED

The failure write always targets the content id resolved while validating
the path. Both writes are overwrites of fixed columns, so redelivered events
(at-least-once delivery) leave the record in the same state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from content_pipeline.core.errors import PathIgnored, UnsupportedType
from content_pipeline.processing.extractor import ExtractionRouter, require_route
from content_pipeline.services.records import DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_PREFIX = "content/"


@dataclass(frozen=True)
class StorageEvent:
    """New-object notification from the object store."""
    name:         str | None
    bucket:       str | None
    content_type: str | None


class TriggerOutcome(str, Enum):
    IGNORED     = "ignored"
    UNSUPPORTED = "unsupported"
    EXTRACTED   = "extracted"
    FAILED      = "failed"


@dataclass(frozen=True)
class TriggerResult:
    outcome:    TriggerOutcome
    content_id: str | None = None
    chars:      int = 0
    error:      str | None = None

    def as_dict(self) -> dict:
        return {
            "outcome":    self.outcome.value,
            "content_id": self.content_id,
            "chars":      self.chars,
            "error":      self.error,
        }


def resolve_content_id(path: str, prefix: str = DEFAULT_CONTENT_PREFIX) -> str:
    """
    Return the owning record id of a content object path.

    Raises:
        PathIgnored: the path is outside the prefix, has fewer than three
                     segments, or has an empty record id segment.
    """
    if not path.startswith(prefix):
        raise PathIgnored(f"Outside content namespace: {path}")

    segments = path.split("/")
    if len(segments) < 3 or not segments[1]:
        raise PathIgnored(f"Malformed content path: {path}")

    return segments[1]


class IngestionTrigger:
    """
    Stateless handler — one instance may serve any number of events.

    All dependencies are injected; the Celery task builds the concrete ones.
    """

    def __init__(
        self,
        router:  ExtractionRouter,
        records: DocumentStore,
        content_prefix: str = DEFAULT_CONTENT_PREFIX,
    ) -> None:
        self._router  = router
        self._records = records
        self._prefix  = content_prefix

    async def handle(self, event: StorageEvent) -> TriggerResult:
        # ---- received ----------------------------------------------------
        if not event.name or not event.content_type:
            logger.debug("Storage event dropped: missing name or content type | event=%s", event)
            return TriggerResult(TriggerOutcome.IGNORED)

        # ---- path-validated ----------------------------------------------
        try:
            content_id = resolve_content_id(event.name, self._prefix)
        except PathIgnored as exc:
            logger.debug("Storage event dropped | %s", exc)
            return TriggerResult(TriggerOutcome.IGNORED)

        # ---- type-dispatched ---------------------------------------------
        try:
            require_route(event.content_type)
        except UnsupportedType as exc:
            logger.debug("Storage event skipped | content=%s %s", content_id, exc)
            return TriggerResult(TriggerOutcome.UNSUPPORTED, content_id=content_id)

        # ---- extracted ---------------------------------------------------
        try:
            text = await self._router.extract(event.bucket or "", event.name, event.content_type)
        except Exception as exc:
            logger.exception(
                "Text extraction failed | content=%s object=%s", content_id, event.name,
            )
            message = str(exc) or type(exc).__name__
            await self._records.save_extraction_error(content_id, message)
            return TriggerResult(TriggerOutcome.FAILED, content_id=content_id, error=message)

        # ---- persisted ---------------------------------------------------
        await self._records.save_extracted_text(content_id, text)
        logger.info(
            "Text extracted | content=%s object=%s chars=%d",
            content_id, event.name, len(text),
        )
        return TriggerResult(TriggerOutcome.EXTRACTED, content_id=content_id, chars=len(text))
