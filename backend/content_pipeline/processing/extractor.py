"""
Extraction Router
═════════════════

Selects the extraction path from a file's declared content type and runs
an ordered chain of strategies with explicit fallback.

  application/pdf
      LocalOcrStrategy (raw bytes, no preprocessing)

  image/*
      CloudVisionStrategy ──fails──► LocalOcrStrategy (preprocessed bytes)

  anything else
      no-op, returns ""

Fallback predicate: any exception raised by a strategy hands over to the
next one. The exception of the last strategy in the chain propagates to the
caller unchanged. A strategy that succeeds with no text ends the chain;
"no text found" is a result, not a failure.

This module is the only place that knows about strategy ordering. The
ingestion trigger and the re-extraction service only see text or an
exception.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from enum import Enum

from content_pipeline.core.errors import UnsupportedType
from content_pipeline.processing.ocr import OcrEngine, TextDetector
from content_pipeline.processing.preprocess import ImagePreprocessor
from content_pipeline.storage.s3 import BlobStore

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE   = "application/pdf"
IMAGE_CONTENT_TYPE = "image/"


class ExtractionRoute(str, Enum):
    PDF   = "pdf"
    IMAGE = "image"


def route_for(content_type: str | None) -> ExtractionRoute | None:
    """Classify a declared content type; None means unsupported."""
    if not content_type:
        return None
    if content_type == PDF_CONTENT_TYPE:
        return ExtractionRoute.PDF
    if content_type.startswith(IMAGE_CONTENT_TYPE):
        return ExtractionRoute.IMAGE
    return None


def require_route(content_type: str | None) -> ExtractionRoute:
    """Like route_for, but raises UnsupportedType instead of returning None."""
    route = route_for(content_type)
    if route is None:
        raise UnsupportedType(f"No extraction route for content type: {content_type}")
    return route


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

class ExtractionStrategy(ABC):

    @property
    @abstractmethod
    def strategy_name(self) -> str:
        """Unique name for logging."""

    @abstractmethod
    async def extract(self, bucket: str, key: str) -> str:
        """Return the text of the stored object or raise."""


class CloudVisionStrategy(ExtractionStrategy):
    """Managed text detection on the stored reference; first annotation wins."""

    def __init__(self, detector: TextDetector) -> None:
        self._detector = detector

    @property
    def strategy_name(self) -> str:
        return "cloud_vision"

    async def extract(self, bucket: str, key: str) -> str:
        annotations = await self._detector.detect(bucket, key)
        if not annotations:
            return ""
        return annotations[0].description


class LocalOcrStrategy(ExtractionStrategy):
    """Download the object and run the local engine, optionally preprocessing first."""

    def __init__(
        self,
        blob_store:   BlobStore,
        engine:       OcrEngine,
        preprocessor: ImagePreprocessor | None = None,
    ) -> None:
        self._blobs        = blob_store
        self._engine       = engine
        self._preprocessor = preprocessor

    @property
    def strategy_name(self) -> str:
        return "local_ocr_preprocessed" if self._preprocessor else "local_ocr"

    async def extract(self, bucket: str, key: str) -> str:
        data = await self._blobs.download(bucket, key)
        if self._preprocessor is not None:
            # Pillow work is CPU bound; keep it off the event loop
            loop = asyncio.get_running_loop()
            data = await loop.run_in_executor(None, self._preprocessor.process, data)
        return await self._engine.recognize(data)


# ---------------------------------------------------------------------------
# Fallback chain
# ---------------------------------------------------------------------------

class FallbackChain:
    """
    Ordered list of strategies.

    Each strategy runs only after the previous one raised. The last
    strategy's exception is re-raised as-is.
    """

    def __init__(self, strategies: list[ExtractionStrategy]) -> None:
        if not strategies:
            raise ValueError("FallbackChain needs at least one strategy")
        self._strategies = list(strategies)

    @property
    def strategy_names(self) -> list[str]:
        return [s.strategy_name for s in self._strategies]

    async def run(self, bucket: str, key: str) -> str:
        last_index = len(self._strategies) - 1

        for index, strategy in enumerate(self._strategies):
            t0 = time.monotonic()
            try:
                text = await strategy.extract(bucket, key)
            except Exception as exc:
                if index == last_index:
                    logger.error(
                        "Extraction failed | strategy=%s key=%s error=%s",
                        strategy.strategy_name, key, exc,
                    )
                    raise
                logger.warning(
                    "Strategy failed, falling back | strategy=%s next=%s key=%s error=%s",
                    strategy.strategy_name,
                    self._strategies[index + 1].strategy_name,
                    key, exc,
                )
                continue

            logger.info(
                "Extraction ok | strategy=%s key=%s chars=%d elapsed_ms=%.0f",
                strategy.strategy_name, key, len(text), (time.monotonic() - t0) * 1000,
            )
            return text

        raise AssertionError("unreachable")  # pragma: no cover


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------

class ExtractionRouter:
    """
    Stateless router — safe to share across invocations.

    Constructor args:
        blob_store   : raw object downloads for the local engine
        ocr_engine   : local OCR backend
        detector     : managed text detection; None disables it and images
                       go straight to the local engine
        preprocessor : image normalisation applied before local OCR of images

    Usage:
        router = ExtractionRouter(blob_store, ocr_engine, detector)
        text = await router.extract(bucket, key, content_type)
    """

    def __init__(
        self,
        blob_store:   BlobStore,
        ocr_engine:   OcrEngine,
        detector:     TextDetector | None = None,
        preprocessor: ImagePreprocessor | None = None,
    ) -> None:
        preprocessor = preprocessor or ImagePreprocessor()

        image_strategies: list[ExtractionStrategy] = []
        if detector is not None:
            image_strategies.append(CloudVisionStrategy(detector))
        image_strategies.append(LocalOcrStrategy(blob_store, ocr_engine, preprocessor))

        self._chains: dict[ExtractionRoute, FallbackChain] = {
            ExtractionRoute.PDF:   FallbackChain([LocalOcrStrategy(blob_store, ocr_engine)]),
            ExtractionRoute.IMAGE: FallbackChain(image_strategies),
        }

    def chain_for(self, route: ExtractionRoute) -> FallbackChain:
        return self._chains[route]

    async def extract(self, bucket: str, key: str, content_type: str | None) -> str:
        """
        Extract text from a stored object.

        Returns "" for unsupported content types. Raises the final strategy's
        exception when every strategy of the route failed.
        """
        route = route_for(content_type)
        if route is None:
            logger.debug("No extraction route | key=%s content_type=%s", key, content_type)
            return ""

        logger.info(
            "Routing extraction | key=%s content_type=%s route=%s",
            key, content_type, route.value,
        )
        return await self._chains[route].run(bucket, key)
