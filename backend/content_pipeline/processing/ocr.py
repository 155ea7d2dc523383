"""
Text Recognition Backends
═════════════════════════

Two ways of turning a stored file into text:

  TextDetector  (managed, network)
    - AWS Textract DetectDocumentText, called on the stored object reference
      (the file is never downloaded by this service)
    - Higher accuracy, but depends on the network and on service quotas
    - Returns an ordered list of TextAnnotation; element 0 is the full text

  OcrEngine  (local, offline)
    - Tesseract via pytesseract, on raw bytes downloaded from storage
    - Slower and less accurate, fully under the worker's control
    - Decodes its own input: images through Pillow (every frame of a
      multi-frame TIFF/GIF), PDF byte streams rasterised page by page
      with PyMuPDF

Both backends translate library failures into the pipeline error taxonomy:
  TextDetector → NetworkError
  OcrEngine    → OcrError
so the router can apply a single fallback predicate.
"""

from __future__ import annotations

import asyncio
import io
import logging
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import aioboto3
import pytesseract
from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image, ImageSequence, UnidentifiedImageError

from content_pipeline.core.errors import NetworkError, OcrError

logger = logging.getLogger(__name__)

_PDF_SIGNATURE = b"%PDF"


# ---------------------------------------------------------------------------
# Shared data types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TextAnnotation:
    """
    One detected text region.

    description : recognised text
    confidence  : 0.0–1.0; -1.0 when the backend does not report one
    """
    description: str
    confidence:  float = -1.0


# ---------------------------------------------------------------------------
# Abstract backends
# ---------------------------------------------------------------------------

class TextDetector(ABC):

    @abstractmethod
    async def detect(self, bucket: str, key: str) -> list[TextAnnotation]:
        """
        Run managed text detection on a stored object.

        Returns annotations in reading order, the first one holding the full
        page text. An empty list means no text was found.

        Raises:
            NetworkError: the API call failed for any reason.
        """


class OcrEngine(ABC):

    @abstractmethod
    async def recognize(self, buffer: bytes) -> str:
        """
        Recognise text in an encoded image or PDF byte stream.

        Raises:
            OcrError: the engine could not process the input.
        """


# ---------------------------------------------------------------------------
# AWS Textract
# ---------------------------------------------------------------------------

def annotations_from_blocks(blocks: list[dict]) -> list[TextAnnotation]:
    """
    Convert Textract Blocks into annotations.

    The first annotation concatenates every LINE (newline separated) with the
    mean line confidence; one annotation per LINE follows.
    """
    lines = [b for b in blocks if b.get("BlockType") == "LINE" and b.get("Text")]
    if not lines:
        return []

    per_line = [
        TextAnnotation(
            description=b["Text"],
            confidence=round(b.get("Confidence", 0.0) / 100.0, 3),
        )
        for b in lines
    ]
    full = TextAnnotation(
        description="\n".join(a.description for a in per_line),
        confidence=round(sum(a.confidence for a in per_line) / len(per_line), 3),
    )
    return [full, *per_line]


class TextractTextDetector(TextDetector):
    """
    Managed text detection with AWS Textract.

    IAM permissions required on the worker role:
      textract:DetectDocumentText
      s3:GetObject on the content bucket (Textract reads the object itself)
    """

    def __init__(self, region: str, session: aioboto3.Session | None = None) -> None:
        self._region  = region
        self._session = session or aioboto3.Session()

    async def detect(self, bucket: str, key: str) -> list[TextAnnotation]:
        t0 = time.monotonic()
        async with self._session.client("textract", region_name=self._region) as client:
            try:
                resp = await client.detect_document_text(
                    Document={"S3Object": {"Bucket": bucket, "Name": key}}
                )
            except ClientError as exc:
                code = exc.response.get("Error", {}).get("Code", "")
                raise NetworkError(f"Textract request failed ({code}) for s3://{bucket}/{key}") from exc
            except BotoCoreError as exc:
                raise NetworkError(f"Textract request failed for s3://{bucket}/{key}: {exc}") from exc

        annotations = annotations_from_blocks(resp.get("Blocks", []))
        logger.info(
            "Textract | key=%s annotations=%d elapsed_ms=%.0f",
            key, len(annotations), (time.monotonic() - t0) * 1000,
        )
        return annotations


# ---------------------------------------------------------------------------
# Tesseract
# ---------------------------------------------------------------------------

class TesseractOcrEngine(OcrEngine):
    """
    Offline OCR with Tesseract.

    Requires the tesseract binary in the worker image
    (apt-get install tesseract-ocr tesseract-ocr-<lang>).

    Recognition is CPU bound and runs on a per-call worker thread, bounded by
    timeout_seconds twice: pytesseract kills a tesseract process that runs
    past it, and the awaiting coroutine gives up on the thread. A thread
    abandoned that way is not joined, so the caller (and asyncio.run in the
    Celery task) returns without waiting for it.
    """

    def __init__(
        self,
        language:        str   = "eng",
        psm:             int   = 3,
        timeout_seconds: float = 120.0,
        pdf_dpi:         int   = 200,
    ) -> None:
        self._language = language
        self._psm      = psm
        self._timeout  = timeout_seconds
        self._pdf_dpi  = pdf_dpi

    async def recognize(self, buffer: bytes) -> str:
        loop = asyncio.get_running_loop()
        t0 = time.monotonic()

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tesseract")
        try:
            text = await asyncio.wait_for(
                loop.run_in_executor(executor, self._recognize_sync, buffer),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            raise OcrError(f"OCR timed out after {self._timeout:.0f}s") from exc
        finally:
            executor.shutdown(wait=False)

        logger.info(
            "Tesseract | in_bytes=%d chars=%d elapsed_ms=%.0f",
            len(buffer), len(text), (time.monotonic() - t0) * 1000,
        )
        return text

    def _recognize_sync(self, buffer: bytes) -> str:
        if not buffer:
            raise OcrError("Cannot run OCR on an empty buffer")

        pages = self._load_pages(buffer)
        config = f"--psm {self._psm}"

        texts: list[str] = []
        try:
            for page in pages:
                texts.append(pytesseract.image_to_string(
                    page, lang=self._language, config=config, timeout=self._timeout,
                ))
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as exc:
            raise OcrError(f"Tesseract failed: {exc}") from exc
        except RuntimeError as exc:   # pytesseract process timeout
            raise OcrError(f"OCR timed out: {exc}") from exc
        finally:
            for page in pages:
                page.close()

        return "\n\n".join(t.strip() for t in texts if t.strip())

    def _load_pages(self, buffer: bytes) -> list[Image.Image]:
        """Decode the buffer into one RGB image per page / frame."""
        if buffer.startswith(_PDF_SIGNATURE):
            return self._rasterize_pdf(buffer)

        try:
            with Image.open(io.BytesIO(buffer)) as img:
                return [frame.convert("RGB") for frame in ImageSequence.Iterator(img)]
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise OcrError(f"Unsupported or corrupt image: {exc}") from exc

    def _rasterize_pdf(self, pdf_bytes: bytes) -> list[Image.Image]:
        import fitz  # PyMuPDF; imported here to avoid module-level import cost

        pages: list[Image.Image] = []
        try:
            with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
                for page in doc:
                    pix = page.get_pixmap(dpi=self._pdf_dpi)
                    pages.append(
                        Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
                        if pix.n == 3
                        else Image.open(io.BytesIO(pix.tobytes("png"))).convert("RGB")
                    )
        except (RuntimeError, ValueError) as exc:   # fitz.FileDataError is a RuntimeError
            raise OcrError(f"Corrupt PDF: {exc}") from exc

        if not pages:
            raise OcrError("PDF contains no pages")

        logger.debug("Rasterised PDF | pages=%d dpi=%d", len(pages), self._pdf_dpi)
        return pages
