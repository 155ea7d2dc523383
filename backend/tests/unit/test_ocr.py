"""
Unit Tests — Text recognition backends
═══════════════════════════════════════
  TextractTextDetector : aioboto3 session mocked, no AWS calls
  TesseractOcrEngine   : pytesseract.image_to_string patched, no binary needed
"""

from __future__ import annotations

import asyncio
import io
import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytesseract
from botocore.exceptions import ClientError, EndpointConnectionError
from PIL import Image

from content_pipeline.core.errors import NetworkError, OcrError
from content_pipeline.processing.ocr import (
    TesseractOcrEngine,
    TextAnnotation,
    TextractTextDetector,
    annotations_from_blocks,
)

IMAGE_TO_STRING = "content_pipeline.processing.ocr.pytesseract.image_to_string"


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _mock_session(client: AsyncMock) -> MagicMock:
    """aioboto3.Session stand-in whose client() is an async context manager."""
    session = MagicMock()
    ctx = session.client.return_value
    ctx.__aenter__.return_value = client
    ctx.__aexit__.return_value = False
    return session


def _client_error(code: str, operation: str = "DetectDocumentText") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def _line(text: str, confidence: float = 90.0) -> dict:
    return {"BlockType": "LINE", "Text": text, "Confidence": confidence}


# ─────────────────────────────────────────────────────────────────────────────
# annotations_from_blocks
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.extraction
class TestAnnotationsFromBlocks:

    def test_full_text_first_then_lines(self):
        blocks = [
            {"BlockType": "PAGE"},
            _line("Hello", 100.0),
            {"BlockType": "WORD", "Text": "Hello"},
            _line("World", 80.0),
        ]

        annotations = annotations_from_blocks(blocks)

        assert [a.description for a in annotations] == ["Hello\nWorld", "Hello", "World"]
        assert annotations[0].confidence == pytest.approx(0.9)
        assert annotations[1].confidence == pytest.approx(1.0)

    def test_no_lines_returns_empty(self):
        assert annotations_from_blocks([{"BlockType": "PAGE"}]) == []
        assert annotations_from_blocks([]) == []

    def test_lines_without_text_are_ignored(self):
        assert annotations_from_blocks([{"BlockType": "LINE", "Text": ""}]) == []

    def test_default_confidence_marker(self):
        assert TextAnnotation("x").confidence == -1.0


# ─────────────────────────────────────────────────────────────────────────────
# TextractTextDetector
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.extraction
class TestTextractTextDetector:

    async def test_detect_passes_object_reference(self):
        client = AsyncMock()
        client.detect_document_text.return_value = {"Blocks": [_line("Receipt")]}
        detector = TextractTextDetector(region="us-east-1", session=_mock_session(client))

        annotations = await detector.detect("bucket-a", "content/c1/r.png")

        assert annotations[0].description == "Receipt"
        client.detect_document_text.assert_awaited_once_with(
            Document={"S3Object": {"Bucket": "bucket-a", "Name": "content/c1/r.png"}}
        )

    async def test_no_text_returns_empty_list(self):
        client = AsyncMock()
        client.detect_document_text.return_value = {"Blocks": [{"BlockType": "PAGE"}]}
        detector = TextractTextDetector(region="us-east-1", session=_mock_session(client))

        assert await detector.detect("b", "k.png") == []

    @pytest.mark.parametrize(
        "code",
        ["ProvisionedThroughputExceededException", "AccessDeniedException", "UnsupportedDocumentException"],
    )
    async def test_client_error_becomes_network_error(self, code):
        client = AsyncMock()
        client.detect_document_text.side_effect = _client_error(code)
        detector = TextractTextDetector(region="us-east-1", session=_mock_session(client))

        with pytest.raises(NetworkError, match=code) as exc_info:
            await detector.detect("b", "k.png")
        assert isinstance(exc_info.value.__cause__, ClientError)

    async def test_connection_error_becomes_network_error(self):
        client = AsyncMock()
        client.detect_document_text.side_effect = EndpointConnectionError(endpoint_url="https://textract")
        detector = TextractTextDetector(region="us-east-1", session=_mock_session(client))

        with pytest.raises(NetworkError):
            await detector.detect("b", "k.png")


# ─────────────────────────────────────────────────────────────────────────────
# TesseractOcrEngine
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.extraction
class TestTesseractOcrEngine:

    async def test_image_recognized(self, sample_png_bytes):
        engine = TesseractOcrEngine(language="eng", psm=6)

        with patch(IMAGE_TO_STRING, return_value="  Hello World \n") as ocr:
            text = await engine.recognize(sample_png_bytes)

        assert text == "Hello World"
        ocr.assert_called_once()
        _, kwargs = ocr.call_args
        assert kwargs == {"lang": "eng", "config": "--psm 6", "timeout": 120.0}

    async def test_pdf_pages_joined_with_blank_line(self, sample_pdf_bytes):
        engine = TesseractOcrEngine(pdf_dpi=72)

        with patch(IMAGE_TO_STRING, side_effect=["Page one\n", "Page two\n"]) as ocr:
            text = await engine.recognize(sample_pdf_bytes)

        assert text == "Page one\n\nPage two"
        assert ocr.call_count == 2
        page = ocr.call_args_list[0].args[0]
        assert page.mode == "RGB"

    async def test_blank_pages_dropped(self, sample_pdf_bytes):
        engine = TesseractOcrEngine(pdf_dpi=72)

        with patch(IMAGE_TO_STRING, side_effect=["   \n", "Only page"]):
            assert await engine.recognize(sample_pdf_bytes) == "Only page"

    async def test_multi_frame_image_reads_every_frame(self):
        frames = [Image.new("RGB", (16, 16), c) for c in ("red", "blue")]
        buf = io.BytesIO()
        frames[0].save(buf, format="GIF", save_all=True, append_images=frames[1:])
        engine = TesseractOcrEngine()

        with patch(IMAGE_TO_STRING, side_effect=["A", "B"]) as ocr:
            text = await engine.recognize(buf.getvalue())

        assert text == "A\n\nB"
        assert ocr.call_count == 2

    async def test_no_text_returns_empty(self, sample_png_bytes):
        with patch(IMAGE_TO_STRING, return_value=""):
            assert await TesseractOcrEngine().recognize(sample_png_bytes) == ""

    async def test_empty_buffer_raises(self):
        with pytest.raises(OcrError, match="empty"):
            await TesseractOcrEngine().recognize(b"")

    async def test_corrupt_image_raises(self):
        with patch(IMAGE_TO_STRING) as ocr:
            with pytest.raises(OcrError, match="corrupt"):
                await TesseractOcrEngine().recognize(b"\x89PNG-truncated-garbage")
        ocr.assert_not_called()

    async def test_corrupt_pdf_raises(self):
        with pytest.raises(OcrError):
            await TesseractOcrEngine().recognize(b"%PDF-1.4 this is not really a pdf")

    async def test_tesseract_error_wrapped(self, sample_png_bytes):
        with patch(IMAGE_TO_STRING, side_effect=pytesseract.TesseractError(1, "bad lang")):
            with pytest.raises(OcrError, match="Tesseract failed") as exc_info:
                await TesseractOcrEngine().recognize(sample_png_bytes)
        assert isinstance(exc_info.value.__cause__, pytesseract.TesseractError)

    async def test_missing_binary_wrapped(self, sample_png_bytes):
        with patch(IMAGE_TO_STRING, side_effect=pytesseract.TesseractNotFoundError()):
            with pytest.raises(OcrError):
                await TesseractOcrEngine().recognize(sample_png_bytes)

    async def test_timeout_raises(self, sample_png_bytes):
        engine = TesseractOcrEngine(timeout_seconds=0.05)

        def _slow(_buffer):
            time.sleep(0.5)
            return "late"

        with patch.object(engine, "_recognize_sync", side_effect=_slow):
            with pytest.raises(OcrError, match="timed out"):
                await engine.recognize(sample_png_bytes)

    async def test_tesseract_process_timeout_wrapped(self, sample_png_bytes):
        engine = TesseractOcrEngine(timeout_seconds=5)

        with patch(IMAGE_TO_STRING, side_effect=RuntimeError("Tesseract process timeout")) as ocr:
            with pytest.raises(OcrError, match="timed out"):
                await engine.recognize(sample_png_bytes)
        assert ocr.call_args.kwargs["timeout"] == 5

    def test_timed_out_thread_not_joined_by_asyncio_run(self, sample_png_bytes):
        engine = TesseractOcrEngine(timeout_seconds=0.05)

        def _slow(_buffer):
            time.sleep(1.5)
            return "late"

        async def _run():
            with pytest.raises(OcrError, match="timed out"):
                await engine.recognize(sample_png_bytes)

        with patch.object(engine, "_recognize_sync", side_effect=_slow):
            t0 = time.monotonic()
            asyncio.run(_run())
            elapsed = time.monotonic() - t0

        assert elapsed < 1.0
