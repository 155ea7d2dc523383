"""
Extraction router factory.

Builds the concrete backends from settings. Workers and API dependencies
call this instead of constructing clients themselves.
"""

from __future__ import annotations

import logging

import aioboto3

from content_pipeline.core.config import Settings, settings as default_settings
from content_pipeline.processing.extractor import ExtractionRouter
from content_pipeline.processing.ocr import TesseractOcrEngine, TextractTextDetector
from content_pipeline.storage.s3 import S3BlobStore

logger = logging.getLogger(__name__)


def _aws_session(cfg: Settings) -> aioboto3.Session:
    """Static keys when both are configured; otherwise the default credential chain."""
    if cfg.aws_access_key_id and cfg.aws_secret_access_key:
        return aioboto3.Session(
            aws_access_key_id=cfg.aws_access_key_id,
            aws_secret_access_key=cfg.aws_secret_access_key,
            region_name=cfg.aws_region,
        )
    return aioboto3.Session(region_name=cfg.aws_region)


def get_extraction_router(cfg: Settings | None = None) -> ExtractionRouter:
    cfg = cfg or default_settings
    session = _aws_session(cfg)

    detector = TextractTextDetector(region=cfg.aws_region, session=session) if cfg.textract_enabled else None
    if detector is None:
        logger.info("Textract disabled — images use local OCR only")

    return ExtractionRouter(
        blob_store=S3BlobStore(region=cfg.aws_region, session=session),
        ocr_engine=TesseractOcrEngine(
            language=cfg.ocr_language,
            psm=cfg.ocr_psm,
            timeout_seconds=cfg.ocr_timeout_seconds,
            pdf_dpi=cfg.pdf_render_dpi,
        ),
        detector=detector,
    )
