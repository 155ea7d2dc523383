"""
Document Processing Package
════════════════════════════

Turns a stored file into text.

Modules
───────
  ocr.py         Text recognition backends (Textract detector, Tesseract engine)
  preprocess.py  Image normalisation ahead of local OCR
  extractor.py   Content-type routing and the strategy fallback chain
  factory.py     Builds a router from settings

Design principles
─────────────────
  • Every component is stateless and dependency-injected.
  • Backends translate library errors into the pipeline error taxonomy.
  • Every step emits structured log lines.
"""

from content_pipeline.processing.extractor import (
    ExtractionRoute,
    ExtractionRouter,
    FallbackChain,
    route_for,
)
from content_pipeline.processing.ocr import OcrEngine, TextAnnotation, TextDetector
from content_pipeline.processing.preprocess import ImagePreprocessor

__all__ = [
    "ExtractionRoute",
    "ExtractionRouter",
    "FallbackChain",
    "route_for",
    "OcrEngine",
    "TextAnnotation",
    "TextDetector",
    "ImagePreprocessor",
]
