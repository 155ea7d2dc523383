"""
Image preprocessing ahead of local OCR.

Tesseract is noticeably more accurate on high-contrast greyscale input, so
every image routed to the local engine goes through the same three steps:

  1. greyscale                 ImageOps.grayscale
  2. contrast normalisation    ImageOps.autocontrast (stretch to full 0–255)
  3. sharpening                ImageFilter.SHARPEN

The result is re-encoded as PNG (lossless). Only the first frame of a
multi-frame image is kept.
"""

from __future__ import annotations

import io
import logging

from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError

from content_pipeline.core.errors import PreprocessingError

logger = logging.getLogger(__name__)


class ImagePreprocessor:

    def process(self, image_bytes: bytes) -> bytes:
        """
        Normalise an encoded image for OCR.

        Raises:
            PreprocessingError: the buffer is not a decodable image.
        """
        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                img.load()
                grey  = ImageOps.grayscale(img)
                norm  = ImageOps.autocontrast(grey)
                sharp = norm.filter(ImageFilter.SHARPEN)

                out = io.BytesIO()
                sharp.save(out, format="PNG")
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise PreprocessingError(f"Image preprocessing failed: {exc}") from exc

        processed = out.getvalue()
        logger.debug(
            "Preprocessed image | in_bytes=%d out_bytes=%d size=%s",
            len(image_bytes), len(processed), sharp.size,
        )
        return processed
