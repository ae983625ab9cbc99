"""
Offline CAPTCHA solver: Pillow pre-processing + Tesseract OCR
"""

import asyncio
import time
from io import BytesIO
from typing import Optional

import pytesseract
from PIL import Image, ImageEnhance, ImageOps

from crawler.solvers.base import CaptchaSolver, CAPTCHA_ALPHABET, normalize_answer
from core.exceptions import SolverError
import logging

logger = logging.getLogger(__name__)

# Single text line, restricted to the CAPTCHA alphabet
TESSERACT_CONFIG = f"--psm 7 -c tessedit_char_whitelist={CAPTCHA_ALPHABET}"


def preprocess(image: Image.Image, threshold: int = 200) -> Image.Image:
    """Greyscale, boost contrast, brighten slightly, binarize to drop noise lines."""
    grey = ImageOps.grayscale(image)
    grey = ImageEnhance.Contrast(grey).enhance(2.0)
    grey = ImageEnhance.Brightness(grey).enhance(1.1)
    return grey.point(lambda p: 255 if p > threshold else 0)


class TesseractCaptchaSolver(CaptchaSolver):
    """Free and fast, less accurate than the hosted model."""

    engine = "tesseract"

    def __init__(self, tesseract_cmd: Optional[str] = None, threshold: int = 200):
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self.threshold = threshold

    def _recognize(self, image: bytes) -> str:
        with Image.open(BytesIO(image)) as img:
            processed = preprocess(img, self.threshold)
            return pytesseract.image_to_string(processed, config=TESSERACT_CONFIG)

    async def solve(self, image: bytes) -> Optional[str]:
        start = time.monotonic()
        logger.info("[OCR] Capturing and processing image...")

        loop = asyncio.get_running_loop()
        try:
            text = await loop.run_in_executor(None, self._recognize, image)
        except (pytesseract.TesseractError, OSError) as e:
            raise SolverError(
                "Tesseract recognition failed",
                context={"engine": self.engine},
                original_exception=e
            )

        prediction = normalize_answer(text)
        logger.info(f"[OCR] Predicted: {prediction} (Time: {(time.monotonic() - start) * 1000:.0f}ms)")
        return prediction or None
