"""
Tesseract OCR Backend.

Turns the bytes of an image document into plain text using Tesseract
(pytesseract). Each recognition worker owns one backend instance.

Requirements:
    - Tesseract OCR installed on the system
    - pytesseract Python package
"""

import io
import time
from typing import Optional

import pytesseract
from PIL import Image, UnidentifiedImageError

from config import get_config
from bill_extraction.utils.logger import get_logger
from bill_extraction.utils.exceptions import OCREngineNotAvailableError, OCRProcessingError

logger = get_logger(__name__)


class TesseractBackend:
    """
    Tesseract OCR backend implementation.

    Attributes:
        language: Tesseract language code (e.g., "eng")
        psm: Page Segmentation Mode (1-13)
        oem: OCR Engine Mode (0-3)
        extra_config: Additional Tesseract configuration

    Example:
        >>> backend = TesseractBackend()
        >>> with open("bill.png", "rb") as f:
        ...     text = backend.recognize(f.read())
    """

    def __init__(
        self,
        language: Optional[str] = None,
        psm: Optional[int] = None,
        oem: Optional[int] = None,
        extra_config: Optional[str] = None
    ) -> None:
        """
        Initialize the Tesseract backend.

        Args:
            language: Tesseract language code. If None, uses configuration.
            psm: Page segmentation mode. If None, uses configuration.
            oem: OCR engine mode. If None, uses configuration.
            extra_config: Extra command line options for Tesseract.

        Raises:
            OCREngineNotAvailableError: If Tesseract cannot be run.
        """
        self.language = language or get_config("recognition.tesseract.lang", "eng")
        self.psm = psm if psm is not None else get_config("recognition.tesseract.psm", 3)
        self.oem = oem if oem is not None else get_config("recognition.tesseract.oem", 3)
        self.extra_config = extra_config if extra_config is not None else \
            get_config("recognition.tesseract.config", "")

        self._check_dependencies()

        logger.debug(
            f"TesseractBackend initialized (lang={self.language}, "
            f"psm={self.psm}, oem={self.oem})"
        )

    def _check_dependencies(self) -> None:
        """
        Check that the Tesseract binary is reachable.

        Raises:
            OCREngineNotAvailableError: If Tesseract is not installed.
        """
        try:
            version = pytesseract.get_tesseract_version()
            logger.debug(f"Tesseract version: {version}")
        except Exception as e:
            raise OCREngineNotAvailableError(
                "tesseract", f"not installed or not in PATH: {e}"
            )

    def _build_config(self) -> str:
        config_parts = [
            f"--psm {self.psm}",
            f"--oem {self.oem}"
        ]

        if self.extra_config:
            config_parts.append(self.extra_config)

        return ' '.join(config_parts)

    def recognize(self, data: bytes) -> str:
        """
        Recognize the text of an image document.

        Args:
            data: Raw bytes of an image file (PNG, JPEG, TIFF, ...).

        Returns:
            Recognized text, possibly empty.

        Raises:
            OCRProcessingError: If the bytes are not a readable image or
                Tesseract fails on this document.
        """
        start_time = time.time()

        try:
            image = Image.open(io.BytesIO(data))
            if image.mode != 'RGB':
                image = image.convert('RGB')
        except (UnidentifiedImageError, OSError, TypeError) as e:
            raise OCRProcessingError("image", f"unreadable image data: {e}")

        try:
            text = pytesseract.image_to_string(
                image,
                lang=self.language,
                config=self._build_config()
            )
        except pytesseract.TesseractError as e:
            raise OCRProcessingError("image", str(e))

        logger.info(
            f"OCR completed: {len(text)} characters ({time.time() - start_time:.2f}s)"
        )
        return text
