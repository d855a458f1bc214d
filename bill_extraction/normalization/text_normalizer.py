"""
Text Normalizer Module.

Canonicalizes raw OCR text before the field extractors see it:
line breaks become spaces, characters outside the allow-list are
dropped, whitespace is collapsed and everything is lower-cased.

The normalizer never raises. Extractors cope with imperfect text but
not with missing text, so on any failure the lower-cased original is
returned instead.
"""

import re
from typing import Any

from bill_extraction.utils.exceptions import NormalizationError
from bill_extraction.utils.logger import get_logger

logger = get_logger(__name__)


class TextNormalizer:
    """
    Normalizes OCR output for heuristic matching.

    Allowed characters are ASCII letters and digits plus ``@ . : $ / -``.
    Thousands separators inside numbers ("1,234.56") are removed before
    the allow-list is applied so amounts survive as "1234.56".

    Example:
        >>> normalizer = TextNormalizer()
        >>> normalizer.normalize("NETFLIX\\r\\nTotal:  $1,234.56!")
        'netflix total: $1234.56'
    """

    ALLOWED_SYMBOLS = "@.:$/-"

    LINE_BREAKS = re.compile(r'\r\n|\r|\n|\u2028|\u2029|\x0b|\x0c')
    THOUSANDS_SEPARATOR = re.compile(r'(?<=\d),(?=\d{3}(?!\d))')
    DISALLOWED = re.compile(
        r'[^0-9A-Za-z ' + re.escape(ALLOWED_SYMBOLS) + r']'
    )

    def normalize(self, raw_text: Any) -> str:
        """
        Normalize raw OCR text.

        Args:
            raw_text: Text produced by the recognition engine.

        Returns:
            Normalized text. Never raises.
        """
        try:
            return self._normalize(raw_text)
        except Exception as e:
            logger.warning(f"Text normalization failed, using best-effort text: {e}")
            return self._best_effort(raw_text)

    def _normalize(self, raw_text: Any) -> str:
        if raw_text is None:
            return ""
        if not isinstance(raw_text, str):
            raise NormalizationError(
                f"expected str, got {type(raw_text).__name__}"
            )

        text = self.LINE_BREAKS.sub(' ', raw_text)
        text = self.THOUSANDS_SEPARATOR.sub('', text)
        text = self.DISALLOWED.sub(' ', text)
        text = ' '.join(text.split())
        return text.lower()

    @staticmethod
    def _best_effort(raw_text: Any) -> str:
        if not isinstance(raw_text, str):
            return ""
        return raw_text.lower()


_default_normalizer = TextNormalizer()


def normalize_text(raw_text: Any) -> str:
    """
    Normalize raw OCR text with the default normalizer.

    Example:
        >>> normalize_text("Due:\\n15 Jan 2026")
        'due: 15 jan 2026'
    """
    return _default_normalizer.normalize(raw_text)
