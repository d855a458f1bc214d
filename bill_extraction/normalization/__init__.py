"""
Normalization Module for the Bill Extraction Pipeline.

Provides:
    - TextNormalizer / normalize_text: canonical OCR text for matching
    - DateNormalizer: date strings -> ISO dates
    - AmountNormalizer: amount strings -> floats
"""

from .text_normalizer import TextNormalizer, normalize_text
from .normalizers import DateNormalizer, AmountNormalizer

__all__ = ['TextNormalizer', 'normalize_text', 'DateNormalizer', 'AmountNormalizer']
