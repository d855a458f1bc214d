"""
Heuristic Field Extraction Module.

Rule-based extraction of bill fields from normalized OCR text.

Features:
    - Amount, vendor and pay-date extractors with confidence scores
    - Date phrase parsing (dateutil based)
    - Vendor -> category classification
    - Confidence aggregation and fallback policy
"""

from .extraction_result import FieldEstimate, BillExtraction
from .date_phrases import DatePhrase, DatePhraseParser
from .extractors import AmountExtractor, VendorExtractor, DateExtractor, penalized_confidence
from .classifier import CategoryClassifier, UNKNOWN_CATEGORY
from .confidence import ConfidenceAggregator, ConfidenceAssessment

__all__ = [
    'FieldEstimate',
    'BillExtraction',
    'DatePhrase',
    'DatePhraseParser',
    'AmountExtractor',
    'VendorExtractor',
    'DateExtractor',
    'penalized_confidence',
    'CategoryClassifier',
    'UNKNOWN_CATEGORY',
    'ConfidenceAggregator',
    'ConfidenceAssessment',
]
