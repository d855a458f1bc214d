"""
Bill Extraction - Source Package.

Turns noisy OCR text of scanned bills and receipts into a structured
record (amount, vendor, category, pay date) with layered heuristics,
escalates unreliable documents to a language model, and learns
vendor -> category rules from the model's answers.

Modules:
    - ocr_engine: Tesseract backend and recognition worker pool
    - normalization: Text, date and amount normalization
    - field_extraction: Heuristic extractors, classifier, confidence policy
    - fallback: Language-model extraction and response parsing
    - knowledge: Vendor-category store, cache and rule updater
    - pipeline: End-to-end orchestration

Architecture:
    Recognition -> Normalization -> Heuristics -> Confidence
                                                      ↓
                                  AI fallback -> Rule updater -> Cache/Store
"""

__version__ = "1.0.0"

from .field_extraction import BillExtraction, FieldEstimate
from .pipeline import BillExtractionPipeline, DocumentOutcome, ExtractionTrace

__all__ = [
    'BillExtraction',
    'FieldEstimate',
    'BillExtractionPipeline',
    'DocumentOutcome',
    'ExtractionTrace',
]
