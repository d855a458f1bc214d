"""
Custom Exceptions Module.

All exceptions raised inside the bill extraction pipeline. Most of
them never reach the caller of ``BillExtractionPipeline.extract``:
extractors, the AI fallback and the knowledge cache recover locally
and degrade to empty values. Only recognition errors surface, and
only to the caller that owns the failing document.

Exception Hierarchy:
    BillExtractionError (base)
    ├── RecognitionError
    │   ├── OCREngineNotAvailableError
    │   ├── OCRProcessingError
    │   ├── RecognitionFailure
    │   └── SchedulerShutdownError
    ├── NormalizationError
    ├── ExtractorError
    ├── FallbackError
    │   └── FallbackParseError
    └── KnowledgeError
        ├── StoreError
        ├── CacheRefreshError
        └── RuleUpdatePersistenceError
"""


class BillExtractionError(Exception):
    """
    Base exception for all bill extraction errors.

    Attributes:
        message: Human-readable error message.
        details: Optional dictionary with additional error details.
    """

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# RECOGNITION ERRORS
# =============================================================================

class RecognitionError(BillExtractionError):
    """Base exception for OCR recognition errors."""
    pass


class OCREngineNotAvailableError(RecognitionError):
    """Raised when the OCR engine cannot be used at all."""

    def __init__(self, engine_name: str, reason: str = None):
        message = f"OCR engine not available: {engine_name}"
        details = {"engine": engine_name, "reason": reason}
        super().__init__(message, details)


class OCRProcessingError(RecognitionError):
    """Raised when a document cannot be recognized (unreadable image)."""

    def __init__(self, source: str, reason: str = None):
        message = f"OCR processing failed for: {source}"
        details = {"source": source, "reason": reason}
        super().__init__(message, details)


class RecognitionFailure(RecognitionError):
    """Raised when an OCR worker crashes while handling a job."""

    def __init__(self, worker_name: str, reason: str = None):
        message = f"OCR worker crashed: {worker_name}"
        details = {"worker": worker_name, "reason": reason}
        super().__init__(message, details)


class SchedulerShutdownError(RecognitionError):
    """Raised when a job is submitted to a scheduler that was shut down."""

    def __init__(self):
        super().__init__("Recognition scheduler has been shut down")


# =============================================================================
# HEURISTIC ERRORS
# =============================================================================

class NormalizationError(BillExtractionError):
    """Raised when raw OCR text cannot be normalized."""

    def __init__(self, reason: str = None):
        super().__init__("Text normalization failed", {"reason": reason})


class ExtractorError(BillExtractionError):
    """Raised when a field extractor fails on its input."""

    def __init__(self, field: str, reason: str = None):
        message = f"Extraction failed for field '{field}'"
        details = {"field": field, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# FALLBACK ERRORS
# =============================================================================

class FallbackError(BillExtractionError):
    """Base exception for language-model fallback errors."""
    pass


class FallbackParseError(FallbackError):
    """Raised when a language-model reply cannot be turned into fields."""

    def __init__(self, reason: str, raw_text: str = None):
        message = "Could not parse language-model response"
        preview = raw_text[:200] if raw_text else raw_text
        details = {"reason": reason, "response_preview": preview}
        super().__init__(message, details)


# =============================================================================
# KNOWLEDGE ERRORS
# =============================================================================

class KnowledgeError(BillExtractionError):
    """Base exception for vendor-category knowledge errors."""
    pass


class StoreError(KnowledgeError):
    """Raised when the persistent vendor-category store fails."""

    def __init__(self, operation: str, reason: str = None):
        message = f"Vendor-category store operation failed: {operation}"
        details = {"operation": operation, "reason": reason}
        super().__init__(message, details)


class CacheRefreshError(KnowledgeError):
    """Raised when the cache cannot refresh its snapshot from the store."""

    def __init__(self, mapping_id: str, reason: str = None):
        message = f"Could not refresh vendor-category cache: {mapping_id}"
        details = {"mapping_id": mapping_id, "reason": reason}
        super().__init__(message, details)


class RuleUpdatePersistenceError(KnowledgeError):
    """Raised when learned vendor-category rules cannot be persisted."""

    def __init__(self, updates: dict, reason: str = None):
        message = "Failed to persist learned vendor-category rules"
        details = {"updates": updates, "reason": reason}
        super().__init__(message, details)


__all__ = [
    'BillExtractionError',
    'RecognitionError',
    'OCREngineNotAvailableError',
    'OCRProcessingError',
    'RecognitionFailure',
    'SchedulerShutdownError',
    'NormalizationError',
    'ExtractorError',
    'FallbackError',
    'FallbackParseError',
    'KnowledgeError',
    'StoreError',
    'CacheRefreshError',
    'RuleUpdatePersistenceError',
]
