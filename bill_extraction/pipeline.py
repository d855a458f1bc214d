"""
Bill Extraction Pipeline Module.

Wires the components together:

    Scheduler -> Normalizer -> {Amount, Vendor, Date} extractors
              -> Classifier -> Confidence aggregator
              -> (accept | AI fallback -> rule updater) -> BillExtraction

Usage:
    from bill_extraction import BillExtractionPipeline

    pipeline = BillExtractionPipeline.from_config()
    record = pipeline.extract("Netflix $45.00 due 2026-02-01")
    print(record.to_json())

The public ``extract`` never raises for malformed or low-quality text.
Only recognition errors surface, and only from ``process_document`` for
the document that failed.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from config import get_config
from bill_extraction.field_extraction import (
    AmountExtractor,
    BillExtraction,
    CategoryClassifier,
    ConfidenceAggregator,
    DateExtractor,
    FieldEstimate,
    VendorExtractor,
)
from bill_extraction.fallback import AIFallbackExtractor
from bill_extraction.knowledge import (
    HeuristicRuleUpdater,
    VendorCategoryCache,
    create_store_from_config,
)
from bill_extraction.normalization import TextNormalizer
from bill_extraction.ocr_engine import RecognitionScheduler
from bill_extraction.utils.exceptions import OCREngineNotAvailableError
from bill_extraction.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ExtractionTrace:
    """
    Diagnostics for one processed document.

    Attributes:
        normalized_text: Text the heuristics ran on
        amount: Amount estimate
        vendor: Vendor estimate
        pay_date: Pay date estimate
        heuristic_category: Category picked by the classifier
        mean_confidence: Mean confidence of the found fields
        escalated: Whether the AI fallback was used
        reasons: Why the document was escalated
        heuristic: Record built from the heuristics alone
        result: Final record returned to the caller
        learned: Vendor -> category pairs learned from the fallback
    """
    normalized_text: str
    amount: FieldEstimate = field(default_factory=FieldEstimate.not_found)
    vendor: FieldEstimate = field(default_factory=FieldEstimate.not_found)
    pay_date: FieldEstimate = field(default_factory=FieldEstimate.not_found)
    heuristic_category: Optional[str] = None
    mean_confidence: float = 0.0
    escalated: bool = False
    reasons: List[str] = field(default_factory=list)
    heuristic: BillExtraction = field(default_factory=BillExtraction.empty)
    result: BillExtraction = field(default_factory=BillExtraction.empty)
    learned: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'normalized_text': self.normalized_text,
            'confidences': {
                'amount': self.amount.confidence,
                'vendor': self.vendor.confidence,
                'payDate': self.pay_date.confidence,
            },
            'mean_confidence': self.mean_confidence,
            'escalated': self.escalated,
            'reasons': list(self.reasons),
            'heuristic': self.heuristic.to_dict(),
            'result': self.result.to_dict(),
            'learned': dict(self.learned),
        }


@dataclass
class DocumentOutcome:
    """Result of one document in a batch: a record or the error it raised."""
    index: int
    result: Optional[BillExtraction] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BillExtractionPipeline:
    """
    End-to-end bill extraction.

    Attributes:
        cache: Shared vendor-category cache
        scheduler: OCR worker pool, required only for ``process_document``
        fallback_enabled: Whether low-confidence documents go to the AI
        fallback_input: "normalized" or "raw" text for the AI

    Example:
        >>> pipeline = BillExtractionPipeline(cache=VendorCategoryCache(store))
        >>> pipeline.extract("Netflix monthly $45.00 due 2026-02-01")
        BillExtraction(amount=45.0, vendor='Netflix', category='Subscriptions', pay_date='2026-02-01')
    """

    def __init__(
        self,
        cache: VendorCategoryCache,
        classifier: Optional[CategoryClassifier] = None,
        amount_extractor: Optional[AmountExtractor] = None,
        vendor_extractor: Optional[VendorExtractor] = None,
        date_extractor: Optional[DateExtractor] = None,
        aggregator: Optional[ConfidenceAggregator] = None,
        fallback: Optional[AIFallbackExtractor] = None,
        rule_updater: Optional[HeuristicRuleUpdater] = None,
        scheduler: Optional[RecognitionScheduler] = None,
        normalizer: Optional[TextNormalizer] = None,
        fallback_enabled: Optional[bool] = None,
        fallback_input: Optional[str] = None
    ) -> None:
        """
        Initialize the pipeline. Omitted components are built from configuration.

        Args:
            cache: Vendor-category cache shared by all documents.
            classifier: Category classifier.
            amount_extractor: Amount extractor.
            vendor_extractor: Vendor extractor.
            date_extractor: Date extractor.
            aggregator: Confidence aggregator and fallback policy.
            fallback: AI fallback extractor.
            rule_updater: Learns vendor rules from fallback results.
            scheduler: Recognition scheduler for raw documents.
            normalizer: Text normalizer.
            fallback_enabled: Escalate low-confidence documents to the AI.
            fallback_input: "normalized" or "raw".
        """
        self.cache = cache
        self.normalizer = normalizer or TextNormalizer()
        self.amount_extractor = amount_extractor or AmountExtractor()
        self.vendor_extractor = vendor_extractor or VendorExtractor(vendor_source=cache.get)
        self.date_extractor = date_extractor or DateExtractor()
        self.classifier = classifier or CategoryClassifier()
        self.aggregator = aggregator or ConfidenceAggregator()
        self.fallback = fallback or AIFallbackExtractor()
        self.rule_updater = rule_updater or HeuristicRuleUpdater(cache.store, cache)
        self.scheduler = scheduler

        self.fallback_enabled = fallback_enabled if fallback_enabled is not None else \
            get_config("fallback.enabled", True)
        self.fallback_input = fallback_input or get_config("fallback.input_text", "normalized")
        if self.fallback_input not in ("normalized", "raw"):
            logger.warning(f"Unknown fallback input '{self.fallback_input}', using normalized text")
            self.fallback_input = "normalized"

        logger.info(
            f"BillExtractionPipeline initialized (fallback={'on' if self.fallback_enabled else 'off'}, "
            f"threshold={self.aggregator.escalation_threshold})"
        )

    @classmethod
    def from_config(cls, with_scheduler: bool = False) -> "BillExtractionPipeline":
        """
        Build a pipeline entirely from configuration.

        Args:
            with_scheduler: Also start the OCR worker pool.

        Returns:
            Ready-to-use pipeline.
        """
        store = create_store_from_config()
        cache = VendorCategoryCache(store)
        scheduler = RecognitionScheduler() if with_scheduler else None
        return cls(cache=cache, scheduler=scheduler)

    def extract(self, document_text: Any) -> BillExtraction:
        """
        Extract bill fields from document text.

        Args:
            document_text: Raw (OCR) text of the document.

        Returns:
            The final BillExtraction. Never raises for bad input.
        """
        return self.extract_with_trace(document_text).result

    def extract_with_trace(self, document_text: Any) -> ExtractionTrace:
        """
        Extract bill fields and keep the intermediate results.

        Args:
            document_text: Raw (OCR) text of the document.

        Returns:
            ExtractionTrace whose ``result`` is the final record.
        """
        normalized = self.normalizer.normalize(document_text)
        if not normalized:
            logger.info("Document text is empty after normalization")
            return ExtractionTrace(normalized_text="")

        mapping = self.cache.get()

        amount = self.amount_extractor.extract(normalized)
        vendor = self.vendor_extractor.extract(normalized, mapping)
        pay_date = self.date_extractor.extract(normalized)
        category = self.classifier.classify(vendor.value, mapping)

        heuristic = BillExtraction(
            amount=amount.value,
            vendor=vendor.value,
            category=category,
            pay_date=pay_date.value
        )
        assessment = self.aggregator.assess(amount, vendor, pay_date)

        trace = ExtractionTrace(
            normalized_text=normalized,
            amount=amount,
            vendor=vendor,
            pay_date=pay_date,
            heuristic_category=category,
            mean_confidence=assessment.mean_confidence,
            escalated=False,
            reasons=list(assessment.reasons),
            heuristic=heuristic,
            result=heuristic,
        )

        logger.info(
            f"Heuristic confidence: amount={amount.confidence}, vendor={vendor.confidence}, "
            f"date={pay_date.confidence}, mean={assessment.mean_confidence:.1f}"
        )

        if not assessment.should_escalate:
            return trace

        if not self.fallback_enabled:
            logger.info(f"Low confidence ({'; '.join(assessment.reasons)}), fallback disabled")
            return trace

        logger.info(f"Escalating to AI fallback: {'; '.join(assessment.reasons)}")
        ai_input = document_text if self.fallback_input == "raw" else normalized
        ai_result = self.fallback.extract(ai_input)

        trace.escalated = True
        trace.result = ai_result
        trace.learned = self.rule_updater.update(heuristic, ai_result)
        return trace

    def process_document(self, data: bytes) -> BillExtraction:
        """
        Recognize a document image and extract its fields.

        Args:
            data: Raw document bytes.

        Returns:
            The final BillExtraction.

        Raises:
            RecognitionError: If OCR fails for this document.
        """
        if self.scheduler is None:
            raise OCREngineNotAvailableError("recognition scheduler", "pipeline was built without one")

        text = self.scheduler.recognize(data)
        return self.extract(text)

    def process_batch(
        self,
        documents: Sequence[bytes],
        max_concurrency: Optional[int] = None
    ) -> List[DocumentOutcome]:
        """
        Process several documents concurrently.

        One document's failure never affects the others.

        Args:
            documents: Raw document bytes.
            max_concurrency: Documents in flight at once. Defaults to the
                            scheduler pool size.

        Returns:
            One DocumentOutcome per document, in input order.
        """
        if not documents:
            return []

        if max_concurrency is None:
            max_concurrency = self.scheduler.pool_size if self.scheduler is not None else \
                get_config("recognition.pool_size", 3)
        max_concurrency = max(1, min(max_concurrency, len(documents)))

        def run(index: int, data: bytes) -> DocumentOutcome:
            try:
                return DocumentOutcome(index=index, result=self.process_document(data))
            except Exception as e:
                logger.error(f"Document {index} failed: {e}")
                return DocumentOutcome(index=index, error=e)

        with ThreadPoolExecutor(max_workers=max_concurrency, thread_name_prefix="bill-batch") as executor:
            outcomes = list(executor.map(run, range(len(documents)), documents))

        failed = sum(1 for outcome in outcomes if not outcome.ok)
        logger.info(f"Batch complete: {len(outcomes) - failed} succeeded, {failed} failed")
        return outcomes

    def close(self) -> None:
        """Release the scheduler, the cache and the store."""
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=True)
        self.cache.close()
        close_store = getattr(self.cache.store, "close", None)
        if close_store is not None:
            close_store()

    def __enter__(self) -> "BillExtractionPipeline":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
