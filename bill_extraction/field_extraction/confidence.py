"""
Confidence Aggregation Module.

Combines per-field confidences and decides whether the heuristic
result can be trusted or the document must go to the AI fallback.

Averaging rule: only fields that produced a value contribute a term.
An unmatched field is not counted as zero, so a missing field is not
penalized twice. Missing required fields (amount and vendor by default)
always escalate, whatever the average is.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from config import get_config
from bill_extraction.utils.logger import get_logger
from .extraction_result import FieldEstimate

logger = get_logger(__name__)


@dataclass(frozen=True)
class ConfidenceAssessment:
    """
    Outcome of the fallback policy for one document.

    Attributes:
        mean_confidence: Mean confidence of the fields that were found
        should_escalate: Whether the AI fallback must be used
        reasons: Human-readable reasons for escalating
    """
    mean_confidence: float
    should_escalate: bool
    reasons: List[str] = field(default_factory=list)


class ConfidenceAggregator:
    """
    Aggregates field confidences and applies the fallback policy.

    Example:
        >>> aggregator = ConfidenceAggregator(escalation_threshold=70)
        >>> assessment = aggregator.assess(
        ...     FieldEstimate(45.0, 100), FieldEstimate("Netflix", 100), FieldEstimate.not_found()
        ... )
        >>> assessment.mean_confidence, assessment.should_escalate
        (100.0, False)
    """

    def __init__(
        self,
        escalation_threshold: Optional[float] = None,
        required_fields: Optional[Iterable[str]] = None
    ) -> None:
        self.escalation_threshold = escalation_threshold if escalation_threshold is not None else \
            get_config("heuristics.confidence.escalation_threshold", 70)
        self.required_fields = list(
            required_fields if required_fields is not None
            else get_config("heuristics.confidence.required_fields", ["amount", "vendor"])
        )

    @staticmethod
    def mean_confidence(estimates: Iterable[FieldEstimate]) -> float:
        """
        Mean confidence of the estimates that found a value.

        Returns 0.0 when no estimate found anything.
        """
        scores = [e.confidence for e in estimates if e.found]
        if not scores:
            return 0.0
        return sum(scores) / len(scores)

    def assess(
        self,
        amount: FieldEstimate,
        vendor: FieldEstimate,
        pay_date: FieldEstimate
    ) -> ConfidenceAssessment:
        """
        Decide whether the heuristic result is trustworthy.

        Args:
            amount: Amount estimate.
            vendor: Vendor estimate.
            pay_date: Pay date estimate.

        Returns:
            ConfidenceAssessment with the mean and the decision.
        """
        fields = {'amount': amount, 'vendor': vendor, 'pay_date': pay_date}
        mean = self.mean_confidence(fields.values())

        reasons = []
        if mean < self.escalation_threshold:
            reasons.append(
                f"mean confidence {mean:.1f} below threshold {self.escalation_threshold}"
            )
        for name in self.required_fields:
            estimate = fields.get(name)
            if estimate is not None and not estimate.found:
                reasons.append(f"required field '{name}' not found")

        return ConfidenceAssessment(
            mean_confidence=mean,
            should_escalate=bool(reasons),
            reasons=reasons
        )
