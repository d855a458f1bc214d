"""
Heuristic Field Extractors Module.

Independent rule-based extractors for the amount, vendor and pay
date of a bill. Each one works on normalized text and returns a
``FieldEstimate``.

Confidence follows one pattern everywhere: a single match scores
the initial confidence (100), and every additional match subtracts a
per-field penalty, floored at 0. Several plausible candidates mean
the heuristic could not tell which one is right.

Extractors never raise: any internal failure is logged and reported
as ``FieldEstimate.not_found()``.
"""

import re
from typing import Callable, Iterable, List, Mapping, Optional, Protocol, Sequence

from config import get_config
from bill_extraction.normalization.normalizers import AmountNormalizer
from bill_extraction.normalization.text_normalizer import normalize_text
from bill_extraction.utils.exceptions import ExtractorError
from bill_extraction.utils.logger import get_logger
from .date_phrases import DatePhrase, DatePhraseParser
from .extraction_result import FieldEstimate

logger = get_logger(__name__)

DEFAULT_VENDORS = [
    "Netflix", "Amazon", "British Gas", "Virgin Media",
    "Spotify", "Apple", "Verizon", "AT&T",
]


def penalized_confidence(match_count: int, initial: int, penalty: int) -> int:
    """
    Confidence for a field that produced ``match_count`` candidates.

    Example:
        >>> penalized_confidence(1, 100, 20)
        100
        >>> penalized_confidence(3, 100, 20)
        60
        >>> penalized_confidence(9, 100, 20)
        0
    """
    if match_count <= 0:
        return 0
    return max(initial - (match_count - 1) * penalty, 0)


class DateParser(Protocol):
    """Contract of the date-phrase parser collaborator."""

    def parse(self, text: str) -> Sequence[DatePhrase]:
        ...


class AmountExtractor:
    """
    Finds currency-like tokens and picks the last one.

    A token is an optional currency symbol, 1-3 leading digits, optional
    thousands groups and an optional two-decimal fraction. To count as
    currency-like it needs a symbol or a fraction, so day numbers, years
    and account numbers are not amounts. Totals usually follow the line
    items, hence the last match wins.

    Example:
        >>> extractor = AmountExtractor()
        >>> extractor.extract("subtotal 40.00 vat 5.00 total $45.00")
        FieldEstimate(value=45.0, confidence=60)
    """

    AMOUNT_PATTERN = re.compile(
        r'(?<![\w.,/\-$£€])'
        r'(?:[$£€]\d{1,3}(?:,?\d{3})*(?:\.\d{2})?'
        r'|\d{1,3}(?:,?\d{3})*\.\d{2})'
        r'(?![\w,/:\-]|\.\d)'
    )

    def __init__(
        self,
        initial_confidence: Optional[int] = None,
        penalty: Optional[int] = None
    ) -> None:
        self.initial_confidence = initial_confidence if initial_confidence is not None else \
            get_config("heuristics.amount.initial_confidence", 100)
        self.penalty = penalty if penalty is not None else \
            get_config("heuristics.amount.penalty_per_extra_match", 20)
        self.amount_normalizer = AmountNormalizer()

    def find_candidates(self, text: str) -> List[str]:
        """Return all currency-like tokens in document order."""
        return self.AMOUNT_PATTERN.findall(text or "")

    def extract(self, text: str) -> FieldEstimate:
        try:
            candidates = self.find_candidates(text)
            if not candidates:
                return FieldEstimate.not_found()

            value = self.amount_normalizer.to_float(candidates[-1])
            if value is None:
                raise ExtractorError("amount", f"unconvertible token {candidates[-1]!r}")

            confidence = penalized_confidence(
                len(candidates), self.initial_confidence, self.penalty
            )
            logger.debug(f"Amount candidates: {candidates} -> {value} ({confidence})")
            return FieldEstimate(value, confidence)

        except Exception as e:
            logger.warning(f"Amount extraction failed: {e}")
            return FieldEstimate.not_found()


class VendorExtractor:
    """
    Matches known vendor names inside the text.

    The known vendors are the keys of the cached vendor-category map;
    when that map is empty a built-in list is used instead. Matching is
    a case-insensitive substring search on normalized names, and the
    first vendor in list order wins.

    Example:
        >>> extractor = VendorExtractor(vendor_source=lambda: {"Netflix": "Subscriptions"})
        >>> extractor.extract("netflix monthly plan")
        FieldEstimate(value='Netflix', confidence=100)
    """

    def __init__(
        self,
        vendor_source: Optional[Callable[[], Mapping[str, str]]] = None,
        default_vendors: Optional[Iterable[str]] = None,
        initial_confidence: Optional[int] = None,
        penalty: Optional[int] = None
    ) -> None:
        """
        Initialize the vendor extractor.

        Args:
            vendor_source: Callable returning the current vendor-category
                          map (usually ``VendorCategoryCache.get``).
            default_vendors: Vendors used when the map is empty.
            initial_confidence: Confidence of a single match.
            penalty: Confidence lost per additional match.
        """
        self.vendor_source = vendor_source
        self.default_vendors = list(
            default_vendors if default_vendors is not None
            else get_config("heuristics.vendor.default_vendors", DEFAULT_VENDORS)
        )
        self.initial_confidence = initial_confidence if initial_confidence is not None else \
            get_config("heuristics.vendor.initial_confidence", 100)
        self.penalty = penalty if penalty is not None else \
            get_config("heuristics.vendor.penalty_per_extra_match", 30)

    def known_vendors(self, mapping: Optional[Mapping[str, str]] = None) -> List[str]:
        """Vendor names to search for, in priority order."""
        if mapping is None and self.vendor_source is not None:
            mapping = self.vendor_source()
        if mapping:
            return list(mapping.keys())
        return list(self.default_vendors)

    def extract(self, text: str, mapping: Optional[Mapping[str, str]] = None) -> FieldEstimate:
        """
        Extract the vendor from normalized text.

        Args:
            text: Normalized document text.
            mapping: Vendor-category snapshot to take vendor names from.
                    When omitted, ``vendor_source`` is consulted.
        """
        try:
            if not text:
                return FieldEstimate.not_found()

            matches = []
            for vendor in self.known_vendors(mapping):
                needle = normalize_text(vendor)
                if needle and needle in text:
                    matches.append(vendor)

            if not matches:
                return FieldEstimate.not_found()

            if len(matches) > 1:
                logger.debug(f"Ambiguous vendor match: {matches}")

            confidence = penalized_confidence(
                len(matches), self.initial_confidence, self.penalty
            )
            return FieldEstimate(matches[0], confidence)

        except Exception as e:
            logger.warning(f"Vendor extraction failed: {e}")
            return FieldEstimate.not_found()


class DateExtractor:
    """
    Extracts the pay date through a date-phrase parser.

    The first phrase in the text is the value, formatted with the
    configured output format (ISO by default).

    Example:
        >>> extractor = DateExtractor()
        >>> extractor.extract("payment due 2026-02-01")
        FieldEstimate(value='2026-02-01', confidence=100)
    """

    def __init__(
        self,
        parser: Optional[DateParser] = None,
        initial_confidence: Optional[int] = None,
        penalty: Optional[int] = None,
        output_format: Optional[str] = None
    ) -> None:
        self.parser = parser or DatePhraseParser()
        self.initial_confidence = initial_confidence if initial_confidence is not None else \
            get_config("heuristics.date.initial_confidence", 100)
        self.penalty = penalty if penalty is not None else \
            get_config("heuristics.date.penalty_per_extra_match", 30)
        self.output_format = output_format or get_config("heuristics.date.output_format", "%Y-%m-%d")

    def extract(self, text: str) -> FieldEstimate:
        try:
            phrases = list(self.parser.parse(text or ""))
            if not phrases:
                return FieldEstimate.not_found()

            value = phrases[0].date.strftime(self.output_format)
            confidence = penalized_confidence(
                len(phrases), self.initial_confidence, self.penalty
            )
            logger.debug(f"Date phrases: {[p.text for p in phrases]} -> {value} ({confidence})")
            return FieldEstimate(value, confidence)

        except Exception as e:
            logger.warning(f"Date extraction failed: {e}")
            return FieldEstimate.not_found()
