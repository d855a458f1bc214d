"""
Language-Model Response Parser.

Turns the free-form reply of the language model into a tagged
result: ``ParsedFields`` when a JSON object with exactly the expected
keys was found, ``MalformedResponse`` otherwise. Nothing in the reply
is trusted before the four keys have been validated.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from bill_extraction.field_extraction.extraction_result import BillExtraction, WIRE_FIELDS
from bill_extraction.normalization.normalizers import AmountNormalizer, DateNormalizer
from bill_extraction.utils.exceptions import FallbackParseError
from bill_extraction.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ParsedFields:
    """Validated and cleaned fields from a language-model reply."""
    amount: Optional[float]
    vendor: Optional[str]
    category: Optional[str]
    pay_date: Optional[str]

    def to_extraction(self) -> BillExtraction:
        return BillExtraction(
            amount=self.amount,
            vendor=self.vendor,
            category=self.category,
            pay_date=self.pay_date,
        )


@dataclass(frozen=True)
class MalformedResponse:
    """A reply that could not be trusted, with the reason why."""
    reason: str
    raw_text: Optional[str] = None

    def to_extraction(self) -> BillExtraction:
        return BillExtraction.empty()


ParseResult = Union[ParsedFields, MalformedResponse]


class ResponseParser:
    """
    Parser for the language model's JSON replies.

    The reply may wrap the JSON object in prose or markdown fences; the
    first balanced ``{...}`` block that decodes to an object is used.

    Example:
        >>> parser = ResponseParser()
        >>> parser.parse('Sure! {"amount": "$45.00", "vendor": "Netflix", '
        ...              '"category": "Subscriptions", "payDate": "2026-01-15"}')
        ParsedFields(amount=45.0, vendor='Netflix', category='Subscriptions', pay_date='2026-01-15')
        >>> parser.parse("I cannot read this bill.")
        MalformedResponse(reason='no JSON object found in response', raw_text='I cannot read this bill.')
    """

    REQUIRED_KEYS = WIRE_FIELDS

    def __init__(self) -> None:
        self.amount_normalizer = AmountNormalizer()
        self.date_normalizer = DateNormalizer()

    def parse(self, raw_text: Optional[str]) -> ParseResult:
        """
        Parse a reply into a tagged result.

        Args:
            raw_text: Text returned by the model (may be None or empty).

        Returns:
            ParsedFields or MalformedResponse. Never raises.
        """
        try:
            data = self._load_object(raw_text)
            self._validate_keys(data)
        except FallbackParseError as e:
            logger.warning(f"Discarding language-model response: {e.details['reason']}")
            return MalformedResponse(e.details['reason'], raw_text)

        return ParsedFields(
            amount=self.amount_normalizer.to_float(data['amount']),
            vendor=self._clean_text(data['vendor']),
            category=self._clean_text(data['category']),
            pay_date=self.date_normalizer.normalize(data['payDate']),
        )

    def _load_object(self, raw_text: Optional[str]) -> Dict[str, Any]:
        if not isinstance(raw_text, str) or not raw_text.strip():
            raise FallbackParseError("empty response", raw_text)

        try:
            data = json.loads(raw_text)
        except ValueError:
            data = self._scavenge_json(raw_text)
            if data is None:
                raise FallbackParseError("no JSON object found in response", raw_text)

        if not isinstance(data, dict):
            raise FallbackParseError(
                f"expected a JSON object, got {type(data).__name__}", raw_text
            )
        return data

    def _validate_keys(self, data: Dict[str, Any]) -> None:
        missing = [key for key in self.REQUIRED_KEYS if key not in data]
        if missing:
            raise FallbackParseError(f"missing keys: {', '.join(missing)}")

    @staticmethod
    def _scavenge_json(text: str) -> Optional[Dict[str, Any]]:
        """Decode the first balanced {...} block of ``text`` that is a JSON object."""
        start = text.find('{')
        while start != -1:
            depth = 0
            in_string = False
            escaped = False

            for pos in range(start, len(text)):
                char = text[pos]
                if in_string:
                    if escaped:
                        escaped = False
                    elif char == '\\':
                        escaped = True
                    elif char == '"':
                        in_string = False
                elif char == '"':
                    in_string = True
                elif char == '{':
                    depth += 1
                elif char == '}':
                    depth -= 1
                    if depth == 0:
                        try:
                            candidate = json.loads(text[start:pos + 1])
                        except ValueError:
                            break
                        if isinstance(candidate, dict):
                            return candidate
                        break

            start = text.find('{', start + 1)

        return None

    @staticmethod
    def _clean_text(value: Any) -> Optional[str]:
        if value is None or isinstance(value, (dict, list)):
            return None
        cleaned = ' '.join(str(value).split())
        return cleaned or None
