"""
Extraction Result Data Classes.

Data structures produced by the extraction pipeline:

Classes:
    FieldEstimate: One heuristic field value with its confidence
    BillExtraction: The structured record returned for a document
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar('T')

# Wire names used when a record is serialized (bill upload endpoint, LLM replies)
WIRE_FIELDS = ('amount', 'vendor', 'category', 'payDate')


@dataclass(frozen=True)
class FieldEstimate(Generic[T]):
    """
    A heuristic estimate for a single field.

    ``value=None`` with ``confidence=0`` means "not found", which is a
    normal outcome and never an error.

    Attributes:
        value: Extracted value, or None
        confidence: Heuristic reliability score (0-100, not a probability)

    Example:
        >>> FieldEstimate(45.0, 100).found
        True
        >>> FieldEstimate.not_found()
        FieldEstimate(value=None, confidence=0)
    """
    value: Optional[T] = None
    confidence: int = 0

    def __post_init__(self):
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"confidence must be within 0..100, got {self.confidence}")

    @classmethod
    def not_found(cls) -> 'FieldEstimate':
        return cls(None, 0)

    @property
    def found(self) -> bool:
        return self.value is not None


@dataclass(frozen=True)
class BillExtraction:
    """
    Structured data extracted from one bill.

    Instances are immutable once returned by the pipeline.

    Attributes:
        amount: Total amount due
        vendor: Vendor / merchant name
        category: Spending category (e.g. "Utilities")
        pay_date: Payment due date as ISO string (YYYY-MM-DD)

    Example:
        >>> bill = BillExtraction(45.0, "Netflix", "Subscriptions", "2026-01-15")
        >>> bill.to_dict()["payDate"]
        '2026-01-15'
    """
    amount: Optional[float] = None
    vendor: Optional[str] = None
    category: Optional[str] = None
    pay_date: Optional[str] = None

    @classmethod
    def empty(cls) -> 'BillExtraction':
        """All-null record used whenever nothing could be extracted."""
        return cls()

    @property
    def is_empty(self) -> bool:
        return all(v is None for v in (self.amount, self.vendor, self.category, self.pay_date))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire format (``amount, vendor, category, payDate``)."""
        return {
            'amount': self.amount,
            'vendor': self.vendor,
            'category': self.category,
            'payDate': self.pay_date,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BillExtraction':
        """
        Create a BillExtraction from a wire-format dictionary.

        Values are taken as-is; use the fallback response parser for
        untrusted input.
        """
        return cls(
            amount=data.get('amount'),
            vendor=data.get('vendor'),
            category=data.get('category'),
            pay_date=data.get('payDate'),
        )

    def __repr__(self) -> str:
        return (
            f"BillExtraction("
            f"amount={self.amount}, "
            f"vendor={self.vendor!r}, "
            f"category={self.category!r}, "
            f"pay_date={self.pay_date!r})"
        )
