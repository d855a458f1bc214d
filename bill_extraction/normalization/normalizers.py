"""
Value Normalizers Module.

Normalization of single field values:
    - Date strings -> ISO dates (YYYY-MM-DD)
    - Amount strings -> floats

Used by the date-phrase parser to resolve matched phrases and by the
AI fallback to clean up values returned by the language model.
"""

import math
import re
from datetime import datetime
from typing import Any, Optional

from dateutil import parser as date_parser

from config import get_config
from bill_extraction.utils.logger import get_logger

logger = get_logger(__name__)


class DateNormalizer:
    """
    Normalizes date strings to a standard format.

    Explicit formats are tried first, then dateutil's fuzzy parser
    (month-first, then day-first).

    Attributes:
        output_format: Target date format string
        input_formats: List of recognized input format strings

    Example:
        >>> normalizer = DateNormalizer()
        >>> normalizer.normalize("01/15/2026")
        "2026-01-15"
        >>> normalizer.normalize("January 15th, 2026")
        "2026-01-15"
    """

    DEFAULT_INPUT_FORMATS = [
        "%Y-%m-%d",
        "%m/%d/%Y",
        "%d/%m/%Y",
        "%m-%d-%Y",
        "%d-%m-%Y",
        "%d.%m.%Y",
        "%B %d %Y",
        "%b %d %Y",
        "%d %B %Y",
        "%d %b %Y",
    ]

    def __init__(self) -> None:
        self.output_format = get_config("normalization.date.output_format", "%Y-%m-%d")
        self.input_formats = get_config(
            "normalization.date.input_formats",
            self.DEFAULT_INPUT_FORMATS
        )

    def parse(self, date_str: str, default: Optional[datetime] = None) -> Optional[datetime]:
        """
        Parse a date string into a datetime.

        Args:
            date_str: Date string in any recognized format.
            default: Datetime supplying missing components (e.g. the year
                    of "january 15"). Explicit formats are skipped when
                    given, since they never leave components missing.

        Returns:
            Parsed datetime, or None if parsing fails.
        """
        if not date_str:
            return None

        date_str = self._clean_date_string(date_str)

        parsed = None
        if default is None:
            parsed = self._try_explicit_formats(date_str)
        if parsed is None:
            parsed = self._try_dateutil_parser(date_str, default)
        return parsed

    def normalize(self, date_str: Any) -> Optional[str]:
        """
        Normalize a date string to the configured output format.

        Args:
            date_str: Input date string in any recognized format.

        Returns:
            Normalized date string, or None if parsing fails.
        """
        if not isinstance(date_str, str):
            return None

        parsed = self.parse(date_str)
        if parsed is None:
            logger.debug(f"Could not parse date: {date_str}")
            return None
        return parsed.strftime(self.output_format)

    def _clean_date_string(self, date_str: str) -> str:
        # Remove extra whitespace and commas
        date_str = ' '.join(date_str.replace(',', ' ').split())

        # Remove ordinal suffixes (1st, 2nd, 3rd, 4th, etc.)
        date_str = re.sub(r'(\d+)(st|nd|rd|th)\b', r'\1', date_str, flags=re.IGNORECASE)

        return date_str.strip()

    def _try_explicit_formats(self, date_str: str) -> Optional[datetime]:
        for fmt in self.input_formats:
            try:
                return datetime.strptime(date_str, fmt)
            except ValueError:
                continue
        return None

    def _try_dateutil_parser(
        self,
        date_str: str,
        default: Optional[datetime] = None
    ) -> Optional[datetime]:
        try:
            return date_parser.parse(date_str, dayfirst=False, fuzzy=True, default=default)
        except (ValueError, OverflowError):
            try:
                return date_parser.parse(date_str, dayfirst=True, fuzzy=True, default=default)
            except (ValueError, OverflowError):
                return None


class AmountNormalizer:
    """
    Normalizes currency/amount strings to floats.

    Currency symbols, currency codes and any other non-numeric
    characters are stripped before conversion.

    Example:
        >>> normalizer = AmountNormalizer()
        >>> normalizer.to_float("$1,234.56")
        1234.56
        >>> normalizer.to_float("€ 1.234,56")
        1234.56
        >>> normalizer.to_float("n/a") is None
        True
    """

    CURRENCY_CODES = ['USD', 'EUR', 'GBP', 'JPY', 'INR', 'CAD', 'AUD', 'CNY']

    def to_float(self, amount: Any) -> Optional[float]:
        """
        Convert an amount value to float.

        Args:
            amount: Amount as number or string (e.g. "$45.00", "GBP 12").

        Returns:
            Float value, or None if it cannot be converted.
        """
        if amount is None or isinstance(amount, bool):
            return None
        if isinstance(amount, (int, float)):
            return self._finite(amount)

        amount_str = self._clean_amount_string(str(amount))
        if not amount_str:
            return None

        amount_str = self._handle_european_format(amount_str)
        amount_str = amount_str.replace(',', '')

        try:
            return self._finite(float(amount_str))
        except ValueError:
            logger.debug(f"Could not parse amount: {amount!r}")
            return None

    @staticmethod
    def _finite(amount: Any) -> Optional[float]:
        try:
            value = float(amount)
        except OverflowError:
            logger.debug("Amount out of float range")
            return None
        return value if math.isfinite(value) else None

    def _clean_amount_string(self, amount_str: str) -> str:
        for code in self.CURRENCY_CODES:
            amount_str = re.sub(rf'\b{code}\b', '', amount_str, flags=re.IGNORECASE)

        # Keep only digits, comma, dot and a leading minus
        negative = amount_str.strip().startswith('-')
        amount_str = re.sub(r'[^\d,.]', '', amount_str)
        if negative and amount_str:
            amount_str = '-' + amount_str
        return amount_str

    def _handle_european_format(self, amount_str: str) -> str:
        """Convert "1.234,56" style amounts to "1234.56"."""
        if amount_str.count(',') == 1:
            comma_pos = amount_str.rfind(',')
            dot_pos = amount_str.rfind('.')

            if comma_pos > dot_pos:
                after_comma = amount_str[comma_pos + 1:]
                if len(after_comma) <= 2 and after_comma.isdigit():
                    amount_str = amount_str.replace('.', '')
                    amount_str = amount_str.replace(',', '.')

        return amount_str
