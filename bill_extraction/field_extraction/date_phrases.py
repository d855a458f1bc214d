"""
Date Phrase Parser Module.

Finds date phrases in free text and resolves them to calendar dates.
The date extractor only depends on the ``parse(text)`` contract, so any
other phrase parser with the same shape can be plugged in.

Recognized phrases:
    - ISO dates:               2026-01-15
    - Numeric dates:           01/15/2026, 15.01.2026, 1-15-26
    - Month-name dates:        january 15 2026, 15th jan 2026
    - Month-name without year: jan 15 (year from the reference date)
    - Relative words:          today, tomorrow, yesterday
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Pattern, Tuple

from bill_extraction.normalization.normalizers import DateNormalizer
from bill_extraction.utils.logger import get_logger

logger = get_logger(__name__)

_MONTH = (
    r'(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|'
    r'aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)'
)
_DAY = r'\d{1,2}(?:st|nd|rd|th)?'

RELATIVE_OFFSETS = {
    'yesterday': -1,
    'today': 0,
    'tomorrow': 1,
}


@dataclass(frozen=True)
class DatePhrase:
    """
    A date phrase found in text.

    Attributes:
        text: The matched phrase
        start: Character offset of the phrase in the searched text
        date: Resolved calendar date
    """
    text: str
    start: int
    date: date

    @property
    def end(self) -> int:
        return self.start + len(self.text)


class DatePhraseParser:
    """
    Regex + dateutil based date phrase finder.

    Patterns are tried from most to least specific; a later pattern
    never claims text already covered by an earlier match. Phrases
    that cannot be resolved to a real date ("13/45/2026") are skipped.

    Example:
        >>> parser = DatePhraseParser(reference=lambda: datetime(2026, 1, 1))
        >>> [p.date.isoformat() for p in parser.parse("due jan 15 paid 2025-12-20")]
        ['2026-01-15', '2025-12-20']
    """

    PATTERNS: List[Tuple[str, Pattern]] = [
        ('iso', re.compile(r'(?<![\d/.\-])\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2}(?![\d/\-]|\.\d)')),
        ('numeric', re.compile(r'(?<![\d/.\-])\d{1,2}[/\-.]\d{1,2}[/\-.](?:\d{4}|\d{2})(?![\d/\-]|\.\d)')),
        ('month_day_year', re.compile(rf'\b{_MONTH}\.?\s+{_DAY},?\s+\d{{4}}\b', re.IGNORECASE)),
        ('day_month_year', re.compile(rf'\b{_DAY}\s+(?:of\s+)?{_MONTH}\.?,?\s+\d{{4}}\b', re.IGNORECASE)),
        ('month_day', re.compile(rf'\b{_MONTH}\.?\s+{_DAY}\b', re.IGNORECASE)),
        ('day_month', re.compile(rf'\b{_DAY}\s+(?:of\s+)?{_MONTH}\b', re.IGNORECASE)),
        ('relative', re.compile(r'\b(?:today|tomorrow|yesterday)\b', re.IGNORECASE)),
    ]

    def __init__(self, reference: Optional[Callable[[], datetime]] = None) -> None:
        """
        Initialize the parser.

        Args:
            reference: Callable returning the reference datetime used for
                      relative words and phrases without a year.
                      Defaults to ``datetime.now``.
        """
        self.reference = reference or datetime.now
        self.date_normalizer = DateNormalizer()

    def parse(self, text: str) -> List[DatePhrase]:
        """
        Find all resolvable date phrases in text.

        Args:
            text: Text to search.

        Returns:
            Date phrases ordered by their position in the text. Empty if
            nothing matched.
        """
        if not text:
            return []

        reference = self.reference()
        claimed: List[Tuple[int, int]] = []
        phrases: List[DatePhrase] = []

        for kind, pattern in self.PATTERNS:
            for match in pattern.finditer(text):
                span = match.span()
                if any(span[0] < end and start < span[1] for start, end in claimed):
                    continue

                resolved = self._resolve(kind, match.group(0), reference)
                if resolved is None:
                    logger.debug(f"Skipping unresolvable date phrase: {match.group(0)!r}")
                    continue

                claimed.append(span)
                phrases.append(DatePhrase(match.group(0), span[0], resolved))

        phrases.sort(key=lambda p: p.start)
        return phrases

    def _resolve(self, kind: str, phrase: str, reference: datetime) -> Optional[date]:
        if kind == 'relative':
            return (reference + timedelta(days=RELATIVE_OFFSETS[phrase.lower()])).date()

        cleaned = re.sub(r'\bof\b', ' ', phrase, flags=re.IGNORECASE)
        if kind in ('month_day', 'day_month'):
            default = reference.replace(hour=0, minute=0, second=0, microsecond=0)
            parsed = self.date_normalizer.parse(cleaned, default=default)
        else:
            parsed = self.date_normalizer.parse(cleaned)

        return parsed.date() if parsed else None
