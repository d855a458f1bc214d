"""
Category Classifier Module.

Resolves a vendor to a spending category: first through the learned
vendor-category map, then through a small built-in table.
"""

from typing import Dict, List, Mapping, Optional

from config import get_config
from bill_extraction.utils.helpers import vendor_key
from bill_extraction.utils.logger import get_logger

logger = get_logger(__name__)

UNKNOWN_CATEGORY = "Unknown Category"

DEFAULT_FALLBACK_TABLE = {
    "Utilities": ["British Gas", "Verizon", "AT&T"],
    "Subscriptions": ["Netflix", "Spotify", "Amazon"],
    "Insurance": ["Axa", "Geico", "Allstate"],
}


class CategoryClassifier:
    """
    Vendor -> category classifier.

    Lookups are case-insensitive. The classifier never raises; anything
    it cannot resolve is reported as the unknown label.

    Example:
        >>> classifier = CategoryClassifier()
        >>> classifier.classify("NETFLIX", {})
        'Subscriptions'
        >>> classifier.classify("EDF", {"edf": "Utilities"})
        'Utilities'
        >>> classifier.classify(None, {})
        'Unknown Category'
    """

    def __init__(
        self,
        fallback_table: Optional[Mapping[str, List[str]]] = None,
        unknown_label: Optional[str] = None
    ) -> None:
        table = fallback_table if fallback_table is not None else \
            get_config("heuristics.category.fallback_table", DEFAULT_FALLBACK_TABLE)
        self.unknown_label = unknown_label or \
            get_config("heuristics.category.unknown_label", UNKNOWN_CATEGORY)

        # Invert to vendor -> category; the first category listing a vendor wins
        self._fallback: Dict[str, str] = {}
        for category, vendors in table.items():
            for vendor in vendors:
                self._fallback.setdefault(vendor_key(vendor), category)

    def classify(self, vendor: Optional[str], mapping: Optional[Mapping[str, str]] = None) -> str:
        """
        Classify a vendor.

        Args:
            vendor: Vendor name, or None when no vendor was found.
            mapping: Learned vendor-category snapshot.

        Returns:
            Category name, or the unknown label.
        """
        if vendor is None:
            return self.unknown_label

        try:
            key = vendor_key(vendor)

            for known_vendor, category in (mapping or {}).items():
                if vendor_key(known_vendor) == key:
                    return category

            return self._fallback.get(key, self.unknown_label)

        except Exception as e:
            logger.warning(f"Unable to categorise vendor {vendor!r}: {e}")
            return self.unknown_label
