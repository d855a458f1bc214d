"""
Heuristic Rule Updater Module.

Closes the learning loop: after the AI fallback has produced a vendor
and a category, the pair is compared with what the heuristics found.
When they disagree, the AI pair is merged into the persistent
vendor-category map and mirrored into the cache, so the next heuristic
pass recognizes the vendor on its own.

Only vendor -> category knowledge is learned. Amount and date
divergences are logged for diagnostics and never persisted. Learning
is best-effort: persistence failures are logged, never raised.
"""

from typing import Dict, Optional

from bill_extraction.field_extraction.extraction_result import BillExtraction
from bill_extraction.utils.exceptions import RuleUpdatePersistenceError
from bill_extraction.utils.helpers import vendor_key
from bill_extraction.utils.logger import get_logger
from .cache import VendorCategoryCache
from .store import VendorCategoryStore

logger = get_logger(__name__)


class HeuristicRuleUpdater:
    """
    Reconciles heuristic and AI results and persists new vendor rules.

    Example:
        >>> updater = HeuristicRuleUpdater(store, cache)
        >>> updater.update(
        ...     heuristic=BillExtraction(45.0, None, "Unknown Category", None),
        ...     ai_result=BillExtraction(45.0, "EDF Energy", "Utilities", "2026-02-01"),
        ... )
        {'EDF Energy': 'Utilities'}
    """

    def __init__(
        self,
        store: VendorCategoryStore,
        cache: VendorCategoryCache,
        mapping_id: Optional[str] = None
    ) -> None:
        self.store = store
        self.cache = cache
        self.mapping_id = mapping_id or cache.mapping_id

    def update(self, heuristic: BillExtraction, ai_result: BillExtraction) -> Dict[str, str]:
        """
        Learn from an AI fallback result.

        Args:
            heuristic: Record produced by the heuristics.
            ai_result: Record produced by the AI fallback.

        Returns:
            The vendor -> category updates that were staged (empty when
            nothing was learned).
        """
        self._log_divergences(heuristic, ai_result)

        if not ai_result.vendor or not ai_result.category:
            logger.debug("AI result lacks vendor or category, nothing to learn")
            return {}

        if heuristic.vendor and vendor_key(heuristic.vendor) == vendor_key(ai_result.vendor):
            return {}

        logger.info(
            f"Vendor mismatch. Heuristic: {heuristic.vendor!r}, AI: {ai_result.vendor!r}"
        )
        updates = {ai_result.vendor: ai_result.category}

        try:
            self._persist(updates)
        except RuleUpdatePersistenceError as e:
            logger.error(f"Failed to update heuristic rules: {e}")

        self.cache.merge(updates)
        logger.info(f"Learned vendor-category mapping: {updates}")
        return updates

    def _persist(self, updates: Dict[str, str]) -> None:
        try:
            self.store.merge(self.mapping_id, updates)
        except Exception as e:
            raise RuleUpdatePersistenceError(updates, str(e))

    @staticmethod
    def _log_divergences(heuristic: BillExtraction, ai_result: BillExtraction) -> None:
        if heuristic.amount != ai_result.amount:
            logger.info(
                f"Amount mismatch. Heuristic: {heuristic.amount!r}, AI: {ai_result.amount!r}"
            )
        if heuristic.pay_date != ai_result.pay_date:
            logger.info(
                f"PayDate mismatch. Heuristic: {heuristic.pay_date!r}, AI: {ai_result.pay_date!r}"
            )
