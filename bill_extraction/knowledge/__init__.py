"""
Vendor-Category Knowledge Module.

The adaptive part of the pipeline:
    - VendorCategoryStore backends (SQLite, in-memory)
    - VendorCategoryCache: TTL snapshot shared by all documents
    - HeuristicRuleUpdater: learns vendor -> category pairs from the AI fallback
"""

from .store import (
    VendorCategoryStore,
    SQLiteVendorCategoryStore,
    InMemoryVendorCategoryStore,
    create_store_from_config,
)
from .cache import VendorCategoryCache
from .rule_updater import HeuristicRuleUpdater

__all__ = [
    'VendorCategoryStore',
    'SQLiteVendorCategoryStore',
    'InMemoryVendorCategoryStore',
    'create_store_from_config',
    'VendorCategoryCache',
    'HeuristicRuleUpdater',
]
