"""
Vendor-Category Cache Module.

In-memory, time-bounded mirror of the persisted vendor -> category
mapping, shared by every document processed in the process.

Refresh policy:
    - A snapshot younger than the TTL is served without any I/O.
    - An older snapshot is refreshed from the store, bounded by a timeout.
    - If the refresh fails or times out, the last known snapshot is
      served (possibly stale, possibly empty) and the store is left
      alone for a short back-off period.

Snapshots are read-only mappings replaced by a single reference swap,
so readers see either the old or the new snapshot, never a mix.
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional

from config import get_config
from bill_extraction.utils.exceptions import CacheRefreshError
from bill_extraction.utils.helpers import merge_vendor_categories
from bill_extraction.utils.logger import get_logger
from .store import VendorCategoryStore

logger = get_logger(__name__)


class VendorCategoryCache:
    """
    TTL cache over a vendor-category store.

    Attributes:
        store: Persistent vendor-category store
        mapping_id: Identifier of the mapping read from the store
        ttl: Seconds a snapshot is trusted without refresh
        refresh_timeout: Upper bound in seconds for one store read
        failure_backoff: Seconds to wait after a failed refresh

    Example:
        >>> cache = VendorCategoryCache(store)
        >>> cache.get()["Netflix"]
        'Subscriptions'
        >>> cache.merge({"EDF Energy": "Utilities"})
        >>> cache.get()["EDF Energy"]
        'Utilities'
    """

    def __init__(
        self,
        store: VendorCategoryStore,
        mapping_id: Optional[str] = None,
        ttl_seconds: Optional[float] = None,
        refresh_timeout: Optional[float] = None,
        failure_backoff: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None
    ) -> None:
        self.store = store
        self.mapping_id = mapping_id or get_config("knowledge.mapping_id", "vendors_categories")
        self.ttl = ttl_seconds if ttl_seconds is not None else \
            get_config("knowledge.cache.ttl_seconds", 300)
        self.refresh_timeout = refresh_timeout if refresh_timeout is not None else \
            get_config("knowledge.cache.refresh_timeout_seconds", 5)
        self.failure_backoff = failure_backoff if failure_backoff is not None else \
            get_config("knowledge.cache.failure_backoff_seconds", 30)
        self.clock = clock or time.monotonic

        self._snapshot: Mapping[str, str] = MappingProxyType({})
        self._fetched_at: Optional[float] = None
        self._retry_after: Optional[float] = None

        # Serializes refreshes; readers never wait on it once a snapshot exists
        self._refresh_lock = threading.Lock()
        # Guards snapshot swaps and merges recorded during a refresh
        self._swap_lock = threading.Lock()
        self._refreshing = False
        self._merged_during_refresh: Dict[str, str] = {}

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="vendor-cache-refresh")
        self._pending_read: Optional[Future] = None

    @property
    def snapshot(self) -> Mapping[str, str]:
        """Current snapshot, without refreshing."""
        return self._snapshot

    @property
    def fetched_at(self) -> Optional[float]:
        return self._fetched_at

    def is_fresh(self) -> bool:
        fetched_at = self._fetched_at
        return fetched_at is not None and self.clock() - fetched_at < self.ttl

    def get(self) -> Mapping[str, str]:
        """
        Return the current vendor-category snapshot.

        Returns:
            Read-only vendor -> category mapping. Never raises.
        """
        if self.is_fresh():
            return self._snapshot

        # Once something has been loaded, readers do not queue behind a refresh
        if not self._refresh_lock.acquire(blocking=self._fetched_at is None):
            return self._snapshot

        try:
            if self.is_fresh():
                return self._snapshot

            if self._retry_after is not None and self.clock() < self._retry_after:
                return self._snapshot

            self._refresh()
            return self._snapshot
        finally:
            self._refresh_lock.release()

    def _refresh(self) -> None:
        with self._swap_lock:
            self._refreshing = True
            self._merged_during_refresh = {}

        try:
            mapping = self._fetch()
        except CacheRefreshError as e:
            logger.warning(f"{e}; serving last known snapshot ({len(self._snapshot)} vendors)")
            with self._swap_lock:
                self._refreshing = False
                self._merged_during_refresh = {}
            self._retry_after = self.clock() + self.failure_backoff
            return

        with self._swap_lock:
            merged = merge_vendor_categories(mapping or {}, self._merged_during_refresh)
            self._snapshot = MappingProxyType(merged)
            self._refreshing = False
            self._merged_during_refresh = {}
        self._fetched_at = self.clock()
        self._retry_after = None

        logger.debug(f"Vendor-category cache refreshed ({len(merged)} vendors)")

    def _fetch(self) -> Optional[Dict[str, str]]:
        # At most one store read is outstanding; a hung read blocks new ones
        if self._pending_read is not None and not self._pending_read.done():
            raise CacheRefreshError(self.mapping_id, "previous store read still in progress")

        future = self._executor.submit(self.store.read, self.mapping_id)
        self._pending_read = future
        try:
            return future.result(timeout=self.refresh_timeout)
        except FutureTimeoutError:
            future.cancel()
            raise CacheRefreshError(
                self.mapping_id, f"store read timed out after {self.refresh_timeout}s"
            )
        except Exception as e:
            raise CacheRefreshError(self.mapping_id, str(e))

    def merge(self, partial: Mapping[str, str]) -> None:
        """
        Mirror a merge into the snapshot immediately.

        Concurrent merges are combined; the last writer wins per vendor.

        Args:
            partial: Vendor -> category pairs to upsert.
        """
        if not partial:
            return

        with self._swap_lock:
            self._snapshot = MappingProxyType(merge_vendor_categories(self._snapshot, partial))
            if self._refreshing:
                self._merged_during_refresh.update(partial)

    def invalidate(self) -> None:
        """Force the next ``get()`` to refresh from the store."""
        self._fetched_at = None
        self._retry_after = None

    def close(self) -> None:
        self._executor.shutdown(wait=False)
