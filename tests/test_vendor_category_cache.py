"""
Tests for the TTL vendor-category cache.

Covers:
- No store I/O while the snapshot is fresh
- Stale snapshot served when a refresh fails or times out
- Back-off after a failed refresh
- Merges visible immediately, including during a refresh
"""

import threading
import time

import pytest

from bill_extraction.knowledge import VendorCategoryCache

from conftest import MAPPING_ID, CountingStore, FakeClock


class TestFreshness:
    """TTL behaviour"""

    def test_first_get_reads_store(self, cache, store):
        assert cache.get() == {"Netflix": "Subscriptions", "Octopus Energy": "Utilities"}
        assert store.reads == 1

    def test_two_gets_within_ttl_read_once(self, cache, store, clock):
        cache.get()
        clock.advance(299)
        cache.get()
        assert store.reads == 1

    def test_expired_snapshot_is_refreshed(self, cache, store, clock):
        cache.get()
        store.merge(MAPPING_ID, {"Axa": "Insurance"})
        clock.advance(301)
        assert cache.get()["Axa"] == "Insurance"
        assert store.reads == 2

    def test_invalidate_forces_refresh(self, cache, store):
        cache.get()
        cache.invalidate()
        cache.get()
        assert store.reads == 2

    def test_missing_mapping_is_empty(self, clock):
        cache = VendorCategoryCache(CountingStore(), mapping_id=MAPPING_ID, clock=clock)
        try:
            assert dict(cache.get()) == {}
            assert cache.is_fresh()
        finally:
            cache.close()

    def test_snapshot_is_read_only(self, cache):
        snapshot = cache.get()
        with pytest.raises(TypeError):
            snapshot["Hacked"] = "Nope"

    def test_ttl_from_configuration(self, store):
        cache = VendorCategoryCache(store)
        try:
            assert cache.ttl == 300
            assert cache.mapping_id == MAPPING_ID
        finally:
            cache.close()


class TestRefreshFailures:
    """The cache never raises; it serves what it has"""

    def test_failed_refresh_serves_stale_snapshot(self, cache, store, clock):
        cache.get()
        store.fail_reads = True
        clock.advance(301)
        assert cache.get() == {"Netflix": "Subscriptions", "Octopus Energy": "Utilities"}
        assert store.reads == 2

    def test_failure_before_first_load_serves_empty(self, cache, store):
        store.fail_reads = True
        assert dict(cache.get()) == {}

    def test_backoff_after_failure(self, cache, store, clock):
        cache.get()
        store.fail_reads = True
        clock.advance(301)
        cache.get()
        cache.get()
        assert store.reads == 2

        clock.advance(31)
        store.fail_reads = False
        cache.get()
        assert store.reads == 3
        assert cache.is_fresh()

    def test_timed_out_refresh_serves_last_snapshot(self, store, clock):
        release = threading.Event()
        store.read_delay = release
        cache = VendorCategoryCache(
            store, mapping_id=MAPPING_ID, refresh_timeout=0.05, clock=clock
        )
        try:
            started = time.monotonic()
            assert dict(cache.get()) == {}
            assert time.monotonic() - started < 5
            assert cache.fetched_at is None
        finally:
            release.set()
            cache.close()

    def test_hung_store_read_is_not_stacked(self, store, clock):
        release = threading.Event()
        store.read_delay = release
        cache = VendorCategoryCache(
            store, mapping_id=MAPPING_ID, refresh_timeout=0.05, failure_backoff=30, clock=clock
        )
        try:
            for _ in range(5):
                assert dict(cache.get()) == {}
                clock.advance(31)
            assert store.reads == 1

            release.set()
            deadline = time.monotonic() + 5
            while not cache._pending_read.done() and time.monotonic() < deadline:
                time.sleep(0.01)

            store.read_delay = None
            assert cache.get()["Netflix"] == "Subscriptions"
            time.sleep(0.1)
            assert store.reads == 2
        finally:
            release.set()
            cache.close()


class TestMerge:
    """Mirroring learned rules"""

    def test_merge_visible_immediately(self, cache, store):
        cache.get()
        cache.merge({"British Gas": "Utilities"})
        assert cache.get()["British Gas"] == "Utilities"
        assert cache.get()["Netflix"] == "Subscriptions"
        assert store.reads == 1

    def test_merge_replaces_vendor_case_insensitively(self, cache):
        cache.get()
        cache.merge({"NETFLIX": "Entertainment"})
        snapshot = cache.get()
        assert snapshot["NETFLIX"] == "Entertainment"
        assert "Netflix" not in snapshot

    def test_empty_merge_keeps_snapshot(self, cache):
        before = cache.get()
        cache.merge({})
        assert cache.get() is before

    def test_merge_during_refresh_survives_the_swap(self, store, clock):
        release = threading.Event()
        store.read_delay = release
        cache = VendorCategoryCache(store, mapping_id=MAPPING_ID, refresh_timeout=5, clock=clock)

        reader = threading.Thread(target=cache.get)
        reader.start()
        try:
            deadline = time.monotonic() + 5
            while store.reads == 0 and time.monotonic() < deadline:
                time.sleep(0.01)

            cache.merge({"British Gas": "Utilities"})
            release.set()
            reader.join(timeout=5)

            snapshot = cache.snapshot
            assert snapshot["British Gas"] == "Utilities"
            assert snapshot["Netflix"] == "Subscriptions"
        finally:
            release.set()
            cache.close()

    def test_concurrent_merges_are_combined(self, cache):
        cache.get()
        threads = [
            threading.Thread(target=cache.merge, args=({f"Vendor {i}": "Misc"},))
            for i in range(20)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        snapshot = cache.get()
        assert all(f"Vendor {i}" in snapshot for i in range(20))
        assert "Netflix" in snapshot
