"""Tests for the TTL catalog cache and its stale fallback."""

from __future__ import annotations

import threading
import time
from datetime import timedelta

import pytest

from instructgen.catalog import CatalogCache, build_catalog_entries
from instructgen.catalog.cache import EMPTY, FRESH, SERVING_STALE, STALE_ELIGIBLE
from instructgen.errors import NotFoundError, OperationCancelledError, TransientFetchError
from tests._fixtures.catalog import FakeCatalogFetcher, FakeClock

DOCUMENTS = {
    "csharp.instructions.md": "## Naming\nPascalCase.\n",
    "Python.instructions.md": "## Style\nPEP 8.\n",
}


def _cache(fetcher: FakeCatalogFetcher, clock: FakeClock, hours: float = 24) -> CatalogCache:
    return CatalogCache(fetcher, ttl=timedelta(hours=hours), clock=clock)


def test_build_catalog_entries_filters_and_normalises_ids() -> None:
    entries = build_catalog_entries(
        [
            {"name": "CSharp.instructions.md", "path": "instructions/CSharp.instructions.md", "type": "file"},
            {"name": "csharp.instructions.md", "path": "instructions/csharp.instructions.md", "type": "file"},
            {"name": "README.md", "path": "instructions/README.md", "type": "file"},
            {"name": "go.instructions.md", "path": "instructions/go.instructions.md", "type": "dir"},
            {"name": "rust.instructions.md", "path": "", "type": "file"},
        ]
    )

    assert list(entries) == ["csharp"]
    assert entries["csharp"].path == "instructions/CSharp.instructions.md"


def test_lookup_within_ttl_does_not_refetch(fake_clock) -> None:
    fetcher = FakeCatalogFetcher(DOCUMENTS)
    cache = _cache(fetcher, fake_clock)

    first = cache.resolve("csharp")
    fake_clock.advance(timedelta(hours=23, minutes=59).total_seconds())
    second = cache.resolve("CSharp")

    assert fetcher.list_calls == 1
    assert first.entry == second.entry
    assert second.stale is False
    assert cache.state == FRESH


def test_expired_snapshot_is_refetched(fake_clock) -> None:
    fetcher = FakeCatalogFetcher(DOCUMENTS)
    cache = _cache(fetcher, fake_clock, hours=1)

    cache.lookup()
    fake_clock.advance(3600)
    assert cache.state == STALE_ELIGIBLE
    cache.lookup()

    assert fetcher.list_calls == 2


def test_failure_without_snapshot_surfaces_error(fake_clock) -> None:
    fetcher = FakeCatalogFetcher(DOCUMENTS)
    fetcher.fail_listing = True
    cache = _cache(fetcher, fake_clock)

    with pytest.raises(TransientFetchError):
        cache.resolve("csharp")
    assert cache.state == EMPTY


def test_failure_with_expired_snapshot_serves_stale(fake_clock) -> None:
    fetcher = FakeCatalogFetcher(DOCUMENTS)
    cache = _cache(fetcher, fake_clock, hours=1)
    cache.lookup()
    captured_at = cache.snapshot.captured_at

    fake_clock.advance(7200)
    fetcher.fail_listing = True
    resolution = cache.resolve("python")

    assert resolution.stale is True
    assert resolution.entry.path == "instructions/Python.instructions.md"
    assert "catalog unreachable" in resolution.error
    assert cache.state == SERVING_STALE
    assert cache.snapshot.captured_at == captured_at


def test_successful_refresh_after_stale_clears_flag(fake_clock) -> None:
    fetcher = FakeCatalogFetcher(DOCUMENTS)
    cache = _cache(fetcher, fake_clock, hours=1)
    cache.lookup()
    fake_clock.advance(7200)
    fetcher.fail_listing = True
    assert cache.lookup().stale is True

    fetcher.fail_listing = False
    lookup = cache.lookup()

    assert lookup.stale is False
    assert cache.state == FRESH
    assert fetcher.list_calls == 3


def test_refresh_now_ignores_ttl(fake_clock) -> None:
    fetcher = FakeCatalogFetcher(DOCUMENTS)
    cache = _cache(fetcher, fake_clock)
    cache.lookup()

    fetcher.documents["rust.instructions.md"] = "## Ownership\n"
    lookup = cache.refresh_now()

    assert fetcher.list_calls == 2
    assert sorted(lookup.entries) == ["csharp", "python", "rust"]


def test_snapshot_is_replaced_not_mutated(fake_clock) -> None:
    fetcher = FakeCatalogFetcher(DOCUMENTS)
    cache = _cache(fetcher, fake_clock)
    before = cache.lookup().snapshot

    fetcher.documents["rust.instructions.md"] = "## Ownership\n"
    after = cache.refresh_now().snapshot

    assert "rust" not in before.entries
    assert "rust" in after.entries
    with pytest.raises(TypeError):
        before.entries["rust"] = after.entries["rust"]  # type: ignore[index]


def test_unknown_technology_is_not_found(fake_clock) -> None:
    cache = _cache(FakeCatalogFetcher(DOCUMENTS), fake_clock)
    with pytest.raises(NotFoundError):
        cache.resolve("cobol")


def test_cancelled_refresh_installs_nothing(fake_clock) -> None:
    cancel = threading.Event()

    class CancellingFetcher(FakeCatalogFetcher):
        def list_directory(self, path=None, *, cancel_event=None):
            items = super().list_directory(path, cancel_event=cancel_event)
            cancel.set()
            return items

    cache = _cache(CancellingFetcher(DOCUMENTS), fake_clock)

    with pytest.raises(OperationCancelledError):
        cache.lookup(cancel_event=cancel)
    assert cache.snapshot is None
    assert cache.state == EMPTY


class CountingLock:
    """Lock wrapper that records how many callers have tried to acquire it."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._guard = threading.Lock()
        self.attempts = 0

    def acquire(self, blocking: bool = True, timeout: float = -1) -> bool:
        with self._guard:
            self.attempts += 1
        return self._lock.acquire(blocking, timeout)

    def release(self) -> None:
        self._lock.release()


class GatedFetcher(FakeCatalogFetcher):
    """Blocks listing calls until released while ``gated`` is set."""

    def __init__(self, documents) -> None:
        super().__init__(documents)
        self.gated = True
        self.started = threading.Event()
        self.release = threading.Event()

    def list_directory(self, path=None, *, cancel_event=None):
        if self.gated:
            self.started.set()
            self.release.wait(timeout=5)
        return super().list_directory(path, cancel_event=cancel_event)


def _wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def _lookup_from_threads(cache: CatalogCache, fetcher: GatedFetcher, count: int = 4):
    """Run ``count`` lookups where all but the first queue behind the first refresh."""
    lock = CountingLock()
    cache._lock = lock  # type: ignore[assignment]
    results = []
    errors = []

    def worker() -> None:
        try:
            results.append(cache.lookup())
        except TransientFetchError as exc:
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    threads[0].start()
    assert fetcher.started.wait(timeout=5)
    for thread in threads[1:]:
        thread.start()
    assert _wait_until(lambda: lock.attempts == count)
    fetcher.release.set()
    for thread in threads:
        thread.join(timeout=5)
    return results, errors


def test_concurrent_lookups_share_one_fetch(fake_clock) -> None:
    fetcher = GatedFetcher(DOCUMENTS)
    cache = _cache(fetcher, fake_clock)

    results, errors = _lookup_from_threads(cache, fetcher)

    assert fetcher.list_calls == 1
    assert errors == []
    assert len(results) == 4
    assert len({id(result.snapshot) for result in results}) == 1


def test_waiters_share_failed_refresh_without_snapshot(fake_clock) -> None:
    fetcher = GatedFetcher(DOCUMENTS)
    fetcher.fail_listing = True
    cache = _cache(fetcher, fake_clock)

    results, errors = _lookup_from_threads(cache, fetcher)

    assert fetcher.list_calls == 1
    assert results == []
    assert len(errors) == 4
    assert all("catalog unreachable" in str(error) for error in errors)
    assert cache.state == EMPTY


def test_waiters_share_stale_fallback_of_failed_refresh(fake_clock) -> None:
    fetcher = GatedFetcher(DOCUMENTS)
    fetcher.gated = False
    cache = _cache(fetcher, fake_clock, hours=1)
    captured = cache.lookup().snapshot

    fake_clock.advance(7200)
    fetcher.fail_listing = True
    fetcher.gated = True
    results, errors = _lookup_from_threads(cache, fetcher)

    assert fetcher.list_calls == 2
    assert errors == []
    assert len(results) == 4
    assert all(result.stale for result in results)
    assert all(result.snapshot is captured for result in results)
    assert cache.state == SERVING_STALE
