"""Time-boxed in-memory cache of the remote catalog with stale fallback.

The cache holds a single immutable :class:`CatalogSnapshot`. Refreshes build a
complete new snapshot and swap the reference, so readers never observe a
partially updated catalog. Refreshes are serialized by a lock; a caller that
waited on another caller's refresh reuses its outcome instead of fetching
again. When a refresh fails the previous snapshot is served and flagged as
stale; with no previous snapshot the fetch error propagates.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol

from ..errors import (
    InvalidStateError,
    NotFoundError,
    OperationCancelledError,
    TransientFetchError,
)
from ..logging import get_logger
from ..models import CatalogEntry, CatalogLookup, CatalogSnapshot

CATALOG_SUFFIX = ".instructions.md"
DEFAULT_TTL = timedelta(hours=24)

EMPTY = "empty"
FRESH = "fresh"
STALE_ELIGIBLE = "stale-eligible"
SERVING_STALE = "serving-stale"


class CatalogListing(Protocol):
    def list_directory(
        self, path: str | None = None, *, cancel_event: threading.Event | None = None
    ) -> List[Dict[str, Any]]: ...


@dataclass(frozen=True)
class Resolution:
    """Catalog entry for one technology plus the freshness of the snapshot it came from."""

    entry: CatalogEntry
    stale: bool = False
    error: Optional[str] = None


def build_catalog_entries(listing: Iterable[Mapping[str, Any]]) -> Dict[str, CatalogEntry]:
    """Map technology ids to catalog entries, keeping only ``*.instructions.md`` files."""
    entries: Dict[str, CatalogEntry] = {}
    for item in listing:
        name = item.get("name") or ""
        path = item.get("path") or ""
        item_type = item.get("type") or ""
        if item_type and item_type != "file":
            continue
        if not name.lower().endswith(CATALOG_SUFFIX) or not path:
            continue
        technology = name[: -len(CATALOG_SUFFIX)].lower()
        if not technology or technology in entries:
            continue
        entries[technology] = CatalogEntry(
            technology=technology,
            path=path,
            sha=item.get("sha"),
            download_url=item.get("download_url"),
        )
    return entries


class CatalogCache:
    """Serves technology -> catalog path lookups from a TTL-bound snapshot."""

    def __init__(
        self,
        fetcher: CatalogListing,
        *,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
        lock_poll_interval: float = 0.1,
    ) -> None:
        self._fetcher = fetcher
        self._ttl_seconds = ttl.total_seconds()
        self._clock = clock
        self._lock = threading.Lock()
        self._lock_poll_interval = lock_poll_interval
        self._snapshot: Optional[CatalogSnapshot] = None
        self._completed_refreshes = 0
        self._last_error: Optional[TransientFetchError] = None
        self._serving_stale = False
        self.logger = get_logger("catalog.cache")

    @property
    def state(self) -> str:
        snapshot = self._snapshot
        if snapshot is None:
            return EMPTY
        if self._serving_stale:
            return SERVING_STALE
        if self._is_fresh(snapshot):
            return FRESH
        return STALE_ELIGIBLE

    @property
    def snapshot(self) -> Optional[CatalogSnapshot]:
        return self._snapshot

    def lookup(self, *, cancel_event: threading.Event | None = None) -> CatalogLookup:
        """Return the current catalog, refreshing it when the TTL has elapsed."""
        snapshot = self._snapshot
        if self._is_fresh(snapshot):
            self.logger.debug(
                "Returning cached catalog (age: %.1fs)", self._clock() - snapshot.captured_monotonic
            )
            return CatalogLookup(snapshot=snapshot)

        seen = self._completed_refreshes
        self._acquire(cancel_event)
        try:
            snapshot = self._snapshot
            if self._is_fresh(snapshot):
                return CatalogLookup(snapshot=snapshot)
            if self._completed_refreshes != seen:
                return self._outcome_of_concurrent_refresh()
            self.logger.info(
                "Catalog cache %s, fetching remote catalog",
                "empty" if snapshot is None else "expired",
            )
            return self._refresh_locked(cancel_event)
        finally:
            self._lock.release()

    def refresh_now(self, *, cancel_event: threading.Event | None = None) -> CatalogLookup:
        """Refetch the catalog regardless of the snapshot's age."""
        self._acquire(cancel_event)
        try:
            self.logger.info("Manually refreshing catalog cache")
            return self._refresh_locked(cancel_event)
        finally:
            self._lock.release()

    def resolve(
        self, technology: str, *, cancel_event: threading.Event | None = None
    ) -> Resolution:
        """Return the catalog entry for ``technology`` or raise :class:`NotFoundError`."""
        lookup = self.lookup(cancel_event=cancel_event)
        entry = lookup.entries.get(technology.lower())
        if entry is None:
            raise NotFoundError(f"No baseline instruction found for technology: {technology}")
        return Resolution(entry=entry, stale=lookup.stale, error=lookup.error)

    def technologies(self, *, cancel_event: threading.Event | None = None) -> List[str]:
        return sorted(self.lookup(cancel_event=cancel_event).entries)

    # ------------------------------------------------------------------
    # Internal helpers

    def _is_fresh(self, snapshot: Optional[CatalogSnapshot]) -> bool:
        if snapshot is None:
            return False
        return (self._clock() - snapshot.captured_monotonic) < self._ttl_seconds

    def _acquire(self, cancel_event: threading.Event | None) -> None:
        if cancel_event is None:
            self._lock.acquire()
            return
        while not self._lock.acquire(timeout=self._lock_poll_interval):
            if cancel_event.is_set():
                raise OperationCancelledError("Catalog refresh cancelled while waiting")

    def _refresh_locked(self, cancel_event: threading.Event | None) -> CatalogLookup:
        try:
            listing = self._fetcher.list_directory(cancel_event=cancel_event)
            entries = build_catalog_entries(listing)
            if cancel_event is not None and cancel_event.is_set():
                raise OperationCancelledError("Catalog refresh cancelled")
        except TransientFetchError as exc:
            self.logger.error("Failed to fetch remote catalog: %s", exc)
            self._completed_refreshes += 1
            self._last_error = exc
            stale = self._serve_stale(exc)
            if stale is None:
                raise
            return stale

        snapshot = CatalogSnapshot.capture(entries, datetime.now(UTC), self._clock())
        self._snapshot = snapshot
        self._completed_refreshes += 1
        self._last_error = None
        self._serving_stale = False
        self.logger.info("Fetched %d technology instruction files from catalog", len(entries))
        return CatalogLookup(snapshot=snapshot)

    def _outcome_of_concurrent_refresh(self) -> CatalogLookup:
        error = self._last_error
        if error is not None:
            stale = self._serve_stale(error)
            if stale is None:
                raise TransientFetchError(str(error)) from error
            return stale
        snapshot = self._snapshot
        if snapshot is None:
            raise InvalidStateError("Concurrent catalog refresh finished without a snapshot")
        return CatalogLookup(snapshot=snapshot)

    def _serve_stale(self, error: TransientFetchError) -> Optional[CatalogLookup]:
        snapshot = self._snapshot
        if snapshot is None:
            return None
        self._serving_stale = True
        self.logger.warning(
            "Using stale catalog captured at %s due to fetch error",
            snapshot.captured_at.isoformat(),
        )
        return CatalogLookup(snapshot=snapshot, stale=True, error=str(error))


__all__ = [
    "CATALOG_SUFFIX",
    "CatalogCache",
    "Resolution",
    "build_catalog_entries",
]
