"""Baseline document retrieval on top of the catalog cache."""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from pathlib import PurePosixPath

from ..logging import get_logger
from ..models import RemoteDocument
from .cache import CatalogCache
from .fetcher import RemoteCatalogFetcher


class BaselineProvider:
    """Resolves a technology through the cache and downloads its baseline text."""

    def __init__(self, cache: CatalogCache, fetcher: RemoteCatalogFetcher) -> None:
        self.cache = cache
        self.fetcher = fetcher
        self.logger = get_logger("catalog.baseline")

    def get_baseline(
        self, technology: str, *, cancel_event: threading.Event | None = None
    ) -> RemoteDocument:
        """Return the baseline for ``technology``.

        Raises ``NotFoundError`` when the catalog has no document for the
        technology and ``TransientFetchError`` when the catalog or the document
        cannot be downloaded (after the cache's stale fallback was exhausted).
        """
        technology = technology.lower()
        self.logger.info("Fetching baseline instruction for technology: %s", technology)
        resolution = self.cache.resolve(technology, cancel_event=cancel_event)
        entry = resolution.entry
        content = self.fetcher.fetch_raw(entry.path, cancel_event=cancel_event)
        if resolution.stale:
            self.logger.warning(
                "Baseline for %s resolved from a stale catalog snapshot", technology
            )
        return RemoteDocument(
            technology=technology,
            filename=PurePosixPath(entry.path).name,
            content=content,
            source_url=self.fetcher.raw_url(entry.path),
            retrieved_at=datetime.now(UTC),
            sha=entry.sha,
            stale=resolution.stale,
        )


__all__ = ["BaselineProvider"]
