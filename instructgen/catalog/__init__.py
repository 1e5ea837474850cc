"""Remote baseline catalog: fetcher, cache and baseline retrieval."""

from .baseline import BaselineProvider
from .cache import CatalogCache, Resolution, build_catalog_entries
from .fetcher import RemoteCatalogFetcher

__all__ = [
    "BaselineProvider",
    "CatalogCache",
    "RemoteCatalogFetcher",
    "Resolution",
    "build_catalog_entries",
]
