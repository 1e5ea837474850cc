"""HTTP access to the remote baseline catalog (GitHub contents + raw endpoints)."""

from __future__ import annotations

import json
import threading
from typing import Any, Callable, Dict, List, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from ..config import CatalogConfig
from ..errors import NotFoundError, OperationCancelledError, TransientFetchError
from ..logging import get_logger

_API_ACCEPT = "application/vnd.github.v3+json"
_RAW_ACCEPT = "text/plain"


class RemoteCatalogFetcher:
    """Lists catalog directories and downloads raw documents. Holds no state."""

    def __init__(
        self,
        settings: CatalogConfig | None = None,
        *,
        opener: Callable[..., Any] | None = None,
    ) -> None:
        self.settings = settings or CatalogConfig()
        self._opener = opener
        self.logger = get_logger("catalog.fetcher")

    def contents_url(self, path: str | None = None) -> str:
        settings = self.settings
        target = (path if path is not None else settings.path).strip("/")
        return (
            f"{settings.api_base_url}/repos/{settings.owner}/{settings.repo}"
            f"/contents/{quote(target)}"
        )

    def raw_url(self, path: str) -> str:
        settings = self.settings
        return (
            f"{settings.raw_base_url}/{settings.owner}/{settings.repo}"
            f"/{settings.branch}/{quote(path.lstrip('/'))}"
        )

    def list_directory(
        self, path: str | None = None, *, cancel_event: threading.Event | None = None
    ) -> List[Dict[str, Any]]:
        """Return the raw directory listing as a list of ``{name, path, type, ...}`` dicts."""
        url = self.contents_url(path)
        self.logger.debug("Fetching directory contents from %s", url)
        try:
            raw = self._get(url, accept=_API_ACCEPT, cancel_event=cancel_event)
        except NotFoundError as exc:
            raise TransientFetchError(f"Catalog directory not available: {url}") from exc

        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise TransientFetchError(f"Catalog listing at {url} is not valid JSON") from exc
        if not isinstance(payload, list):
            raise TransientFetchError(f"Catalog listing at {url} is not a JSON array")

        items: List[Dict[str, Any]] = []
        for item in payload:
            if not isinstance(item, dict):
                continue
            items.append(
                {
                    "name": _as_text(item.get("name")) or "",
                    "path": _as_text(item.get("path")) or "",
                    "type": _as_text(item.get("type")) or "",
                    "download_url": _as_text(item.get("download_url")),
                    "sha": _as_text(item.get("sha")),
                }
            )
        return items

    def fetch_raw(self, path: str, *, cancel_event: threading.Event | None = None) -> str:
        """Return the raw text of the catalog document at ``path``."""
        url = self.raw_url(path)
        self.logger.debug("Fetching file content from %s", url)
        raw = self._get(url, accept=_RAW_ACCEPT, cancel_event=cancel_event)
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise TransientFetchError(f"Catalog document at {url} is not UTF-8 text") from exc
        self.logger.info(
            "Fetched %s from %s/%s", path, self.settings.owner, self.settings.repo
        )
        return text

    def _get(
        self, url: str, *, accept: str, cancel_event: threading.Event | None
    ) -> bytes:
        _check_cancelled(cancel_event, url)
        headers = {"User-Agent": self.settings.user_agent, "Accept": accept}
        if self.settings.token:
            headers["Authorization"] = f"Bearer {self.settings.token}"
        request = Request(url, headers=headers, method="GET")
        opener = self._opener or urlopen

        try:
            with opener(request, timeout=self.settings.request_timeout) as response:
                raw = response.read()
        except HTTPError as exc:
            if exc.code == 404:
                raise NotFoundError(f"Catalog resource not found: {url}") from exc
            raise TransientFetchError(
                f"Catalog request to {url} failed with status {exc.code}"
            ) from exc
        except URLError as exc:
            raise TransientFetchError(f"Catalog request to {url} failed: {exc.reason}") from exc
        except (TimeoutError, OSError) as exc:
            raise TransientFetchError(f"Catalog request to {url} failed: {exc}") from exc

        _check_cancelled(cancel_event, url)
        return raw


def _as_text(value: object) -> Optional[str]:
    return value if isinstance(value, str) else None


def _check_cancelled(cancel_event: threading.Event | None, url: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelledError(f"Catalog request cancelled: {url}")


__all__ = ["RemoteCatalogFetcher"]
