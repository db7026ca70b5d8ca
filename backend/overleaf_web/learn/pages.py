"""Time-bounded cache of learn wiki pages."""

from __future__ import annotations

import threading
import time
from typing import Callable
from urllib.parse import urlencode, urlsplit, urlunsplit

import orjson

from overleaf_web.core.concurrency import CancellationToken
from overleaf_web.core.errors import tag
from overleaf_web.core.logging import get_logger
from overleaf_web.core.metrics import LEARN_CACHE_LOOKUPS
from overleaf_web.learn.content import PageContent, parse_page
from overleaf_web.proxy.fetcher import ProxyFetcher

logger = get_logger(__name__)


class PageCache:
    """Pages keyed by wiki path, refetched once older than ``cache_duration``.

    Concurrent misses on the same page are not coalesced; the last fetch wins.
    """

    def __init__(
        self,
        fetcher: ProxyFetcher,
        api_url: str,
        site_url: str,
        cache_duration: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.fetcher = fetcher
        self.api_url = api_url
        self.site_url = site_url
        self.cache_duration = cache_duration
        self._clock = clock
        self._lock = threading.Lock()
        self._pages: dict[str, PageContent] = {}

    def get(self, path: str, token: CancellationToken | None = None) -> tuple[PageContent, bool]:
        """Return the page and whether it came from the cache."""
        with self._lock:
            cached = self._pages.get(path)
        if cached is not None and self._clock() - cached.fetched_at < self.cache_duration:
            LEARN_CACHE_LOOKUPS.labels(cache="page", result="hit").inc()
            return cached, True

        try:
            fresh = self.fetch(path, token)
        except Exception as exc:
            if cached is None:
                LEARN_CACHE_LOOKUPS.labels(cache="page", result="error").inc()
                raise
            LEARN_CACHE_LOOKUPS.labels(cache="page", result="stale").inc()
            logger.warning("Serving stale learn page %s: %s", path, exc)
            return cached, True

        fresh.fetched_at = self._clock()
        with self._lock:
            self._pages[path] = fresh
        LEARN_CACHE_LOOKUPS.labels(cache="page", result="miss").inc()
        return fresh, False

    def fetch(self, path: str, token: CancellationToken | None = None) -> PageContent:
        with self.fetcher.fetch(self.page_url(path), token) as body:
            payload = body.read()
        try:
            raw = orjson.loads(payload)
        except orjson.JSONDecodeError as exc:
            raise tag(exc, "cannot parse api response") from exc
        return parse_page(raw, self.site_url)

    def page_url(self, path: str) -> str:
        parts = urlsplit(self.api_url)
        query = urlencode(
            [("action", "parse"), ("format", "json"), ("redirects", "true"), ("page", path)]
        )
        return urlunsplit((parts.scheme, parts.netloc, parts.path, query, ""))

    def age_of(self, content: PageContent) -> float:
        return self._clock() - content.fetched_at

    def __len__(self) -> int:
        with self._lock:
            return len(self._pages)


__all__ = ["PageCache"]
