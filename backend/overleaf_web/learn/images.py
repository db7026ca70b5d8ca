"""Disk-backed cache of learn images."""

from __future__ import annotations

import os
import threading
import time
from pathlib import Path
from typing import Callable

from overleaf_web.core.concurrency import CancellationToken
from overleaf_web.core.errors import merge, tag
from overleaf_web.core.logging import get_logger
from overleaf_web.core.metrics import LEARN_CACHE_LOOKUPS
from overleaf_web.learn.request import LearnImageResponse
from overleaf_web.models.paths import validate_path
from overleaf_web.proxy.buffer import TEMP_PREFIX, BufferedDownloader

logger = get_logger(__name__)


class ImageCache:
    """Images stored flat under ``base_dir``; ``a/b.png`` lives at ``a-b.png``.

    Entries map the on-disk path to the time the file was fetched.
    """

    def __init__(
        self,
        downloader: BufferedDownloader,
        base_url: str,
        base_dir: Path,
        cache_duration: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.downloader = downloader
        self.base_url = base_url.rstrip("/")
        self.base_dir = Path(base_dir)
        self.cache_duration = cache_duration
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, float] = {}

    def fill(self) -> int:
        """Seed the cache from the files already on disk."""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        found: dict[str, float] = {}
        try:
            for root, _dirs, files in os.walk(self.base_dir):
                for name in files:
                    if name.startswith(TEMP_PREFIX):
                        continue
                    fs_path = os.path.join(root, name)
                    found[fs_path] = os.stat(fs_path).st_mtime
        except OSError as exc:
            raise tag(exc, "cannot fill image cache") from exc
        with self._lock:
            self._entries.update(found)
        logger.info("Seeded learn image cache with %s files", len(found))
        return len(found)

    def sweep(self) -> int:
        """Delete expired images; failures are merged into one error."""
        now = self._clock()
        errors: list[BaseException] = []
        removed = 0
        with self._lock:
            expired = [p for p, fetched_at in self._entries.items() if now - fetched_at >= self.cache_duration]
            for fs_path in expired:
                del self._entries[fs_path]
                try:
                    os.remove(fs_path)
                except FileNotFoundError:
                    pass
                except OSError as exc:
                    errors.append(tag(exc, fs_path))
                    continue
                removed += 1
        if removed:
            logger.debug("Swept %s learn images", removed)
        err = merge(errors)
        if err is not None:
            raise err
        return removed

    def target_for(self, path: str) -> Path:
        return self.base_dir / path.replace("/", "-")

    def proxy_image(self, path: str, token: CancellationToken | None = None) -> LearnImageResponse:
        validate_path(path)
        target = self.target_for(path)
        key = str(target)
        with self._lock:
            fetched_at = self._entries.get(key)
        now = self._clock()
        if fetched_at is not None and now - fetched_at < self.cache_duration:
            LEARN_CACHE_LOOKUPS.labels(cache="image", result="hit").inc()
            return LearnImageResponse(fs_path=key, age=int(now - fetched_at))

        self.base_dir.mkdir(parents=True, exist_ok=True)
        try:
            buffered = self.downloader.download_file(
                f"{self.base_url}/{path}", token, temp_dir=self.base_dir
            )
        except Exception as exc:
            if fetched_at is not None and target.exists():
                LEARN_CACHE_LOOKUPS.labels(cache="image", result="stale").inc()
                logger.warning("Serving stale learn image %s: %s", path, exc)
                return LearnImageResponse(fs_path=key, age=int(now - fetched_at))
            LEARN_CACHE_LOOKUPS.labels(cache="image", result="error").inc()
            raise tag(exc, "cannot download") from exc
        try:
            buffered.move(target)
        except OSError as exc:
            buffered.cleanup()
            raise tag(exc, "cannot move target") from exc

        with self._lock:
            self._entries[key] = now
        LEARN_CACHE_LOOKUPS.labels(cache="image", result="miss").inc()
        return LearnImageResponse(fs_path=key, age=-1)

    def __contains__(self, fs_path: object) -> bool:
        with self._lock:
            return fs_path in self._entries


__all__ = ["ImageCache"]
