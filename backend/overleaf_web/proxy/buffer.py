"""Buffer proxy downloads into private temp files."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import BinaryIO

from overleaf_web.core.concurrency import CancellationToken
from overleaf_web.core.errors import BodyTooLargeError, tag
from overleaf_web.core.logging import get_logger
from overleaf_web.core.metrics import DOWNLOADED_BYTES
from overleaf_web.models.paths import file_name_from_url, is_valid_path
from overleaf_web.proxy.fetcher import ProxyFetcher

logger = get_logger(__name__)

TEMP_PREFIX = "download-buffer"


class BufferedFile:
    """Temp-file backed download.

    Ownership ends in exactly one of three ways: :meth:`move` puts the file in
    place, :meth:`open` hands the live handle to the caller, or
    :meth:`cleanup` removes it. ``cleanup`` is always safe to call, also after
    the other two.
    """

    def __init__(self, fs_path: str, handle: BinaryIO | None, size: int = 0, path: str = "") -> None:
        self.fs_path = fs_path
        self._handle = handle
        self._moved = False
        self.size = size
        self.path = path

    @property
    def file(self) -> BinaryIO | None:
        """The open temp handle, positioned at the start; ``None`` once handed off."""
        return self._handle

    def open(self) -> BinaryIO:
        handle = self._handle
        if handle is not None:
            self._handle = None
            return handle
        return open(self.fs_path, "rb")

    def move(self, target: str | os.PathLike[str]) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None
        os.replace(self.fs_path, target)
        self._moved = True

    def cleanup(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None
        if self._moved:
            return
        try:
            os.remove(self.fs_path)
        except FileNotFoundError:
            pass

    def __enter__(self) -> "BufferedFile":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()


class BufferedDownloader:
    """Download remote files through the proxy into temp files."""

    def __init__(
        self,
        fetcher: ProxyFetcher,
        max_size: int | None = None,
        temp_dir: Path | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.max_size = max_size
        self.temp_dir = temp_dir

    def download_file(
        self,
        url: str,
        token: CancellationToken | None = None,
        temp_dir: Path | None = None,
    ) -> BufferedFile:
        """Download ``url``; the caller must ``cleanup()`` the result when finished."""
        directory = temp_dir or self.temp_dir
        with self.fetcher.fetch(url, token) as body:
            try:
                fd, fs_path = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=directory)
            except OSError as exc:
                raise tag(exc, "open temp file for buffering") from exc
            buffered = BufferedFile(fs_path, os.fdopen(fd, "w+b"))
            try:
                self._copy(body, buffered)
            except Exception:
                buffered.cleanup()
                raise

        candidate = file_name_from_url(url)
        if is_valid_path(candidate):
            buffered.path = candidate
        DOWNLOADED_BYTES.inc(buffered.size)
        logger.debug("Buffered %s bytes from %s", buffered.size, url)
        return buffered

    def _copy(self, body, buffered: BufferedFile) -> None:
        handle = buffered.file
        size = 0
        try:
            for chunk in body:
                size += len(chunk)
                if self.max_size is not None and size > self.max_size:
                    raise BodyTooLargeError()
                handle.write(chunk)
        except OSError as exc:
            raise tag(exc, "pipe file") from exc
        buffered.size = size
        try:
            handle.flush()
            handle.seek(0)
        except OSError as exc:
            raise tag(exc, "seek buffer to start") from exc


__all__ = ["BufferedFile", "BufferedDownloader", "TEMP_PREFIX"]
