"""Test fixtures for the Overleaf web backend."""

from __future__ import annotations

import io
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO
from urllib.parse import parse_qs, urlsplit

import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

PROXY_HOP = "http://proxy.test/proxy/token"


@dataclass
class Route:
    body: bytes = b""
    status: int = 200
    headers: dict[str, str] | None = None
    delay: float = 0.0
    error: Exception | None = None
    stall: bool = False


class CountingStream(io.BytesIO):
    """Response body that records how many bytes were read from it."""

    def __init__(self, body: bytes) -> None:
        super().__init__(body)
        self.consumed = 0

    def read(self, size: int | None = -1) -> bytes:
        chunk = super().read(size)
        self.consumed += len(chunk)
        return chunk


class StallingStream:
    """Response body that sends its bytes and then hangs until closed."""

    def __init__(self, body: bytes, stall: float = 10.0) -> None:
        self._body = io.BytesIO(body)
        self._closed = threading.Event()
        self._stall = stall
        self.consumed = 0

    def read(self, size: int | None = -1) -> bytes:
        if self._closed.is_set():
            raise ValueError("read of closed file")
        chunk = self._body.read(size)
        if chunk:
            self.consumed += len(chunk)
            return chunk
        self._closed.wait(self._stall)
        raise ValueError("read of closed file")

    def close(self) -> None:
        self._closed.set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()


class FakeUpstream(BaseAdapter):
    """Serve canned responses, unwrapping proxy hops down to the original URL."""

    def __init__(self, hops: tuple[str, ...] = (PROXY_HOP,)) -> None:
        super().__init__()
        self.hops = {urlsplit(hop).netloc for hop in hops}
        self.routes: dict[str, Route] = {}
        self.seen: list[str] = []
        self.raw_urls: list[str] = []
        self.streams: list[CountingStream | StallingStream] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def add(self, url: str, body: bytes | str = b"", **kwargs) -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.routes[url] = Route(body=body, **kwargs)

    def unwrap(self, url: str) -> str:
        while urlsplit(url).netloc in self.hops:
            url = parse_qs(urlsplit(url).query)["url"][0]
        return url

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        target = self.unwrap(request.url)
        with self._lock:
            self.seen.append(target)
            self.raw_urls.append(request.url)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            route = self.routes.get(target) or Route(body=b"not found", status=404)
            if route.delay:
                time.sleep(route.delay)
            if route.error is not None:
                raise route.error
            response = requests.Response()
            response.status_code = route.status
            response.headers = CaseInsensitiveDict(route.headers or {})
            stream = StallingStream(route.body) if route.stall else CountingStream(route.body)
            with self._lock:
                self.streams.append(stream)
            response.raw = stream
            response.url = request.url
            response.request = request
            response.reason = "OK" if route.status == 200 else "Error"
            return response
        finally:
            with self._lock:
                self.active -= 1

    def close(self) -> None:
        pass


class MemoryFile:
    """In-memory file contributed to a new project."""

    def __init__(self, path: str, content: bytes | str) -> None:
        if isinstance(content, str):
            content = content.encode("utf-8")
        self.path = path
        self.content = content

    @property
    def size(self) -> int:
        return len(self.content)

    def open(self) -> BinaryIO:
        return io.BytesIO(self.content)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def http_session(upstream: FakeUpstream) -> requests.Session:
    session = requests.Session()
    session.mount("http://", upstream)
    session.mount("https://", upstream)
    return session


@pytest.fixture
def fetcher(http_session: requests.Session):
    from overleaf_web.proxy import ProxyFetcher

    return ProxyFetcher([PROXY_HOP], timeout=5, session=http_session)


@pytest.fixture
def download_dir(tmp_path: Path) -> Path:
    path = tmp_path / "downloads"
    path.mkdir()
    return path


@pytest.fixture
def downloader(fetcher, download_dir: Path):
    from overleaf_web.proxy import BufferedDownloader

    return BufferedDownloader(fetcher, max_size=1024 * 1024, temp_dir=download_dir)


@pytest.fixture
def store(tmp_path: Path):
    from overleaf_web.db.sqlite import SQLiteDatabase
    from overleaf_web.services.local_store import LocalProjectStore

    db = SQLiteDatabase(tmp_path / "projects.db")
    db.ensure_schema()
    yield LocalProjectStore(db, blob_dir=tmp_path / "blobs")
    db.close()


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("OLW_DB_PATH", str(tmp_path / "app.db"))
    monkeypatch.setenv("OLW_BLOB_DIR", str(tmp_path / "app-blobs"))
    monkeypatch.setenv("OLW_DOWNLOAD_DIR", str(tmp_path / "app-downloads"))
    monkeypatch.setenv("OLW_LEARN_IMAGE_DIR", str(tmp_path / "learn-images"))
    monkeypatch.setenv("OLW_PROXY_CHAIN", PROXY_HOP)
    monkeypatch.delenv("OLW_CONFIG", raising=False)
    (tmp_path / "app-downloads").mkdir(exist_ok=True)

    from overleaf_web.api import dependencies as deps

    deps.reset_dependencies()
    yield
    deps.reset_dependencies()


def list_files(directory: Path) -> list[Path]:
    return sorted(p for p in directory.rglob("*") if p.is_file())


def wait_until(predicate, timeout: float = 3.0, interval: float = 0.02) -> bool:
    """Poll ``predicate`` until it holds; work abandoned by a failed import finishes late."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
