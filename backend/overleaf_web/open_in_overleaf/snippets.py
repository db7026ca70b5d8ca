"""Create a project from inline and remote snippets.

URL snippets are downloaded by a fixed pool of workers while inline snippets
go straight to the collector. The first failing worker cancels the shared
token, which closes both queues and every in-flight response, so the
dispatcher and the collector never wait on a dead pool. Every buffered
download is removed once the project was created or the run failed.
"""

from __future__ import annotations

import io
import threading
import time
from typing import BinaryIO

from overleaf_web.core.concurrency import CancellationToken, ClosableQueue, TaskGroup
from overleaf_web.core.errors import CancelledError
from overleaf_web.core.logging import get_logger
from overleaf_web.core.metrics import SNIPPET_IMPORT_DURATION
from overleaf_web.models.entities import CreateProjectRequest, CreateProjectResponse
from overleaf_web.models.paths import MAX_DOC_LENGTH
from overleaf_web.open_in_overleaf.request import (
    MAIN_FILE,
    OpenInOverleafRequest,
    Snippet,
    add_document_class,
)
from overleaf_web.proxy.buffer import BufferedDownloader
from overleaf_web.services.interfaces import ProjectUploadManager

logger = get_logger(__name__)

PARALLEL_DOWNLOADS = 5


class SnippetFile:
    """Project file backed by a snippet's snapshot or its buffered download."""

    def __init__(self, snippet: Snippet) -> None:
        self.snippet = snippet
        self._blob = snippet.snapshot.encode("utf-8") if snippet.file is None else b""

    @property
    def index(self) -> int:
        return self.snippet.index

    @property
    def path(self) -> str:
        if self.snippet.path:
            return self.snippet.path
        if self.snippet.file is not None:
            return self.snippet.file.path
        return ""

    @property
    def size(self) -> int:
        if self.snippet.file is not None:
            return self.snippet.file.size
        return len(self._blob)

    def open(self) -> BinaryIO:
        if self.snippet.file is not None:
            return self.snippet.file.open()
        return io.BytesIO(self._blob)


class SnippetImportPipeline:
    def __init__(
        self,
        downloader: BufferedDownloader,
        uploads: ProjectUploadManager,
        parallel_downloads: int = PARALLEL_DOWNLOADS,
        max_doc_length: int = MAX_DOC_LENGTH,
    ) -> None:
        self.downloader = downloader
        self.uploads = uploads
        self.parallel_downloads = max(1, parallel_downloads)
        self.max_doc_length = max_doc_length

    def create_from_snippets(
        self,
        request: OpenInOverleafRequest,
        token: CancellationToken | None = None,
    ) -> CreateProjectResponse:
        started = time.perf_counter()
        status = "error"
        try:
            files = self.collect_files(request, token)
            response = self.uploads.create_project(
                CreateProjectRequest(
                    user_id=request.user_id or "",
                    name=request.project_name,
                    compiler=request.compiler,
                    files=files,
                    has_default_name=request.has_default_name,
                )
            )
            status = "ok"
            logger.info(
                "Created project from snippets",
                extra={"ctx_project_id": response.project_id, "ctx_files": len(files)},
            )
            return response
        finally:
            for snippet in request.snippets:
                snippet.cleanup()
            SNIPPET_IMPORT_DURATION.labels(status=status).observe(time.perf_counter() - started)

    def collect_files(
        self,
        request: OpenInOverleafRequest,
        token: CancellationToken | None = None,
    ) -> list[SnippetFile]:
        """Download every URL snippet and return all snippets as project files.

        Files come back in submission order. Buffered downloads stay attached
        to their snippets; the caller owns their cleanup. On the first failure
        this returns without waiting for downloads still stuck on the network;
        those discard their own result once they finish.
        """
        group = TaskGroup(self.parallel_downloads + 1, parent=token, name="snippet-import")
        downloads: ClosableQueue[Snippet] = ClosableQueue(self.parallel_downloads)
        ready: ClosableQueue[Snippet] = ClosableQueue(self.parallel_downloads)
        group.token.on_cancel(downloads.close)
        group.token.on_cancel(ready.close)
        attach_lock = threading.Lock()
        accepting = True

        def dispatch() -> None:
            try:
                for snippet in request.snippets:
                    group.token.raise_if_cancelled()
                    if snippet.url is not None:
                        target = downloads
                    else:
                        if snippet.path == MAIN_FILE:
                            snippet.snapshot = add_document_class(
                                snippet.snapshot, request.project_name, self.max_doc_length
                            )
                        target = ready
                    if not target.put(snippet):
                        raise CancelledError()
            finally:
                downloads.close()

        def download() -> None:
            for snippet in downloads:
                group.token.raise_if_cancelled()
                buffered = self.downloader.download_file(snippet.url, group.token)
                with attach_lock:
                    if not accepting:
                        buffered.cleanup()
                        raise CancelledError()
                    snippet.file = buffered
                if not ready.put(snippet):
                    raise CancelledError()

        def finish() -> None:
            try:
                group.join()
            finally:
                ready.close()

        group.go(dispatch)
        for _ in range(self.parallel_downloads):
            group.go(download)
        finisher = threading.Thread(target=finish, name="snippet-import-finish", daemon=True)
        finisher.start()

        files = [SnippetFile(snippet) for snippet in ready]
        with attach_lock:
            accepting = False
        error = group.error
        if error is None and token is not None and token.is_cancelled():
            error = CancelledError()
        if error is not None:
            logger.warning("Snippet import failed: %s", error)
            raise error
        finisher.join()
        files.sort(key=lambda item: item.index)
        return files


__all__ = ["SnippetImportPipeline", "SnippetFile", "PARALLEL_DOWNLOADS"]
