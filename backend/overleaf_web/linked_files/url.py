"""Linked files downloaded from arbitrary URLs."""

from __future__ import annotations

from overleaf_web.core.concurrency import CancellationToken
from overleaf_web.core.errors import tag
from overleaf_web.linked_files.base import LinkedFileImporter
from overleaf_web.linked_files.types import (
    PROVIDER_URL,
    CreateLinkedFileRequest,
    LinkedFileParameter,
    RefreshLinkedFileRequest,
)
from overleaf_web.proxy.buffer import BufferedDownloader
from overleaf_web.services.interfaces import FileTreeManager


class UrlImporter(LinkedFileImporter):
    provider = PROVIDER_URL

    def __init__(self, file_tree: FileTreeManager, downloader: BufferedDownloader) -> None:
        super().__init__(file_tree)
        self.downloader = downloader

    def create(self, request: CreateLinkedFileRequest, token: CancellationToken | None = None) -> None:
        try:
            buffered = self.downloader.download_file(request.parameter.url, token)
        except Exception as exc:
            raise tag(exc, "download file") from exc
        with buffered:
            self.upload(request, buffered.file, buffered.size)

    def refresh(self, request: RefreshLinkedFileRequest, token: CancellationToken | None = None) -> None:
        data = request.file.linked_file_data
        self.create(
            CreateLinkedFileRequest(
                user_id=request.user_id,
                project_id=request.project_id,
                parent_folder_id=request.parent_folder_id,
                name=request.file.name,
                provider=data.provider,
                parameter=LinkedFileParameter(url=data.url),
            ),
            token,
        )


__all__ = ["UrlImporter"]
