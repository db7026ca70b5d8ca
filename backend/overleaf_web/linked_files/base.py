"""Common importer interface."""

from __future__ import annotations

from typing import BinaryIO

from overleaf_web.core.concurrency import CancellationToken
from overleaf_web.linked_files.types import CreateLinkedFileRequest, RefreshLinkedFileRequest
from overleaf_web.models.entities import UploadFileRequest
from overleaf_web.services.interfaces import FileTreeManager


class LinkedFileImporter:
    """Produce the content for one provider and commit it through the file tree."""

    provider: str = ""

    def __init__(self, file_tree: FileTreeManager) -> None:
        self.file_tree = file_tree

    def create(self, request: CreateLinkedFileRequest, token: CancellationToken | None = None) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def refresh(self, request: RefreshLinkedFileRequest, token: CancellationToken | None = None) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def upload(self, request: CreateLinkedFileRequest, file: BinaryIO, size: int) -> None:
        self.file_tree.upload_file(
            UploadFileRequest(
                project_id=request.project_id,
                user_id=request.user_id,
                parent_folder_id=request.parent_folder_id,
                file_name=request.name,
                file=file,
                size=size,
                linked_file_data=request.linked_file_data(),
            )
        )


__all__ = ["LinkedFileImporter"]
