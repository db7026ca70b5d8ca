"""Linked files copied from a doc or file of another project."""

from __future__ import annotations

import shutil
import tempfile

from overleaf_web.core.concurrency import CancellationToken
from overleaf_web.core.errors import InvalidStateError, NotFoundError, tag
from overleaf_web.linked_files.base import LinkedFileImporter
from overleaf_web.linked_files.types import (
    PROVIDER_PROJECT_FILE,
    CreateLinkedFileRequest,
    LinkedFileParameter,
    RefreshLinkedFileRequest,
)
from overleaf_web.models.entities import Doc, FileRef
from overleaf_web.services.interfaces import (
    DocumentUpdaterManager,
    FilestoreManager,
    FileTreeManager,
    ProjectManager,
)
from overleaf_web.utils.ids import is_uuid


class ProjectFileImporter(LinkedFileImporter):
    provider = PROVIDER_PROJECT_FILE

    def __init__(
        self,
        file_tree: FileTreeManager,
        projects: ProjectManager,
        document_updater: DocumentUpdaterManager,
        filestore: FilestoreManager,
    ) -> None:
        super().__init__(file_tree)
        self.projects = projects
        self.document_updater = document_updater
        self.filestore = filestore

    def create(self, request: CreateLinkedFileRequest, token: CancellationToken | None = None) -> None:
        source_project_id = request.parameter.source_project_id
        root = self.projects.get_tree_and_auth(source_project_id, request.user_id)
        element = next(
            (e for e, path in root.walk() if path == request.parameter.source_entity_path),
            None,
        )
        if element is None:
            raise NotFoundError("source entity not found")

        with tempfile.TemporaryFile(prefix="linked-file") as buffer:
            if isinstance(element, Doc):
                try:
                    snapshot = self.document_updater.get_doc(source_project_id, element.id)
                except Exception as exc:
                    raise tag(exc, "get doc") from exc
                try:
                    size = buffer.write(snapshot.encode("utf-8"))
                except OSError as exc:
                    raise tag(exc, "buffer doc") from exc
            elif isinstance(element, FileRef):
                try:
                    reader = self.filestore.get_read_stream_for_project_file(source_project_id, element.id)
                except Exception as exc:
                    raise tag(exc, "get file") from exc
                try:
                    with reader:
                        shutil.copyfileobj(reader, buffer)
                    size = buffer.tell()
                except OSError as exc:
                    raise tag(exc, "buffer file") from exc
            else:  # pragma: no cover - walk yields docs and files only
                raise NotFoundError("source entity not found")
            if token is not None:
                token.raise_if_cancelled()
            try:
                buffer.seek(0)
            except OSError as exc:
                raise tag(exc, "reset buffer to start") from exc
            self.upload(request, buffer, size)

    def refresh(self, request: RefreshLinkedFileRequest, token: CancellationToken | None = None) -> None:
        data = request.file.linked_file_data
        if not is_uuid(data.source_project_id):
            raise InvalidStateError("corrupt source project id")
        self.create(
            CreateLinkedFileRequest(
                user_id=request.user_id,
                project_id=request.project_id,
                parent_folder_id=request.parent_folder_id,
                name=request.file.name,
                provider=data.provider,
                parameter=LinkedFileParameter(
                    source_project_id=data.source_project_id,
                    source_entity_path=data.source_entity_path,
                ),
            ),
            token,
        )


__all__ = ["ProjectFileImporter"]
