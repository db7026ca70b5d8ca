"""Dispatch linked file creation and refresh to the provider importers."""

from __future__ import annotations

from typing import Iterable

from overleaf_web.core.concurrency import CancellationToken
from overleaf_web.core.errors import NotFoundError, UnprocessableEntityError, ValidationError
from overleaf_web.core.logging import get_logger
from overleaf_web.linked_files.base import LinkedFileImporter
from overleaf_web.linked_files.types import CreateLinkedFileRequest, RefreshLinkedFileRequest
from overleaf_web.services.interfaces import ProjectManager

logger = get_logger(__name__)


class LinkedFileManager:
    """Create or refresh project files whose content comes from elsewhere."""

    def __init__(self, projects: ProjectManager, importers: Iterable[LinkedFileImporter]) -> None:
        self.projects = projects
        self.importers = {importer.provider: importer for importer in importers}

    def _importer_for(self, provider: str) -> LinkedFileImporter:
        importer = self.importers.get(provider)
        if importer is None:
            raise ValidationError("unknown provider")
        return importer

    def create_linked_file(self, request: CreateLinkedFileRequest, token: CancellationToken | None = None) -> None:
        request.validate()
        importer = self._importer_for(request.provider)
        self.projects.get_tree_and_auth(request.project_id, request.user_id)
        logger.info(
            "Creating linked file",
            extra={"ctx_project_id": request.project_id, "ctx_provider": request.provider},
        )
        importer.create(request, token)

    def refresh_linked_file(self, request: RefreshLinkedFileRequest, token: CancellationToken | None = None) -> None:
        root = self.projects.get_tree_and_auth(request.project_id, request.user_id)
        match = next(
            ((folder, file_ref) for folder, file_ref, _ in root.walk_files() if file_ref.id == request.file_id),
            None,
        )
        if match is None:
            raise NotFoundError("file not found")
        parent_folder, file_ref = match

        data = file_ref.linked_file_data
        if data is None or not data.provider:
            raise UnprocessableEntityError("file is not linked")

        # Older records stored absolute source paths.
        data.source_entity_path = data.source_entity_path.lstrip("/")
        data.source_output_file_path = data.source_output_file_path.lstrip("/")

        request.file = file_ref
        request.parent_folder_id = parent_folder.id
        importer = self._importer_for(data.provider)
        logger.info(
            "Refreshing linked file",
            extra={"ctx_project_id": request.project_id, "ctx_provider": data.provider},
        )
        importer.refresh(request, token)


__all__ = ["LinkedFileManager"]
