"""Collaborator interfaces consumed by the import and proxy layers."""

from __future__ import annotations

from typing import BinaryIO, Protocol

from overleaf_web.models.entities import (
    CompileResponse,
    CreateProjectFromZipRequest,
    CreateProjectRequest,
    CreateProjectResponse,
    Folder,
    UploadFileRequest,
)


class ProjectManager(Protocol):
    def get_tree_and_auth(self, project_id: str, user_id: str) -> Folder:
        """Return the root folder after checking that the user may read the project."""


class FileTreeManager(Protocol):
    def upload_file(self, request: UploadFileRequest) -> None: ...


class DocumentUpdaterManager(Protocol):
    def get_doc(self, project_id: str, doc_id: str) -> str: ...


class FilestoreManager(Protocol):
    def get_read_stream_for_project_file(self, project_id: str, file_id: str) -> BinaryIO: ...


class CompileManager(Protocol):
    def compile_headless(self, project_id: str, user_id: str) -> CompileResponse: ...


class ProjectUploadManager(Protocol):
    def create_project(self, request: CreateProjectRequest) -> CreateProjectResponse: ...

    def create_from_zip(self, request: CreateProjectFromZipRequest) -> CreateProjectResponse: ...


__all__ = [
    "ProjectManager",
    "FileTreeManager",
    "DocumentUpdaterManager",
    "FilestoreManager",
    "CompileManager",
    "ProjectUploadManager",
]
