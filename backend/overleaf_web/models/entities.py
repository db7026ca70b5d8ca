"""Internal dataclasses exchanged with the project collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, BinaryIO, Iterator, Protocol, Sequence

PROVIDER_URL = "url"
PROVIDER_PROJECT_FILE = "project_file"
PROVIDER_PROJECT_OUTPUT_FILE = "project_output_file"
LINKED_FILE_PROVIDERS = (PROVIDER_URL, PROVIDER_PROJECT_FILE, PROVIDER_PROJECT_OUTPUT_FILE)


@dataclass(slots=True)
class LinkedFileData:
    """Provenance of a linked file; only the provider's coordinates are set."""

    provider: str
    source_project_id: str = ""
    source_entity_path: str = ""
    source_output_file_path: str = ""
    url: str = ""

    def to_dict(self) -> dict[str, str]:
        payload = {"provider": self.provider}
        for key in ("source_project_id", "source_entity_path", "source_output_file_path", "url"):
            value = getattr(self, key)
            if value:
                payload[key] = value
        return payload

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "LinkedFileData":
        return cls(
            provider=raw.get("provider", ""),
            source_project_id=raw.get("source_project_id", ""),
            source_entity_path=raw.get("source_entity_path", ""),
            source_output_file_path=raw.get("source_output_file_path", ""),
            url=raw.get("url", ""),
        )


@dataclass(slots=True)
class Doc:
    id: str
    name: str


@dataclass(slots=True)
class FileRef:
    id: str
    name: str
    linked_file_data: LinkedFileData | None = None
    size: int = 0


@dataclass(slots=True)
class Folder:
    id: str
    name: str
    docs: list[Doc] = field(default_factory=list)
    file_refs: list[FileRef] = field(default_factory=list)
    folders: list["Folder"] = field(default_factory=list)

    def walk(self, prefix: str = "") -> Iterator[tuple[Doc | FileRef, str]]:
        """Yield every doc and file with its project-relative path."""
        for doc in self.docs:
            yield doc, _join(prefix, doc.name)
        for file_ref in self.file_refs:
            yield file_ref, _join(prefix, file_ref.name)
        for folder in self.folders:
            yield from folder.walk(_join(prefix, folder.name))

    def walk_files(self, prefix: str = "") -> Iterator[tuple["Folder", FileRef, str]]:
        """Yield every binary file together with its parent folder."""
        for file_ref in self.file_refs:
            yield self, file_ref, _join(prefix, file_ref.name)
        for folder in self.folders:
            yield from folder.walk_files(_join(prefix, folder.name))


def _join(prefix: str, name: str) -> str:
    return f"{prefix}/{name}" if prefix else name


@dataclass(slots=True)
class OutputFile:
    path: str
    build: str
    type: str = ""


@dataclass(slots=True)
class CompileResponse:
    status: str
    output_files: list[OutputFile] = field(default_factory=list)
    clsi_server_id: str = ""


@dataclass(slots=True)
class UploadFileRequest:
    """Single commit of a byte stream into a project's file tree."""

    project_id: str
    user_id: str
    parent_folder_id: str
    file_name: str
    file: BinaryIO
    size: int
    linked_file_data: LinkedFileData | None = None


class CreateProjectFile(Protocol):
    """A file contributed to a new project."""

    @property
    def path(self) -> str: ...

    @property
    def size(self) -> int: ...

    def open(self) -> BinaryIO: ...


@dataclass(slots=True)
class CreateProjectRequest:
    user_id: str
    name: str
    compiler: str
    files: Sequence[CreateProjectFile]
    has_default_name: bool = False


@dataclass(slots=True)
class CreateProjectFromZipRequest:
    user_id: str
    name: str
    compiler: str
    file: BinaryIO
    size: int
    has_default_name: bool = False


@dataclass(slots=True)
class CreateProjectResponse:
    project_id: str
    name: str


__all__ = [
    "PROVIDER_URL",
    "PROVIDER_PROJECT_FILE",
    "PROVIDER_PROJECT_OUTPUT_FILE",
    "LINKED_FILE_PROVIDERS",
    "LinkedFileData",
    "Doc",
    "FileRef",
    "Folder",
    "OutputFile",
    "CompileResponse",
    "UploadFileRequest",
    "CreateProjectFile",
    "CreateProjectRequest",
    "CreateProjectFromZipRequest",
    "CreateProjectResponse",
]
