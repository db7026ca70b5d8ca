"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class LinkedFileParameterBody(BaseModel):
    url: str = ""
    source_project_id: str = ""
    source_entity_path: str = ""
    source_output_file_path: str = ""
    build_id: str = ""
    clsi_server_id: str = ""


class CreateLinkedFileBody(BaseModel):
    name: str
    parent_folder_id: str
    provider: str
    data: LinkedFileParameterBody = Field(default_factory=LinkedFileParameterBody)


class SnippetBody(BaseModel):
    path: str = ""
    snapshot: str = ""
    url: str | None = None


class OpenInOverleafBody(BaseModel):
    compiler: str = ""
    project_name: str = ""
    snippets: list[SnippetBody] = Field(default_factory=list)
    zip_url: str | None = None


class CreateProjectResult(BaseModel):
    project_id: str
    name: str
    redirect: str


class LearnPageResult(BaseModel):
    title: str
    title_locale: str
    page_html: str
    contents_html: str


class ErrorResponse(BaseModel):
    message: str


__all__ = [
    "LinkedFileParameterBody",
    "CreateLinkedFileBody",
    "SnippetBody",
    "OpenInOverleafBody",
    "CreateProjectResult",
    "LearnPageResult",
    "ErrorResponse",
]
