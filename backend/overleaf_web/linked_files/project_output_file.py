"""Linked files taken from the compile output of another project."""

from __future__ import annotations

from urllib.parse import quote, urlencode, urlsplit, urlunsplit

from overleaf_web.core.concurrency import CancellationToken
from overleaf_web.core.errors import UnprocessableEntityError, is_unprocessable_entity, tag
from overleaf_web.linked_files.base import LinkedFileImporter
from overleaf_web.linked_files.types import (
    PROVIDER_PROJECT_OUTPUT_FILE,
    CreateLinkedFileRequest,
    LinkedFileParameter,
    RefreshLinkedFileRequest,
)
from overleaf_web.models.paths import validate_url
from overleaf_web.proxy.buffer import BufferedDownloader
from overleaf_web.services.interfaces import CompileManager, FileTreeManager

CLSI_SERVER_ID_QUERY_PARAM = "clsiserverid"


def build_download_url(
    base: str,
    project_id: str,
    user_id: str,
    build_id: str,
    output_path: str,
    clsi_server_id: str = "",
) -> str:
    """Address of one output file of one build on the compile-output domain."""
    parts = urlsplit(base)
    path = "{}/project/{}/user/{}/build/{}/output/{}".format(
        parts.path.rstrip("/"),
        quote(project_id, safe=""),
        quote(user_id, safe=""),
        quote(build_id, safe=""),
        quote(output_path),
    )
    query = urlencode({CLSI_SERVER_ID_QUERY_PARAM: clsi_server_id}) if clsi_server_id else ""
    return urlunsplit((parts.scheme, parts.netloc, path, query, ""))


class ProjectOutputFileImporter(LinkedFileImporter):
    provider = PROVIDER_PROJECT_OUTPUT_FILE

    def __init__(
        self,
        file_tree: FileTreeManager,
        downloader: BufferedDownloader,
        compiles: CompileManager,
        pdf_download_domain: str,
    ) -> None:
        super().__init__(file_tree)
        self.downloader = downloader
        self.compiles = compiles
        self.pdf_download_base = validate_url(pdf_download_domain)

    def create(self, request: CreateLinkedFileRequest, token: CancellationToken | None = None) -> None:
        parameter = request.parameter
        url = build_download_url(
            self.pdf_download_base,
            parameter.source_project_id,
            request.user_id,
            parameter.build_id,
            parameter.source_output_file_path,
            parameter.clsi_server_id,
        )
        try:
            buffered = self.downloader.download_file(url, token)
        except Exception as exc:
            if is_unprocessable_entity(exc):
                raise UnprocessableEntityError("output file is not available for importing") from exc
            raise tag(exc, "download file") from exc
        with buffered:
            self.upload(request, buffered.file, buffered.size)

    def refresh(self, request: RefreshLinkedFileRequest, token: CancellationToken | None = None) -> None:
        data = request.file.linked_file_data
        response = self.compiles.compile_headless(data.source_project_id, request.user_id)
        if response.status != "success":
            raise UnprocessableEntityError("compile request failed")

        path = data.source_output_file_path
        build_id = next((f.build for f in response.output_files if f.path == path), "")
        if not build_id:
            raise UnprocessableEntityError("file not found")

        self.create(
            CreateLinkedFileRequest(
                user_id=request.user_id,
                project_id=request.project_id,
                parent_folder_id=request.parent_folder_id,
                name=request.file.name,
                provider=data.provider,
                parameter=LinkedFileParameter(
                    build_id=build_id,
                    clsi_server_id=response.clsi_server_id,
                    source_output_file_path=path,
                    source_project_id=data.source_project_id,
                ),
            ),
            token,
        )


__all__ = ["ProjectOutputFileImporter", "build_download_url", "CLSI_SERVER_ID_QUERY_PARAM"]
