"""Entry point for "open in Overleaf" imports."""

from __future__ import annotations

from overleaf_web.core.concurrency import CancellationToken
from overleaf_web.core.errors import NotAuthorizedError, tag
from overleaf_web.core.logging import get_logger
from overleaf_web.models.entities import CreateProjectFromZipRequest, CreateProjectResponse
from overleaf_web.models.paths import MAX_DOC_LENGTH
from overleaf_web.open_in_overleaf.request import OpenInOverleafRequest
from overleaf_web.open_in_overleaf.snippets import SnippetImportPipeline
from overleaf_web.proxy.buffer import BufferedDownloader
from overleaf_web.services.interfaces import ProjectUploadManager

logger = get_logger(__name__)


class OpenInOverleafManager:
    def __init__(
        self,
        downloader: BufferedDownloader,
        uploads: ProjectUploadManager,
        pipeline: SnippetImportPipeline,
        max_doc_length: int = MAX_DOC_LENGTH,
    ) -> None:
        self.downloader = downloader
        self.uploads = uploads
        self.pipeline = pipeline
        self.max_doc_length = max_doc_length

    def open_in_overleaf(
        self,
        request: OpenInOverleafRequest,
        token: CancellationToken | None = None,
    ) -> CreateProjectResponse:
        if not request.user_id:
            raise NotAuthorizedError("login required")
        request.preprocess()
        request.validate(self.max_doc_length)
        if request.zip_url is not None:
            return self.create_from_zip(request, token)
        return self.pipeline.create_from_snippets(request, token)

    def create_from_zip(
        self,
        request: OpenInOverleafRequest,
        token: CancellationToken | None = None,
    ) -> CreateProjectResponse:
        try:
            buffered = self.downloader.download_file(request.zip_url, token)
        except Exception as exc:
            raise tag(exc, "download zip") from exc
        with buffered:
            response = self.uploads.create_from_zip(
                CreateProjectFromZipRequest(
                    user_id=request.user_id or "",
                    name=request.project_name,
                    compiler=request.compiler,
                    file=buffered.file,
                    size=buffered.size,
                    has_default_name=request.has_default_name,
                )
            )
        logger.info("Created project from zip", extra={"ctx_project_id": response.project_id})
        return response


__all__ = ["OpenInOverleafManager"]
