"""Linked file API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from overleaf_web.api.dependencies import get_linked_file_manager, require_user_id
from overleaf_web.linked_files.manager import LinkedFileManager
from overleaf_web.linked_files.types import (
    CreateLinkedFileRequest,
    LinkedFileParameter,
    RefreshLinkedFileRequest,
)
from overleaf_web.models.dto import CreateLinkedFileBody

router = APIRouter()


@router.post("/project/{project_id}/linked_file", status_code=204, summary="Create a linked file")
def create_linked_file(
    project_id: str,
    body: CreateLinkedFileBody,
    user_id: str = Depends(require_user_id),
    manager: LinkedFileManager = Depends(get_linked_file_manager),
) -> Response:
    request = CreateLinkedFileRequest(
        user_id=user_id,
        project_id=project_id,
        parent_folder_id=body.parent_folder_id,
        name=body.name,
        provider=body.provider,
        parameter=LinkedFileParameter(**body.data.model_dump()),
    )
    manager.create_linked_file(request)
    return Response(status_code=204)


@router.post(
    "/project/{project_id}/linked_file/{file_id}/refresh",
    status_code=204,
    summary="Re-import a linked file from its source",
)
def refresh_linked_file(
    project_id: str,
    file_id: str,
    user_id: str = Depends(require_user_id),
    manager: LinkedFileManager = Depends(get_linked_file_manager),
) -> Response:
    manager.refresh_linked_file(
        RefreshLinkedFileRequest(user_id=user_id, project_id=project_id, file_id=file_id)
    )
    return Response(status_code=204)


__all__ = ["router"]
