"""Open-in-overleaf API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from overleaf_web.api.dependencies import get_open_in_overleaf_manager, get_user_id
from overleaf_web.models.dto import CreateProjectResult, OpenInOverleafBody
from overleaf_web.open_in_overleaf.manager import OpenInOverleafManager
from overleaf_web.open_in_overleaf.request import OpenInOverleafRequest, Snippet

router = APIRouter()


@router.post("/docs", response_model=CreateProjectResult, summary="Create a project from snippets or a zip")
def open_in_overleaf(
    body: OpenInOverleafBody,
    user_id: str | None = Depends(get_user_id),
    manager: OpenInOverleafManager = Depends(get_open_in_overleaf_manager),
) -> CreateProjectResult:
    request = OpenInOverleafRequest(
        user_id=user_id,
        compiler=body.compiler,
        project_name=body.project_name,
        snippets=[Snippet(path=s.path, snapshot=s.snapshot, url=s.url) for s in body.snippets],
        zip_url=body.zip_url,
    )
    return _respond(manager, request)


@router.get("/docs", response_model=CreateProjectResult, summary="Create a project from query parameters")
def open_in_overleaf_from_params(
    raw: Request,
    user_id: str | None = Depends(get_user_id),
    manager: OpenInOverleafManager = Depends(get_open_in_overleaf_manager),
) -> CreateProjectResult:
    params = {key: raw.query_params.getlist(key) for key in raw.query_params.keys()}
    request = OpenInOverleafRequest(user_id=user_id)
    request.populate_from_params(params)
    return _respond(manager, request)


def _respond(manager: OpenInOverleafManager, request: OpenInOverleafRequest) -> CreateProjectResult:
    response = manager.open_in_overleaf(request)
    return CreateProjectResult(
        project_id=response.project_id,
        name=response.name,
        redirect=f"/project/{response.project_id}",
    )


__all__ = ["router"]
