"""Learn page and image routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import FileResponse, RedirectResponse

from overleaf_web.api.dependencies import get_learn_manager
from overleaf_web.learn.manager import LearnManager
from overleaf_web.learn.request import LearnPageRequest, escape_path
from overleaf_web.models.dto import LearnPageResult

router = APIRouter()

IMAGE_PREFIX = "learn-scripts/images"


@router.get("/learn", response_model=LearnPageResult, summary="Learn home page")
@router.get("/learn/{section}", response_model=LearnPageResult, summary="Learn section or page")
@router.get("/learn/{section}/{page:path}", response_model=LearnPageResult, summary="Learn page")
def learn_page(
    raw: Request,
    response: Response,
    section: str = "",
    page: str = "",
    manager: LearnManager = Depends(get_learn_manager),
):
    request = LearnPageRequest(section=section, page=page)
    target = request.pre_session_redirect(escape_path(raw.url.path))
    if target:
        return RedirectResponse(target, status_code=302)
    result = manager.learn_page(request)
    if result.age >= 0:
        response.headers["Age"] = str(result.age)
    if result.redirect:
        return RedirectResponse(result.redirect, status_code=302)
    return LearnPageResult(
        title=result.title,
        title_locale=result.title_locale,
        page_html=result.page_html,
        contents_html=result.contents_html,
    )


@router.get("/learn-scripts/images/{path:path}", summary="Cached learn image")
def learn_image(path: str, manager: LearnManager = Depends(get_learn_manager)) -> FileResponse:
    result = manager.proxy_image(f"{IMAGE_PREFIX}/{path}")
    headers = {"Cache-Control": "public, max-age=604800"}
    if result.age >= 0:
        headers["Age"] = str(result.age)
    return FileResponse(result.fs_path, headers=headers)


__all__ = ["router"]
