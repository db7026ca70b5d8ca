"""Map backend exceptions onto JSON error responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from overleaf_web.core.errors import (
    BodyTooLargeError,
    NotAuthorizedError,
    NotFoundError,
    OverleafError,
    UnprocessableEntityError,
    ValidationError,
    get_cause,
    public_message,
)
from overleaf_web.core.logging import get_logger

logger = get_logger(__name__)

_STATUS_BY_TYPE: tuple[tuple[type[Exception], int], ...] = (
    (ValidationError, 400),
    (NotAuthorizedError, 403),
    (NotFoundError, 404),
    (BodyTooLargeError, 413),
    (UnprocessableEntityError, 422),
)


def status_for(exc: BaseException) -> int:
    cause = get_cause(exc)
    for error_type, status in _STATUS_BY_TYPE:
        if isinstance(cause, error_type):
            return status
    return 500


async def _handle_overleaf_error(request: Request, exc: OverleafError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error("Request %s failed: %s", request.url.path, exc, exc_info=exc)
    return JSONResponse(status_code=status, content={"message": public_message(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OverleafError, _handle_overleaf_error)


__all__ = ["register_exception_handlers", "status_for"]
