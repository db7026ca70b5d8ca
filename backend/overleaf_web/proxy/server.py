"""Chain hop server: fetch ``url`` on behalf of the previous hop."""

from __future__ import annotations

import hmac
from typing import Iterator

import requests
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from overleaf_web.api.errors import register_exception_handlers
from overleaf_web.core.config import Settings, get_settings
from overleaf_web.core.errors import (
    BodyTooLargeError,
    NotAuthorizedError,
    UnprocessableEntityError,
    ValidationError,
    tag,
)
from overleaf_web.core.logging import get_logger
from overleaf_web.proxy.fetcher import CHUNK_SIZE, UPSTREAM_STATUS_HEADER

logger = get_logger(__name__)

MAX_PROXY_SIZE = 50 * 1024 * 1024


class ProxyController:
    """Fetch arbitrary URLs for authenticated callers, with size and redirect limits."""

    def __init__(
        self,
        token: str,
        timeout: float,
        allow_redirects: bool = False,
        session: requests.Session | None = None,
        max_size: int = MAX_PROXY_SIZE,
    ) -> None:
        self.proxy_path = "/proxy/" + token
        self.timeout = timeout
        self.allow_redirects = allow_redirects
        self.session = session or requests.Session()
        self.max_size = max_size

    def check_auth(self, path: str) -> None:
        if not hmac.compare_digest(path.encode("utf-8"), self.proxy_path.encode("utf-8")):
            raise NotAuthorizedError()

    def proxy(self, request: Request) -> StreamingResponse:
        self.check_auth(request.url.path)
        url = request.query_params.get("url", "")
        if not url:
            raise ValidationError("url missing")
        try:
            response = self.session.get(
                url,
                timeout=self.timeout,
                allow_redirects=self.allow_redirects,
                stream=True,
            )
        except requests.RequestException as exc:
            raise tag(exc, "request failed") from exc

        try:
            self._check_response(response)
        except Exception:
            response.close()
            raise

        headers = {"Content-Disposition": 'attachment; filename="response"'}
        length = response.headers.get("Content-Length")
        if length is not None:
            headers["Content-Length"] = length
        content_type = response.headers.get("Content-Type") or "application/octet-stream"
        return StreamingResponse(
            self._stream(response),
            status_code=200,
            media_type=content_type,
            headers=headers,
        )

    def _check_response(self, response: requests.Response) -> None:
        if response.is_redirect and not self.allow_redirects:
            raise UnprocessableEntityError("blocked redirect")
        length = response.headers.get("Content-Length")
        if length is not None and length.isdigit() and int(length) > self.max_size:
            raise BodyTooLargeError()
        if response.status_code != 200:
            status = str(response.status_code)
            raise _UpstreamStatus(status)

    def _stream(self, response: requests.Response) -> Iterator[bytes]:
        remaining = self.max_size
        try:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if remaining <= 0:
                    break
                if len(chunk) > remaining:
                    chunk = chunk[:remaining]
                remaining -= len(chunk)
                yield chunk
        finally:
            response.close()


class _UpstreamStatus(UnprocessableEntityError):
    def __init__(self, status: str) -> None:
        super().__init__(f"upstream responded with {status}")
        self.status = status


def create_proxy_app(
    settings: Settings | None = None,
    session: requests.Session | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    controller = ProxyController(
        token=settings.proxy_token,
        timeout=settings.proxy_timeout,
        allow_redirects=settings.proxy_allow_redirects,
        session=session,
    )
    app = FastAPI(title="Linked URL Proxy", docs_url=None, redoc_url=None)
    register_exception_handlers(app)

    @app.exception_handler(_UpstreamStatus)
    async def _upstream_status(request: Request, exc: _UpstreamStatus) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"message": str(exc)},
            headers={UPSTREAM_STATUS_HEADER: exc.status},
        )

    app.add_api_route("/proxy/{token}", controller.proxy, methods=["GET"])
    return app


__all__ = ["ProxyController", "create_proxy_app", "MAX_PROXY_SIZE"]
