"""Single GET through the proxy chain with failure classification."""

from __future__ import annotations

from typing import Iterator, Sequence

import requests

from overleaf_web.core.concurrency import CancellationToken
from overleaf_web.core.errors import (
    BodyTooLargeError,
    CancelledError,
    UnprocessableEntityError,
    UpstreamError,
    ValidationError,
    tag,
)
from overleaf_web.core.logging import get_logger
from overleaf_web.core.metrics import PROXY_FETCHES
from overleaf_web.models.paths import validate_url
from overleaf_web.proxy.chain import chain_url

logger = get_logger(__name__)

CHUNK_SIZE = 64 * 1024
UPSTREAM_STATUS_HEADER = "X-Upstream-Status-Code"


class ResponseBody:
    """Streaming body of a successful proxy response.

    The caller owns the body: iterate it, then :meth:`close` it (or use it as a
    context manager). Closing drains what is left so the pooled connection can
    be reused; :meth:`abort` drops the connection instead, and is what leaving
    the ``with`` block on an exception does. Cancelling the token closes the
    live response, so a read blocked on the network fails right away.
    """

    def __init__(self, response: requests.Response, token: CancellationToken | None = None) -> None:
        self._response = response
        self._token = token
        self._chunks = response.iter_content(chunk_size=CHUNK_SIZE)
        self._closed = False
        self._unregister = token.on_cancel(self._interrupt) if token is not None else None

    @property
    def headers(self) -> requests.structures.CaseInsensitiveDict[str]:
        return self._response.headers

    def _cancelled(self) -> bool:
        return self._token is not None and self._token.is_cancelled()

    def _interrupt(self) -> None:
        self._response.close()

    def __iter__(self) -> Iterator[bytes]:
        try:
            for chunk in self._chunks:
                if self._token is not None:
                    self._token.raise_if_cancelled()
                if chunk:
                    yield chunk
        except CancelledError:
            raise
        except Exception as exc:
            if self._cancelled():
                raise CancelledError() from exc
            raise

    def read(self) -> bytes:
        return b"".join(self)

    def close(self) -> None:
        self._finish(drain=True)

    def abort(self) -> None:
        """Close the connection without reading the rest of the body."""
        self._finish(drain=False)

    def _finish(self, drain: bool) -> None:
        if self._closed:
            return
        self._closed = True
        if self._unregister is not None:
            self._unregister()
        try:
            if drain and not self._cancelled():
                for _ in self._chunks:
                    pass
        except (requests.RequestException, ValueError):
            pass
        finally:
            self._response.close()

    def __enter__(self) -> "ResponseBody":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
        else:
            self.abort()


class ProxyFetcher:
    """Issue GET requests through an ordered chain of proxy hops."""

    def __init__(
        self,
        chain: Sequence[str],
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        if len(chain) < 1:
            raise ValidationError("url chain is too short")
        self.chain = [validate_url(hop) for hop in chain]
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, url: str, token: CancellationToken | None = None) -> ResponseBody:
        """Return the body of a 200 response; raise a classified error otherwise."""
        if token is not None:
            token.raise_if_cancelled()
        target = chain_url(url, self.chain)
        try:
            response = self.session.get(
                target,
                timeout=self.timeout,
                allow_redirects=False,
                stream=True,
            )
        except requests.RequestException as exc:
            PROXY_FETCHES.labels(outcome="network_error").inc()
            raise tag(UpstreamError(str(exc)), "send http request") from exc

        if token is not None and token.is_cancelled():
            response.close()
            raise CancelledError()
        if response.status_code == 200:
            PROXY_FETCHES.labels(outcome="ok").inc()
            return ResponseBody(response, token)

        try:
            error = _classify(response)
        finally:
            _discard(response)
        PROXY_FETCHES.labels(outcome=str(response.status_code)).inc()
        logger.info("Proxy fetch failed with status %s: %s", response.status_code, error)
        raise error


def _classify(response: requests.Response) -> Exception:
    status = response.status_code
    if response.is_redirect:
        return tag(UpstreamError("blocked redirect", status_code=status), "send http request")
    if status == 400:
        try:
            payload = response.json()
        except ValueError as exc:
            return tag(UpstreamError(str(exc), status_code=status), "decode 400 response")
        if not isinstance(payload, dict):
            return tag(
                UpstreamError("400 response is not an object", status_code=status),
                "decode 400 response",
            )
        return ValidationError(str(payload.get("message", "")))
    if status == 422:
        upstream = response.headers.get(UPSTREAM_STATUS_HEADER, "")
        return UnprocessableEntityError(f"upstream returned non success: {upstream}")
    if status == 413:
        return BodyTooLargeError()
    return UpstreamError(f"proxy returned non success: {status}", status_code=status)


def _discard(response: requests.Response) -> None:
    try:
        for _ in response.iter_content(chunk_size=CHUNK_SIZE):
            pass
    except (requests.RequestException, RuntimeError):
        pass
    finally:
        response.close()


__all__ = ["ProxyFetcher", "ResponseBody", "CHUNK_SIZE", "UPSTREAM_STATUS_HEADER"]
