"""Tests for the proxy fetcher and its failure classification."""

from __future__ import annotations

import threading
import time

import pytest
import requests

from conftest import PROXY_HOP
from overleaf_web.core.concurrency import CancellationToken
from overleaf_web.core.errors import (
    BodyTooLargeError,
    CancelledError,
    TaggedError,
    UnprocessableEntityError,
    UpstreamError,
    ValidationError,
    get_cause,
)
from overleaf_web.proxy import ProxyFetcher

URL = "https://files.example.com/data/report.csv"


def test_empty_chain_is_rejected() -> None:
    with pytest.raises(ValidationError, match="url chain is too short"):
        ProxyFetcher([])


def test_success_streams_body(upstream, fetcher) -> None:
    upstream.add(URL, b"a,b\n1,2\n")
    with fetcher.fetch(URL) as body:
        assert body.read() == b"a,b\n1,2\n"
    assert upstream.seen == [URL]
    assert upstream.raw_urls[0].startswith(PROXY_HOP + "?url=")


def test_unprocessable_entity_carries_upstream_status(upstream, fetcher) -> None:
    upstream.add(URL, b"{}", status=422, headers={"X-Upstream-Status-Code": "404"})
    with pytest.raises(UnprocessableEntityError) as excinfo:
        fetcher.fetch(URL)
    assert "404" in str(excinfo.value)


def test_body_too_large(upstream, fetcher) -> None:
    upstream.add(URL, status=413)
    with pytest.raises(BodyTooLargeError):
        fetcher.fetch(URL)


def test_bad_request_message_becomes_validation_error(upstream, fetcher) -> None:
    upstream.add(URL, b'{"message": "url missing"}', status=400)
    with pytest.raises(ValidationError, match="url missing"):
        fetcher.fetch(URL)


def test_other_status_is_generic_upstream_error(upstream, fetcher) -> None:
    upstream.add(URL, b"boom", status=503)
    with pytest.raises(UpstreamError) as excinfo:
        fetcher.fetch(URL)
    assert excinfo.value.status_code == 503


def test_redirect_is_blocked(upstream, fetcher) -> None:
    upstream.add(URL, status=302, headers={"Location": "https://elsewhere.example.com/"})
    with pytest.raises(TaggedError) as excinfo:
        fetcher.fetch(URL)
    assert excinfo.value.stage == "send http request"
    assert "blocked redirect" in str(get_cause(excinfo.value))
    assert upstream.seen == [URL]


def test_network_failure_is_tagged(upstream, fetcher) -> None:
    upstream.add(URL, error=requests.ConnectionError("refused"))
    with pytest.raises(TaggedError) as excinfo:
        fetcher.fetch(URL)
    assert isinstance(get_cause(excinfo.value), UpstreamError)


def test_cancelled_token_stops_before_request(upstream, fetcher) -> None:
    upstream.add(URL, b"data")
    token = CancellationToken()
    token.cancel()
    with pytest.raises(CancelledError):
        fetcher.fetch(URL, token)
    assert upstream.seen == []


def test_bad_request_body_that_is_not_an_object_is_tagged(upstream, fetcher) -> None:
    upstream.add(URL, b'["nope"]', status=400)
    with pytest.raises(TaggedError) as excinfo:
        fetcher.fetch(URL)
    assert excinfo.value.stage == "decode 400 response"
    assert isinstance(get_cause(excinfo.value), UpstreamError)


def test_close_drains_the_rest_of_the_body(upstream, fetcher) -> None:
    upstream.add(URL, b"y" * (256 * 1024))
    body = fetcher.fetch(URL)
    next(iter(body))
    body.close()
    assert upstream.streams[-1].consumed == 256 * 1024


def test_abort_drops_the_rest_of_the_body(upstream, fetcher) -> None:
    upstream.add(URL, b"y" * (256 * 1024))
    body = fetcher.fetch(URL)
    next(iter(body))
    body.abort()
    assert upstream.streams[-1].consumed < 256 * 1024


def test_leaving_with_block_on_error_does_not_drain(upstream, fetcher) -> None:
    upstream.add(URL, b"y" * (1024 * 1024))
    with pytest.raises(RuntimeError):
        with fetcher.fetch(URL) as body:
            next(iter(body))
            raise RuntimeError("stop")
    assert upstream.streams[-1].consumed < 1024 * 1024


def test_cancel_interrupts_a_blocked_body_read(upstream, fetcher) -> None:
    upstream.add(URL, b"head", stall=True)
    token = CancellationToken()
    body = fetcher.fetch(URL, token)
    received: list[bytes] = []
    timer = threading.Timer(0.1, token.cancel)
    timer.start()

    started = time.monotonic()
    with pytest.raises(CancelledError):
        with body:
            for chunk in body:
                received.append(chunk)
    timer.join()
    assert time.monotonic() - started < 2.0
    assert received == [b"head"]
    assert upstream.streams[-1].closed


def test_cancel_during_request_discards_response(upstream, fetcher) -> None:
    upstream.add(URL, b"late", delay=0.3)
    token = CancellationToken()
    timer = threading.Timer(0.05, token.cancel)
    timer.start()
    with pytest.raises(CancelledError):
        fetcher.fetch(URL, token)
    timer.join()
    assert upstream.streams[-1].consumed == 0
