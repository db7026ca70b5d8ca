"""Tests for the chain hop server."""

from __future__ import annotations

import pytest
import requests
from fastapi.testclient import TestClient

from overleaf_web.core.config import Settings
from overleaf_web.proxy.fetcher import UPSTREAM_STATUS_HEADER
from overleaf_web.proxy.server import MAX_PROXY_SIZE, create_proxy_app

TARGET = "https://files.example.com/data.csv"


@pytest.fixture
def client(http_session) -> TestClient:
    settings = Settings(proxy_token="secret")
    return TestClient(create_proxy_app(settings, session=http_session))


def test_wrong_token_is_rejected(client, upstream) -> None:
    response = client.get("/proxy/guess", params={"url": TARGET})
    assert response.status_code == 403
    assert upstream.seen == []


def test_missing_url_is_a_bad_request(client) -> None:
    response = client.get("/proxy/secret")
    assert response.status_code == 400
    assert response.json() == {"message": "url missing"}


def test_streams_upstream_body(client, upstream) -> None:
    upstream.add(TARGET, b"a,b\n1,2\n", headers={"Content-Type": "text/csv"})
    response = client.get("/proxy/secret", params={"url": TARGET})
    assert response.status_code == 200
    assert response.content == b"a,b\n1,2\n"
    assert response.headers["content-disposition"] == 'attachment; filename="response"'
    assert response.headers["content-type"].startswith("text/csv")
    assert upstream.seen == [TARGET]


def test_upstream_error_status_is_forwarded_in_header(client, upstream) -> None:
    upstream.add(TARGET, b"gone", status=404)
    response = client.get("/proxy/secret", params={"url": TARGET})
    assert response.status_code == 422
    assert response.headers[UPSTREAM_STATUS_HEADER] == "404"
    assert "404" in response.json()["message"]


def test_redirects_are_blocked(client, upstream) -> None:
    upstream.add(TARGET, status=302, headers={"Location": "http://169.254.169.254/"})
    response = client.get("/proxy/secret", params={"url": TARGET})
    assert response.status_code == 422
    assert response.json()["message"] == "unprocessable entity: blocked redirect"


def test_declared_length_over_limit_is_rejected(client, upstream) -> None:
    upstream.add(TARGET, b"x", headers={"Content-Length": str(MAX_PROXY_SIZE + 1)})
    response = client.get("/proxy/secret", params={"url": TARGET})
    assert response.status_code == 413


def test_network_failure_is_an_internal_error(client, upstream) -> None:
    upstream.add(TARGET, error=requests.ConnectionError("refused"))
    response = client.get("/proxy/secret", params={"url": TARGET})
    assert response.status_code == 500
    assert response.json() == {"message": "internal server error"}
