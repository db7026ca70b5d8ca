"""API integration tests."""

from __future__ import annotations

import orjson
import pytest
from fastapi.testclient import TestClient

from overleaf_web.api import dependencies as deps
from overleaf_web.app import app

USER = {"X-User-Id": "u1"}
DATA_URL = "https://files.example.com/data.csv"


@pytest.fixture
def client(http_session) -> TestClient:
    deps._SESSION = http_session
    with TestClient(app) as test_client:
        yield test_client


def _parse(title: str, html: str) -> bytes:
    return orjson.dumps(
        {"parse": {"title": title, "revid": 7, "text": {"*": html}, "categories": [], "redirects": []}}
    )


def _create_project(client: TestClient, **body) -> str:
    body.setdefault("snippets", [{"snapshot": "Hello"}])
    resp = client.post("/docs", json=body, headers=USER)
    assert resp.status_code == 200, resp.text
    return resp.json()["project_id"]


def test_health(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["ok"] is True


def test_metrics_exposed(client: TestClient) -> None:
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "olw_" in resp.text


def test_open_in_overleaf_from_snippets(client: TestClient, upstream) -> None:
    upstream.add("https://files.example.com/plot.png", b"png")
    resp = client.post(
        "/docs",
        json={
            "project_name": "Paper",
            "snippets": [{"snapshot": "Hello"}, {"url": "https://files.example.com/plot.png"}],
        },
        headers=USER,
    )
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["name"] == "Paper"
    assert payload["redirect"] == f"/project/{payload['project_id']}"

    root = deps.get_project_store().get_tree_and_auth(payload["project_id"], "u1")
    assert sorted(path for _, path in root.walk()) == ["main.tex", "plot.png"]


def test_open_in_overleaf_requires_login(client: TestClient) -> None:
    resp = client.post("/docs", json={"snippets": [{"snapshot": "Hello"}]})
    assert resp.status_code == 403
    assert resp.json() == {"message": "login required"}


def test_open_in_overleaf_validation_error(client: TestClient) -> None:
    resp = client.post(
        "/docs", json={"compiler": "troff", "snippets": [{"snapshot": "x"}]}, headers=USER
    )
    assert resp.status_code == 400
    assert resp.json()["message"].startswith("compiler:")


def test_open_in_overleaf_from_query_params(client: TestClient) -> None:
    resp = client.get(
        "/docs",
        params={"snip": "\\section{Intro}", "snip_name": "Thesis", "engine": "xelatex"},
        headers=USER,
    )
    assert resp.status_code == 200
    assert resp.json()["name"] == "Thesis"


def test_open_in_overleaf_rejects_mixed_sources(client: TestClient) -> None:
    resp = client.get(
        "/docs", params={"snip": "x", "zip_uri": "https://files.example.com/p.zip"}, headers=USER
    )
    assert resp.status_code == 400


def test_linked_url_file_create_and_refresh(client: TestClient, upstream) -> None:
    project_id = _create_project(client)
    store = deps.get_project_store()
    root = store.get_tree_and_auth(project_id, "u1")

    upstream.add(DATA_URL, b"a,b\n")
    resp = client.post(
        f"/project/{project_id}/linked_file",
        json={
            "name": "data.csv",
            "parent_folder_id": root.id,
            "provider": "url",
            "data": {"url": DATA_URL},
        },
        headers=USER,
    )
    assert resp.status_code == 204

    files = list(store.get_tree_and_auth(project_id, "u1").walk_files())
    assert [path for _, _, path in files] == ["data.csv"]
    _, file_ref, _ = files[0]
    assert file_ref.linked_file_data.url == DATA_URL

    upstream.add(DATA_URL, b"a,b\n1,2\n")
    resp = client.post(f"/project/{project_id}/linked_file/{file_ref.id}/refresh", headers=USER)
    assert resp.status_code == 204
    with store.get_read_stream_for_project_file(project_id, file_ref.id) as reader:
        assert reader.read() == b"a,b\n1,2\n"


def test_linked_file_upstream_rejection_is_unprocessable(client: TestClient, upstream) -> None:
    project_id = _create_project(client)
    root = deps.get_project_store().get_tree_and_auth(project_id, "u1")
    upstream.add(DATA_URL, b"", status=422, headers={"X-Upstream-Status-Code": "404"})
    resp = client.post(
        f"/project/{project_id}/linked_file",
        json={"name": "data.csv", "parent_folder_id": root.id, "provider": "url", "data": {"url": DATA_URL}},
        headers=USER,
    )
    assert resp.status_code == 422


def test_linked_file_requires_login(client: TestClient) -> None:
    resp = client.post(
        "/project/p1/linked_file",
        json={"name": "x", "parent_folder_id": "f", "provider": "url", "data": {"url": DATA_URL}},
    )
    assert resp.status_code == 403


def test_learn_page_served_and_cached(client: TestClient, upstream) -> None:
    pages = deps.get_learn_manager().pages
    upstream.add(pages.page_url("Contents"), _parse("Contents", "<ul></ul>"))
    upstream.add(pages.page_url("Lists"), _parse("Lists", "<p>lists</p>"))

    resp = client.get("/learn/latex/Lists")
    assert resp.status_code == 200
    assert resp.json()["page_html"] == "<p>lists</p>"
    assert "age" not in resp.headers

    resp = client.get("/learn/latex/Lists")
    assert resp.status_code == 200
    assert "age" in resp.headers


def test_learn_page_canonical_redirect(client: TestClient) -> None:
    resp = client.get("/learn/Lists", follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == "/learn/latex/Lists"


def test_learn_internal_page_is_unprocessable(client: TestClient) -> None:
    resp = client.get("/learn/latex/Special:AllPages")
    assert resp.status_code == 422


def test_learn_image_proxied(client: TestClient, upstream) -> None:
    upstream.add("https://learn.overleaf.com/learn-scripts/images/a/b.png", b"png")
    resp = client.get("/learn-scripts/images/a/b.png")
    assert resp.status_code == 200
    assert resp.content == b"png"
    assert resp.headers["cache-control"] == "public, max-age=604800"
