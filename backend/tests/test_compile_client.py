"""Tests for the HTTP compile client."""

from __future__ import annotations

import orjson
import pytest
import requests

from conftest import MemoryFile
from overleaf_web.core.errors import NotAuthorizedError, TaggedError, UpstreamError, get_cause
from overleaf_web.models.entities import CreateProjectRequest, OutputFile
from overleaf_web.services.compile_client import HttpCompileManager

COMPILE_URL = "http://compile.test"


@pytest.fixture
def project_id(store) -> str:
    response = store.create_project(
        CreateProjectRequest(
            user_id="u1",
            name="thesis",
            compiler="pdflatex",
            files=[MemoryFile("main.tex", "\\section{A}")],
        )
    )
    return response.project_id


@pytest.fixture
def compiles(store, http_session) -> HttpCompileManager:
    return HttpCompileManager(store, COMPILE_URL, timeout=5, session=http_session)


def _compile_url(project_id: str, user_id: str = "u1") -> str:
    return f"{COMPILE_URL}/project/{project_id}/user/{user_id}/compile"


def test_compile_reports_status_and_outputs(compiles, upstream, project_id: str) -> None:
    upstream.add(
        _compile_url(project_id),
        orjson.dumps(
            {
                "compile": {
                    "status": "success",
                    "outputFiles": [
                        {"path": "output.pdf", "build": "18b3e4a2c1f-9d1c0b7a3e5f2d41", "type": "pdf"},
                        {"path": "output.log", "build": "18b3e4a2c1f-9d1c0b7a3e5f2d41", "type": "log"},
                    ],
                },
                "clsiServerId": "clsi-7",
            }
        ),
    )

    result = compiles.compile_headless(project_id, "u1")

    assert result.status == "success"
    assert result.clsi_server_id == "clsi-7"
    assert result.output_files[0] == OutputFile(
        path="output.pdf", build="18b3e4a2c1f-9d1c0b7a3e5f2d41", type="pdf"
    )
    assert [item.path for item in result.output_files] == ["output.pdf", "output.log"]
    assert upstream.seen == [_compile_url(project_id)]


def test_compile_failure_status_is_passed_through(compiles, upstream, project_id: str) -> None:
    upstream.add(_compile_url(project_id), orjson.dumps({"compile": {"status": "failure", "outputFiles": []}}))
    result = compiles.compile_headless(project_id, "u1")
    assert result.status == "failure"
    assert result.output_files == []


def test_non_success_response_is_upstream_error(compiles, upstream, project_id: str) -> None:
    upstream.add(_compile_url(project_id), b"busy", status=503)
    with pytest.raises(UpstreamError) as excinfo:
        compiles.compile_headless(project_id, "u1")
    assert excinfo.value.status_code == 503


def test_undecodable_response_is_tagged(compiles, upstream, project_id: str) -> None:
    upstream.add(_compile_url(project_id), b"<html>oops</html>")
    with pytest.raises(TaggedError) as excinfo:
        compiles.compile_headless(project_id, "u1")
    assert excinfo.value.stage == "decode compile response"


def test_response_that_is_not_an_object_is_tagged(compiles, upstream, project_id: str) -> None:
    upstream.add(_compile_url(project_id), orjson.dumps(["success"]))
    with pytest.raises(TaggedError) as excinfo:
        compiles.compile_headless(project_id, "u1")
    assert excinfo.value.stage == "decode compile response"
    assert isinstance(get_cause(excinfo.value), UpstreamError)


def test_network_failure_is_tagged(compiles, upstream, project_id: str) -> None:
    upstream.add(_compile_url(project_id), error=requests.ConnectionError("refused"))
    with pytest.raises(TaggedError) as excinfo:
        compiles.compile_headless(project_id, "u1")
    assert excinfo.value.stage == "compile request"
    assert isinstance(get_cause(excinfo.value), UpstreamError)


def test_compile_requires_project_access(compiles, upstream, project_id: str) -> None:
    with pytest.raises(NotAuthorizedError):
        compiles.compile_headless(project_id, "intruder")
    assert upstream.seen == []
