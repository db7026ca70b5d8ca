"""Headless compiles against the compile service."""

from __future__ import annotations

import requests

from overleaf_web.core.errors import UpstreamError, tag
from overleaf_web.core.logging import get_logger
from overleaf_web.models.entities import CompileResponse, OutputFile
from overleaf_web.services.interfaces import ProjectManager

logger = get_logger(__name__)


class HttpCompileManager:
    """Trigger a compile for a project the user may read and report its outputs."""

    def __init__(
        self,
        projects: ProjectManager,
        base_url: str,
        timeout: float = 240.0,
        session: requests.Session | None = None,
    ) -> None:
        self.projects = projects
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def compile_headless(self, project_id: str, user_id: str) -> CompileResponse:
        self.projects.get_tree_and_auth(project_id, user_id)
        url = f"{self.base_url}/project/{project_id}/user/{user_id}/compile"
        payload = {
            "compile": {
                "options": {
                    "check": "silent",
                    "draft": False,
                    "isAutoCompile": False,
                    "incrementalCompilesEnabled": True,
                }
            }
        }
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise tag(UpstreamError(str(exc)), "compile request") from exc
        with response:
            if response.status_code != 200:
                raise UpstreamError(
                    f"compile service returned non success: {response.status_code}",
                    status_code=response.status_code,
                )
            try:
                body = response.json()
            except ValueError as exc:
                raise tag(exc, "decode compile response") from exc
        if not isinstance(body, dict):
            raise tag(UpstreamError("compile response is not an object"), "decode compile response")

        compile_body = body.get("compile", body)
        output_files = [
            OutputFile(path=item.get("path", ""), build=item.get("build", ""), type=item.get("type", ""))
            for item in compile_body.get("outputFiles") or []
        ]
        result = CompileResponse(
            status=compile_body.get("status", ""),
            output_files=output_files,
            clsi_server_id=body.get("clsiServerId", "") or "",
        )
        logger.info(
            "Headless compile finished with %s", result.status, extra={"ctx_project_id": project_id}
        )
        return result


__all__ = ["HttpCompileManager"]
