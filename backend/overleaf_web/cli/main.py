"""CLI entrypoint for the Overleaf web backend."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import List, Optional

import requests
import typer

from overleaf_web.core.config import get_settings
from overleaf_web.core.errors import OverleafError
from overleaf_web.learn.images import ImageCache
from overleaf_web.proxy import BufferedDownloader, ProxyFetcher, chain_url

app = typer.Typer(name="olw", help="Overleaf web backend command-line interface")

DEFAULT_HOST = "http://127.0.0.1:3000"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip("/")
    env_host = os.environ.get("OLW_HOST")
    if env_host:
        return env_host.rstrip("/")
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    resp = requests.request(method, url, timeout=60, **kwargs)
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


def _downloader() -> BufferedDownloader:
    settings = get_settings()
    fetcher = ProxyFetcher(settings.proxy_chain, timeout=settings.proxy_timeout)
    return BufferedDownloader(fetcher, max_size=settings.max_download_size, temp_dir=settings.download_dir)


@app.command("chain-url")
def chain_url_command(
    url: str = typer.Argument(..., help="Target URL"),
    hop: Optional[List[str]] = typer.Option(None, "--hop", help="Proxy hop, repeat in order; defaults to config"),
) -> None:
    """Print the URL actually requested for a fetch through the chain."""
    chain = hop or get_settings().proxy_chain
    typer.echo(chain_url(url, chain))


@app.command()
def fetch(
    url: str = typer.Argument(..., help="Remote URL"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Destination file"),
) -> None:
    """Download a URL through the proxy chain into a local file."""
    try:
        buffered = _downloader().download_file(url)
    except OverleafError as exc:
        typer.echo(f"Download failed: {exc}", err=True)
        raise typer.Exit(code=1)
    target = output or Path(buffered.path or "download")
    with buffered:
        buffered.move(target.expanduser())
    typer.echo(json.dumps({"path": str(target), "size": buffered.size}))


@app.command("sweep-images")
def sweep_images() -> None:
    """Remove expired learn images from the on-disk cache."""
    settings = get_settings()
    cache = ImageCache(
        _downloader(),
        base_url=settings.learn_image_url,
        base_dir=settings.learn_image_dir,
        cache_duration=settings.learn_cache_duration,
    )
    found = cache.fill()
    try:
        removed = cache.sweep()
    except OverleafError as exc:
        typer.echo(f"Sweep incomplete: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps({"found": found, "removed": removed}))


@app.command("open")
def open_in_overleaf(
    files: Optional[List[Path]] = typer.Argument(None, help="Local files sent as inline snippets"),
    url: Optional[List[str]] = typer.Option(None, "--url", help="Remote snippet URL, repeatable"),
    name: str = typer.Option("", "--name", help="Project name"),
    compiler: str = typer.Option("", "--compiler", help="pdflatex, latex, xelatex or lualatex"),
    user: str = typer.Option(..., "--user", help="User id sent as X-User-Id"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Create a project from local files and remote URLs."""
    snippets: list[dict[str, str]] = []
    for path in files or []:
        snippets.append({"path": path.name, "snapshot": path.expanduser().read_text(encoding="utf-8")})
    for remote in url or []:
        snippets.append({"url": remote})
    payload = {"project_name": name, "compiler": compiler, "snippets": snippets}
    resp = _request("POST", "/docs", host=host, json=payload, headers={"X-User-Id": user})
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command("link-url")
def link_url(
    project_id: str = typer.Argument(..., help="Project id"),
    parent_folder_id: str = typer.Argument(..., help="Folder receiving the file"),
    name: str = typer.Argument(..., help="File name in the project"),
    url: str = typer.Argument(..., help="Source URL"),
    user: str = typer.Option(..., "--user", help="User id sent as X-User-Id"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Create a linked file that tracks a remote URL."""
    payload = {
        "name": name,
        "parent_folder_id": parent_folder_id,
        "provider": "url",
        "data": {"url": url},
    }
    _request(
        "POST",
        f"/project/{project_id}/linked_file",
        host=host,
        json=payload,
        headers={"X-User-Id": user},
    )
    typer.echo(json.dumps({"status": "ok"}))


if __name__ == "__main__":
    app()
