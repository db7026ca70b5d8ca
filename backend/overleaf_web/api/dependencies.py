"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

import requests
from fastapi import Header

from overleaf_web.core.config import Settings, get_settings
from overleaf_web.core.errors import NotAuthorizedError
from overleaf_web.db.sqlite import SQLiteDatabase
from overleaf_web.learn.images import ImageCache
from overleaf_web.learn.manager import LearnManager
from overleaf_web.learn.pages import PageCache
from overleaf_web.linked_files.manager import LinkedFileManager
from overleaf_web.linked_files.project_file import ProjectFileImporter
from overleaf_web.linked_files.project_output_file import ProjectOutputFileImporter
from overleaf_web.linked_files.url import UrlImporter
from overleaf_web.open_in_overleaf.manager import OpenInOverleafManager
from overleaf_web.open_in_overleaf.snippets import SnippetImportPipeline
from overleaf_web.proxy import BufferedDownloader, ProxyFetcher
from overleaf_web.services.compile_client import HttpCompileManager
from overleaf_web.services.local_store import LocalProjectStore

USER_HEADER = "X-User-Id"

_SESSION: requests.Session | None = None
_DB: SQLiteDatabase | None = None
_STORE: LocalProjectStore | None = None
_DOWNLOADER: BufferedDownloader | None = None
_LINKED_FILES: LinkedFileManager | None = None
_OPEN_IN_OVERLEAF: OpenInOverleafManager | None = None
_LEARN: LearnManager | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_http_session() -> requests.Session:
    global _SESSION
    if _SESSION is None:
        _SESSION = requests.Session()
    return _SESSION


def get_database() -> SQLiteDatabase:
    global _DB
    if _DB is None:
        db = SQLiteDatabase(get_app_settings().db_path)
        db.ensure_schema()
        _DB = db
    return _DB


def get_project_store() -> LocalProjectStore:
    global _STORE
    if _STORE is None:
        settings = get_app_settings()
        _STORE = LocalProjectStore(
            get_database(),
            blob_dir=settings.blob_dir,
            max_doc_length=settings.max_doc_length,
        )
    return _STORE


def get_fetcher() -> ProxyFetcher:
    settings = get_app_settings()
    return ProxyFetcher(settings.proxy_chain, timeout=settings.proxy_timeout, session=get_http_session())


def get_downloader() -> BufferedDownloader:
    global _DOWNLOADER
    if _DOWNLOADER is None:
        settings = get_app_settings()
        _DOWNLOADER = BufferedDownloader(
            get_fetcher(),
            max_size=settings.max_download_size,
            temp_dir=settings.download_dir,
        )
    return _DOWNLOADER


def get_linked_file_manager() -> LinkedFileManager:
    global _LINKED_FILES
    if _LINKED_FILES is None:
        settings = get_app_settings()
        store = get_project_store()
        downloader = get_downloader()
        compiles = HttpCompileManager(
            store,
            settings.compile_url,
            timeout=settings.compile_timeout,
            session=get_http_session(),
        )
        _LINKED_FILES = LinkedFileManager(
            store,
            [
                UrlImporter(store, downloader),
                ProjectFileImporter(store, store, store, store),
                ProjectOutputFileImporter(store, downloader, compiles, settings.pdf_download_domain),
            ],
        )
    return _LINKED_FILES


def get_open_in_overleaf_manager() -> OpenInOverleafManager:
    global _OPEN_IN_OVERLEAF
    if _OPEN_IN_OVERLEAF is None:
        settings = get_app_settings()
        store = get_project_store()
        downloader = get_downloader()
        pipeline = SnippetImportPipeline(
            downloader,
            store,
            parallel_downloads=settings.parallel_downloads,
            max_doc_length=settings.max_doc_length,
        )
        _OPEN_IN_OVERLEAF = OpenInOverleafManager(
            downloader, store, pipeline, max_doc_length=settings.max_doc_length
        )
    return _OPEN_IN_OVERLEAF


def get_learn_manager() -> LearnManager:
    global _LEARN
    if _LEARN is None:
        settings = get_app_settings()
        pages = PageCache(
            get_fetcher(),
            api_url=settings.learn_api_url,
            site_url=settings.site_url,
            cache_duration=settings.learn_cache_duration,
        )
        images = ImageCache(
            get_downloader(),
            base_url=settings.learn_image_url,
            base_dir=settings.learn_image_dir,
            cache_duration=settings.learn_cache_duration,
        )
        _LEARN = LearnManager(pages, images, sweep_interval=settings.learn_sweep_interval)
    return _LEARN


def get_user_id(x_user_id: str | None = Header(default=None)) -> str | None:
    """Caller identity; sessions are handled in front of this service."""
    return x_user_id or None


def require_user_id(x_user_id: str | None = Header(default=None)) -> str:
    if not x_user_id:
        raise NotAuthorizedError("login required")
    return x_user_id


def reset_dependencies() -> None:
    global _SESSION, _DB, _STORE, _DOWNLOADER, _LINKED_FILES, _OPEN_IN_OVERLEAF, _LEARN
    if _LEARN is not None:
        _LEARN.stop()
    if _DB is not None:
        _DB.close()
    get_app_settings.cache_clear()
    get_settings.cache_clear()
    _SESSION = None
    _DB = None
    _STORE = None
    _DOWNLOADER = None
    _LINKED_FILES = None
    _OPEN_IN_OVERLEAF = None
    _LEARN = None


__all__ = [
    "USER_HEADER",
    "get_app_settings",
    "get_http_session",
    "get_database",
    "get_project_store",
    "get_fetcher",
    "get_downloader",
    "get_linked_file_manager",
    "get_open_in_overleaf_manager",
    "get_learn_manager",
    "get_user_id",
    "require_user_id",
    "reset_dependencies",
]
