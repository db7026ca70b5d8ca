"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "OLW_"
DEFAULT_CONFIG_PATH = Path("~/.config/overleaf-web/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("proxy", "chain"): "proxy_chain",
    ("proxy", "timeout"): "proxy_timeout",
    ("proxy", "token"): "proxy_token",
    ("proxy", "allow_redirects"): "proxy_allow_redirects",
    ("downloads", "max_size"): "max_download_size",
    ("downloads", "dir"): "download_dir",
    ("downloads", "parallel"): "parallel_downloads",
    ("learn", "api_url"): "learn_api_url",
    ("learn", "image_url"): "learn_image_url",
    ("learn", "image_dir"): "learn_image_dir",
    ("learn", "cache_duration"): "learn_cache_duration",
    ("learn", "sweep_interval"): "learn_sweep_interval",
    ("storage", "db_path"): "db_path",
    ("storage", "blob_dir"): "blob_dir",
    ("compile", "url"): "compile_url",
    ("compile", "timeout"): "compile_timeout",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    site_url: str = "http://localhost:3000"
    pdf_download_domain: str = "http://localhost:3000"
    compile_url: str = "http://localhost:3013"
    compile_timeout: float = 240.0
    proxy_chain: list[str] = Field(default_factory=lambda: ["http://localhost:8080/proxy/token"])
    proxy_timeout: float = 30.0
    proxy_token: str = "token"
    proxy_allow_redirects: bool = False
    max_download_size: int = 50 * 1024 * 1024
    download_dir: Path | None = None
    parallel_downloads: int = 5
    max_doc_length: int = 2 * 1024 * 1024
    learn_api_url: str = "https://learn.overleaf.com/learn-scripts/api.php"
    learn_image_url: str = "https://learn.overleaf.com"
    learn_image_dir: Path = Field(default=Path.home() / ".overleaf-web" / "learn-images")
    learn_cache_duration: float = 3600.0
    learn_sweep_interval: float = 600.0
    db_path: Path = Field(default=Path.home() / ".overleaf-web" / "projects.db")
    blob_dir: Path | None = None

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("proxy_chain", mode="before")
    @classmethod
    def _split_chain(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            value = [part.strip() for part in value.split(",") if part.strip()]
        if not value:
            raise ValueError("proxy_chain needs at least one hop")
        return list(value)

    @field_validator("db_path", "blob_dir", "learn_image_dir", "download_dir", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path | None:
        if value is None or value == "":
            return None
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("expected a path or string")

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with OLW_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings"]
