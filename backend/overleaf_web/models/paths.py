"""Validation rules for file names, project paths, URLs and snapshots."""

from __future__ import annotations

import posixpath
import re
import unicodedata
from urllib.parse import unquote, urlsplit

from overleaf_web.core.errors import ValidationError

MAX_FILENAME_LENGTH = 150
MAX_DOC_LENGTH = 2 * 1024 * 1024

_BUILD_ID_RE = re.compile(r"^[a-f0-9]{16}-[a-f0-9]{16}$")


def validate_filename(name: str) -> None:
    if not name:
        raise ValidationError("filename cannot be empty")
    if name in (".", ".."):
        raise ValidationError("filename cannot be '.' or '..'")
    if len(name) > MAX_FILENAME_LENGTH:
        raise ValidationError(f"filename too long, max {MAX_FILENAME_LENGTH}")
    if name[0].isspace():
        raise ValidationError("filename cannot start with whitespace")
    if name[-1].isspace():
        raise ValidationError("filename cannot end with whitespace")
    for char in name:
        if char in "/\\*":
            raise ValidationError(f"filename cannot contain '{char}'")
        if unicodedata.category(char).startswith("C"):
            raise ValidationError("filename cannot contain unicode control character")


def validate_path(path: str) -> None:
    if not path:
        raise ValidationError("empty file/path")
    if path.startswith("/"):
        raise ValidationError("file/path is absolute")
    if path == "." or path.endswith("/") or path.endswith("/."):
        raise ValidationError("file/path is dir")
    if path == ".." or path.startswith("../") or path.endswith("/..") or "/../" in path:
        raise ValidationError("file/path is jumping")


def is_valid_path(path: str) -> bool:
    try:
        validate_path(path)
    except ValidationError:
        return False
    return True


def path_type(path: str) -> str:
    """Extension without the dot; empty when there is none."""
    name = posixpath.basename(path)
    idx = name.rfind(".")
    if idx == -1 or idx == len(name) - 1:
        return ""
    return name[idx + 1 :]


def validate_url(url: str) -> str:
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https"):
        raise ValidationError("url: unsupported or missing scheme")
    if not parts.netloc:
        raise ValidationError("url: missing host")
    return url


def file_name_from_url(url: str) -> str:
    """Last segment of the URL path, percent-decoded."""
    return posixpath.basename(unquote(urlsplit(url).path))


def validate_build_id(build_id: str) -> None:
    if not _BUILD_ID_RE.match(build_id or ""):
        raise ValidationError("invalid build id")


def validate_snapshot(snapshot: str, max_length: int = MAX_DOC_LENGTH) -> None:
    if len(snapshot) > max_length:
        raise ValidationError("doc is too large")


def validate_project_name(name: str) -> None:
    if not name:
        raise ValidationError("name cannot be empty")
    if len(name) > MAX_FILENAME_LENGTH:
        raise ValidationError(f"name too long, max {MAX_FILENAME_LENGTH}")
    if "/" in name or "\\" in name:
        raise ValidationError("name cannot contain slashes")


__all__ = [
    "MAX_DOC_LENGTH",
    "validate_filename",
    "validate_path",
    "is_valid_path",
    "path_type",
    "validate_url",
    "file_name_from_url",
    "validate_build_id",
    "validate_snapshot",
    "validate_project_name",
]
