"""SQLite and disk backed project store.

Implements the project, file tree, document and filestore collaborators so
the import pipelines can run standalone. Docs live in the database, binary
files as blobs under ``blob_dir``. Blobs are written next to their final
location and renamed into place before the row that references them is
committed.
"""

from __future__ import annotations

import os
import posixpath
import shutil
import sqlite3
import tempfile
import zipfile
from pathlib import Path
from typing import BinaryIO, Sequence

import orjson

from overleaf_web.core.errors import NotAuthorizedError, NotFoundError, ValidationError, tag
from overleaf_web.core.logging import get_logger
from overleaf_web.db.sqlite import SQLiteDatabase
from overleaf_web.models.entities import (
    CreateProjectFile,
    CreateProjectFromZipRequest,
    CreateProjectRequest,
    CreateProjectResponse,
    Doc,
    FileRef,
    Folder,
    LinkedFileData,
    UploadFileRequest,
)
from overleaf_web.models.paths import MAX_DOC_LENGTH, path_type, validate_path
from overleaf_web.utils.ids import new_id
from overleaf_web.utils.time import now_ms

logger = get_logger(__name__)

DOC_EXTENSIONS = frozenset(
    {
        "tex", "latex", "sty", "cls", "bst", "bib", "bibtex", "txt", "tikz",
        "rtex", "md", "asy", "lbx", "bbx", "cbx", "m", "lco", "dtx", "ins",
        "ist", "def", "clo", "ldf", "rmd", "lua", "gv",
    }
)
ZIP_IGNORED_PREFIXES = ("__MACOSX/",)


class _ZipMember:
    def __init__(self, archive: zipfile.ZipFile, info: zipfile.ZipInfo, path: str) -> None:
        self._archive = archive
        self._info = info
        self.path = path
        self.size = info.file_size

    def open(self) -> BinaryIO:
        return self._archive.open(self._info)


class LocalProjectStore:
    def __init__(
        self,
        db: SQLiteDatabase,
        blob_dir: Path | None = None,
        max_doc_length: int = MAX_DOC_LENGTH,
    ) -> None:
        self.db = db
        self.blob_dir = Path(blob_dir) if blob_dir is not None else db.db_path.parent / "blobs"
        self.blob_dir.mkdir(parents=True, exist_ok=True)
        self.max_doc_length = max_doc_length

    # ProjectUploadManager ---------------------------------------------

    def create_project(self, request: CreateProjectRequest) -> CreateProjectResponse:
        project_id = new_id()
        root_id = new_id()
        staged: list[str] = []
        try:
            with self.db.transaction() as cur:
                cur.execute(
                    "INSERT INTO projects (id, name, owner_id, compiler, root_folder_id, has_default_name, created_at)"
                    " VALUES (?, ?, ?, ?, ?, ?, ?)",
                    [project_id, request.name, request.user_id, request.compiler, root_id,
                     int(request.has_default_name), now_ms()],
                )
                cur.execute(
                    "INSERT INTO members (project_id, user_id) VALUES (?, ?)",
                    [project_id, request.user_id],
                )
                cur.execute(
                    "INSERT INTO folders (id, project_id, parent_id, name) VALUES (?, ?, NULL, '')",
                    [root_id, project_id],
                )
                folders = {"": root_id}
                for item in request.files:
                    self._add_project_file(cur, project_id, folders, item, staged)
        except Exception:
            self._remove_blobs(staged)
            raise
        logger.info(
            "Created project %s", project_id, extra={"ctx_files": len(request.files)}
        )
        return CreateProjectResponse(project_id=project_id, name=request.name)

    def create_from_zip(self, request: CreateProjectFromZipRequest) -> CreateProjectResponse:
        try:
            archive = zipfile.ZipFile(request.file)
        except zipfile.BadZipFile as exc:
            raise ValidationError("invalid zip file") from exc
        with archive:
            infos = [
                info
                for info in archive.infolist()
                if not info.is_dir() and not info.filename.startswith(ZIP_IGNORED_PREFIXES)
            ]
            if not infos:
                raise ValidationError("zip file is empty")
            prefix = _common_root([info.filename for info in infos])
            files = [_ZipMember(archive, info, info.filename[len(prefix):]) for info in infos]
            return self.create_project(
                CreateProjectRequest(
                    user_id=request.user_id,
                    name=request.name,
                    compiler=request.compiler,
                    files=files,
                    has_default_name=request.has_default_name,
                )
            )

    def add_member(self, project_id: str, user_id: str) -> None:
        with self.db.transaction() as cur:
            cur.execute(
                "INSERT OR IGNORE INTO members (project_id, user_id) VALUES (?, ?)",
                [project_id, user_id],
            )

    # ProjectManager ---------------------------------------------------

    def get_tree_and_auth(self, project_id: str, user_id: str) -> Folder:
        root_id = self._root_folder_id(project_id)
        member = self.db.query_one(
            "SELECT 1 FROM members WHERE project_id = ? AND user_id = ?",
            [project_id, user_id],
        )
        if member is None:
            raise NotAuthorizedError()
        return self._load_tree(project_id, root_id)

    # FileTreeManager --------------------------------------------------

    def upload_file(self, request: UploadFileRequest) -> None:
        folder = self.db.query_one(
            "SELECT id FROM folders WHERE id = ? AND project_id = ?",
            [request.parent_folder_id, request.project_id],
        )
        if folder is None:
            raise NotFoundError("folder not found")
        linked = (
            orjson.dumps(request.linked_file_data.to_dict()).decode("utf-8")
            if request.linked_file_data is not None
            else None
        )
        staged: list[str] = []
        replaced: str | None = None
        try:
            blob_path, size = self._write_blob(request.file, staged)
            with self.db.transaction() as cur:
                existing = cur.execute(
                    "SELECT id, blob_path FROM entries WHERE folder_id = ? AND name = ?",
                    [request.parent_folder_id, request.file_name],
                ).fetchone()
                if existing is None:
                    cur.execute(
                        "INSERT INTO entries (id, project_id, folder_id, name, kind, content, blob_path, size,"
                        " linked_file_data, updated_at) VALUES (?, ?, ?, ?, 'file', NULL, ?, ?, ?, ?)",
                        [new_id(), request.project_id, request.parent_folder_id, request.file_name,
                         blob_path, size, linked, now_ms()],
                    )
                else:
                    replaced = existing["blob_path"]
                    cur.execute(
                        "UPDATE entries SET kind = 'file', content = NULL, blob_path = ?, size = ?,"
                        " linked_file_data = ?, updated_at = ? WHERE id = ?",
                        [blob_path, size, linked, now_ms(), existing["id"]],
                    )
        except Exception:
            self._remove_blobs(staged)
            raise
        if replaced:
            self._remove_blobs([replaced])
        logger.debug("Stored %s in project %s", request.file_name, request.project_id)

    # DocumentUpdaterManager / FilestoreManager ------------------------

    def get_doc(self, project_id: str, doc_id: str) -> str:
        row = self.db.query_one(
            "SELECT content FROM entries WHERE id = ? AND project_id = ? AND kind = 'doc'",
            [doc_id, project_id],
        )
        if row is None:
            raise NotFoundError("doc not found")
        return row["content"] or ""

    def get_read_stream_for_project_file(self, project_id: str, file_id: str) -> BinaryIO:
        row = self.db.query_one(
            "SELECT blob_path FROM entries WHERE id = ? AND project_id = ? AND kind = 'file'",
            [file_id, project_id],
        )
        if row is None:
            raise NotFoundError("file not found")
        try:
            return open(row["blob_path"], "rb")
        except FileNotFoundError as exc:
            raise NotFoundError("file not found") from exc

    # Internal helpers -------------------------------------------------

    def _root_folder_id(self, project_id: str) -> str:
        row = self.db.query_one("SELECT root_folder_id FROM projects WHERE id = ?", [project_id])
        if row is None:
            raise NotFoundError("project not found")
        return row["root_folder_id"]

    def _load_tree(self, project_id: str, root_id: str) -> Folder:
        folders = {
            row["id"]: (row["parent_id"], Folder(id=row["id"], name=row["name"]))
            for row in self.db.query(
                "SELECT id, parent_id, name FROM folders WHERE project_id = ? ORDER BY name",
                [project_id],
            )
        }
        for parent_id, folder in folders.values():
            if parent_id is not None and parent_id in folders:
                folders[parent_id][1].folders.append(folder)
        rows = self.db.query(
            "SELECT id, folder_id, name, kind, size, linked_file_data FROM entries"
            " WHERE project_id = ? ORDER BY name",
            [project_id],
        )
        for row in rows:
            parent = folders.get(row["folder_id"])
            if parent is None:
                continue
            if row["kind"] == "doc":
                parent[1].docs.append(Doc(id=row["id"], name=row["name"]))
            else:
                linked = row["linked_file_data"]
                parent[1].file_refs.append(
                    FileRef(
                        id=row["id"],
                        name=row["name"],
                        linked_file_data=LinkedFileData.from_dict(orjson.loads(linked)) if linked else None,
                        size=row["size"],
                    )
                )
        return folders[root_id][1]

    def _add_project_file(
        self,
        cur: sqlite3.Cursor,
        project_id: str,
        folders: dict[str, str],
        item: CreateProjectFile,
        staged: list[str],
    ) -> None:
        path = item.path
        try:
            validate_path(path)
        except ValidationError as exc:
            raise ValidationError(f"{path}: {exc}") from exc
        directory, name = posixpath.split(path)
        folder_id = self._ensure_folder(cur, project_id, folders, directory)

        content: str | None = None
        blob_path: str | None = None
        handle = item.open()
        try:
            if path_type(path).lower() in DOC_EXTENSIONS and item.size <= self.max_doc_length:
                raw = handle.read()
                try:
                    content = raw.decode("utf-8")
                    size = len(raw)
                except UnicodeDecodeError:
                    blob_path, size = self._write_bytes(raw, staged)
            else:
                blob_path, size = self._write_blob(handle, staged)
        finally:
            handle.close()

        try:
            cur.execute(
                "INSERT INTO entries (id, project_id, folder_id, name, kind, content, blob_path, size,"
                " linked_file_data, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, NULL, ?)",
                [new_id(), project_id, folder_id, name, "doc" if content is not None else "file",
                 content, blob_path, size, now_ms()],
            )
        except sqlite3.IntegrityError as exc:
            raise ValidationError(f"duplicate file: {path}") from exc

    def _ensure_folder(
        self,
        cur: sqlite3.Cursor,
        project_id: str,
        folders: dict[str, str],
        directory: str,
    ) -> str:
        if directory in folders:
            return folders[directory]
        parent, name = posixpath.split(directory)
        parent_id = self._ensure_folder(cur, project_id, folders, parent)
        folder_id = new_id()
        cur.execute(
            "INSERT INTO folders (id, project_id, parent_id, name) VALUES (?, ?, ?, ?)",
            [folder_id, project_id, parent_id, name],
        )
        folders[directory] = folder_id
        return folder_id

    def _write_blob(self, source: BinaryIO, staged: list[str]) -> tuple[str, int]:
        target = str(self.blob_dir / new_id())
        try:
            fd, tmp_path = tempfile.mkstemp(prefix="blob", dir=self.blob_dir)
        except OSError as exc:
            raise tag(exc, "create blob") from exc
        try:
            with os.fdopen(fd, "wb") as out:
                shutil.copyfileobj(source, out)
                size = out.tell()
            os.replace(tmp_path, target)
        except OSError as exc:
            self._remove_blobs([tmp_path])
            raise tag(exc, "write blob") from exc
        staged.append(target)
        return target, size

    def _write_bytes(self, raw: bytes, staged: list[str]) -> tuple[str, int]:
        target = str(self.blob_dir / new_id())
        try:
            with open(target, "wb") as out:
                out.write(raw)
        except OSError as exc:
            self._remove_blobs([target])
            raise tag(exc, "write blob") from exc
        staged.append(target)
        return target, len(raw)

    @staticmethod
    def _remove_blobs(paths: Sequence[str]) -> None:
        for path in paths:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
            except OSError as exc:
                logger.warning("Cannot remove blob %s: %s", path, exc)


def _common_root(names: Sequence[str]) -> str:
    """Folder prefix shared by every entry of an archive, e.g. ``project/``."""
    first = names[0].split("/", 1)
    if len(first) < 2:
        return ""
    prefix = first[0] + "/"
    if all(name.startswith(prefix) for name in names):
        return prefix
    return ""


__all__ = ["LocalProjectStore", "DOC_EXTENSIONS"]
